from django.core.exceptions import ValidationError
from django.db.models.signals import post_delete, post_save, pre_delete
from django.dispatch import receiver

from .models import Invoice, InvoiceItem, PaymentAllocation

""" Block invoice deletion if any payments are applied."""


# pre_delete fires just before Django deletes the instance,
# also for queryset deletes that bypass Invoice.delete()
@receiver(pre_delete, sender=Invoice)
def prevent_delete_invoice_with_payments(sender, instance, **kwargs):
    if instance.has_payments() or PaymentAllocation.objects.filter(
        invoice=instance
    ).exists():
        raise ValidationError("Cannot delete invoice with applied payments.")


"""
    Recalculate invoice totals when an item is added/updated/removed
    outside the services (admin inline, shell).
"""


@receiver((post_save, post_delete), sender=InvoiceItem)
def invoice_item_changed(sender, instance, **kwargs):
    # items going away with their invoice need no recalculation
    if isinstance(kwargs.get("origin"), Invoice):
        return
    try:
        inv = Invoice.objects.get(pk=instance.invoice_id)
    except Invoice.DoesNotExist:
        # item deleted together with its invoice
        return
    inv.recalc_subtotal_from_items()
    inv.save(update_fields=["subtotal"])
