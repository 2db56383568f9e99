from django.contrib import admin

from ledger_core.models import InvoiceItem, PaymentAllocation

# ---------- Helpful inline admin classes ----------


class InvoiceItemInline(admin.TabularInline):
    """Show InvoiceItem rows on the Invoice page"""

    model = InvoiceItem
    extra = 0  # don’t show “empty” rows by default
    fields = ("s_no", "item_name", "width", "height", "quantity", "sqf", "rate", "amount")
    # derived from the dimensions on save
    readonly_fields = ("sqf", "amount")
    ordering = ("s_no",)


class PaymentAllocationInline(admin.TabularInline):
    """Side effects of a payment, read-only: they are what reversal undoes"""

    model = PaymentAllocation
    extra = 0
    fields = ("sequence", "kind", "invoice", "amount")
    readonly_fields = fields
    can_delete = False
    ordering = ("sequence",)

    def has_add_permission(self, request, obj=None):
        return False

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("invoice")
