import logging

from celery import shared_task
from django.db import models, transaction

logger = logging.getLogger(__name__)


@shared_task  # register this function as a Celery task
def reconcile_invoices(client_id=None, fix=True):
    """
    Re-derive stored invoice totals and compare paid_amount with the
    payment allocations that should explain it.

    Drifted totals are rewritten when `fix` is set; paid_amount mismatches
    are only reported, they need a human to look at the payments.
    """
    # import models lazily to avoid circular imports at module import time
    from .models import Invoice, PaymentAllocation, PaymentReceived
    from .money import ZERO

    invoices = Invoice.objects.all()
    if client_id is not None:
        invoices = invoices.filter(client_id=client_id)

    # APPLIED allocations per invoice
    applied = dict(
        PaymentAllocation.objects.filter(kind="APPLIED", invoice__in=invoices)
        .order_by()
        .values_list("invoice_id")
        .annotate(total=models.Sum("amount"))
    )
    # payments recorded before allocations existed only name their invoice
    legacy = dict(
        PaymentReceived.objects.filter(invoice__in=invoices, allocations__isnull=True)
        .order_by()
        .values_list("invoice_id")
        .annotate(total=models.Sum("amount"))
    )

    summary = {"checked": 0, "recalculated": 0, "mismatches": []}
    for invoice in invoices.order_by("pk").iterator():
        summary["checked"] += 1

        stored = (invoice.total_amount, invoice.balance_due, invoice.status)
        invoice.recalc_totals()
        if stored != (invoice.total_amount, invoice.balance_due, invoice.status):
            logger.warning(
                "Invoice %s totals drifted: stored=%s derived=%s",
                invoice.invoice_number, stored,
                (invoice.total_amount, invoice.balance_due, invoice.status),
            )
            summary["recalculated"] += 1
            if fix:
                with transaction.atomic():
                    invoice.save(update_fields=["total_amount", "balance_due", "status"])

        expected = applied.get(invoice.pk, ZERO) + legacy.get(invoice.pk, ZERO)
        if expected != invoice.paid_amount:
            logger.warning(
                "Invoice %s paid_amount=%s but payments explain %s",
                invoice.invoice_number, invoice.paid_amount, expected,
            )
            summary["mismatches"].append({
                "invoice_number": invoice.invoice_number,
                "paid_amount": str(invoice.paid_amount),
                "allocated": str(expected),
            })

    logger.info(
        "Reconciled %d invoice(s): %d recalculated, %d mismatch(es)",
        summary["checked"], summary["recalculated"], len(summary["mismatches"]),
    )
    return summary
