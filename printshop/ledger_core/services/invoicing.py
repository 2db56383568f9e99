import logging

from django.db import transaction

from ..exceptions import InvalidState, NotFound
from ..models import Client, Invoice, InvoiceItem
from ..money import ZERO
from .allocation import ChainCascade
from .audit_helper import get_audit_recorder, log_action
from .payment import spend_credit
from .sequences import next_sequence
from .validation import build_items, compute_discount

logger = logging.getLogger(__name__)


# ----------------------------
# Balance carry-forward
# ----------------------------
def outstanding_summary(client, lock=False):
    """
    Return (pending_balance, latest_open_invoice) for a client.

    Open invoices whose balance is already folded into another open
    invoice (they are its previous_invoice) are counted once, through
    the newer invoice.
    """
    qs = Invoice.objects.for_client(client).open().newest_first()
    if lock:
        qs = qs.select_for_update()
    open_invoices = list(qs)

    carried = {
        inv.previous_invoice_id for inv in open_invoices if inv.previous_invoice_id
    }
    pending = sum(
        (inv.balance_due for inv in open_invoices if inv.pk not in carried), ZERO
    )
    latest = open_invoices[0] if open_invoices else None
    return pending, latest


def _get_active_client(client_id, lock=True):
    qs = Client.objects.active()
    if lock:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=client_id)
    except (Client.DoesNotExist, ValueError, TypeError):
        raise NotFound("Client not found")


def _get_invoice(invoice_id, lock=True):
    qs = Invoice.objects.select_related("client")
    if lock:
        qs = qs.select_for_update(of=("self",))
    try:
        return qs.get(pk=invoice_id)
    except (Invoice.DoesNotExist, ValueError, TypeError):
        raise NotFound("Invoice not found")


def _lock_invoice(invoice_id):
    """
    Lock the owning client row, then the invoice.
    Same order as payments so the two never deadlock.
    """
    invoice = _get_invoice(invoice_id, lock=False)
    Client.objects.select_for_update().get(pk=invoice.client_id)
    return _get_invoice(invoice_id)


def _carried_by(invoice):
    """Non-cancelled invoice that carries this invoice's balance, if any."""
    return (
        Invoice.objects.filter(previous_invoice=invoice)
        .exclude(status="CANCELLED")
        .first()
    )


def create_invoice(client_id, items, notes=None, due_date=None, discount=None,
                   apply_credit=False, user=None, audit=None):
    """
    Create an invoice whose previous_balance carries the client's
    outstanding balance forward.
    With `apply_credit` the client's credit balance pays as much of the
    new total as it covers.
    Invoice, items, credit payment and audit records are written in one
    transaction.
    """
    # validate input before touching the database
    built_items = build_items(items)
    subtotal = sum((item.amount for item in built_items), ZERO)

    with transaction.atomic():
        # Lock the client row: carry-forward and payments for the
        # same client are serialised on it
        client = _get_active_client(client_id)

        previous_balance, previous_invoice = outstanding_summary(client, lock=True)
        manual, membership = compute_discount(subtotal, client, discount)

        invoice = Invoice(
            invoice_number=next_sequence("INVOICE"),
            client=client,
            due_date=due_date,
            subtotal=subtotal,
            previous_balance=previous_balance,
            discount=manual + membership,
            paid_amount=ZERO,
            status="UNPAID",
            notes=notes or None,
            previous_invoice=previous_invoice,
            created_by=user if getattr(user, "pk", None) else None,
        )
        invoice.save()

        for item in built_items:
            item.invoice = invoice
        InvoiceItem.objects.bulk_create(built_items)

        log_action(
            entity_type="INVOICE",
            instance=invoice,
            action="CREATE",
            user=user,
            audit=audit,
            details={
                "invoiceNumber": invoice.invoice_number,
                "clientName": client.name,
                "subtotal": invoice.subtotal,
                "previousBalance": invoice.previous_balance,
                "manualDiscount": manual,
                "membershipDiscount": membership,
                "totalAmount": invoice.total_amount,
                "previousInvoice": (
                    previous_invoice.invoice_number if previous_invoice else None
                ),
                "itemsCount": len(built_items),
            },
        )

        credit_used = ZERO
        if apply_credit:
            spent = spend_credit(client, invoice, user=user, audit=audit)
            if spent is not None:
                credit_used = spent.total_allocated

    logger.info(
        "Created invoice %s for %s: subtotal=%s previous_balance=%s total=%s "
        "credit_used=%s",
        invoice.invoice_number, client.client_id, invoice.subtotal,
        invoice.previous_balance, invoice.total_amount, credit_used,
    )
    return invoice


# ----------------------------------------------
# Invoice maintenance workflows
# ----------------------------------------------
def update_invoice(invoice_id, items=None, notes=None, due_date=None,
                   user=None, audit=None):
    """Edit an invoice that has no payments; items replace the old ones."""
    built_items = build_items(items) if items is not None else None

    with transaction.atomic():
        invoice = _lock_invoice(invoice_id)
        if invoice.is_cancelled:
            raise InvalidState("Cannot edit a cancelled invoice")
        if invoice.has_payments():
            raise InvalidState("Cannot edit invoice with payments")

        update_fields = ["notes", "due_date"]
        if notes is not None:
            invoice.notes = notes or None
        if due_date is not None:
            invoice.due_date = due_date

        if built_items is not None:
            carrier = _carried_by(invoice)
            if carrier is not None:
                raise InvalidState(
                    f"Invoice balance has been carried forward to "
                    f"{carrier.invoice_number}"
                )
            invoice.items.all().delete()
            for item in built_items:
                item.invoice = invoice
            InvoiceItem.objects.bulk_create(built_items)
            invoice.subtotal = sum((item.amount for item in built_items), ZERO)
            # a discount never exceeds what is being charged
            invoice.discount = min(invoice.discount, invoice.subtotal)
            update_fields += ["subtotal", "discount"]

        invoice.save(update_fields=update_fields)

        log_action(
            entity_type="INVOICE",
            instance=invoice,
            action="UPDATE",
            user=user,
            audit=audit,
            details={
                "invoiceNumber": invoice.invoice_number,
                "subtotal": invoice.subtotal,
                "totalAmount": invoice.total_amount,
                "itemsCount": len(built_items) if built_items is not None else None,
            },
        )
    return invoice


def cancel_invoice(invoice_id, user=None, audit=None):
    """
    Move an invoice to CANCELLED (terminal).
    Whatever part of its balance a newer invoice carried is released,
    since a cancelled invoice is no longer owed.
    """
    with transaction.atomic():
        invoice = _lock_invoice(invoice_id)
        if invoice.is_cancelled:
            raise InvalidState("Invoice is already cancelled")

        old_status = invoice.status
        cascade = ChainCascade([invoice])
        if invoice.balance_due > 0 and not invoice.balance_paid_from_future_invoice:
            cascade.release_descendants(invoice, invoice.balance_due)
        cascade.save()

        invoice.status = "CANCELLED"
        invoice.save(update_fields=["status"])

        log_action(
            entity_type="INVOICE",
            instance=invoice,
            action="STATUS_CHANGE",
            user=user,
            audit=audit,
            details={
                "invoiceNumber": invoice.invoice_number,
                "from": old_status,
                "to": "CANCELLED",
            },
        )

    logger.info("Cancelled invoice %s (was %s)", invoice.invoice_number, old_status)
    return invoice


def delete_invoice(invoice_id, user=None, audit=None):
    """Hard-delete an invoice; only allowed while no payment touches it."""
    with transaction.atomic():
        invoice = _lock_invoice(invoice_id)
        if invoice.has_payments() or invoice.allocations.exists():
            raise InvalidState(
                "Cannot delete invoice with payments. Cancel the invoice instead."
            )
        carrier = _carried_by(invoice)
        if carrier is not None:
            raise InvalidState(
                f"Invoice balance has been carried forward to {carrier.invoice_number}"
            )

        pk = invoice.pk
        details = {
            "invoiceNumber": invoice.invoice_number,
            "clientName": invoice.client.name,
            "totalAmount": invoice.total_amount,
            "reason": "Invoice deleted",
        }
        invoice.delete()  # items cascade

        # the instance lost its pk on delete, record against the saved one
        get_audit_recorder(audit).record(
            "INVOICE", pk, "DELETE", actor=user, details=details
        )
    logger.info("Deleted invoice %s", details["invoiceNumber"])


def client_invoice_history(client_id):
    """Invoices of a client, newest first, with items and payments loaded."""
    try:
        client = Client.objects.get(pk=client_id)
    except (Client.DoesNotExist, ValueError, TypeError):
        raise NotFound("Client not found")
    return list(
        Invoice.objects.for_client(client)
        .newest_first()
        .select_related("previous_invoice")
        .prefetch_related("items", "payments_received", "allocations__payment")
    )
