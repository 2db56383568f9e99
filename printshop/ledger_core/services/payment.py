import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from django.conf import settings
from django.db import transaction

from ..exceptions import InvalidInput, InvalidState, NotFound
from ..models import Client, Invoice, PaymentAllocation, PaymentReceived
from ..money import ZERO
from .allocation import INVOICE_LEDGER_FIELDS, ChainCascade
from .audit_helper import get_audit_recorder, log_action
from .sequences import next_sequence
from .validation import clean_amount, clean_method

logger = logging.getLogger(__name__)

# fields a caller may still change once the money has moved
EDITABLE_PAYMENT_FIELDS = ("payment_method", "reference", "notes")


@dataclass
class PaymentResult:
    receipt_number: str
    payment: PaymentReceived
    allocations: List[Dict] = field(default_factory=list)
    total_allocated: Decimal = ZERO
    credit_added: Decimal = ZERO


def _lock_client(client_id):
    try:
        return Client.objects.active().select_for_update().get(pk=client_id)
    except (Client.DoesNotExist, ValueError, TypeError):
        raise NotFound("Client not found")


def _lock_target(client, invoice_id):
    try:
        invoice = Invoice.objects.select_for_update().get(pk=invoice_id)
    except (Invoice.DoesNotExist, ValueError, TypeError):
        raise NotFound("Invoice not found")
    # another client's invoice looks the same as a missing one
    if invoice.client_id != client.pk:
        raise NotFound("Invoice not found")
    if invoice.is_cancelled:
        raise InvalidState("Cannot apply payment to a cancelled invoice")
    if invoice.status == "PAID":
        raise InvalidState("Invoice already fully paid")
    if invoice.balance_paid_from_future_invoice:
        raise InvalidState("Invoice balance was settled through a later invoice")
    return invoice


def _record_allocations(payment, cascade):
    # one row per side effect, in the order they happened
    PaymentAllocation.objects.bulk_create([
        PaymentAllocation(
            payment=payment,
            invoice=invoice,
            kind=kind,
            amount=effect_amount,
            sequence=index,
        )
        for index, (kind, invoice, effect_amount) in enumerate(cascade.effects)
    ])


# ----------------------------
# Payment-related workflows
# ----------------------------
def spend_credit(client, invoice, user=None, audit=None):
    """
    Pay `invoice` out of the client's credit balance.

    The client row must already be locked by the caller. The credit spent
    is recorded as a CREDIT payment with its own voucher number, so it
    shows up in the allocations and can be reversed like any payment.
    Returns the PaymentResult, or None when there was nothing to spend.
    """
    if client.credit_balance <= 0 or invoice.balance_due <= 0:
        return None

    cascade = ChainCascade([invoice])
    allocations = cascade.apply(invoice, client.credit_balance)
    used = sum((a["amount_applied"] for a in allocations), ZERO)
    if used <= 0:
        return None
    cascade.save()

    payment = PaymentReceived.objects.create(
        receipt_number=next_sequence("VOUCHER"),
        client=client,
        invoice=invoice,
        amount=used,
        payment_method="CREDIT",
        notes=f"Credit balance of {used} applied",
        created_by=user if getattr(user, "pk", None) else None,
    )
    _record_allocations(payment, cascade)

    client.credit_balance -= used
    client.save(update_fields=["credit_balance", "updated_at"])

    log_action(
        entity_type="PAYMENT",
        instance=payment,
        action="CREDIT_APPLIED",
        user=user,
        audit=audit,
        details={
            "voucherNumber": payment.receipt_number,
            "clientName": client.name,
            "invoiceNumber": invoice.invoice_number,
            "creditUsed": used,
            "creditRemaining": client.credit_balance,
            "allocations": allocations,
        },
    )
    logger.info(
        "Credit %s of %s spent on %s, %s left",
        payment.receipt_number, client.client_id, invoice.invoice_number,
        client.credit_balance,
    )
    return PaymentResult(
        receipt_number=payment.receipt_number,
        payment=payment,
        allocations=allocations,
        total_allocated=used,
    )


def receive_payment(client_id, amount, method="CASH", invoice_id=None,
                    reference=None, notes=None, user=None, audit=None):
    """
    Record money received from a client and allocate it.

    With `invoice_id` the whole amount goes to that invoice; otherwise it
    is spread over the client's open invoices oldest first (FIFO). Each
    application cascades along the carry-forward chain before the next
    invoice is looked at. Whatever is left becomes client credit, unless
    LEDGER_STRICT_PAYMENTS is on, in which case the payment is refused.
    """
    amount = clean_amount(amount)
    method = clean_method(method)
    strict = getattr(settings, "LEDGER_STRICT_PAYMENTS", False)

    # Everything inside either succeeds
    # as one unit or rolls back if something fails
    with transaction.atomic():
        # client row first: serialises allocations for the same client
        client = _lock_client(client_id)

        if invoice_id is not None:
            targets = [_lock_target(client, invoice_id)]
        else:
            targets = list(
                Invoice.objects.for_client(client)
                .open()
                .oldest_first()
                .select_for_update()
            )

        cascade = ChainCascade(targets)
        remaining = amount
        allocations = []
        for invoice in targets:
            if remaining <= 0:
                break
            # empty when the balance was already released by an earlier application
            entries = cascade.apply(invoice, remaining)
            allocations.extend(entries)
            remaining -= sum((e["amount_applied"] for e in entries), ZERO)

        if remaining > 0 and strict:
            raise InvalidState(
                f"Payment exceeds outstanding balance by {remaining}"
            )
        cascade.save()

        payment = PaymentReceived.objects.create(
            receipt_number=next_sequence("RECEIPT"),
            client=client,
            invoice=targets[0] if invoice_id is not None else None,
            amount=amount,
            payment_method=method,
            reference=reference or None,
            notes=notes or None,
            credit_added=remaining,
            created_by=user if getattr(user, "pk", None) else None,
        )

        _record_allocations(payment, cascade)

        # Overpayment
        if remaining > 0:
            client.credit_balance += remaining
            client.save(update_fields=["credit_balance", "updated_at"])

        total_allocated = amount - remaining
        log_action(
            entity_type="PAYMENT",
            instance=payment,
            action="PAYMENT_RECEIVED",
            user=user,
            audit=audit,
            details={
                "receiptNumber": payment.receipt_number,
                "clientName": client.name,
                "amount": amount,
                "paymentMethod": method,
                "allocations": allocations,
                "totalAllocated": total_allocated,
                "creditAdded": remaining,
            },
        )

    logger.info(
        "Payment %s from %s: amount=%s allocated=%s credit=%s invoices=%s",
        payment.receipt_number, client.client_id, amount, total_allocated,
        remaining, [a["invoice_number"] for a in allocations],
    )
    return PaymentResult(
        receipt_number=payment.receipt_number,
        payment=payment,
        allocations=allocations,
        total_allocated=total_allocated,
        credit_added=remaining,
    )


def _get_payment(payment_id, lock=True):
    qs = PaymentReceived.objects.all()
    if lock:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=payment_id)
    except (PaymentReceived.DoesNotExist, ValueError, TypeError):
        raise NotFound("Payment not found")


def _reverse_allocations(payment):
    """Undo every recorded side effect; returns the invoices touched."""
    allocations = list(payment.allocations.order_by("-sequence"))
    invoice_ids = {a.invoice_id for a in allocations}
    invoices = {
        inv.pk: inv
        for inv in Invoice.objects.select_for_update()
        .filter(pk__in=invoice_ids)
        .order_by("pk")
    }

    for allocation in allocations:
        invoice = invoices[allocation.invoice_id]
        if allocation.kind == "APPLIED":
            invoice.paid_amount = max(invoice.paid_amount - allocation.amount, ZERO)
        elif allocation.kind == "CARRY_RELEASE":
            invoice.previous_balance += allocation.amount
        elif allocation.kind == "ANCESTOR_SETTLED":
            invoice.balance_paid_from_future_invoice = False
    return invoices.values()


def _reverse_legacy(payment):
    """Payments recorded without allocation rows only touched their invoice."""
    invoice = Invoice.objects.select_for_update().get(pk=payment.invoice_id)
    invoice.paid_amount = max(invoice.paid_amount - payment.amount, ZERO)
    return [invoice]


def delete_payment(payment_id, user=None, audit=None):
    """
    Delete a payment and reverse everything it did: amounts applied,
    carried balances released, ancestors flagged and credit added.
    """
    with transaction.atomic():
        # look up the owner without a lock, then lock client before payment
        owner_id = _get_payment(payment_id, lock=False).client_id
        client = Client.objects.select_for_update().get(pk=owner_id)
        payment = _get_payment(payment_id)

        if payment.allocations.exists():
            invoices = _reverse_allocations(payment)
        elif payment.invoice_id:
            invoices = _reverse_legacy(payment)
        else:
            invoices = []

        for invoice in sorted(invoices, key=lambda inv: inv.pk):
            invoice.save(update_fields=INVOICE_LEDGER_FIELDS)

        if payment.credit_added > 0:
            if client.credit_balance < payment.credit_added:
                raise InvalidState(
                    "Client credit from this payment has already been used"
                )
            client.credit_balance -= payment.credit_added
            client.save(update_fields=["credit_balance", "updated_at"])
        restored = payment.amount if payment.payment_method == "CREDIT" else ZERO
        if restored > 0:
            # the credit it spent goes back to the client
            client.credit_balance += restored
            client.save(update_fields=["credit_balance", "updated_at"])

        pk = payment.pk
        details = {
            "receiptNumber": payment.receipt_number,
            "clientName": client.name,
            "amount": payment.amount,
            "creditReversed": payment.credit_added,
            "creditRestored": restored,
            "invoices": [inv.invoice_number for inv in invoices],
        }
        payment.delete()  # allocations cascade

        get_audit_recorder(audit).record(
            "PAYMENT", pk, "DELETE", actor=user, details=details
        )

    logger.info(
        "Deleted payment %s: amount=%s reversed on %s",
        details["receiptNumber"], details["amount"], details["invoices"],
    )
    return details


def update_payment(payment_id, user=None, audit=None, **changes):
    """Change non-financial fields (method, reference, notes) of a payment."""
    if "amount" in changes:
        raise InvalidInput("Payment amount cannot be modified")
    if "method" in changes:
        changes["payment_method"] = changes.pop("method")
    unknown = set(changes) - set(EDITABLE_PAYMENT_FIELDS)
    if unknown:
        raise InvalidInput(f"Cannot update field(s): {', '.join(sorted(unknown))}")

    with transaction.atomic():
        payment = _get_payment(payment_id)
        if payment.payment_method == "CREDIT" and "payment_method" in changes:
            raise InvalidInput("Method of a credit payment cannot be changed")
        before: Dict[str, Optional[str]] = {}
        for name, value in changes.items():
            if name == "payment_method":
                value = clean_method(value)
            else:
                value = value or None
            before[name] = getattr(payment, name)
            setattr(payment, name, value)

        if changes:
            payment.save(update_fields=[*changes, "updated_at"])
            log_action(
                entity_type="PAYMENT",
                instance=payment,
                action="UPDATE",
                user=user,
                audit=audit,
                details={
                    "receiptNumber": payment.receipt_number,
                    "before": before,
                    "after": {name: getattr(payment, name) for name in changes},
                },
            )
    return payment
