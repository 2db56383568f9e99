"""
Counter sale: find or register the client, raise the invoice, spend any
credit the client holds and take the money handed over, all at once.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.db import transaction

from ..models import Client, Invoice
from ..money import ZERO
from .clients import register_client
from .invoicing import _get_active_client, create_invoice
from .payment import PaymentResult, receive_payment, spend_credit

logger = logging.getLogger(__name__)


@dataclass
class InstantInvoiceResult:
    client: Client
    client_created: bool
    invoice: Invoice
    credit_used: Decimal = ZERO
    payment: Optional[PaymentResult] = None


def instant_invoice(items, name=None, phone=None, client_id=None, notes=None,
                    due_date=None, discount=None, payment=None, user=None,
                    audit=None):
    """
    `client_id` picks an existing client; otherwise the client is looked
    up by phone and registered when new. `payment` is an optional dict
    with `amount`, `method` and `reference`; whatever it leaves over after
    the invoice is settled becomes client credit.
    """
    with transaction.atomic():
        if client_id is not None:
            client, created = _get_active_client(client_id), False
        else:
            client, created = register_client(name, phone, user=user, audit=audit)

        invoice = create_invoice(
            client.pk, items, notes=notes, due_date=due_date, discount=discount,
            user=user, audit=audit,
        )

        # re-read under lock, registration may have changed the row
        client = _get_active_client(client.pk)
        spent = spend_credit(client, invoice, user=user, audit=audit)
        credit_used = spent.total_allocated if spent is not None else ZERO

        received = None
        if payment and payment.get("amount"):
            # a fully covered invoice cannot be targeted, the money is credit
            target = invoice.pk if invoice.status in ("UNPAID", "PARTIAL") else None
            received = receive_payment(
                client.pk,
                payment["amount"],
                method=payment.get("method") or "CASH",
                invoice_id=target,
                reference=payment.get("reference"),
                notes="Payment received at invoice creation",
                user=user,
                audit=audit,
            )
            invoice.refresh_from_db()
        client.refresh_from_db()

    logger.info(
        "Instant invoice %s for %s (new=%s): credit_used=%s paid=%s balance=%s",
        invoice.invoice_number, client.client_id, created, credit_used,
        invoice.paid_amount, invoice.balance_due,
    )
    return InstantInvoiceResult(
        client=client,
        client_created=created,
        invoice=invoice,
        credit_used=credit_used,
        payment=received,
    )
