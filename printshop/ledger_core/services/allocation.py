"""
Carry-forward chain bookkeeping shared by payments and cancellations.

Invoices of a client form a chain through `previous_invoice`: a newer
invoice's `previous_balance` holds the unpaid balance of the older one.
When money reaches an older invoice directly, the part of it that was
carried forward must be released from the newer invoices, otherwise the
client would owe it twice. Money aimed at a newer invoice beyond its own
charges goes to the older invoice it carries, so both paths stay in step.
When an invoice becomes PAID, every ancestor is flagged
`balance_paid_from_future_invoice`.

Every change is recorded as an effect (kind, invoice, amount) so the
payment that caused it can later be reversed exactly.
"""
import logging

from ..models import Invoice
from ..money import ZERO

logger = logging.getLogger(__name__)

INVOICE_LEDGER_FIELDS = [
    "subtotal",
    "previous_balance",
    "discount",
    "paid_amount",
    "balance_paid_from_future_invoice",
]


class ChainCascade:
    """
    Applies amounts to invoices and propagates the consequences along
    the chain. Must run inside transaction.atomic(); invoices it loads
    are locked with select_for_update().
    """

    def __init__(self, invoices=()):
        # pk -> locked, in-memory invoice (one instance per row)
        self._invoices = {}
        self._dirty = {}
        self.effects = []
        for invoice in invoices:
            self._invoices[invoice.pk] = invoice

    # ---------- loading ----------
    def _track(self, invoice):
        return self._invoices.setdefault(invoice.pk, invoice)

    def _children(self, invoice):
        qs = (
            Invoice.objects.select_for_update()
            .filter(previous_invoice_id=invoice.pk)
            .exclude(status="CANCELLED")
            .order_by("created_at", "id")
        )
        return [self._track(child) for child in qs]

    def _parent(self, invoice):
        if not invoice.previous_invoice_id:
            return None
        cached = self._invoices.get(invoice.previous_invoice_id)
        if cached is not None:
            return cached
        parent = (
            Invoice.objects.select_for_update()
            .filter(pk=invoice.previous_invoice_id)
            .first()
        )
        return self._track(parent) if parent is not None else None

    def _touch(self, invoice):
        invoice.recalc_totals()
        self._dirty[invoice.pk] = invoice

    # ---------- operations ----------
    def _open_parent(self, invoice):
        """Older invoice whose unpaid balance this one still carries."""
        if invoice.previous_balance <= 0:
            return None
        parent = self._parent(invoice)
        if parent is None or parent.status not in ("UNPAID", "PARTIAL"):
            return None
        if parent.balance_paid_from_future_invoice:
            return None
        return parent

    @staticmethod
    def _own_unpaid(invoice):
        # charges raised on this invoice itself, not carried in
        own = max(invoice.subtotal - invoice.discount, ZERO)
        return max(own - invoice.paid_amount, ZERO)

    def apply(self, invoice, amount):
        """
        Apply up to `amount` to the invoice and return the allocation
        entries, one per invoice that received money.

        While the invoice still carries an open older invoice, only its own
        charges are paid here; the rest is paid at the source, which in
        turn releases the carried balance from this invoice.
        """
        invoice = self._track(invoice)
        entries = []
        remaining = amount

        parent = self._open_parent(invoice)
        if parent is not None:
            entry = self._apply_here(invoice, min(remaining, self._own_unpaid(invoice)))
            if entry is not None:
                entries.append(entry)
                remaining -= entry["amount_applied"]
            if remaining > 0:
                upstream = self.apply(parent, min(remaining, invoice.previous_balance))
                entries.extend(upstream)
                remaining -= sum((e["amount_applied"] for e in upstream), ZERO)

        if remaining > 0:
            entry = self._apply_here(invoice, remaining)
            if entry is not None:
                entries.append(entry)
        return entries

    def _apply_here(self, invoice, amount):
        before = invoice.balance_due
        applied = min(amount, before)
        if applied <= 0:
            return None

        was_paid = invoice.status == "PAID"
        invoice.paid_amount += applied
        self._touch(invoice)
        self.effects.append(("APPLIED", invoice, applied))

        entry = {
            "invoice_id": invoice.pk,
            "invoice_number": invoice.invoice_number,
            "amount_applied": applied,
            "previous_balance": before,
            "new_balance": invoice.balance_due,
            "new_status": invoice.status,
        }

        # the part of this balance that newer invoices carried is settled now
        self.release_descendants(invoice, applied)
        if invoice.status == "PAID" and not was_paid:
            self.flag_ancestors(invoice)
        return entry

    def release_descendants(self, invoice, amount):
        """
        Reduce previous_balance of invoices that carried this invoice's
        balance by at most `amount` in total, propagating further down the
        chain by however much each descendant's own balance dropped.
        """
        remaining = amount
        for child in self._children(invoice):
            if remaining <= 0:
                break
            release = min(child.previous_balance, remaining, child.balance_due)
            if release <= 0:
                continue
            old_balance = child.balance_due
            old_status = child.status
            child.previous_balance -= release
            self._touch(child)
            self.effects.append(("CARRY_RELEASE", child, release))
            remaining -= release

            dropped = old_balance - child.balance_due
            if dropped > 0:
                self.release_descendants(child, dropped)
            if child.status == "PAID" and old_status != "PAID":
                self.flag_ancestors(child)

    def flag_ancestors(self, invoice):
        """Mark every ancestor as settled through this (later) invoice."""
        seen = {invoice.pk}
        parent = self._parent(invoice)
        while parent is not None and parent.pk not in seen:
            seen.add(parent.pk)
            if not parent.balance_paid_from_future_invoice:
                parent.balance_paid_from_future_invoice = True
                self._touch(parent)
                self.effects.append(("ANCESTOR_SETTLED", parent, ZERO))
            parent = self._parent(parent)

    def save(self):
        """Persist every invoice touched, in a stable order."""
        for pk in sorted(self._dirty):
            self._dirty[pk].save(update_fields=INVOICE_LEDGER_FIELDS)
        logger.debug("Chain cascade saved %d invoice(s)", len(self._dirty))
        return list(self._dirty.values())
