from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from ..managers import InvoiceManager
from ..money import ZERO, money
from .client import Client

INV_STATUS_CHOICES = [
    ("UNPAID", "Unpaid"),
    ("PARTIAL", "Partially paid"),
    ("PAID", "Paid"),
    ("CANCELLED", "Cancelled"),
]


def derive_status(paid_amount, balance_due):
    """PAID when nothing is due, PARTIAL when something was paid, else UNPAID."""
    if balance_due <= 0:
        return "PAID"
    if paid_amount > 0:
        return "PARTIAL"
    return "UNPAID"


class Invoice(models.Model):  # Represents a client invoice

    # human-readable (e.g. "INV_001")
    invoice_number = models.CharField(max_length=32, unique=True)

    # prevent deleting a client who has invoices
    client = models.ForeignKey(
        Client, on_delete=models.PROTECT, related_name="invoices"
    )

    invoice_date = models.DateField(default=timezone.localdate)
    due_date = models.DateField(null=True, blank=True)

    # Sum of all line amounts
    subtotal = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    # Unpaid balance carried forward from earlier invoices at creation time
    previous_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    # Flat amount (manual + membership discount)
    discount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    # Derived: subtotal + previous_balance - discount
    total_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    # Cumulative payments applied
    paid_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    # Derived: max(0, total_amount - paid_amount)
    balance_due = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    status = models.CharField(
        max_length=10, choices=INV_STATUS_CHOICES, default="UNPAID"
    )
    """ Workflow:
        UNPAID = nothing paid yet.
        PARTIAL = some payment applied.
        PAID = nothing left due.
        CANCELLED = terminal, excluded from all balance computation. """

    # Invoice whose unpaid balance was folded into previous_balance
    previous_invoice = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="next_invoices",
    )
    # Set when this invoice's balance was cleared through a later invoice
    balance_paid_from_future_invoice = models.BooleanField(default=False)

    notes = models.TextField(null=True, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = InvoiceManager()

    class Meta:
        indexes = [
            models.Index(fields=["client", "status"], name="inv_client_status_idx"),
            models.Index(fields=["client", "created_at"], name="inv_client_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(subtotal__gte=0)
                & models.Q(previous_balance__gte=0)
                & models.Q(discount__gte=0)
                & models.Q(paid_amount__gte=0)
                & models.Q(balance_due__gte=0),
                name="inv_non_negative_amounts",
            ),
        ]

    def __str__(self):
        return f"Inv {self.invoice_number or self.pk}"

    @property
    def is_cancelled(self):
        return self.status == "CANCELLED"

    """ Keep stored totals a pure function of
    subtotal, previous_balance, discount and paid_amount """

    def recalc_totals(self):
        self.subtotal = money(self.subtotal)
        self.previous_balance = money(self.previous_balance)
        self.discount = money(self.discount)
        self.paid_amount = money(self.paid_amount)
        self.total_amount = self.subtotal + self.previous_balance - self.discount
        # if payments overshoot for any reason, it caps at 0, not negative
        self.balance_due = max(self.total_amount - self.paid_amount, ZERO)
        # cancellation is terminal, totals are kept for history only
        if not self.is_cancelled:
            self.status = derive_status(self.paid_amount, self.balance_due)

    def recalc_subtotal_from_items(self):
        if not getattr(self, "pk", None):
            return
        self.subtotal = sum((item.amount for item in self.items.all()), ZERO)
        self.recalc_totals()

    def clean(self):
        if self.discount > self.subtotal + self.previous_balance:
            raise ValidationError("Discount cannot exceed the invoice amount")
        if self.previous_invoice_id and self.previous_invoice_id == self.pk:
            raise ValidationError("An invoice cannot carry its own balance")

    def save(self, *args, **kwargs):
        # totals are always derived, never trusted from the caller
        self.recalc_totals()
        update_fields = kwargs.get("update_fields")
        if update_fields is not None:
            kwargs["update_fields"] = set(update_fields) | {
                "total_amount",
                "balance_due",
                "status",
                "updated_at",
            }
        return super().save(*args, **kwargs)

    """ Prevent deleting invoices that already have payments applied """

    def has_payments(self):
        from .payment import PaymentAllocation, PaymentReceived

        return (
            self.paid_amount > 0
            or PaymentReceived.objects.filter(invoice=self).exists()
            or PaymentAllocation.objects.filter(invoice=self, kind="APPLIED").exists()
        )

    def delete(self, *args, **kwargs):
        if self.has_payments():
            raise ValidationError(
                "Cannot delete invoice with payments. Cancel the invoice instead."
            )
        return super().delete(*args, **kwargs)

    def ancestors(self):
        """Walk previous_invoice links backwards (nearest first)."""
        seen = {self.pk}
        current = self.previous_invoice
        while current is not None and current.pk not in seen:
            seen.add(current.pk)
            yield current
            current = current.previous_invoice


class InvoiceItem(models.Model):  # One printed piece, priced by area

    invoice = models.ForeignKey(
        Invoice, on_delete=models.CASCADE, related_name="items"
    )
    s_no = models.PositiveIntegerField(default=1)
    item_name = models.CharField(max_length=200)

    # Dimensions in feet, sqf = width * height * quantity
    width = models.DecimalField(max_digits=12, decimal_places=2)
    height = models.DecimalField(max_digits=12, decimal_places=2)
    quantity = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("1")
    )
    sqf = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    # Price per square foot
    rate = models.DecimalField(max_digits=18, decimal_places=2)
    amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    class Meta:
        ordering = ("invoice", "s_no")
        constraints = [
            models.CheckConstraint(
                condition=models.Q(width__gt=0)
                & models.Q(height__gt=0)
                & models.Q(quantity__gt=0)
                & models.Q(rate__gt=0),
                name="invitem_positive_dimensions",
            ),
        ]

    def __str__(self):
        return f"{self.invoice.invoice_number} #{self.s_no} {self.item_name}"

    def compute_amount(self):
        # sqf stays unrounded until the final amount is quantised
        raw_sqf = self.width * self.height * self.quantity
        self.sqf = money(raw_sqf)
        self.amount = money(raw_sqf * self.rate)
        return self.amount

    def clean(self):
        for field in ("width", "height", "quantity", "rate"):
            value = getattr(self, field)
            if value is None or value <= 0:
                raise ValidationError(f"{field} must be > 0")

    def save(self, *args, **kwargs):
        self.compute_amount()
        return super().save(*args, **kwargs)
