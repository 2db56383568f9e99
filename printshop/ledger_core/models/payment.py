from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from .client import Client
from .invoice import Invoice

PAYMENT_METHODS = [
    # Keeps payment method standardized across records
    ("CASH", "Cash"),
    ("BANK", "Bank"),
    ("CHEQUE", "Cheque"),
    ("ONLINE", "Online"),
    # written by the ledger when client credit pays an invoice
    ("CREDIT", "Client credit"),
]

ALLOCATION_KINDS = [
    # amount added to invoice.paid_amount
    ("APPLIED", "Applied to invoice"),
    # amount removed from a descendant's previous_balance
    ("CARRY_RELEASE", "Carried balance released"),
    # ancestor flagged balance_paid_from_future_invoice (amount is 0)
    ("ANCESTOR_SETTLED", "Ancestor settled by later invoice"),
]


class PaymentReceived(models.Model):  # Money received from a client
    # human-readable (e.g. "REC_001")
    receipt_number = models.CharField(max_length=32, unique=True)

    client = models.ForeignKey(
        Client, on_delete=models.PROTECT, related_name="payments"
    )
    # Primary invoice when the caller targeted one, null for FIFO
    invoice = models.ForeignKey(
        Invoice,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="payments_received",
    )

    # Immutable once created
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    payment_method = models.CharField(
        max_length=10, choices=PAYMENT_METHODS, default="CASH"
    )
    reference = models.CharField(max_length=200, null=True, blank=True)
    notes = models.TextField(null=True, blank=True)
    payment_date = models.DateTimeField(default=timezone.now)

    # Portion that became client credit (overpayment)
    credit_added = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["client", "created_at"], name="payment_client_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payment_amount_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(credit_added__gte=0),
                name="payment_credit_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.receipt_number} ({self.amount})"

    def clean(self):
        if self.amount is None or self.amount <= 0:
            raise ValidationError("Payment amount must be positive")
        if self.invoice_id and self.invoice.client_id != self.client_id:
            raise ValidationError("Invoice does not belong to this client")
        # amount cannot change after the allocation side effects exist
        if self.pk:
            orig = PaymentReceived.objects.only("amount").get(pk=self.pk)
            if orig.amount != self.amount:
                raise ValidationError("Payment amount cannot be modified")

    def applied_total(self):
        return self.allocations.filter(kind="APPLIED").aggregate(
            total=models.Sum("amount")
        )["total"] or Decimal("0.00")


class PaymentAllocation(models.Model):
    """
    One side effect of a payment on one invoice.
    Lets a payment be reversed exactly.
    """

    payment = models.ForeignKey(
        PaymentReceived, on_delete=models.CASCADE, related_name="allocations"
    )
    invoice = models.ForeignKey(
        Invoice, on_delete=models.PROTECT, related_name="allocations"
    )
    kind = models.CharField(
        max_length=20, choices=ALLOCATION_KINDS, default="APPLIED"
    )
    amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    # order in which the effects happened
    sequence = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ("payment", "sequence")
        indexes = [
            models.Index(fields=["invoice", "kind"], name="alloc_invoice_kind_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gte=0),
                name="allocation_non_negative_amount",
            ),
        ]

    def __str__(self):
        no = self.invoice.invoice_number
        return f"{self.payment.receipt_number} → {no} {self.kind} ({self.amount})"
