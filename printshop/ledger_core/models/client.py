import re
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from ..managers import ClientManager

MEMBERSHIP_TYPE_CHOICES = [
    ("FIXED", "Fixed amount"),
    ("PERCENTAGE", "Percentage"),
]


def normalize_phone(phone):
    """Strip everything but digits: '0300-1234567' -> '03001234567'."""
    return re.sub(r"\D", "", phone or "")


def phone_variants(phone):
    """All formats a stored phone may be in (as typed, digits, dashed)."""
    if not phone:
        return []
    original = phone.strip()
    digits = normalize_phone(phone)
    variants = [original]
    if digits and digits != original:
        variants.append(digits)
    # Local format puts a dash after the 4-digit network prefix
    if len(digits) >= 4:
        dashed = f"{digits[:4]}-{digits[4:]}"
        if dashed not in variants:
            variants.append(dashed)
    return variants


# ---------- Client ----------
# Customer of the print shop, receives invoices and pays them
class Client(models.Model):
    # Human-readable sequential id (e.g. "CLIENT_001")
    client_id = models.CharField(max_length=32, unique=True)

    name = models.CharField(max_length=200)

    # Primary external identifier, used for lookup and merging
    phone = models.CharField(max_length=32, unique=True)
    email = models.EmailField(null=True, blank=True)
    address = models.TextField(null=True, blank=True)
    cnic = models.CharField(max_length=32, null=True, blank=True)

    # Soft delete flag, clients with invoices are never hard-deleted
    is_active = models.BooleanField(default=True)

    # Accumulated overpayments, never negative
    credit_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    # Membership discount profile (optional)
    membership_type = models.CharField(
        max_length=10, choices=MEMBERSHIP_TYPE_CHOICES, null=True, blank=True
    )
    membership_discount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    membership_start = models.DateField(null=True, blank=True)
    membership_end = models.DateField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ClientManager()

    class Meta:
        indexes = [
            models.Index(fields=["name"], name="client_name_idx"),
            models.Index(fields=["is_active"], name="client_active_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(credit_balance__gte=0),
                name="client_credit_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(membership_discount__gte=0),
                name="client_membership_discount_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.client_id} {self.name}"

    def has_valid_membership(self, on_date=None):
        """True when a discount profile exists and its window covers the date."""
        if not self.membership_type or self.membership_discount <= 0:
            return False
        on_date = on_date or timezone.localdate()
        if self.membership_start and self.membership_start > on_date:
            return False
        if self.membership_end and self.membership_end < on_date:
            return False
        return True

    def clean(self):
        if self.credit_balance is not None and self.credit_balance < 0:
            raise ValidationError("Credit balance cannot be negative")
        if self.membership_type == "PERCENTAGE" and self.membership_discount > 100:
            raise ValidationError("Percentage discount cannot exceed 100")
        if (
            self.membership_start
            and self.membership_end
            and self.membership_start > self.membership_end
        ):
            raise ValidationError("Membership start must be before its end")
