from django.conf import settings  # To access global project settings
from django.core.exceptions import ValidationError
from django.db import models

ENTITY_TYPES = [
    ("CLIENT", "Client"),
    ("INVOICE", "Invoice"),
    ("PAYMENT", "Payment"),
    ("USER", "User"),
]

AUDIT_ACTIONS = [
    ("CREATE", "Create"),
    ("UPDATE", "Update"),
    ("DELETE", "Delete"),
    ("PAYMENT_RECEIVED", "Payment received"),
    ("STATUS_CHANGE", "Status change"),
    ("ACTIVATE", "Activate"),
    ("DEACTIVATE", "Deactivate"),
    ("CREDIT_APPLIED", "Credit applied"),
]


# ---------- Audit / Event log ----------
class AuditLog(
    models.Model
):  # Append-only record of what happened to clients, invoices and payments
    # What kind of object was affected
    entity_type = models.CharField(max_length=10, choices=ENTITY_TYPES)
    # Primary key of the affected object (kept as text, object may be gone)
    entity_id = models.CharField(max_length=100)
    # Type of event being logged
    action = models.CharField(max_length=20, choices=AUDIT_ACTIONS)
    # Which user performed the action
    # (Nullable in case the action was automated, e.g. background job)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL
    )
    # Amounts, numbers and statuses involved, in JSON format
    details = models.JSONField(null=True, blank=True)
    # Timestamp when the event was logged
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        # Filter logs quickly
        indexes = [
            models.Index(fields=["entity_type", "entity_id"], name="audit_entity_idx"),
            models.Index(fields=["created_at"], name="audit_created_idx"),
        ]
        ordering = ("-created_at", "-id")

    # Show created_at, user, action, entity_type, and
    # entity_id in admin dropdowns and debug logs
    def __str__(self):
        time = self.created_at
        usr = self.user
        action = self.action
        entType = self.entity_type
        entId = self.entity_id
        return f"[{time:%Y-%m-%d %H:%M}] {usr} {action} {entType}({entId})"

    def save(self, *args, **kwargs):
        # Entries are immutable once written
        if self.pk:
            raise ValidationError("Audit log entries cannot be modified")
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
