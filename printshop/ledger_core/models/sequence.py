from django.db import models

SEQUENCE_KINDS = [
    ("CLIENT", "Client"),
    ("INVOICE", "Invoice"),
    ("RECEIPT", "Receipt"),
    ("VOUCHER", "Voucher"),
]

# Prefix put in front of the zero-padded counter value
SEQUENCE_PREFIXES = {
    "CLIENT": "CLIENT_",
    "INVOICE": "INV_",
    "RECEIPT": "REC_",
    "VOUCHER": "V_",
}


class Sequence(models.Model):  # One monotonically increasing counter per kind
    kind = models.CharField(max_length=10, choices=SEQUENCE_KINDS, primary_key=True)
    value = models.PositiveBigIntegerField(default=0)

    def __str__(self):
        return f"{self.kind}={self.value}"

    def formatted(self):
        # e.g. INVOICE 7 -> "INV_007", 1234 -> "INV_1234"
        return f"{SEQUENCE_PREFIXES[self.kind]}{self.value:03d}"
