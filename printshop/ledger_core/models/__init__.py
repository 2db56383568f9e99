from .auditlog import AuditLog
from .client import Client
from .invoice import Invoice, InvoiceItem
from .payment import PaymentAllocation, PaymentReceived
from .sequence import Sequence
