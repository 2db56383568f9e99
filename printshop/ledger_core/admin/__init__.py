from .actions import activate_clients, cancel_invoices, deactivate_clients
from .auditlog import AuditLogAdmin
from .client import ClientAdmin
from .inlines import InvoiceItemInline, PaymentAllocationInline
from .invoice import InvoiceAdmin
from .payment import PaymentReceivedAdmin
from .sequence import SequenceAdmin
