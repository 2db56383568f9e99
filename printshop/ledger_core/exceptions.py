from django.core.exceptions import ObjectDoesNotExist, ValidationError


class LedgerError(Exception):
    """Base class for every error raised by the ledger services."""
    pass


class NotFound(LedgerError, ObjectDoesNotExist):
    """Raised when a client, invoice or payment does not exist."""
    pass


class InvalidInput(LedgerError, ValidationError):
    """Raised for bad amounts, missing items or non-positive dimensions."""
    pass


class InvalidState(LedgerError, ValidationError):
    """Raised when operating on a CANCELLED/PAID invoice or similar."""
    pass


class Conflict(LedgerError):
    """Raised on a concurrent sequence collision (retried internally)."""
    pass
