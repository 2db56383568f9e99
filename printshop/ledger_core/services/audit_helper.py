import logging
from decimal import Decimal

from django.conf import settings
from django.db import DatabaseError, transaction

from ..models import AuditLog

logger = logging.getLogger(__name__)


def _jsonable(value):
    # Decimals are stored as strings so amounts survive the JSON round trip
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class DatabaseAuditRecorder:
    """
    Default audit collaborator: writes an AuditLog row inside the
    caller's transaction.

    strict=True: a failed write propagates and rolls back the whole
    financial transaction.
    strict=False: the write runs in a savepoint, a failure is logged and
    the caller carries on.
    """

    def __init__(self, strict=None):
        if strict is None:
            strict = getattr(settings, "LEDGER_AUDIT_STRICT", True)
        self.strict = strict

    def record(self, entity_type, entity_id, action, actor=None, details=None):
        if self.strict:
            return self._write(entity_type, entity_id, action, actor, details)
        try:
            with transaction.atomic():
                return self._write(entity_type, entity_id, action, actor, details)
        except DatabaseError:
            logger.warning(
                "Audit write failed for %s %s (%s); continuing",
                entity_type, entity_id, action, exc_info=True,
            )
            return None

    def _write(self, entity_type, entity_id, action, actor, details):
        return AuditLog.objects.create(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action,
            user=actor if getattr(actor, "pk", None) else None,
            details=_jsonable(details or {}),
        )


def get_audit_recorder(audit=None):
    return audit if audit is not None else DatabaseAuditRecorder()


def log_action(*, entity_type, instance, action, user=None, details=None, audit=None):
    """
    Central audit logger.
    Safe to call multiple times (caller ensures idempotency).
    """
    return get_audit_recorder(audit).record(
        entity_type, instance.pk, action, actor=user, details=details
    )
