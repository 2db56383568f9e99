import logging

from django.db import IntegrityError, transaction
from django.db.models import F

from ..exceptions import Conflict, InvalidInput
from ..models import Sequence
from ..models.sequence import SEQUENCE_PREFIXES

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 5


def _increment(kind):
    """
    Atomic increment-and-read.
    The UPDATE takes a row lock, so concurrent callers queue
    on the row and each reads back its own value.
    """
    with transaction.atomic():
        updated = Sequence.objects.filter(kind=kind).update(value=F("value") + 1)
        if not updated:
            # First use of this kind: two callers may race to insert the row
            try:
                with transaction.atomic():
                    Sequence.objects.create(kind=kind, value=1)
            except IntegrityError as exc:
                raise Conflict(f"Sequence {kind} was created concurrently") from exc
        return Sequence.objects.get(kind=kind)


def next_sequence(kind):
    """Return the next identifier for `kind`, e.g. next_sequence("INVOICE") -> "INV_004"."""
    if kind not in SEQUENCE_PREFIXES:
        raise InvalidInput(f"Unknown sequence kind: {kind}")

    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            return _increment(kind).formatted()
        except Conflict:
            # the row exists now, the retry takes the UPDATE path
            logger.debug("Sequence %s collision, retry %d", kind, attempt)
    raise Conflict(f"Could not allocate a {kind} number")


def initialize_sequences():
    """Create every counter row at 0 (safe to re-run)."""
    for kind in SEQUENCE_PREFIXES:
        Sequence.objects.get_or_create(kind=kind, defaults={"value": 0})
