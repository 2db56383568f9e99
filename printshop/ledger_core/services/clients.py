import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction

from ..exceptions import InvalidInput, NotFound
from ..models import Client
from ..models.client import MEMBERSHIP_TYPE_CHOICES, normalize_phone, phone_variants
from ..money import money
from .audit_helper import log_action
from .invoicing import outstanding_summary
from .sequences import next_sequence

logger = logging.getLogger(__name__)

MEMBERSHIP_TYPES = {code for code, _ in MEMBERSHIP_TYPE_CHOICES}


def _get_client(client_id, lock=False):
    qs = Client.objects.all()
    if lock:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=client_id)
    except (Client.DoesNotExist, ValueError, TypeError):
        raise NotFound("Client not found")


def find_client_by_phone(phone, include_inactive=False, exact=False):
    """
    Match a phone typed in any format (digits only, dashed, as stored).
    Partial numbers match too, unless `exact` is set.
    """
    variants = phone_variants(phone)
    if not variants:
        return None
    qs = Client.objects.all() if include_inactive else Client.objects.active()
    qs = qs.with_exact_phone(variants) if exact else qs.with_phone(variants)
    return qs.order_by("id").first()


# ----------------------------
# Client registration
# ----------------------------
def register_client(name, phone, email=None, address=None, cnic=None,
                    user=None, audit=None):
    """
    Create a client, or return the one already registered with this phone.
    Returns (client, created), like get_or_create.
    """
    name = (name or "").strip()
    digits = normalize_phone(phone)
    if not name:
        raise InvalidInput("Client name is required")
    if not digits:
        raise InvalidInput("Client phone is required")

    with transaction.atomic():
        # a shorter number is a different person, only the same number is reused
        existing = find_client_by_phone(phone, include_inactive=True, exact=True)
        if existing is not None:
            if not existing.is_active:
                # same person coming back, bring the old record back
                set_client_active(existing.pk, True, user=user, audit=audit)
                existing.refresh_from_db()
            logger.info("Phone %s matches existing client %s", digits, existing.client_id)
            return existing, False

        client = Client.objects.create(
            client_id=next_sequence("CLIENT"),
            name=name,
            phone=digits,
            email=email or None,
            address=address or None,
            cnic=cnic or None,
        )
        log_action(
            entity_type="CLIENT",
            instance=client,
            action="CREATE",
            user=user,
            audit=audit,
            details={"clientId": client.client_id, "name": name, "phone": digits},
        )

    logger.info("Registered client %s (%s)", client.client_id, name)
    return client, True


def set_client_active(client_id, active, user=None, audit=None):
    """Soft delete (active=False) or reactivate a client."""
    with transaction.atomic():
        client = _get_client(client_id, lock=True)
        if client.is_active == bool(active):
            return client
        client.is_active = bool(active)
        client.save(update_fields=["is_active", "updated_at"])
        log_action(
            entity_type="CLIENT",
            instance=client,
            action="ACTIVATE" if active else "DEACTIVATE",
            user=user,
            audit=audit,
            details={"clientId": client.client_id, "name": client.name},
        )
    return client


def update_membership(client_id, membership_type, discount, start=None, end=None,
                      user=None, audit=None):
    """Set (or clear, with membership_type=None) the client's discount profile."""
    if membership_type is not None:
        membership_type = str(membership_type).upper()
        if membership_type not in MEMBERSHIP_TYPES:
            raise InvalidInput("Membership type must be FIXED or PERCENTAGE")
    try:
        discount = money(discount or 0)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidInput("Membership discount is not a number")
    if discount < 0:
        raise InvalidInput("Membership discount cannot be negative")
    if membership_type == "PERCENTAGE" and discount > Decimal("100"):
        raise InvalidInput("Percentage discount cannot exceed 100")
    if start and end and start > end:
        raise InvalidInput("Membership start must be before its end")

    with transaction.atomic():
        client = _get_client(client_id, lock=True)
        client.membership_type = membership_type
        client.membership_discount = discount if membership_type else money(0)
        client.membership_start = start
        client.membership_end = end
        client.save(update_fields=[
            "membership_type", "membership_discount",
            "membership_start", "membership_end", "updated_at",
        ])
        log_action(
            entity_type="CLIENT",
            instance=client,
            action="UPDATE",
            user=user,
            audit=audit,
            details={
                "clientId": client.client_id,
                "membershipType": membership_type,
                "membershipDiscount": client.membership_discount,
                "membershipStart": start.isoformat() if start else None,
                "membershipEnd": end.isoformat() if end else None,
            },
        )
    return client


def get_client_balance(client_id):
    """What the client owes (each carried balance counted once) and holds in credit."""
    client = _get_client(client_id)
    pending, _ = outstanding_summary(client)
    return {
        "pending_balance": pending,
        "credit_balance": client.credit_balance,
    }
