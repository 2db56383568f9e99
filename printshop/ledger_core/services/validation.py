from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from ..exceptions import InvalidInput
from ..models import InvoiceItem
from ..models.payment import PAYMENT_METHODS
from ..money import ZERO, money

# CREDIT is never taken from a caller, only spent from the client balance
VALID_METHODS = {code for code, _ in PAYMENT_METHODS if code != "CREDIT"}


def _positive_decimal(raw, field, index):
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidInput(f"Item {index}: {field} is not a number")
    if not value.is_finite() or value <= 0:
        raise InvalidInput(f"Item {index}: {field} must be greater than 0")
    return value


# ------------------------------------
# Invoice input validation
# ------------------------------------
def build_items(items):
    """
    Turn raw item dicts into unsaved InvoiceItem objects with amounts computed.
    Accepts `item_name` or `name`; quantity defaults to 1.
    """
    if not items:
        raise InvalidInput("At least one item is required")
    if not isinstance(items, (list, tuple)):
        raise InvalidInput("Items must be a list")

    built = []
    for index, raw in enumerate(items, start=1):
        if not isinstance(raw, dict):
            raise InvalidInput(f"Item {index}: must be an object")
        name = (raw.get("item_name") or raw.get("name") or "").strip()
        if not name:
            raise InvalidInput(f"Item {index}: name is required")
        item = InvoiceItem(
            s_no=index,
            item_name=name,
            width=_positive_decimal(raw.get("width"), "width", index),
            height=_positive_decimal(raw.get("height"), "height", index),
            quantity=_positive_decimal(raw.get("quantity", 1), "quantity", index),
            rate=_positive_decimal(raw.get("rate"), "rate", index),
        )
        item.compute_amount()
        built.append(item)
    return built


def _discount_amount(kind, value, base):
    if base <= 0 or value <= 0:
        return ZERO
    if kind == "PERCENTAGE":
        return min(money(base * value / Decimal("100")), base)
    # fixed amounts never push the subtotal below zero
    return min(money(value), base)


def compute_discount(subtotal, client, discount=None, on_date=None):
    """
    Manual discount first, then the membership discount on what is left.
    Returns (manual, membership) amounts.
    """
    manual = ZERO
    if discount:
        kind = str(discount.get("type", "fixed")).upper()
        if kind not in ("FIXED", "PERCENTAGE"):
            raise InvalidInput("Discount type must be 'fixed' or 'percentage'")
        try:
            value = Decimal(str(discount.get("value", 0)))
        except (InvalidOperation, TypeError, ValueError):
            raise InvalidInput("Discount value is not a number")
        if value < 0:
            raise InvalidInput("Discount value cannot be negative")
        if kind == "PERCENTAGE" and value > 100:
            raise InvalidInput("Percentage discount cannot exceed 100")
        manual = _discount_amount(kind, value, subtotal)

    membership = ZERO
    if client.has_valid_membership(on_date):
        membership = _discount_amount(
            client.membership_type, client.membership_discount, subtotal - manual
        )
    return manual, membership


# ------------------------------------
# Payment input validation
# ------------------------------------
def clean_amount(raw):
    try:
        amount = Decimal(str(raw))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidInput("Amount is not a number")
    if not amount.is_finite() or amount <= 0:
        raise InvalidInput("Amount must be greater than 0")
    amount = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    if amount <= 0:
        raise InvalidInput("Amount must be greater than 0")
    return amount


def clean_method(raw):
    method = (raw or "CASH").upper()
    if method not in VALID_METHODS:
        raise InvalidInput(f"Unknown payment method: {raw}")
    return method
