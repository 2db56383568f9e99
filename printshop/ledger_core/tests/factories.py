from decimal import Decimal

from ..models import Client


def make_client(name="Ali Traders", phone="03001234567", **extra):
    """Client row without going through the service (no audit, no sequence)."""
    number = Client.objects.count() + 1
    return Client.objects.create(
        client_id=f"CLIENT_T{number:03d}", name=name, phone=phone, **extra
    )


def item(amount, name="Panaflex"):
    """Item whose amount is exactly `amount` (amount x 1 ft at rate 1)."""
    return {"item_name": name, "width": Decimal(str(amount)), "height": 1, "rate": 1}
