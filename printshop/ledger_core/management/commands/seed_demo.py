from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from ledger_core.services.clients import register_client, update_membership
from ledger_core.services.invoicing import create_invoice
from ledger_core.services.payment import receive_payment
from ledger_core.services.sequences import initialize_sequences

User = get_user_model()


class Command(BaseCommand):
    help = (
        "Seed a demo client with a carry-forward chain of invoices and a "
        "partial payment, for trying the ledger out."
    )

    # Define command-line arguments
    def add_arguments(self, parser):
        parser.add_argument(
            "--username", default="demo", help="Username for the demo user."
        )
        parser.add_argument(
            "--password", default="demo123", help="Password for the demo user."
        )
        parser.add_argument(
            "--phone",
            default="0300-1234567",
            help="Phone of the demo client (reused if it already exists).",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        initialize_sequences()

        # 1. Staff user who owns the demo records
        user, created = User.objects.get_or_create(
            username=options["username"],
            defaults={"is_staff": True, "is_superuser": True},
        )
        if created:
            user.set_password(options["password"])
            user.save()

        # 2. Client with a 10% membership
        client, created = register_client(
            "Demo Client", options["phone"], address="Main Bazaar", user=user
        )
        if not created:
            self.stdout.write(self.style.WARNING(
                f"Client {client.client_id} already exists, nothing seeded."))
            return
        update_membership(client.pk, "PERCENTAGE", Decimal("10"), user=user)

        # 3. Two invoices: the second carries the first one's balance
        first = create_invoice(
            client.pk,
            [{"item_name": "Flex banner", "width": 10, "height": 4, "rate": 25}],
            user=user,
        )
        second = create_invoice(
            client.pk,
            [
                {"item_name": "Visiting cards", "width": 1, "height": 1,
                 "quantity": 500, "rate": 2},
                {"item_name": "Shop sign", "width": 6, "height": 3, "rate": 40},
            ],
            notes="Deliver with the banner",
            user=user,
        )

        # 4. Partial payment, applied oldest first
        result = receive_payment(client.pk, Decimal("500"), "CASH", user=user)

        self.stdout.write(self.style.SUCCESS(
            f"Seeded {client.client_id}: {first.invoice_number}, "
            f"{second.invoice_number}, payment {result.receipt_number}"))
