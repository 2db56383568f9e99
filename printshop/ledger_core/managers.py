from django.db import models


# -----------------------------------------
# Client scoping helpers
# -----------------------------------------
class ClientQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)  # soft-deleted clients are hidden

    def with_phone(self, variants):
        # Match any of the phone formats (digits only, dashed, as typed)
        q = models.Q()
        for variant in variants:
            q |= models.Q(phone__contains=variant)
        return self.filter(q)

    def with_exact_phone(self, variants):
        # Same number in any stored format, never a longer number containing it
        return self.filter(phone__in=variants)


class ClientManager(models.Manager):
    def get_queryset(self):
        return ClientQuerySet(self.model, using=self._db)

    def active(self):
        return self.get_queryset().active()

    def with_phone(self, variants):
        return self.get_queryset().with_phone(variants)

    def with_exact_phone(self, variants):
        return self.get_queryset().with_exact_phone(variants)


# -----------------------------------------
# Invoice helpers used by the ledger engine
# -----------------------------------------
class InvoiceQuerySet(models.QuerySet):
    def for_client(self, client):  # Add queryset helper
        return self.filter(client=client)

    def open(self):
        """
        Invoices that still take part in carry-forward and allocation:
        UNPAID/PARTIAL, never CANCELLED, and not already settled
        through a later invoice in the chain.
        """
        return self.filter(
            status__in=["UNPAID", "PARTIAL"],
            balance_paid_from_future_invoice=False,
        )

    def oldest_first(self):
        # FIFO order, id breaks ties between invoices created together
        return self.order_by("created_at", "id")

    def newest_first(self):
        return self.order_by("-created_at", "-id")

    # Enables query:
    # Invoice.objects.for_client(client).open().oldest_first()


class InvoiceManager(models.Manager):
    def get_queryset(self):
        return InvoiceQuerySet(self.model, using=self._db)

    def for_client(self, client):  # can call for_client() directly on objects
        return self.get_queryset().for_client(client)

    def open(self):
        return self.get_queryset().open()
