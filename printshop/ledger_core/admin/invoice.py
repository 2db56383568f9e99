from django.contrib import admin

from ledger_core.models import Invoice

from .actions import cancel_invoices
from .inlines import InvoiceItemInline


# Register `Invoice` model
@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = (
        "invoice_number",
        "client",
        "invoice_date",
        "status",
        "subtotal",
        "previous_balance",
        "total_amount",
        "paid_amount",
        "balance_due",
    )
    list_filter = ("status", "invoice_date", "balance_paid_from_future_invoice")
    search_fields = ("invoice_number", "client__name", "client__phone")
    actions = [cancel_invoices]
    inlines = [InvoiceItemInline]
    # ledger fields are moved by the services only
    readonly_fields = (
        "invoice_number",
        "previous_balance",
        "previous_invoice",
        "total_amount",
        "paid_amount",
        "balance_due",
        "status",
        "balance_paid_from_future_invoice",
        "created_by",
        "created_at",
    )

    # Fetch client and previous invoice in the same query
    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("client", "previous_invoice")

    """ Enforce immutability at admin level """

    def get_readonly_fields(self, request, obj=None):
        # paid or cancelled invoices are history
        if obj and obj.status in ("PAID", "CANCELLED"):
            return [f.name for f in self.model._meta.fields]
        return super().get_readonly_fields(request, obj)

    def has_delete_permission(self, request, obj=None):
        if obj and obj.has_payments():
            return False  # removes “Delete” option, cancel instead
        return super().has_delete_permission(request, obj)
