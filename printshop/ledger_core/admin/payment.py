from django.contrib import admin

from ledger_core.models import PaymentReceived

from .inlines import PaymentAllocationInline


# Register `PaymentReceived` model
@admin.register(PaymentReceived)
class PaymentReceivedAdmin(admin.ModelAdmin):
    list_display = (
        "receipt_number",
        "client",
        "invoice",
        "amount",
        "payment_method",
        "credit_added",
        "payment_date",
    )
    list_filter = ("payment_method", "payment_date")
    search_fields = ("receipt_number", "client__name", "reference")
    inlines = [PaymentAllocationInline]

    # Payments are taken through the services so allocations get recorded
    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    # only the non-financial fields stay editable
    def get_readonly_fields(self, request, obj=None):
        editable = {"payment_method", "reference", "notes"}
        if obj is not None and obj.payment_method == "CREDIT":
            editable.discard("payment_method")
        return [f.name for f in self.model._meta.fields if f.name not in editable]

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("client", "invoice")
