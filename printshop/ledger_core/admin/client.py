from django.contrib import admin

from ledger_core.models import Client

from .actions import activate_clients, deactivate_clients


# Register `Client` model
@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = (
        "client_id",
        "name",
        "phone",
        "credit_balance",
        "membership_type",
        "membership_discount",
        "is_active",
    )
    list_filter = ("is_active", "membership_type")
    search_fields = ("client_id", "name", "phone", "email")
    actions = [deactivate_clients, activate_clients]
    # credit only moves through payments
    readonly_fields = ("client_id", "credit_balance", "created_at", "updated_at")

    # soft delete only, clients are referenced by invoices and payments
    def has_delete_permission(self, request, obj=None):
        return False
