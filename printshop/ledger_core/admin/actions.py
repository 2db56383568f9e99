from django.contrib import admin, messages
from django.core.exceptions import ValidationError

from ..services.clients import set_client_active
from ..services.invoicing import cancel_invoice

# ---------- Admin actions ----------


@admin.action(description="Cancel selected invoices")
def cancel_invoices(modeladmin, request, queryset):
    """
    Cancel each selected invoice through the service, one transaction
    per invoice, so one refusal does not stop the batch.
    """
    success = 0
    for inv in queryset.exclude(status="CANCELLED"):
        try:
            cancel_invoice(inv.pk, user=request.user)
            success += 1
        except ValidationError as exc:
            modeladmin.message_user(
                request,
                f"Could not cancel {inv.invoice_number}: {exc.messages[0]}",
                level=messages.ERROR,
            )
    modeladmin.message_user(
        request, f"Cancelled {success} invoice(s).", level=messages.SUCCESS
    )


@admin.action(description="Deactivate selected clients")
def deactivate_clients(modeladmin, request, queryset):
    count = 0
    for client in queryset.filter(is_active=True):
        set_client_active(client.pk, False, user=request.user)
        count += 1
    modeladmin.message_user(request, f"Deactivated {count} client(s).")


@admin.action(description="Reactivate selected clients")
def activate_clients(modeladmin, request, queryset):
    count = 0
    for client in queryset.filter(is_active=False):
        set_client_active(client.pk, True, user=request.user)
        count += 1
    modeladmin.message_user(request, f"Reactivated {count} client(s).")
