from django.contrib import admin

from ledger_core.models import AuditLog

from .ReadOnly import ReadOnlyAdmin


# Register `AuditLog` model
@admin.register(AuditLog)
class AuditLogAdmin(ReadOnlyAdmin):
    list_display = (
        "id",
        "entity_type",
        "entity_id",
        "action",
        "user",
        "created_at",
    )
    search_fields = ("entity_id", "user__username")

    def get_search_fields(self, request):
        return self.search_fields

    # Fetch everything in one SQL join
    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("user")
