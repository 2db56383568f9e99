from django.contrib import admin

from ledger_core.models import Sequence

from .ReadOnly import ReadOnlyAdmin


@admin.register(Sequence)
class SequenceAdmin(ReadOnlyAdmin):
    list_display = ("kind", "value", "formatted")
