# events/admin.py
"""
Admin browser for the audit trail. Nothing here can add, edit or remove
an event; they are written by the ledger commands only.
"""

import json

from django.contrib import admin
from django.utils.html import format_html

from .models import BusinessEvent


def _pretty_json(value):
    return format_html("<pre style='white-space: pre-wrap'>{}</pre>", json.dumps(value, indent=2, default=str))


@admin.register(BusinessEvent)
class BusinessEventAdmin(admin.ModelAdmin):
    list_display = ["event_type", "entry_ref", "sequence", "caused_by_user", "occurred_at", "company"]
    list_filter = ["event_type", "company"]
    search_fields = ["aggregate_id", "idempotency_key", "caused_by_user__email"]
    date_hierarchy = "occurred_at"
    list_select_related = ["company", "caused_by_user"]
    ordering = ["-occurred_at", "-sequence"]

    fieldsets = (
        (None, {"fields": ("id", "event_type", "company", "caused_by_user")}),
        ("Journal entry", {"fields": ("aggregate_type", "aggregate_id", "sequence", "idempotency_key")}),
        ("Payload", {"fields": ("payload", "schema_version")}),
        ("Request", {"fields": ("request_metadata",), "classes": ("collapse",)}),
        ("Times", {"fields": ("occurred_at", "recorded_at")}),
    )
    readonly_fields = [
        name for _, options in fieldsets for name in options["fields"]
    ]

    @admin.display(description="Entry", ordering="aggregate_id")
    def entry_ref(self, obj):
        return f"{obj.aggregate_type}:{obj.aggregate_id}"

    @admin.display(description="Data")
    def payload(self, obj):
        return _pretty_json(obj.data)

    @admin.display(description="Metadata")
    def request_metadata(self, obj):
        return _pretty_json(obj.metadata)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
