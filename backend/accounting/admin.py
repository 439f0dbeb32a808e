# accounting/admin.py
"""
Django admin configuration for ledger models.

IMPORTANT: The admin is for viewing only.
=========================================
Journal entries change through the command layer (accounting/commands.py),
which validates them and records an audit event per transition. Accounts
are maintained by the ``seed_chart_of_accounts`` management command.
"""

from django.contrib import admin
from django.utils.html import format_html

from .models import Account, JournalEntry, JournalLine


class ReadOnlyModelAdmin(admin.ModelAdmin):
    """
    Base admin class for read-only models.

    Direct admin edits would bypass validation and the audit trail.
    """

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class ReadOnlyInline(admin.TabularInline):
    """Base inline class for read-only models."""

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class JournalLineInline(ReadOnlyInline):
    model = JournalLine
    extra = 0
    readonly_fields = ["line_no", "account", "description", "debit", "credit"]
    fields = ["line_no", "account", "description", "debit", "credit"]
    ordering = ["line_no"]


@admin.register(Account)
class AccountAdmin(ReadOnlyModelAdmin):
    """Chart of Accounts (read-only)."""

    list_display = ["code", "name", "account_type", "normal_balance", "is_active", "parent", "company"]
    list_filter = ["company", "account_type", "is_active"]
    search_fields = ["code", "name"]
    list_select_related = ["company", "parent"]
    ordering = ["company", "code"]
    readonly_fields = [
        "company", "public_id", "code", "name", "account_type",
        "parent", "is_active", "created_at", "updated_at",
    ]


@admin.register(JournalEntry)
class JournalEntryAdmin(ReadOnlyModelAdmin):
    """Journal entries (read-only)."""

    list_display = [
        "id", "entry_date", "reference_number", "description_truncated",
        "status_colored", "version", "company",
    ]
    list_filter = ["company", "status", "entry_date"]
    search_fields = ["reference_number", "description"]
    date_hierarchy = "entry_date"
    list_select_related = ["company"]
    ordering = ["-entry_date", "-id"]

    fieldsets = (
        (None, {
            "fields": ("company", "public_id", "entry_date", "reference_number", "description"),
        }),
        ("Status & Workflow", {
            "fields": ("status", "version", "posted_at", "posted_by"),
        }),
        ("Audit", {
            "fields": ("created_at", "created_by", "updated_at"),
            "classes": ("collapse",),
        }),
    )
    readonly_fields = [
        "company", "public_id", "entry_date", "reference_number", "description",
        "status", "version", "posted_at", "posted_by",
        "created_at", "created_by", "updated_at",
    ]
    inlines = [JournalLineInline]

    @admin.display(description="Description")
    def description_truncated(self, obj):
        if len(obj.description) > 50:
            return obj.description[:50] + "..."
        return obj.description

    @admin.display(description="Status", ordering="status")
    def status_colored(self, obj):
        color = "#28a745" if obj.status == JournalEntry.Status.POSTED else "#6c757d"
        return format_html('<span style="color: {};">{}</span>', color, obj.get_status_display())
