# accounting/serializers.py
"""
Serializers for the ledger API.

Note: These serializers are used for:
1. Request shape checks (is ``lines`` a list of objects?)
2. Output formatting

Amounts and dates are passed through as the client sent them. Parsing
them is the entry validator's job (accounting/validators.py), which
reports every malformed value as a structured violation.
"""

from decimal import Decimal

from rest_framework import serializers

from .models import Account, JournalEntry, JournalLine


# =============================================================================
# Account Serializers
# =============================================================================

class AccountSerializer(serializers.ModelSerializer):
    """Read-only chart of accounts entry."""
    parent_code = serializers.CharField(source="parent.code", read_only=True, default=None)
    normal_balance = serializers.CharField(read_only=True)
    is_leaf = serializers.SerializerMethodField()

    class Meta:
        model = Account
        fields = [
            "id", "public_id", "code", "name", "account_type", "normal_balance",
            "parent", "parent_code", "is_active", "is_leaf",
            "created_at", "updated_at",
        ]
        read_only_fields = fields

    def get_is_leaf(self, obj):
        # Use annotated value if available (from list view), else query
        if hasattr(obj, "_child_count"):
            return obj._child_count == 0
        return obj.is_leaf


# =============================================================================
# Journal Entry Serializers
# =============================================================================

class JournalLineSerializer(serializers.ModelSerializer):
    """Serializer for individual journal lines."""
    account_code = serializers.CharField(source="account.code", read_only=True)
    account_name = serializers.CharField(source="account.name", read_only=True)

    class Meta:
        model = JournalLine
        fields = [
            "id", "line_no", "account", "account_code", "account_name",
            "description", "debit", "credit",
        ]
        read_only_fields = fields


class JournalEntrySerializer(serializers.ModelSerializer):
    """
    Full journal entry serializer with nested lines.
    Used for retrieval and display.

    Totals are summed from the (usually prefetched) lines rather than
    aggregated per entry.
    """
    lines = JournalLineSerializer(many=True, read_only=True)
    total_debit = serializers.SerializerMethodField()
    total_credit = serializers.SerializerMethodField()
    posted_by_email = serializers.EmailField(source="posted_by.email", read_only=True, default=None)
    created_by_email = serializers.EmailField(source="created_by.email", read_only=True, default=None)

    class Meta:
        model = JournalEntry
        fields = [
            "id", "public_id", "entry_date", "description", "reference_number",
            "status", "version",
            "posted_at", "posted_by", "posted_by_email",
            "created_at", "created_by", "created_by_email", "updated_at",
            "lines", "total_debit", "total_credit",
        ]
        read_only_fields = fields

    def _sum(self, obj, side: str) -> str:
        total = sum((getattr(line, side) for line in obj.lines.all()), Decimal("0.00"))
        return str(total.quantize(Decimal("0.01")))

    def get_total_debit(self, obj):
        return self._sum(obj, "debit")

    def get_total_credit(self, obj):
        return self._sum(obj, "credit")


class RawValueField(serializers.Field):
    """
    Accepts a scalar (string, number, or null) without converting it.

    Objects and lists are rejected; everything else reaches the entry
    validator untouched.
    """

    def to_internal_value(self, data):
        if isinstance(data, (dict, list)):
            raise serializers.ValidationError("Expected a string or number.")
        return data

    def to_representation(self, value):
        return value


class JournalLineInputSerializer(serializers.Serializer):
    """Shape of one line in a create/update/validate request."""
    account_id = RawValueField(required=False, allow_null=True, default=None)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True, default="")
    debit = RawValueField(required=False, allow_null=True, default=None)
    credit = RawValueField(required=False, allow_null=True, default=None)


class JournalEntryInputSerializer(serializers.Serializer):
    """Shape of a create/update/validate request body."""
    entry_date = RawValueField(required=False, allow_null=True, default=None)
    description = serializers.CharField(required=False, allow_blank=True, default="", trim_whitespace=False)
    reference_number = serializers.CharField(required=False, allow_blank=True, allow_null=True, default="")
    lines = JournalLineInputSerializer(many=True, required=False, default=list)
    expected_version = serializers.IntegerField(required=False, allow_null=True, default=None, min_value=1)


class ExpectedVersionSerializer(serializers.Serializer):
    """Optional optimistic-concurrency token for post/unpost/delete."""
    expected_version = serializers.IntegerField(required=False, allow_null=True, default=None, min_value=1)
