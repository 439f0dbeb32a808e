# accounting/views.py
"""
Thin views that delegate to the commands layer.

Views handle: HTTP parsing, authentication, response formatting.
Commands handle: business logic, validation, events.

CRITICAL: All mutations (create, update, post, unpost, delete) MUST go
through commands so that every transition is validated and audited.
Views never call .save() on ledger models.

Error responses share one shape:
    {"detail": "...", "code": "ENTRY_LOCKED", "errors": [...]}
"""

from django.db.models import Count
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.authz import resolve_actor
from ops.retry import retry_on_transient
from .commands import (
    CommandResult,
    create_journal_entry,
    delete_journal_entry,
    post_journal_entry,
    unpost_journal_entry,
    update_journal_entry,
)
from .errors import (
    EntryValidationError,
    ErrorCode,
    LedgerError,
    TransientStorageError,
    Violation,
)
from .models import Account, JournalEntry
from .serializers import (
    AccountSerializer,
    ExpectedVersionSerializer,
    JournalEntryInputSerializer,
    JournalEntrySerializer,
)
from .validators import MalformedInput, parse_entry_date, validate_entry


HTTP_STATUS_BY_CODE = {
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.ENTRY_LOCKED: status.HTTP_409_CONFLICT,
    ErrorCode.CONCURRENT_MODIFICATION: status.HTTP_409_CONFLICT,
    ErrorCode.OUT_OF_BALANCE: status.HTTP_409_CONFLICT,
    ErrorCode.STORAGE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500


def error_response(detail: str, code: str, errors: list = None) -> Response:
    return Response(
        {"detail": detail, "code": code, "errors": errors or []},
        status=HTTP_STATUS_BY_CODE.get(code, status.HTTP_400_BAD_REQUEST),
    )


def ledger_error_response(exc: LedgerError) -> Response:
    payload = exc.to_dict()
    payload.setdefault("errors", [])
    return Response(payload, status=HTTP_STATUS_BY_CODE.get(exc.code, status.HTTP_400_BAD_REQUEST))


def result_error_response(result: CommandResult) -> Response:
    return error_response(result.error, result.code, result.errors)


def _flatten_serializer_errors(detail, path: str = "") -> list:
    """Serializer error tree to a flat list of {code, message, field} items."""
    if isinstance(detail, dict):
        items = []
        for key, value in detail.items():
            if key == "non_field_errors":
                items.extend(_flatten_serializer_errors(value, path))
            else:
                items.extend(_flatten_serializer_errors(value, f"{path}.{key}" if path else str(key)))
        return items
    if isinstance(detail, list):
        items = []
        for index, value in enumerate(detail):
            if isinstance(value, dict):
                # Nested many=True serializer: one dict per line, empty when the line is fine.
                items.extend(_flatten_serializer_errors(value, f"{path}[{index}]"))
            else:
                items.extend(_flatten_serializer_errors(value, path))
        return items
    item = {"code": ErrorCode.MALFORMED_REQUEST, "message": str(detail)}
    if path:
        item["field"] = path
    return [item]


def malformed_request_response(serializer_errors) -> Response:
    return error_response(
        "Request body is malformed.",
        ErrorCode.MALFORMED_REQUEST,
        _flatten_serializer_errors(serializer_errors),
    )


def run_command(command, *args, **kwargs) -> CommandResult:
    """Run a command with transient-error retries; exhaustion becomes a failed result."""
    try:
        return retry_on_transient(command)(*args, **kwargs)
    except TransientStorageError as exc:
        return CommandResult.from_error(exc)


def parse_bool(value, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def parse_date_param(request, name: str):
    """Optional ISO date query param. Raises LedgerError on garbage."""
    value = request.query_params.get(name)
    if not value:
        return None
    try:
        return parse_entry_date(value)
    except MalformedInput as exc:
        raise EntryValidationError([Violation(ErrorCode.MALFORMED_DATE, f"{name}: {exc}.", field=name)])


def _entry_queryset(actor):
    return (
        JournalEntry.objects.filter(company=actor.company)
        .select_related("posted_by", "created_by")
        .prefetch_related("lines", "lines__account")
    )


def _entry_response(actor, entry, status_code=status.HTTP_200_OK) -> Response:
    fresh = _entry_queryset(actor).get(pk=entry.pk)
    return Response(JournalEntrySerializer(fresh).data, status=status_code)


def _command_lines(validated_lines) -> list:
    return [
        {
            "account_id": line.get("account_id"),
            "description": line.get("description", ""),
            "debit": line.get("debit"),
            "credit": line.get("credit"),
        }
        for line in validated_lines
    ]


# =============================================================================
# Chart of Accounts
# =============================================================================

class AccountListView(APIView):
    """
    GET /api/accounting/accounts/ -> chart of accounts

    Query params:
    - active=true: only active accounts
    - leaf=true: only accounts without sub-accounts (the ones lines can use)
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)

        accounts = (
            Account.objects.filter(company=actor.company)
            .select_related("parent")
            .annotate(_child_count=Count("children"))
            .order_by("code")
        )
        if parse_bool(request.query_params.get("active")):
            accounts = accounts.filter(is_active=True)
        if parse_bool(request.query_params.get("leaf")):
            accounts = accounts.filter(_child_count=0)

        return Response(AccountSerializer(accounts, many=True).data)


# =============================================================================
# Journal Entries
# =============================================================================

class JournalEntryListCreateView(APIView):
    """
    GET /api/accounting/journal-entries/ -> list journal entries
    POST /api/accounting/journal-entries/ -> create a DRAFT entry

    GET query params: start_date, end_date, posted_only, limit, offset.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)

        try:
            start = parse_date_param(request, "start_date")
            end = parse_date_param(request, "end_date")
        except LedgerError as exc:
            return ledger_error_response(exc)

        entries = _entry_queryset(actor).order_by("-entry_date", "-created_at", "-id")
        if start:
            entries = entries.filter(entry_date__gte=start)
        if end:
            entries = entries.filter(entry_date__lte=end)
        if parse_bool(request.query_params.get("posted_only")):
            entries = entries.filter(status=JournalEntry.Status.POSTED)

        try:
            limit = int(request.query_params.get("limit", DEFAULT_PAGE_SIZE))
            offset = int(request.query_params.get("offset", 0))
        except ValueError:
            return error_response("limit and offset must be integers.", "INVALID_PAGINATION")
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        offset = max(0, offset)

        count = entries.count()
        page = entries[offset:offset + limit]
        return Response({
            "count": count,
            "results": JournalEntrySerializer(page, many=True).data,
        })

    def post(self, request):
        actor = resolve_actor(request)

        serializer = JournalEntryInputSerializer(data=request.data)
        if not serializer.is_valid():
            return malformed_request_response(serializer.errors)
        data = serializer.validated_data

        result = run_command(
            create_journal_entry,
            actor,
            entry_date=data.get("entry_date"),
            description=data.get("description", ""),
            lines=_command_lines(data.get("lines", [])),
            reference_number=data.get("reference_number") or "",
        )
        if not result.success:
            return result_error_response(result)

        return _entry_response(actor, result.data, status.HTTP_201_CREATED)


class JournalEntryValidateView(APIView):
    """
    POST /api/accounting/journal-entries/validate/ -> dry-run validation

    Nothing is stored. Always 200; the body says whether the entry would
    be accepted and lists every violation.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        actor = resolve_actor(request)

        serializer = JournalEntryInputSerializer(data=request.data)
        if not serializer.is_valid():
            return malformed_request_response(serializer.errors)
        data = serializer.validated_data

        result = validate_entry(
            actor.company,
            data.get("entry_date"),
            data.get("description", ""),
            _command_lines(data.get("lines", [])),
            reference_number=data.get("reference_number") or "",
        )
        return Response(result.to_dict())


class JournalEntryDetailView(APIView):
    """
    GET /api/accounting/journal-entries/<pk>/ -> retrieve
    PUT /api/accounting/journal-entries/<pk>/ -> replace a DRAFT entry
    DELETE /api/accounting/journal-entries/<pk>/ -> delete a DRAFT entry
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        actor = resolve_actor(request)
        entry = _entry_queryset(actor).filter(pk=pk).first()
        if entry is None:
            return error_response("Journal entry not found.", ErrorCode.NOT_FOUND)
        return Response(JournalEntrySerializer(entry).data)

    def put(self, request, pk):
        actor = resolve_actor(request)

        serializer = JournalEntryInputSerializer(data=request.data)
        if not serializer.is_valid():
            return malformed_request_response(serializer.errors)
        data = serializer.validated_data

        result = run_command(
            update_journal_entry,
            actor,
            pk,
            entry_date=data.get("entry_date"),
            description=data.get("description", ""),
            lines=_command_lines(data.get("lines", [])),
            reference_number=data.get("reference_number") or "",
            expected_version=data.get("expected_version"),
        )
        if not result.success:
            return result_error_response(result)

        return _entry_response(actor, result.data)

    def delete(self, request, pk):
        actor = resolve_actor(request)

        serializer = ExpectedVersionSerializer(data=request.data or request.query_params)
        if not serializer.is_valid():
            return malformed_request_response(serializer.errors)

        result = run_command(
            delete_journal_entry,
            actor,
            pk,
            expected_version=serializer.validated_data.get("expected_version"),
        )
        if not result.success:
            return result_error_response(result)

        return Response(status=status.HTTP_204_NO_CONTENT)


class JournalEntryPostView(APIView):
    """
    POST /api/accounting/journal-entries/<pk>/post/ -> DRAFT to POSTED
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)

        serializer = ExpectedVersionSerializer(data=request.data)
        if not serializer.is_valid():
            return malformed_request_response(serializer.errors)

        result = run_command(
            post_journal_entry,
            actor,
            pk,
            expected_version=serializer.validated_data.get("expected_version"),
        )
        if not result.success:
            return result_error_response(result)

        return _entry_response(actor, result.data)


class JournalEntryUnpostView(APIView):
    """
    POST /api/accounting/journal-entries/<pk>/unpost/ -> POSTED to DRAFT
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        actor = resolve_actor(request)

        serializer = ExpectedVersionSerializer(data=request.data)
        if not serializer.is_valid():
            return malformed_request_response(serializer.errors)

        result = run_command(
            unpost_journal_entry,
            actor,
            pk,
            expected_version=serializer.validated_data.get("expected_version"),
        )
        if not result.success:
            return result_error_response(result)

        return _entry_response(actor, result.data)
