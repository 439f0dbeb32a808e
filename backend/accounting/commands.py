# accounting/commands.py
"""
Command layer for journal entry operations.

Commands are the single point where ledger state changes happen.
Views call commands; commands enforce rules and emit audit events.

Pattern:
1. Load and lock the entry (select_for_update)
2. Apply business policies (can_*)
3. Validate the entry (accounting/validators.py)
4. Perform the change, flipping status with a compare-and-swap
5. Emit one audit event (emit_event)
6. Return CommandResult

State machine:

    (none) --create--> DRAFT --post--> POSTED
                        |  ^            |
                 update |  +---unpost---+
                 delete v
                      (none)

A POSTED entry is locked: update and delete fail with ENTRY_LOCKED until
it is unposted. Every state flip is an UPDATE guarded by the status and
version that were read; when zero rows match, another request won and the
command fails with CONCURRENT_MODIFICATION without writing anything.
"""

import logging
import uuid

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from accounts.authz import ActorContext
from accounting.errors import (
    EntryStateError,
    EntryValidationError,
    ErrorCode,
    LedgerError,
    Violation,
)
from accounting.models import JournalEntry, JournalLine
from accounting.policies import (
    can_delete_entry,
    can_edit_entry,
    can_post_entry,
    can_unpost_entry,
    check_expected_version,
)
from accounting.validators import validate_entry, validate_stored_entry
from accounting.write_barrier import command_writes_allowed
from events.emitter import emit_event
from events.types import (
    EventTypes,
    JournalEntryCreatedData,
    JournalEntryDeletedData,
    JournalEntryPostedData,
    JournalEntryUnpostedData,
    JournalEntryUpdatedData,
    JournalLineData,
)


logger = logging.getLogger(__name__)

AGGREGATE_TYPE = "JournalEntry"


class CommandResult:
    """
    Wrapper for command results with success/failure info.

    Usage:
        result = post_journal_entry(actor, entry_id)
        if result.success:
            entry = result.data
            event = result.event
        else:
            error_message = result.error
            error_code = result.code        # e.g. "ENTRY_LOCKED"
            violations = result.errors      # list of dicts for validation failures
    """

    def __init__(self, success: bool, data=None, error: str = None, event=None,
                 code: str = None, errors: list = None):
        self.success = success
        self.data = data
        self.error = error
        self.event = event  # The emitted event, if any
        self.code = code
        self.errors = errors or []

    @classmethod
    def ok(cls, data=None, event=None):
        return cls(success=True, data=data, event=event)

    @classmethod
    def fail(cls, error: str, code: str = None, errors: list = None):
        return cls(success=False, error=error, code=code, errors=errors)

    @classmethod
    def from_error(cls, exc: LedgerError):
        errors = [v.to_dict() for v in getattr(exc, "violations", [])]
        return cls.fail(exc.message, code=exc.code, errors=errors)

    def raise_for_error(self) -> None:
        """Re-raise a failed result as the matching LedgerError."""
        if self.success:
            return
        if self.code in ErrorCode.VALIDATION_CODES:
            violations = [
                Violation(
                    code=item["code"],
                    message=item["message"],
                    line=item.get("line"),
                    field=item.get("field"),
                )
                for item in self.errors
            ] or [Violation(code=self.code, message=self.error)]
            raise EntryValidationError(violations)
        if self.code in ErrorCode.STATE_CODES or self.code == ErrorCode.NOT_FOUND:
            raise EntryStateError(self.code, self.error)
        raise LedgerError(self.error, code=self.code)


def _not_found() -> CommandResult:
    return CommandResult.fail("Journal entry not found.", code=ErrorCode.NOT_FOUND)


def _concurrent(reason: str) -> CommandResult:
    return CommandResult.fail(reason, code=ErrorCode.CONCURRENT_MODIFICATION)


def _lock_entry(actor: ActorContext, entry_id):
    """Load the actor's entry with a row lock, or None."""
    try:
        return JournalEntry.objects.select_for_update().get(
            pk=int(entry_id), company=actor.company
        )
    except (JournalEntry.DoesNotExist, TypeError, ValueError):
        return None


def _compare_and_swap(entry: JournalEntry, **changes) -> bool:
    """
    Apply ``changes`` only if the row still has the status and version we
    read, bumping the version. Returns False when another writer got there
    first.
    """
    with command_writes_allowed():
        updated = JournalEntry.objects.filter(
            pk=entry.pk,
            status=entry.status,
            version=entry.version,
        ).update(version=F("version") + 1, updated_at=timezone.now(), **changes)
    if updated:
        entry.refresh_from_db()
    return bool(updated)


def _line_snapshot(entry: JournalEntry) -> list[dict]:
    return [
        JournalLineData(
            line_no=line.line_no,
            account_public_id=str(line.account.public_id),
            account_code=line.account.code,
            debit=str(line.debit),
            credit=str(line.credit),
            description=line.description,
        ).to_dict()
        for line in entry.lines.select_related("account").order_by("line_no")
    ]


def _transition_fields(actor: ActorContext, entry: JournalEntry, from_status, to_status) -> dict:
    """Envelope shared by every journal entry event."""
    return {
        "entry_public_id": str(entry.public_id),
        "entry_date": entry.entry_date.isoformat(),
        "description": entry.description,
        "reference_number": entry.reference_number,
        "version": entry.version,
        "total_debit": str(entry.total_debit),
        "total_credit": str(entry.total_credit),
        "actor_id": actor.user.id,
        "actor_email": actor.user.email,
        "transitioned_at": timezone.now().isoformat(),
        "from_status": from_status,
        "to_status": to_status,
    }


def _log_context(actor: ActorContext, entry: JournalEntry, **extra) -> dict:
    context = {
        "entry_public_id": str(entry.public_id),
        "company_id": actor.company.id,
        "user_id": actor.user.id,
        "version": entry.version,
    }
    context.update(extra)
    return context


def _write_lines(entry: JournalEntry, normalized) -> None:
    for line in normalized.lines:
        JournalLine.objects.create(
            entry=entry,
            company=entry.company,
            line_no=line.line_no,
            account=line.account,
            description=line.description,
            debit=line.debit,
            credit=line.credit,
        )


def _validation_failure(actor: ActorContext, result, action: str) -> CommandResult:
    exc = EntryValidationError(list(result.violations))
    logger.info(
        "Journal entry %s rejected: %s",
        action,
        ", ".join(exc.codes),
        extra={"company_id": actor.company.id, "codes": exc.codes},
    )
    return CommandResult.from_error(exc)


# =============================================================================
# Journal Entry Commands
# =============================================================================

@transaction.atomic
def create_journal_entry(
    actor: ActorContext,
    entry_date,
    description: str,
    lines: list = None,
    reference_number: str = "",
) -> CommandResult:
    """
    Validate and store a new DRAFT journal entry.

    Args:
        actor: The actor context
        entry_date: Entry date (date or ISO string)
        description: Entry description
        lines: List of line dicts with account_id, description, debit, credit
        reference_number: Optional external reference

    Returns:
        CommandResult with the created JournalEntry or the validation errors
    """
    result = validate_entry(
        actor.company, entry_date, description, lines or [],
        reference_number=reference_number,
    )
    if not result.accepted:
        return _validation_failure(actor, result, "create")
    normalized = result.entry

    with command_writes_allowed():
        entry = JournalEntry.objects.create(
            company=actor.company,
            public_id=uuid.uuid4(),
            entry_date=normalized.entry_date,
            description=normalized.description,
            reference_number=normalized.reference_number,
            status=JournalEntry.Status.DRAFT,
            created_by=actor.user,
        )
        _write_lines(entry, normalized)

    event = emit_event(
        actor=actor,
        event_type=EventTypes.JOURNAL_ENTRY_CREATED,
        aggregate_type=AGGREGATE_TYPE,
        aggregate_id=str(entry.public_id),
        idempotency_key=f"journal_entry.created:{entry.public_id}",
        data=JournalEntryCreatedData(
            **_transition_fields(actor, entry, None, JournalEntry.Status.DRAFT),
            lines=_line_snapshot(entry),
        ).to_dict(),
    )

    logger.info("Journal entry created", extra=_log_context(actor, entry, status=entry.status))
    return CommandResult.ok(entry, event=event)


@transaction.atomic
def update_journal_entry(
    actor: ActorContext,
    entry_id,
    entry_date,
    description: str,
    lines: list = None,
    reference_number: str = "",
    expected_version=None,
) -> CommandResult:
    """
    Replace the header and lines of a DRAFT entry.

    The new content is fully re-validated; on failure the stored entry is
    left untouched.
    """
    entry = _lock_entry(actor, entry_id)
    if entry is None:
        return _not_found()

    allowed, reason = can_edit_entry(actor, entry)
    if not allowed:
        logger.info("Journal entry update refused", extra=_log_context(actor, entry, reason=reason))
        return CommandResult.fail(reason, code=ErrorCode.ENTRY_LOCKED)

    allowed, reason = check_expected_version(entry, expected_version)
    if not allowed:
        return _concurrent(reason)

    result = validate_entry(
        actor.company, entry_date, description, lines or [],
        reference_number=reference_number,
    )
    if not result.accepted:
        return _validation_failure(actor, result, "update")
    normalized = result.entry

    swapped = _compare_and_swap(
        entry,
        entry_date=normalized.entry_date,
        description=normalized.description,
        reference_number=normalized.reference_number,
    )
    if not swapped:
        return _concurrent("Entry was modified by someone else. Reload and try again.")

    with command_writes_allowed():
        entry.lines.all().delete()
        _write_lines(entry, normalized)

    event = emit_event(
        actor=actor,
        event_type=EventTypes.JOURNAL_ENTRY_UPDATED,
        aggregate_type=AGGREGATE_TYPE,
        aggregate_id=str(entry.public_id),
        idempotency_key=f"journal_entry.updated:{entry.public_id}:v{entry.version}",
        data=JournalEntryUpdatedData(
            **_transition_fields(actor, entry, JournalEntry.Status.DRAFT, JournalEntry.Status.DRAFT),
            lines=_line_snapshot(entry),
        ).to_dict(),
    )

    logger.info("Journal entry updated", extra=_log_context(actor, entry))
    return CommandResult.ok(entry, event=event)


@transaction.atomic
def post_journal_entry(actor: ActorContext, entry_id, expected_version=None) -> CommandResult:
    """
    Post a DRAFT entry, making it count in posted-only reports.

    The stored entry is re-validated first: an account may have been
    deactivated or given sub-accounts since the draft was saved.
    """
    entry = _lock_entry(actor, entry_id)
    if entry is None:
        return _not_found()

    allowed, reason = can_post_entry(actor, entry)
    if not allowed:
        return _concurrent(reason)

    allowed, reason = check_expected_version(entry, expected_version)
    if not allowed:
        return _concurrent(reason)

    result = validate_stored_entry(entry)
    if not result.accepted:
        return _validation_failure(actor, result, "post")

    posted_at = timezone.now()
    swapped = _compare_and_swap(
        entry,
        status=JournalEntry.Status.POSTED,
        posted_at=posted_at,
        posted_by=actor.user,
    )
    if not swapped:
        return _concurrent("Entry was modified by someone else. Reload and try again.")

    event = emit_event(
        actor=actor,
        event_type=EventTypes.JOURNAL_ENTRY_POSTED,
        aggregate_type=AGGREGATE_TYPE,
        aggregate_id=str(entry.public_id),
        idempotency_key=f"journal_entry.posted:{entry.public_id}:v{entry.version}",
        data=JournalEntryPostedData(
            **_transition_fields(actor, entry, JournalEntry.Status.DRAFT, JournalEntry.Status.POSTED),
            posted_at=posted_at.isoformat(),
        ).to_dict(),
    )

    logger.info("Journal entry posted", extra=_log_context(actor, entry, status=entry.status))
    return CommandResult.ok(entry, event=event)


@transaction.atomic
def unpost_journal_entry(actor: ActorContext, entry_id, expected_version=None) -> CommandResult:
    """
    Return a POSTED entry to DRAFT so it can be corrected.

    No re-validation: the entry was valid when posted and unposting only
    clears the posting stamp. Header and lines are not touched.
    """
    entry = _lock_entry(actor, entry_id)
    if entry is None:
        return _not_found()

    allowed, reason = can_unpost_entry(actor, entry)
    if not allowed:
        return _concurrent(reason)

    allowed, reason = check_expected_version(entry, expected_version)
    if not allowed:
        return _concurrent(reason)

    previously_posted_at = entry.posted_at
    swapped = _compare_and_swap(
        entry,
        status=JournalEntry.Status.DRAFT,
        posted_at=None,
        posted_by=None,
    )
    if not swapped:
        return _concurrent("Entry was modified by someone else. Reload and try again.")

    event = emit_event(
        actor=actor,
        event_type=EventTypes.JOURNAL_ENTRY_UNPOSTED,
        aggregate_type=AGGREGATE_TYPE,
        aggregate_id=str(entry.public_id),
        idempotency_key=f"journal_entry.unposted:{entry.public_id}:v{entry.version}",
        data=JournalEntryUnpostedData(
            **_transition_fields(actor, entry, JournalEntry.Status.POSTED, JournalEntry.Status.DRAFT),
            previously_posted_at=previously_posted_at.isoformat() if previously_posted_at else None,
        ).to_dict(),
    )

    logger.info("Journal entry unposted", extra=_log_context(actor, entry, status=entry.status))
    return CommandResult.ok(entry, event=event)


@transaction.atomic
def delete_journal_entry(actor: ActorContext, entry_id, expected_version=None) -> CommandResult:
    """
    Delete a DRAFT entry and its lines.

    Returns:
        CommandResult with {"deleted": True, "public_id": ...} or error
    """
    entry = _lock_entry(actor, entry_id)
    if entry is None:
        return _not_found()

    allowed, reason = can_delete_entry(actor, entry)
    if not allowed:
        logger.info("Journal entry delete refused", extra=_log_context(actor, entry, reason=reason))
        return CommandResult.fail(reason, code=ErrorCode.ENTRY_LOCKED)

    allowed, reason = check_expected_version(entry, expected_version)
    if not allowed:
        return _concurrent(reason)

    # Summary must be taken before the lines cascade away.
    data = JournalEntryDeletedData(
        **_transition_fields(actor, entry, JournalEntry.Status.DRAFT, None),
    ).to_dict()
    public_id = entry.public_id
    context = _log_context(actor, entry)

    with command_writes_allowed():
        deleted, _ = JournalEntry.objects.filter(
            pk=entry.pk,
            status=JournalEntry.Status.DRAFT,
            version=entry.version,
        ).delete()
    if not deleted:
        return _concurrent("Entry was modified by someone else. Reload and try again.")

    event = emit_event(
        actor=actor,
        event_type=EventTypes.JOURNAL_ENTRY_DELETED,
        aggregate_type=AGGREGATE_TYPE,
        aggregate_id=str(public_id),
        idempotency_key=f"journal_entry.deleted:{public_id}",
        data=data,
    )

    logger.info("Journal entry deleted", extra=context)
    return CommandResult.ok({"deleted": True, "public_id": str(public_id)}, event=event)
