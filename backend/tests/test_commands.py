# tests/test_commands.py
"""
Tests for the journal entry state machine.

Tests cover:
- create/update/post/unpost/delete happy paths
- POSTED entries are locked against edit and delete
- Compare-and-swap conflicts (stale version, lost race)
- Exactly one audit event per successful transition, none on failure
- Tenant isolation
"""

from datetime import date
from decimal import Decimal

import pytest

from accounting import commands
from accounting.commands import (
    CommandResult,
    create_journal_entry,
    delete_journal_entry,
    post_journal_entry,
    unpost_journal_entry,
    update_journal_entry,
)
from accounting.errors import EntryStateError, EntryValidationError, ErrorCode, LedgerError
from accounting.models import JournalEntry, JournalLine
from events.emitter import get_aggregate_events
from events.models import BusinessEvent
from events.types import EventTypes


def _event_types(entry_or_public_id, company):
    public_id = getattr(entry_or_public_id, "public_id", entry_or_public_id)
    return [e.event_type for e in get_aggregate_events(company, "JournalEntry", public_id)]


# =============================================================================
# Create
# =============================================================================

@pytest.mark.django_db
class TestCreateJournalEntry:

    def test_creates_draft_with_lines(self, actor, company, cash, sales, entry_lines):
        result = create_journal_entry(
            actor,
            entry_date="2025-01-15",
            description="Venta al contado",
            lines=entry_lines(cash, sales, "250.00"),
            reference_number="CCF-0001",
        )

        assert result.success, result.errors
        entry = result.data
        assert entry.status == JournalEntry.Status.DRAFT
        assert entry.version == 1
        assert entry.entry_date == date(2025, 1, 15)
        assert entry.reference_number == "CCF-0001"
        assert entry.created_by == actor.user
        assert entry.posted_at is None

        lines = list(entry.lines.order_by("line_no"))
        assert [(line.account_id, line.debit, line.credit) for line in lines] == [
            (cash.id, Decimal("250.00"), Decimal("0.00")),
            (sales.id, Decimal("0.00"), Decimal("250.00")),
        ]
        assert all(line.company_id == company.id for line in lines)

    def test_emits_created_event(self, actor, company, cash, sales, entry_lines):
        result = create_journal_entry(actor, "2025-01-15", "Venta", entry_lines(cash, sales))

        event = result.event
        assert event.event_type == EventTypes.JOURNAL_ENTRY_CREATED
        assert event.aggregate_id == str(result.data.public_id)
        assert event.caused_by_user == actor.user
        assert event.data["from_status"] is None
        assert event.data["to_status"] == "DRAFT"
        assert event.data["actor_email"] == actor.user.email
        assert event.data["total_debit"] == "100.00"
        assert [line["account_code"] for line in event.data["lines"]] == [cash.code, sales.code]

    def test_rejected_entry_stores_nothing(self, actor, company, cash, sales):
        lines = [
            {"account_id": cash.id, "debit": "100.00"},
            {"account_id": sales.id, "credit": "90.00"},
        ]
        result = create_journal_entry(actor, "2025-01-15", "Venta", lines)

        assert not result.success
        assert result.code == ErrorCode.UNBALANCED
        assert result.errors[0]["code"] == ErrorCode.UNBALANCED
        assert JournalEntry.objects.count() == 0
        assert JournalLine.objects.count() == 0
        assert BusinessEvent.objects.count() == 0

    def test_all_violations_reported(self, actor):
        result = create_journal_entry(actor, "bad", "", [])

        assert not result.success
        codes = {item["code"] for item in result.errors}
        assert codes == {ErrorCode.MALFORMED_DATE, ErrorCode.MISSING_DESCRIPTION, ErrorCode.EMPTY_ENTRY}

    def test_cannot_use_other_company_account(self, actor, foreign_account, sales, entry_lines):
        result = create_journal_entry(actor, "2025-01-15", "Venta", entry_lines(foreign_account, sales))

        assert not result.success
        assert ErrorCode.INVALID_ACCOUNT in {item["code"] for item in result.errors}


# =============================================================================
# Update
# =============================================================================

@pytest.mark.django_db
class TestUpdateJournalEntry:

    def test_replaces_header_and_lines(self, actor, company, make_entry, cash, bank, sales, rent, entry_lines):
        entry = make_entry(cash, sales)

        result = update_journal_entry(
            actor,
            entry.id,
            entry_date="2025-01-20",
            description="Pago de alquiler",
            lines=entry_lines(rent, bank, "75.50"),
            expected_version=1,
        )

        assert result.success, result.errors
        entry.refresh_from_db()
        assert entry.version == 2
        assert entry.status == JournalEntry.Status.DRAFT
        assert entry.description == "Pago de alquiler"
        assert entry.entry_date == date(2025, 1, 20)
        assert list(entry.lines.order_by("line_no").values_list("account_id", "debit", "credit")) == [
            (rent.id, Decimal("75.50"), Decimal("0.00")),
            (bank.id, Decimal("0.00"), Decimal("75.50")),
        ]
        assert _event_types(entry, company) == [
            EventTypes.JOURNAL_ENTRY_CREATED,
            EventTypes.JOURNAL_ENTRY_UPDATED,
        ]
        assert result.event.data["version"] == 2

    def test_posted_entry_is_locked(self, actor, company, make_entry, cash, sales, entry_lines):
        entry = make_entry(cash, sales, post=True)

        result = update_journal_entry(actor, entry.id, "2025-01-20", "Cambio", entry_lines(cash, sales, "1.00"))

        assert not result.success
        assert result.code == ErrorCode.ENTRY_LOCKED
        entry.refresh_from_db()
        assert entry.description == "Venta al contado"
        assert entry.total_debit == Decimal("100.00")
        assert _event_types(entry, company) == [
            EventTypes.JOURNAL_ENTRY_CREATED,
            EventTypes.JOURNAL_ENTRY_POSTED,
        ]

    def test_locked_wins_over_validation(self, actor, make_entry, cash, sales):
        entry = make_entry(cash, sales, post=True)

        result = update_journal_entry(actor, entry.id, "garbage", "", [])

        assert result.code == ErrorCode.ENTRY_LOCKED

    def test_stale_expected_version(self, actor, make_entry, cash, sales, entry_lines):
        entry = make_entry(cash, sales)
        update_journal_entry(actor, entry.id, "2025-01-15", "Primera edición", entry_lines(cash, sales))

        result = update_journal_entry(
            actor, entry.id, "2025-01-15", "Segunda edición", entry_lines(cash, sales),
            expected_version=1,
        )

        assert not result.success
        assert result.code == ErrorCode.CONCURRENT_MODIFICATION
        entry.refresh_from_db()
        assert entry.description == "Primera edición"

    def test_invalid_update_leaves_entry_untouched(self, actor, make_entry, cash, sales):
        entry = make_entry(cash, sales)
        lines = [
            {"account_id": cash.id, "debit": "5.00"},
            {"account_id": sales.id, "credit": "4.00"},
        ]

        result = update_journal_entry(actor, entry.id, "2025-01-15", "Cambio", lines)

        assert result.code == ErrorCode.UNBALANCED
        entry.refresh_from_db()
        assert entry.version == 1
        assert entry.total_debit == Decimal("100.00")


# =============================================================================
# Post / Unpost
# =============================================================================

@pytest.mark.django_db
class TestPostJournalEntry:

    def test_posts_draft(self, actor, company, make_entry, cash, sales):
        entry = make_entry(cash, sales)

        result = post_journal_entry(actor, entry.id, expected_version=1)

        assert result.success, result.error
        entry.refresh_from_db()
        assert entry.status == JournalEntry.Status.POSTED
        assert entry.version == 2
        assert entry.posted_at is not None
        assert entry.posted_by == actor.user
        assert result.event.event_type == EventTypes.JOURNAL_ENTRY_POSTED
        assert result.event.data["from_status"] == "DRAFT"
        assert result.event.data["to_status"] == "POSTED"
        assert result.event.data["posted_at"] is not None

    def test_double_post_is_a_conflict(self, actor, company, make_entry, cash, sales):
        entry = make_entry(cash, sales, post=True)

        result = post_journal_entry(actor, entry.id)

        assert not result.success
        assert result.code == ErrorCode.CONCURRENT_MODIFICATION
        assert _event_types(entry, company).count(EventTypes.JOURNAL_ENTRY_POSTED) == 1

    def test_same_version_posted_twice(self, actor, company, make_entry, cash, sales):
        entry = make_entry(cash, sales)

        first = post_journal_entry(actor, entry.id, expected_version=1)
        second = post_journal_entry(actor, entry.id, expected_version=1)

        assert first.success
        assert second.code == ErrorCode.CONCURRENT_MODIFICATION

    def test_lost_race_writes_nothing(self, actor, company, make_entry, cash, sales, monkeypatch):
        entry = make_entry(cash, sales)
        stale = JournalEntry.objects.get(pk=entry.pk)
        assert post_journal_entry(actor, entry.id).success

        # The second request read the row before the first one committed.
        monkeypatch.setattr(commands, "_lock_entry", lambda actor, entry_id: stale)
        result = post_journal_entry(actor, entry.id)

        assert result.code == ErrorCode.CONCURRENT_MODIFICATION
        entry.refresh_from_db()
        assert entry.version == 2
        assert _event_types(entry, company).count(EventTypes.JOURNAL_ENTRY_POSTED) == 1

    def test_revalidates_before_posting(self, actor, make_entry, cash, sales):
        entry = make_entry(cash, sales)
        cash.is_active = False
        cash.save()

        result = post_journal_entry(actor, entry.id)

        assert not result.success
        assert result.code == ErrorCode.INVALID_ACCOUNT
        entry.refresh_from_db()
        assert entry.status == JournalEntry.Status.DRAFT

    def test_other_company_entry_not_found(self, other_actor, make_entry, cash, sales):
        entry = make_entry(cash, sales)

        result = post_journal_entry(other_actor, entry.id)

        assert result.code == ErrorCode.NOT_FOUND
        entry.refresh_from_db()
        assert entry.status == JournalEntry.Status.DRAFT

    @pytest.mark.parametrize("entry_id", [999999, "abc", None])
    def test_unknown_entry(self, actor, entry_id):
        result = post_journal_entry(actor, entry_id)

        assert result.code == ErrorCode.NOT_FOUND


@pytest.mark.django_db
class TestUnpostJournalEntry:

    def test_unposts_to_draft(self, actor, company, make_entry, cash, sales):
        entry = make_entry(cash, sales, post=True)
        posted_at = entry.posted_at

        result = unpost_journal_entry(actor, entry.id, expected_version=2)

        assert result.success, result.error
        entry.refresh_from_db()
        assert entry.status == JournalEntry.Status.DRAFT
        assert entry.version == 3
        assert entry.posted_at is None
        assert entry.posted_by is None
        assert result.event.data["previously_posted_at"] == posted_at.isoformat()

    def test_post_then_unpost_restores_header_and_lines(self, actor, cash, bank, sales):
        def snapshot(entry_id):
            entry = JournalEntry.objects.get(pk=entry_id)
            lines = [
                (line.id, line.line_no, line.account_id, line.debit, line.credit, line.description)
                for line in entry.lines.order_by("line_no")
            ]
            return (entry.entry_date, entry.description, entry.reference_number, entry.created_at, lines)

        created = create_journal_entry(
            actor,
            "2025-03-10",
            "Venta con dos cobros",
            [
                {"account_id": cash.id, "debit": "60.25", "description": "Efectivo"},
                {"account_id": bank.id, "debit": "39.75", "description": "Transferencia"},
                {"account_id": sales.id, "credit": "100.00", "description": "Ingreso"},
            ],
            reference_number="CCF-0042",
        )
        entry_id = created.data.id
        before = snapshot(entry_id)

        assert post_journal_entry(actor, entry_id).success
        assert unpost_journal_entry(actor, entry_id).success

        assert snapshot(entry_id) == before
        entry = JournalEntry.objects.get(pk=entry_id)
        assert entry.status == JournalEntry.Status.DRAFT
        assert entry.version == 3

    def test_unpost_draft_is_a_conflict(self, actor, make_entry, cash, sales):
        entry = make_entry(cash, sales)

        result = unpost_journal_entry(actor, entry.id)

        assert result.code == ErrorCode.CONCURRENT_MODIFICATION

    def test_edit_after_unpost(self, actor, make_entry, cash, sales, entry_lines):
        entry = make_entry(cash, sales, post=True)
        unpost_journal_entry(actor, entry.id)

        result = update_journal_entry(actor, entry.id, "2025-01-15", "Corregido", entry_lines(cash, sales, "110.00"))

        assert result.success, result.errors
        assert result.data.total_debit == Decimal("110.00")

    def test_repeated_cycles_record_every_transition(self, actor, company, make_entry, cash, sales):
        entry = make_entry(cash, sales)
        for _ in range(2):
            assert post_journal_entry(actor, entry.id).success
            assert unpost_journal_entry(actor, entry.id).success

        assert _event_types(entry, company) == [
            EventTypes.JOURNAL_ENTRY_CREATED,
            EventTypes.JOURNAL_ENTRY_POSTED,
            EventTypes.JOURNAL_ENTRY_UNPOSTED,
            EventTypes.JOURNAL_ENTRY_POSTED,
            EventTypes.JOURNAL_ENTRY_UNPOSTED,
        ]
        sequences = [e.sequence for e in get_aggregate_events(company, "JournalEntry", entry.public_id)]
        assert sequences == [1, 2, 3, 4, 5]


# =============================================================================
# Delete
# =============================================================================

@pytest.mark.django_db
class TestDeleteJournalEntry:

    def test_deletes_draft_and_lines(self, actor, company, make_entry, cash, sales):
        entry = make_entry(cash, sales)
        public_id = entry.public_id

        result = delete_journal_entry(actor, entry.id, expected_version=1)

        assert result.success, result.error
        assert result.data == {"deleted": True, "public_id": str(public_id)}
        assert not JournalEntry.objects.filter(pk=entry.pk).exists()
        assert not JournalLine.objects.filter(entry_id=entry.pk).exists()
        assert _event_types(public_id, company) == [
            EventTypes.JOURNAL_ENTRY_CREATED,
            EventTypes.JOURNAL_ENTRY_DELETED,
        ]
        assert result.event.data["to_status"] is None

    def test_posted_entry_cannot_be_deleted(self, actor, make_entry, cash, sales):
        entry = make_entry(cash, sales, post=True)

        result = delete_journal_entry(actor, entry.id)

        assert result.code == ErrorCode.ENTRY_LOCKED
        assert JournalEntry.objects.filter(pk=entry.pk).exists()

    def test_delete_racing_a_post(self, actor, make_entry, cash, sales, monkeypatch):
        entry = make_entry(cash, sales)
        stale = JournalEntry.objects.get(pk=entry.pk)
        assert post_journal_entry(actor, entry.id).success

        monkeypatch.setattr(commands, "_lock_entry", lambda actor, entry_id: stale)
        result = delete_journal_entry(actor, entry.id)

        assert result.code == ErrorCode.CONCURRENT_MODIFICATION
        entry.refresh_from_db()
        assert entry.status == JournalEntry.Status.POSTED
        assert entry.lines.count() == 2

    def test_delete_twice(self, actor, make_entry, cash, sales):
        entry = make_entry(cash, sales)
        delete_journal_entry(actor, entry.id)

        result = delete_journal_entry(actor, entry.id)

        assert result.code == ErrorCode.NOT_FOUND


# =============================================================================
# CommandResult
# =============================================================================

class TestCommandResult:

    def test_ok_does_not_raise(self):
        CommandResult.ok({"x": 1}).raise_for_error()

    def test_validation_failure_raises_validation_error(self):
        result = CommandResult.fail(
            "Entry is not balanced.",
            code=ErrorCode.UNBALANCED,
            errors=[{"code": ErrorCode.UNBALANCED, "message": "Entry is not balanced."}],
        )
        with pytest.raises(EntryValidationError) as exc_info:
            result.raise_for_error()
        assert exc_info.value.codes == [ErrorCode.UNBALANCED]

    @pytest.mark.parametrize("code", [
        ErrorCode.ENTRY_LOCKED, ErrorCode.CONCURRENT_MODIFICATION, ErrorCode.NOT_FOUND,
    ])
    def test_state_failure_raises_state_error(self, code):
        with pytest.raises(EntryStateError) as exc_info:
            CommandResult.fail("nope", code=code).raise_for_error()
        assert exc_info.value.code == code

    def test_from_error_keeps_code(self):
        result = CommandResult.from_error(LedgerError("Storage down", code=ErrorCode.STORAGE_UNAVAILABLE))

        assert not result.success
        assert result.code == ErrorCode.STORAGE_UNAVAILABLE
        assert result.errors == []
