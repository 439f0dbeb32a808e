# tests/test_ledger.py
"""
Tests for the Ledger Projector.

Tests cover:
- General ledger grouping, ordering and running balances
- Date range and posted-only filters
- Trial balance totals and natural balances
- OUT_OF_BALANCE detection on books modified outside the command layer
"""

from datetime import date
from decimal import Decimal

import pytest

from accounting.commands import unpost_journal_entry
from accounting.errors import EntryValidationError, ErrorCode, LedgerError, ReportError
from accounting.models import JournalLine
from projections.ledger import LedgerProjector


@pytest.fixture
def projector(company):
    return LedgerProjector(company)


# =============================================================================
# General Ledger
# =============================================================================

@pytest.mark.django_db
class TestGeneralLedger:

    def test_groups_by_account_code(self, projector, make_entry, cash, bank, sales, rent):
        make_entry(cash, sales, "100.00", entry_date=date(2025, 1, 10))
        make_entry(rent, bank, "40.00", entry_date=date(2025, 1, 12))

        report = projector.general_ledger()

        assert [group.code for group in report.accounts] == [cash.code, bank.code, sales.code, rent.code]
        assert report.total_debit == report.total_credit == Decimal("140.00")

    def test_running_balance_in_date_order(self, projector, make_entry, cash, sales, rent):
        # Created out of date order on purpose.
        make_entry(cash, sales, "50.00", entry_date=date(2025, 2, 1))
        make_entry(cash, sales, "100.00", entry_date=date(2025, 1, 1))
        make_entry(rent, cash, "30.00", entry_date=date(2025, 1, 15))

        report = projector.general_ledger(account_id=cash.id)

        assert len(report.accounts) == 1
        ledger = report.accounts[0]
        assert [line.entry_date for line in ledger.lines] == [
            date(2025, 1, 1), date(2025, 1, 15), date(2025, 2, 1),
        ]
        assert [line.running_balance for line in ledger.lines] == [
            Decimal("100.00"), Decimal("70.00"), Decimal("120.00"),
        ]
        assert ledger.closing_balance == Decimal("120.00")
        assert ledger.total_debit == Decimal("150.00")
        assert ledger.total_credit == Decimal("30.00")

    def test_same_day_lines_follow_creation_order(self, projector, make_entry, cash, sales):
        first = make_entry(cash, sales, "1.00", description="Primera")
        second = make_entry(cash, sales, "2.00", description="Segunda")

        ledger = projector.general_ledger(account_id=cash.id).accounts[0]

        assert [line.entry_id for line in ledger.lines] == [first.id, second.id]

    def test_posted_only_excludes_drafts(self, projector, make_entry, cash, sales):
        make_entry(cash, sales, "100.00", post=True)
        make_entry(cash, sales, "7.00")

        everything = projector.general_ledger(account_id=cash.id)
        posted = projector.general_ledger(account_id=cash.id, posted_only=True)

        assert everything.accounts[0].closing_balance == Decimal("107.00")
        assert posted.accounts[0].closing_balance == Decimal("100.00")
        assert {line.status for line in posted.accounts[0].lines} == {"POSTED"}

    def test_date_range_is_inclusive(self, projector, make_entry, cash, sales):
        make_entry(cash, sales, "1.00", entry_date=date(2024, 12, 31))
        make_entry(cash, sales, "2.00", entry_date=date(2025, 1, 1))
        make_entry(cash, sales, "3.00", entry_date=date(2025, 1, 31))
        make_entry(cash, sales, "4.00", entry_date=date(2025, 2, 1))

        report = projector.general_ledger(start_date="2025-01-01", end_date="2025-01-31")

        assert report.start_date == date(2025, 1, 1)
        assert report.total_debit == Decimal("5.00")

    def test_requested_account_without_lines(self, projector, bank):
        report = projector.general_ledger(account_id=bank.id)

        assert len(report.accounts) == 1
        assert report.accounts[0].code == bank.code
        assert report.accounts[0].lines == ()
        assert report.accounts[0].closing_balance == Decimal("0.00")

    def test_unknown_account(self, projector, foreign_account):
        with pytest.raises(LedgerError) as exc_info:
            projector.general_ledger(account_id=foreign_account.id)
        assert exc_info.value.code == ErrorCode.NOT_FOUND

    def test_inverted_range(self, projector):
        with pytest.raises(EntryValidationError) as exc_info:
            projector.general_ledger(start_date="2025-02-01", end_date="2025-01-01")
        assert exc_info.value.codes == [ErrorCode.MALFORMED_DATE]

    def test_garbage_dates(self, projector):
        with pytest.raises(EntryValidationError) as exc_info:
            projector.general_ledger(start_date="ayer", end_date="2025-13-01")
        assert exc_info.value.codes == [ErrorCode.MALFORMED_DATE, ErrorCode.MALFORMED_DATE]

    def test_other_company_lines_invisible(self, other_company, make_entry, cash, sales):
        make_entry(cash, sales)

        report = LedgerProjector(other_company).general_ledger()

        assert report.accounts == ()

    def test_to_dict(self, projector, make_entry, cash, sales):
        make_entry(cash, sales, "12.5")

        data = projector.general_ledger(account_id=sales.id).to_dict()

        assert data["accounts"][0]["lines"][0]["credit"] == "12.50"
        assert data["accounts"][0]["lines"][0]["running_balance"] == "-12.50"
        assert data["accounts"][0]["normal_balance"] == "CREDIT"
        assert data["start_date"] is None

    def test_repeated_runs_are_identical(self, company, make_entry, cash, bank, sales):
        for amount in ("10.00", "20.00", "30.00"):
            make_entry(cash, sales, amount, entry_date=date(2025, 1, 10), post=True)
        make_entry(bank, sales, "5.00", entry_date=date(2025, 1, 10))

        first = LedgerProjector(company).general_ledger().to_dict()
        second = LedgerProjector(company).general_ledger().to_dict()

        assert first == second


# =============================================================================
# Trial Balance
# =============================================================================

@pytest.mark.django_db
class TestTrialBalance:

    def test_totals_per_account(self, projector, make_entry, cash, bank, sales, rent):
        make_entry(cash, sales, "500.00", post=True)
        make_entry(rent, bank, "120.00", post=True)
        make_entry(bank, cash, "200.00", post=True)

        report = projector.trial_balance()

        rows = {row.code: row for row in report.rows}
        assert list(rows) == [cash.code, bank.code, sales.code, rent.code]
        assert rows[cash.code].balance == Decimal("300.00")
        assert rows[bank.code].balance == Decimal("80.00")
        assert rows[sales.code].balance == Decimal("-500.00")
        assert rows[sales.code].natural_balance == Decimal("500.00")
        assert rows[rent.code].natural_balance == Decimal("120.00")
        assert report.total_debit == report.total_credit == Decimal("820.00")
        assert report.is_balanced

    def test_posted_only_by_default(self, projector, make_entry, cash, sales):
        make_entry(cash, sales, "100.00", post=True)
        make_entry(cash, sales, "9.99")

        assert projector.trial_balance().total_debit == Decimal("100.00")
        assert projector.trial_balance(posted_only=False).total_debit == Decimal("109.99")

    def test_unposted_entry_drops_out(self, projector, actor, make_entry, cash, sales):
        entry = make_entry(cash, sales, "100.00", post=True)
        unpost_journal_entry(actor, entry.id)

        report = projector.trial_balance()

        assert report.rows == ()
        assert report.total_debit == Decimal("0.00")

    def test_date_range(self, projector, make_entry, cash, sales):
        make_entry(cash, sales, "10.00", entry_date=date(2025, 1, 5), post=True)
        make_entry(cash, sales, "20.00", entry_date=date(2025, 3, 5), post=True)

        report = projector.trial_balance(end_date=date(2025, 1, 31))

        assert report.total_credit == Decimal("10.00")

    def test_out_of_balance_books(self, projector, make_entry, company, cash, sales):
        entry = make_entry(cash, sales, "100.00", post=True)
        # Bypass the command layer to corrupt the books.
        JournalLine.objects.create(
            entry=entry, company=company, line_no=3, account=cash,
            debit=Decimal("0.50"), credit=Decimal("0.00"),
        )

        with pytest.raises(ReportError) as exc_info:
            projector.trial_balance()

        error = exc_info.value
        assert error.code == ErrorCode.OUT_OF_BALANCE
        assert error.total_debit == Decimal("100.50")
        assert error.total_credit == Decimal("100.00")
        assert error.to_dict()["total_debit"] == "100.50"

    def test_to_dict(self, projector, make_entry, cash, sales):
        make_entry(cash, sales, "100.00", post=True)

        data = projector.trial_balance().to_dict()

        assert data["is_balanced"] is True
        assert data["posted_only"] is True
        assert data["total_debit"] == "100.00"
        assert [row["code"] for row in data["rows"]] == [cash.code, sales.code]

    def test_repeated_runs_are_identical(self, company, make_entry, cash, bank, sales, rent):
        make_entry(cash, sales, "100.00", post=True)
        make_entry(rent, bank, "40.00", post=True)
        make_entry(bank, sales, "7.00")

        first = LedgerProjector(company).trial_balance().to_dict()
        second = LedgerProjector(company).trial_balance().to_dict()

        assert first == second
        assert first["total_debit"] == "140.00"
