# projections/ledger.py
"""
Ledger Projector.

Derives the general ledger (per-account line listing with running
balances) and the trial balance (per-account debit/credit totals) from
journal lines. Reports are computed on every call; nothing is
materialized, so they can never drift from the lines they summarize.

Both reports are pure reads and deterministic: lines are ordered by a
total key (entry date, entry creation time, entry id, line number, line
id), arithmetic is Decimal, and no wall-clock value enters the result.

Usage:
    projector = LedgerProjector(company)
    gl = projector.general_ledger(account_id=cash.id, posted_only=True)
    tb = projector.trial_balance(end_date=date(2025, 12, 31))   # may raise ReportError
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from itertools import groupby
from typing import Optional

from django.db.models import Sum

from accounting.errors import (
    EntryValidationError,
    ErrorCode,
    LedgerError,
    ReportError,
    Violation,
)
from accounting.models import Account, JournalEntry, JournalLine
from accounting.validators import MONEY_Q, MalformedInput, parse_entry_date


logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def _money(value) -> str:
    return str(Decimal(value or 0).quantize(MONEY_Q))


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class LedgerLine:
    """One journal line as it appears in an account's ledger."""
    line_id: int
    line_no: int
    entry_id: int
    entry_public_id: str
    entry_date: date
    entry_description: str
    reference_number: str
    status: str
    description: str
    debit: Decimal
    credit: Decimal
    running_balance: Decimal

    def to_dict(self) -> dict:
        return {
            "line_id": self.line_id,
            "line_no": self.line_no,
            "entry_id": self.entry_id,
            "entry_public_id": self.entry_public_id,
            "entry_date": _iso(self.entry_date),
            "entry_description": self.entry_description,
            "reference_number": self.reference_number,
            "status": self.status,
            "description": self.description,
            "debit": _money(self.debit),
            "credit": _money(self.credit),
            "running_balance": _money(self.running_balance),
        }


@dataclass(frozen=True)
class AccountLedger:
    """All filtered lines of one account, in ledger order."""
    account_id: int
    account_public_id: str
    code: str
    name: str
    account_type: str
    normal_balance: str
    lines: tuple
    total_debit: Decimal
    total_credit: Decimal
    closing_balance: Decimal

    def to_dict(self) -> dict:
        return {
            "account_id": self.account_id,
            "account_public_id": self.account_public_id,
            "code": self.code,
            "name": self.name,
            "account_type": self.account_type,
            "normal_balance": self.normal_balance,
            "lines": [line.to_dict() for line in self.lines],
            "total_debit": _money(self.total_debit),
            "total_credit": _money(self.total_credit),
            "closing_balance": _money(self.closing_balance),
        }


@dataclass(frozen=True)
class GeneralLedger:
    start_date: Optional[date]
    end_date: Optional[date]
    posted_only: bool
    accounts: tuple
    total_debit: Decimal
    total_credit: Decimal

    def to_dict(self) -> dict:
        return {
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "posted_only": self.posted_only,
            "accounts": [group.to_dict() for group in self.accounts],
            "total_debit": _money(self.total_debit),
            "total_credit": _money(self.total_credit),
        }


@dataclass(frozen=True)
class TrialBalanceRow:
    """
    Per-account totals.

    ``balance`` is debit minus credit. ``natural_balance`` flips the sign
    for credit-normal accounts so that a "healthy" balance is positive.
    """
    account_id: int
    account_public_id: str
    code: str
    name: str
    account_type: str
    normal_balance: str
    total_debit: Decimal
    total_credit: Decimal
    balance: Decimal
    natural_balance: Decimal

    def to_dict(self) -> dict:
        return {
            "account_id": self.account_id,
            "account_public_id": self.account_public_id,
            "code": self.code,
            "name": self.name,
            "account_type": self.account_type,
            "normal_balance": self.normal_balance,
            "total_debit": _money(self.total_debit),
            "total_credit": _money(self.total_credit),
            "balance": _money(self.balance),
            "natural_balance": _money(self.natural_balance),
        }


@dataclass(frozen=True)
class TrialBalance:
    start_date: Optional[date]
    end_date: Optional[date]
    posted_only: bool
    rows: tuple
    total_debit: Decimal
    total_credit: Decimal

    @property
    def is_balanced(self) -> bool:
        return self.total_debit == self.total_credit

    def to_dict(self) -> dict:
        return {
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "posted_only": self.posted_only,
            "rows": [row.to_dict() for row in self.rows],
            "total_debit": _money(self.total_debit),
            "total_credit": _money(self.total_credit),
            "is_balanced": self.is_balanced,
        }


class LedgerProjector:
    """Read-side reports over one company's journal lines."""

    LINE_ORDER = (
        "entry__entry_date",
        "entry__created_at",
        "entry_id",
        "line_no",
        "id",
    )

    def __init__(self, company):
        self.company = company

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_range(start_date, end_date) -> tuple[Optional[date], Optional[date]]:
        violations = []
        parsed = {}
        for name, value in (("start_date", start_date), ("end_date", end_date)):
            if value in (None, ""):
                parsed[name] = None
                continue
            try:
                parsed[name] = parse_entry_date(value)
            except MalformedInput as exc:
                parsed[name] = None
                violations.append(Violation(ErrorCode.MALFORMED_DATE, f"{name}: {exc}.", field=name))

        start, end = parsed["start_date"], parsed["end_date"]
        if start and end and start > end:
            violations.append(Violation(
                ErrorCode.MALFORMED_DATE,
                f"start_date {start.isoformat()} is after end_date {end.isoformat()}.",
                field="start_date",
            ))
        if violations:
            raise EntryValidationError(violations)
        return start, end

    def _lines(self, start: Optional[date], end: Optional[date], posted_only: bool):
        qs = JournalLine.objects.filter(company=self.company)
        if start:
            qs = qs.filter(entry__entry_date__gte=start)
        if end:
            qs = qs.filter(entry__entry_date__lte=end)
        if posted_only:
            qs = qs.filter(entry__status=JournalEntry.Status.POSTED)
        return qs

    # ------------------------------------------------------------------
    # General ledger
    # ------------------------------------------------------------------

    def general_ledger(
        self,
        account_id=None,
        start_date=None,
        end_date=None,
        posted_only: bool = False,
    ) -> GeneralLedger:
        """
        Per-account line listing with running balances.

        When ``account_id`` is given the report holds exactly that account,
        even if it has no lines in the range.
        """
        start, end = self._parse_range(start_date, end_date)

        account = None
        qs = self._lines(start, end, posted_only)
        if account_id not in (None, ""):
            try:
                account = Account.objects.get(company=self.company, pk=int(account_id))
            except (Account.DoesNotExist, TypeError, ValueError):
                raise LedgerError(f"Account {account_id} not found.", code=ErrorCode.NOT_FOUND)
            qs = qs.filter(account=account)

        qs = qs.select_related("entry", "account").order_by(
            "account__code", "account_id", *self.LINE_ORDER
        )

        groups = []
        for _, account_lines in groupby(qs, key=lambda line: line.account_id):
            account_lines = list(account_lines)
            groups.append(self._account_ledger(account_lines[0].account, account_lines))

        if account is not None and not groups:
            groups.append(self._account_ledger(account, []))

        return GeneralLedger(
            start_date=start,
            end_date=end,
            posted_only=posted_only,
            accounts=tuple(groups),
            total_debit=sum((g.total_debit for g in groups), ZERO),
            total_credit=sum((g.total_credit for g in groups), ZERO),
        )

    @staticmethod
    def _account_ledger(account: Account, lines: list) -> AccountLedger:
        running = ZERO
        total_debit = ZERO
        total_credit = ZERO
        ledger_lines = []
        for line in lines:
            running += line.debit - line.credit
            total_debit += line.debit
            total_credit += line.credit
            ledger_lines.append(LedgerLine(
                line_id=line.id,
                line_no=line.line_no,
                entry_id=line.entry_id,
                entry_public_id=str(line.entry.public_id),
                entry_date=line.entry.entry_date,
                entry_description=line.entry.description,
                reference_number=line.entry.reference_number,
                status=line.entry.status,
                description=line.description,
                debit=line.debit,
                credit=line.credit,
                running_balance=running,
            ))

        return AccountLedger(
            account_id=account.id,
            account_public_id=str(account.public_id),
            code=account.code,
            name=account.name,
            account_type=account.account_type,
            normal_balance=account.normal_balance,
            lines=tuple(ledger_lines),
            total_debit=total_debit,
            total_credit=total_credit,
            closing_balance=running,
        )

    # ------------------------------------------------------------------
    # Trial balance
    # ------------------------------------------------------------------

    def trial_balance(self, start_date=None, end_date=None, posted_only: bool = True) -> TrialBalance:
        """
        Per-account debit and credit totals over the filtered lines.

        Raises:
            ReportError: when total debits differ from total credits.
                Commands only ever store balanced entries, so this means
                the books were modified outside the command layer.
        """
        start, end = self._parse_range(start_date, end_date)

        totals = (
            self._lines(start, end, posted_only)
            .values("account_id")
            .annotate(total_debit=Sum("debit"), total_credit=Sum("credit"))
            .order_by()
        )
        totals_by_account = {row["account_id"]: row for row in totals}
        accounts = Account.objects.filter(
            company=self.company, pk__in=totals_by_account.keys()
        ).order_by("code", "id")

        rows = []
        for account in accounts:
            row = totals_by_account[account.id]
            debit = Decimal(row["total_debit"] or 0).quantize(MONEY_Q)
            credit = Decimal(row["total_credit"] or 0).quantize(MONEY_Q)
            balance = debit - credit
            natural = balance if account.normal_balance == Account.NormalBalance.DEBIT else -balance
            rows.append(TrialBalanceRow(
                account_id=account.id,
                account_public_id=str(account.public_id),
                code=account.code,
                name=account.name,
                account_type=account.account_type,
                normal_balance=account.normal_balance,
                total_debit=debit,
                total_credit=credit,
                balance=balance,
                natural_balance=natural,
            ))

        report = TrialBalance(
            start_date=start,
            end_date=end,
            posted_only=posted_only,
            rows=tuple(rows),
            total_debit=sum((r.total_debit for r in rows), ZERO),
            total_credit=sum((r.total_credit for r in rows), ZERO),
        )

        if not report.is_balanced:
            logger.error(
                "Trial balance out of balance",
                extra={
                    "company_id": self.company.id,
                    "total_debit": str(report.total_debit),
                    "total_credit": str(report.total_credit),
                    "posted_only": posted_only,
                },
            )
            raise ReportError(
                f"Trial balance is out of balance. "
                f"Debit={report.total_debit} Credit={report.total_credit}",
                total_debit=report.total_debit,
                total_credit=report.total_credit,
            )

        return report
