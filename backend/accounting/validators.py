# accounting/validators.py
"""
Entry validation for journal entries.

``validate_entry`` is a pure check: it parses raw user input (strings,
numbers, dates), resolves accounts for the company, and returns either
an accepted ``NormalizedEntry`` or every violated rule at once.

Amounts are parsed with ``Decimal`` and compared at cent precision. Binary
floats never take part in the arithmetic; a float input is converted
through ``str()`` first so ``0.1`` stays ``0.10``.
"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from django.db.models import Q
from django.utils.dateparse import parse_date

from accounting.errors import EntryValidationError, ErrorCode, Violation
from accounting.models import Account


MONEY_Q = Decimal("0.01")
ZERO = Decimal("0.00")
# DECIMAL(15, 2): at most 13 integer digits.
MAX_AMOUNT = Decimal("9999999999999.99")

MIN_LINES = 2
DESCRIPTION_MAX_LENGTH = 500
REFERENCE_MAX_LENGTH = 100
# Largest BigAutoField id.
MAX_PK = 2**63 - 1


class MalformedInput(ValueError):
    """Raised by the parsers below; turned into a Violation by the validator."""


def parse_amount(value: Any) -> Decimal:
    """
    Parse a user-supplied amount into a 2-decimal ``Decimal``.

    ``None`` and blank strings mean zero. Negative, non-finite, or
    sub-cent amounts are rejected rather than rounded.
    """
    if value is None:
        return ZERO
    if isinstance(value, bool):
        raise MalformedInput("must be a number")

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, float):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return ZERO
        try:
            amount = Decimal(text)
        except InvalidOperation:
            raise MalformedInput(f"'{value}' is not a valid amount")
    else:
        raise MalformedInput("must be a number")

    if not amount.is_finite():
        raise MalformedInput("must be a finite number")
    if amount < 0:
        raise MalformedInput("cannot be negative")
    if amount > MAX_AMOUNT:
        raise MalformedInput("is too large")
    if amount != amount.quantize(MONEY_Q):
        raise MalformedInput("cannot have more than 2 decimal places")

    return amount.quantize(MONEY_Q)


def parse_entry_date(value: Any) -> date:
    """Parse a calendar date from a ``date`` or an ISO ``YYYY-MM-DD`` string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            parsed = parse_date(value.strip())
        except ValueError:
            # Well-formed but impossible, e.g. 2025-02-30.
            raise MalformedInput(f"'{value}' is not a valid calendar date")
        if parsed is None:
            raise MalformedInput(f"'{value}' is not a date in YYYY-MM-DD format")
        return parsed
    raise MalformedInput("date is required")


@dataclass(frozen=True)
class NormalizedLine:
    line_no: int
    account: Account
    debit: Decimal
    credit: Decimal
    description: str = ""


@dataclass(frozen=True)
class NormalizedEntry:
    entry_date: date
    description: str
    reference_number: str
    lines: tuple
    total_debit: Decimal
    total_credit: Decimal


@dataclass(frozen=True)
class ValidationResult:
    """
    Outcome of ``validate_entry``.

    ``total_debit``/``total_credit`` are filled in even for rejected
    entries (over the lines whose amounts parsed) so callers can show a
    live preview next to the errors.
    """
    entry: Optional[NormalizedEntry]
    violations: tuple = field(default_factory=tuple)
    total_debit: Decimal = ZERO
    total_credit: Decimal = ZERO

    @property
    def accepted(self) -> bool:
        return self.entry is not None and not self.violations

    @property
    def codes(self) -> list[str]:
        return [v.code for v in self.violations]

    def raise_for_violations(self) -> NormalizedEntry:
        if not self.accepted:
            raise EntryValidationError(list(self.violations))
        return self.entry

    def to_dict(self) -> dict:
        return {
            "valid": self.accepted,
            "errors": [v.to_dict() for v in self.violations],
            "total_debit": str(self.total_debit),
            "total_credit": str(self.total_credit),
        }


def _account_key(value):
    """Split an account reference into (pk, public_id); exactly one is set."""
    if isinstance(value, Account):
        return value.pk, None
    if isinstance(value, bool):
        return None, None
    if isinstance(value, int):
        return (value, None) if abs(value) <= MAX_PK else (None, None)
    if isinstance(value, uuid.UUID):
        return None, value
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            pk = int(text)
            return (pk, None) if pk <= MAX_PK else (None, None)
        try:
            return None, uuid.UUID(text)
        except ValueError:
            return None, None
    return None, None


def _load_accounts(company, raw_lines: list) -> tuple[dict, dict, set]:
    """
    Fetch every referenced account in one query, plus the subset of them
    that have children (one more query). Returns (by_pk, by_public_id,
    parent_ids).
    """
    pks, public_ids = set(), set()
    for line in raw_lines:
        pk, public_id = _account_key(line.get("account_id"))
        if pk is not None:
            pks.add(pk)
        if public_id is not None:
            public_ids.add(public_id)

    if not pks and not public_ids:
        return {}, {}, set()

    accounts = list(
        Account.objects.filter(company=company).filter(
            Q(pk__in=pks) | Q(public_id__in=public_ids)
        )
    )
    by_pk = {acc.pk: acc for acc in accounts}
    by_public_id = {acc.public_id: acc for acc in accounts}
    parent_ids = set(
        Account.objects.filter(parent_id__in=by_pk.keys())
        .values_list("parent_id", flat=True)
        .distinct()
    )
    return by_pk, by_public_id, parent_ids


def validate_entry(
    company,
    entry_date,
    description,
    lines: Iterable[dict],
    reference_number: str = "",
) -> ValidationResult:
    """
    Validate a candidate journal entry for ``company``.

    Args:
        company: Tenant whose chart of accounts the lines must use
        entry_date: ``date`` or ISO string
        description: Free text, required after trimming
        lines: Dicts with ``account_id`` (pk or public UUID), ``debit``,
               ``credit`` and optional ``description``
        reference_number: Optional external reference

    Returns:
        ValidationResult, accepted or carrying every violation found
    """
    violations: list[Violation] = []

    parsed_date = None
    try:
        parsed_date = parse_entry_date(entry_date)
    except MalformedInput as exc:
        violations.append(Violation(ErrorCode.MALFORMED_DATE, f"Entry date: {exc}.", field="entry_date"))

    clean_description = str(description or "").strip()
    if not clean_description:
        violations.append(Violation(
            ErrorCode.MISSING_DESCRIPTION, "Description is required.", field="description",
        ))
    elif len(clean_description) > DESCRIPTION_MAX_LENGTH:
        violations.append(Violation(
            ErrorCode.FIELD_TOO_LONG,
            f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters.",
            field="description",
        ))

    clean_reference = str(reference_number or "").strip()
    if len(clean_reference) > REFERENCE_MAX_LENGTH:
        violations.append(Violation(
            ErrorCode.FIELD_TOO_LONG,
            f"Reference number cannot exceed {REFERENCE_MAX_LENGTH} characters.",
            field="reference_number",
        ))

    raw_lines = [line if isinstance(line, dict) else {} for line in (lines or [])]
    by_pk, by_public_id, parent_ids = _load_accounts(company, raw_lines)

    total_debit = ZERO
    total_credit = ZERO
    normalized: list[NormalizedLine] = []

    for index, line in enumerate(raw_lines, start=1):
        line_ok = True

        amounts = {}
        for side in ("debit", "credit"):
            try:
                amounts[side] = parse_amount(line.get(side))
            except MalformedInput as exc:
                line_ok = False
                violations.append(Violation(
                    ErrorCode.MALFORMED_AMOUNT,
                    f"Line {index}: {side} {exc}.",
                    line=index,
                    field=side,
                ))

        if len(amounts) == 2:
            debit, credit = amounts["debit"], amounts["credit"]
            total_debit += debit
            total_credit += credit
            if debit > 0 and credit > 0:
                line_ok = False
                violations.append(Violation(
                    ErrorCode.MALFORMED_AMOUNT,
                    f"Line {index}: a line cannot have both a debit and a credit.",
                    line=index,
                ))
            elif debit == 0 and credit == 0:
                line_ok = False
                violations.append(Violation(
                    ErrorCode.MALFORMED_AMOUNT,
                    f"Line {index}: a debit or credit amount is required.",
                    line=index,
                ))

        raw_description = line.get("description")
        line_description = "" if raw_description is None else str(raw_description).strip()
        if len(line_description) > DESCRIPTION_MAX_LENGTH:
            line_ok = False
            violations.append(Violation(
                ErrorCode.FIELD_TOO_LONG,
                f"Line {index}: description cannot exceed {DESCRIPTION_MAX_LENGTH} characters.",
                line=index,
                field="description",
            ))

        account = None
        raw_account = line.get("account_id")
        pk, public_id = _account_key(raw_account)
        if pk is not None:
            account = by_pk.get(pk)
        elif public_id is not None:
            account = by_public_id.get(public_id)

        if raw_account in (None, ""):
            line_ok = False
            violations.append(Violation(
                ErrorCode.INVALID_ACCOUNT, f"Line {index}: account is required.",
                line=index, field="account_id",
            ))
        elif account is None:
            line_ok = False
            violations.append(Violation(
                ErrorCode.INVALID_ACCOUNT, f"Line {index}: account {raw_account} not found.",
                line=index, field="account_id",
            ))
        elif not account.is_active:
            line_ok = False
            violations.append(Violation(
                ErrorCode.INVALID_ACCOUNT, f"Line {index}: account {account.code} is inactive.",
                line=index, field="account_id",
            ))
        elif account.pk in parent_ids:
            line_ok = False
            violations.append(Violation(
                ErrorCode.INVALID_ACCOUNT,
                f"Line {index}: account {account.code} has sub-accounts and cannot be booked against.",
                line=index, field="account_id",
            ))

        if line_ok:
            normalized.append(NormalizedLine(
                line_no=len(normalized) + 1,
                account=account,
                debit=amounts["debit"],
                credit=amounts["credit"],
                description=line_description,
            ))

    if len(normalized) < MIN_LINES:
        violations.append(Violation(
            ErrorCode.EMPTY_ENTRY,
            f"An entry needs at least {MIN_LINES} valid lines.",
        ))
    elif total_debit == ZERO:
        violations.append(Violation(
            ErrorCode.EMPTY_ENTRY,
            "An entry needs at least one line with a positive debit.",
        ))

    if abs(total_debit - total_credit) >= MONEY_Q:
        violations.append(Violation(
            ErrorCode.UNBALANCED,
            f"Entry is not balanced. Debit={total_debit} Credit={total_credit}",
        ))

    if violations:
        return ValidationResult(
            entry=None,
            violations=tuple(violations),
            total_debit=total_debit,
            total_credit=total_credit,
        )

    return ValidationResult(
        entry=NormalizedEntry(
            entry_date=parsed_date,
            description=clean_description,
            reference_number=clean_reference,
            lines=tuple(normalized),
            total_debit=total_debit,
            total_credit=total_credit,
        ),
        total_debit=total_debit,
        total_credit=total_credit,
    )


def validate_stored_entry(entry) -> ValidationResult:
    """Re-run validation against an entry as it is currently stored."""
    lines = [
        {
            "account_id": line.account_id,
            "debit": line.debit,
            "credit": line.credit,
            "description": line.description,
        }
        for line in entry.lines.order_by("line_no", "id")
    ]
    return validate_entry(
        entry.company,
        entry.entry_date,
        entry.description,
        lines,
        reference_number=entry.reference_number,
    )
