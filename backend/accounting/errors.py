# accounting/errors.py
"""
Error taxonomy for the ledger core.

Four categories, each handled differently by callers:

    LedgerError
    ├── EntryValidationError  - caller-fixable input problems, never retried
    ├── EntryStateError       - transition conflicts with persisted state;
    │                           reload and let the user retry explicitly
    ├── ReportError           - integrity problem in already-posted data
    └── TransientStorageError - storage hiccup, retried with backoff

Validation errors always carry the full list of violations so a single
round trip can report every problem at once.
"""

from dataclasses import dataclass
from typing import Optional


class ErrorCode:
    # Validation
    UNBALANCED = "UNBALANCED"
    EMPTY_ENTRY = "EMPTY_ENTRY"
    INVALID_ACCOUNT = "INVALID_ACCOUNT"
    MALFORMED_AMOUNT = "MALFORMED_AMOUNT"
    MALFORMED_DATE = "MALFORMED_DATE"
    MISSING_DESCRIPTION = "MISSING_DESCRIPTION"
    FIELD_TOO_LONG = "FIELD_TOO_LONG"

    # State
    ENTRY_LOCKED = "ENTRY_LOCKED"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"
    NOT_FOUND = "NOT_FOUND"

    # Report
    OUT_OF_BALANCE = "OUT_OF_BALANCE"

    # Storage
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"

    # Request body not shaped like an entry (e.g. lines is not a list)
    MALFORMED_REQUEST = "MALFORMED_REQUEST"

    VALIDATION_CODES = frozenset({
        UNBALANCED,
        EMPTY_ENTRY,
        INVALID_ACCOUNT,
        MALFORMED_AMOUNT,
        MALFORMED_DATE,
        MISSING_DESCRIPTION,
        FIELD_TOO_LONG,
    })
    STATE_CODES = frozenset({ENTRY_LOCKED, CONCURRENT_MODIFICATION})


@dataclass(frozen=True)
class Violation:
    """A single violated rule. ``line`` is the 1-based line index, if any."""
    code: str
    message: str
    line: Optional[int] = None
    field: Optional[str] = None

    def to_dict(self) -> dict:
        result = {"code": self.code, "message": self.message}
        if self.line is not None:
            result["line"] = self.line
        if self.field is not None:
            result["field"] = self.field
        return result


class LedgerError(Exception):
    """Base class for ledger core errors."""
    code = "LEDGER_ERROR"
    retryable = False

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class EntryValidationError(LedgerError):
    """Raised when an entry violates one or more structural rules."""

    def __init__(self, violations: list[Violation]):
        if not violations:
            raise ValueError("EntryValidationError requires at least one violation")
        self.violations = list(violations)
        super().__init__(
            "; ".join(v.message for v in self.violations),
            code=self.violations[0].code,
        )

    @property
    def codes(self) -> list[str]:
        return [v.code for v in self.violations]

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["errors"] = [v.to_dict() for v in self.violations]
        return result


class EntryStateError(LedgerError):
    """Raised when a transition conflicts with the entry's persisted state."""

    def __init__(self, code: str, message: str):
        super().__init__(message, code=code)


class ReportError(LedgerError):
    """Raised when a derived report exposes inconsistent books."""
    code = ErrorCode.OUT_OF_BALANCE

    def __init__(self, message: str, total_debit=None, total_credit=None):
        super().__init__(message)
        self.total_debit = total_debit
        self.total_credit = total_credit

    def to_dict(self) -> dict:
        result = super().to_dict()
        if self.total_debit is not None:
            result["total_debit"] = str(self.total_debit)
        if self.total_credit is not None:
            result["total_credit"] = str(self.total_credit)
        return result


class TransientStorageError(LedgerError):
    """Storage failed after bounded retries. Not the caller's fault."""
    code = ErrorCode.STORAGE_UNAVAILABLE
    retryable = True
