# events/types.py
"""
Event type definitions for FiniTax.

This module defines THE CANONICAL SCHEMA for audit event payloads.
All event emission MUST use these types; validation is enforced at
emission time.

Naming Convention: {aggregate}.{past_tense_verb}
Examples:
- journal_entry.created
- journal_entry.posted

Every journal entry event carries the same transition envelope:
who (actor id + email), when (transitioned_at), from_status/to_status,
and a summary of the entry at the time of the transition.
"""

from dataclasses import MISSING, asdict, dataclass, field, fields as dataclass_fields
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Union, get_args, get_origin, get_type_hints


# =============================================================================
# Event Validation
# =============================================================================

class InvalidEventPayload(Exception):
    """An event payload does not match the dataclass registered for its type."""
    def __init__(self, event_type: str, errors: List[str]):
        self.event_type = event_type
        self.errors = errors
        super().__init__(f"{event_type} payload rejected: " + "; ".join(errors))


def _is_optional_type(type_hint) -> bool:
    if get_origin(type_hint) is Union:
        return type(None) in get_args(type_hint)
    return False


def _get_inner_type(type_hint):
    if get_origin(type_hint) is Union:
        non_none_args = [a for a in get_args(type_hint) if a is not type(None)]
        if len(non_none_args) == 1:
            return non_none_args[0]
    return type_hint


DECIMAL_FIELDS = {"debit", "credit", "total_debit", "total_credit"}
DATE_FIELDS = {"entry_date"}
DATETIME_FIELDS = {"transitioned_at", "posted_at"}
STATUS_FIELDS = {"from_status", "to_status"}


def validate_event_payload(event_type: str, data: Dict[str, Any]) -> None:
    """
    Check ``data`` against the dataclass registered for ``event_type``.

    Every dataclass field without a default must be present, no other keys
    are allowed, str/int/list fields must hold that type, and amounts,
    dates and statuses must parse. All problems are collected before
    raising InvalidEventPayload. An unregistered event type raises
    ValueError.
    """
    data_class = EVENT_DATA_CLASSES.get(event_type)
    if data_class is None:
        raise ValueError(
            f"No schema registered for event type '{event_type}' in EVENT_DATA_CLASSES."
        )

    errors = []
    schema = {f.name: f for f in dataclass_fields(data_class)}
    type_hints = get_type_hints(data_class)

    missing = [
        name for name, declared in schema.items()
        if declared.default is MISSING and declared.default_factory is MISSING and name not in data
    ]
    if missing:
        errors.append(f"Missing required fields: {missing}")

    unexpected = sorted(set(data) - set(schema))
    if unexpected:
        errors.append(f"Unexpected fields: {unexpected}")

    for field_name, value in data.items():
        type_hint = type_hints.get(field_name)
        if type_hint is None:
            continue

        if value is None:
            if not _is_optional_type(type_hint):
                errors.append(f"Field '{field_name}' cannot be None (type: {type_hint})")
            continue

        check_type = _get_inner_type(type_hint)
        origin = get_origin(check_type)

        if origin is list or check_type is list:
            if not isinstance(value, list):
                errors.append(f"Field '{field_name}' must be a list, got {type(value).__name__}")
        elif check_type is str:
            if not isinstance(value, str):
                errors.append(f"Field '{field_name}' must be a string, got {type(value).__name__}")
        elif check_type is int:
            if not isinstance(value, int) or isinstance(value, bool):
                errors.append(f"Field '{field_name}' must be an int, got {type(value).__name__}")

    from accounting.models import JournalEntry

    statuses = set(JournalEntry.Status.values)

    def _validate_scalar(name: str, value: Any) -> None:
        if value is None or isinstance(value, (dict, list)):
            return
        if name in STATUS_FIELDS and value not in statuses:
            errors.append(f"Field '{name}' must be one of {sorted(statuses)}, got {value!r}")
        if name in DECIMAL_FIELDS:
            try:
                Decimal(str(value))
            except (InvalidOperation, ValueError):
                errors.append(f"Field '{name}' must be a decimal string, got {value!r}")
        if name in DATE_FIELDS:
            try:
                date.fromisoformat(str(value))
            except ValueError:
                errors.append(f"Field '{name}' must be an ISO date string, got {value!r}")
        if name in DATETIME_FIELDS:
            try:
                datetime.fromisoformat(str(value))
            except ValueError:
                errors.append(f"Field '{name}' must be an ISO datetime string, got {value!r}")

    def _walk(name: str, value: Any) -> None:
        _validate_scalar(name, value)
        if isinstance(value, dict):
            for k, v in value.items():
                _walk(k, v)
        elif isinstance(value, list):
            for item in value:
                _walk(name, item)

    for field_name, value in data.items():
        _walk(field_name, value)

    if errors:
        raise InvalidEventPayload(event_type, errors)


# =============================================================================
# Base Event Classes
# =============================================================================

@dataclass
class BaseEventData:
    """Base class for all event data."""

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON storage."""
        result = {}
        for key, value in asdict(self).items():
            if isinstance(value, Decimal):
                result[key] = str(value)
            elif isinstance(value, (date, datetime)):
                result[key] = value.isoformat()
            else:
                result[key] = value
        return result


# =============================================================================
# Journal Entry Events
# =============================================================================

@dataclass
class JournalLineData(BaseEventData):
    """Line snapshot embedded in created/updated events."""
    line_no: int
    account_public_id: str
    account_code: str
    debit: str
    credit: str
    description: str = ""


@dataclass
class JournalEntryTransitionData(BaseEventData):
    """Common envelope for every journal entry transition."""
    entry_public_id: str
    entry_date: str
    description: str
    version: int
    total_debit: str
    total_credit: str
    actor_id: int
    actor_email: str
    transitioned_at: str
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    reference_number: str = ""


@dataclass
class JournalEntryCreatedData(JournalEntryTransitionData):
    """Data for journal_entry.created (None -> DRAFT)."""
    lines: List[dict] = field(default_factory=list)


@dataclass
class JournalEntryUpdatedData(JournalEntryTransitionData):
    """Data for journal_entry.updated (DRAFT -> DRAFT). Lines are the new set."""
    lines: List[dict] = field(default_factory=list)


@dataclass
class JournalEntryPostedData(JournalEntryTransitionData):
    """Data for journal_entry.posted (DRAFT -> POSTED)."""
    posted_at: Optional[str] = None


@dataclass
class JournalEntryUnpostedData(JournalEntryTransitionData):
    """Data for journal_entry.unposted (POSTED -> DRAFT)."""
    previously_posted_at: Optional[str] = None


@dataclass
class JournalEntryDeletedData(JournalEntryTransitionData):
    """Data for journal_entry.deleted (DRAFT -> None)."""
    pass


class EventTypes:
    """
    Registry of all event types.

    Naming convention: {aggregate}.{past_tense_verb}
    """

    JOURNAL_ENTRY_CREATED = "journal_entry.created"
    JOURNAL_ENTRY_UPDATED = "journal_entry.updated"
    JOURNAL_ENTRY_POSTED = "journal_entry.posted"
    JOURNAL_ENTRY_UNPOSTED = "journal_entry.unposted"
    JOURNAL_ENTRY_DELETED = "journal_entry.deleted"


# =============================================================================
# Event Type to Data Class Mapping (for validation/documentation)
# =============================================================================

EVENT_DATA_CLASSES = {
    EventTypes.JOURNAL_ENTRY_CREATED: JournalEntryCreatedData,
    EventTypes.JOURNAL_ENTRY_UPDATED: JournalEntryUpdatedData,
    EventTypes.JOURNAL_ENTRY_POSTED: JournalEntryPostedData,
    EventTypes.JOURNAL_ENTRY_UNPOSTED: JournalEntryUnpostedData,
    EventTypes.JOURNAL_ENTRY_DELETED: JournalEntryDeletedData,
}
