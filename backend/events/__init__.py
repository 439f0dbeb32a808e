# events/__init__.py
"""
Events app - audit trail for FiniTax ledger transitions.

This app provides:
- BusinessEvent: Immutable audit records
- emit_event: the only way to write one
- Event type definitions with CANONICAL SCHEMAS (events/types.py)

Usage:
    from events.emitter import emit_event
    from events.types import EventTypes, JournalEntryPostedData

    emit_event(
        actor=actor,
        event_type=EventTypes.JOURNAL_ENTRY_POSTED,
        aggregate_type="JournalEntry",
        aggregate_id=entry.public_id,
        idempotency_key=f"journal_entry.posted:{entry.public_id}:v{entry.version}",
        data=JournalEntryPostedData(...),
    )
"""
