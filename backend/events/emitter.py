# events/emitter.py
"""
Writing audit events.

Commands call emit_event() inside their own transaction, after the state
change and before commit, so an entry transition and its audit row are
stored together or not at all. Payloads are checked against the schemas
in events/types.py; a mismatch raises InvalidEventPayload and nothing is
written.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Union

from django.db import IntegrityError, transaction
from django.utils import timezone

from events.models import BusinessEvent
from events.types import BaseEventData, validate_event_payload


logger = logging.getLogger(__name__)

# Inserts racing for the same aggregate sequence number.
SEQUENCE_ATTEMPTS = 3


def _stored(company, idempotency_key: str) -> Optional[BusinessEvent]:
    return BusinessEvent.objects.filter(company=company, idempotency_key=idempotency_key).first()


def emit_event(
    *,
    actor=None,
    company=None,
    user=None,
    event_type: str,
    aggregate_type: str,
    aggregate_id: Any,
    data: Union[Dict[str, Any], BaseEventData],
    idempotency_key: str,
    occurred_at: Optional[datetime] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> BusinessEvent:
    """
    Record one transition.

    Pass ``actor`` (an ActorContext), or ``company`` with an optional
    ``user`` for system writes. A key that is already stored for the
    company returns the stored event unchanged.

        emit_event(
            actor=actor,
            event_type=EventTypes.JOURNAL_ENTRY_POSTED,
            aggregate_type="JournalEntry",
            aggregate_id=entry.public_id,
            idempotency_key=f"journal_entry.posted:{entry.public_id}:v{entry.version}",
            data=JournalEntryPostedData(...),
        )

    Raises:
        InvalidEventPayload: data does not match the event type's schema
        ValueError: idempotency_key is blank
        TypeError: neither actor nor company given
    """
    if actor is not None:
        company, user = actor.company, actor.user
    if company is None:
        raise TypeError("emit_event() requires actor or company")
    if not str(idempotency_key or "").strip():
        raise ValueError("idempotency_key is required")

    if isinstance(data, BaseEventData):
        data = data.to_dict()
    validate_event_payload(event_type, data)

    existing = _stored(company, idempotency_key)
    if existing:
        logger.debug(
            "Idempotent replay of %s",
            event_type,
            extra={"idempotency_key": idempotency_key, "company_id": company.id},
        )
        return existing

    attempt = 0
    while True:
        attempt += 1
        try:
            with transaction.atomic():
                event = BusinessEvent.objects.create(
                    company=company,
                    event_type=event_type,
                    aggregate_type=aggregate_type,
                    aggregate_id=str(aggregate_id),
                    data=data,
                    metadata=metadata or {},
                    caused_by_user=user if getattr(user, "pk", None) else None,
                    occurred_at=occurred_at or timezone.now(),
                    idempotency_key=idempotency_key,
                )
            break
        except IntegrityError:
            existing = _stored(company, idempotency_key)
            if existing:
                return existing
            if attempt >= SEQUENCE_ATTEMPTS:
                raise

    logger.info(
        "Emitted %s",
        event_type,
        extra={
            "event_id": str(event.id),
            "aggregate_type": aggregate_type,
            "aggregate_id": str(aggregate_id),
            "sequence": event.sequence,
            "company_id": company.id,
        },
    )
    return event


def get_aggregate_events(company, aggregate_type: str, aggregate_id: Any) -> list[BusinessEvent]:
    """Audit trail of one aggregate, oldest first."""
    return list(
        BusinessEvent.objects.filter(
            company=company,
            aggregate_type=aggregate_type,
            aggregate_id=str(aggregate_id),
        ).order_by("sequence")
    )
