# events/models.py
"""
Audit fact store for FiniTax.

Every successful journal entry transition (create, update, post, unpost,
delete) writes exactly one BusinessEvent in the same transaction as the
state change. Rows are append-only: save() refuses updates and delete()
always raises.
"""

import uuid

from django.conf import settings
from django.db import models, transaction
from django.db.models import Max
from django.utils import timezone

from accounts.models import Company


class BusinessEvent(models.Model):
    """One ledger transition, as recorded at commit time."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name="events",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Transition name, one of events.types.EventTypes",
    )

    aggregate_type = models.CharField(
        max_length=50,
        db_index=True,
        help_text="Model the transition applies to, e.g. JournalEntry",
    )

    aggregate_id = models.CharField(
        max_length=64,
        db_index=True,
        help_text="public_id of the journal entry",
    )

    idempotency_key = models.CharField(
        max_length=255,
        db_index=True,
        editable=False,
        help_text="Replaying a command with the same key returns the stored event",
    )

    sequence = models.PositiveIntegerField(
        default=0,
        editable=False,
        help_text="1-based position in the entry's history",
    )

    data = models.JSONField(
        default=dict,
        help_text="Validated payload (see events.types)",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Request context such as client IP",
    )

    schema_version = models.PositiveSmallIntegerField(
        default=1,
        help_text="Payload layout revision",
    )

    caused_by_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="caused_events",
        help_text="Actor that ran the command; null for system writes",
    )

    recorded_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
    )

    occurred_at = models.DateTimeField(
        db_index=True,
        default=timezone.now,
    )

    class Meta:
        ordering = ["company_id", "recorded_at", "sequence"]
        indexes = [
            models.Index(fields=["company", "aggregate_type", "aggregate_id", "sequence"], name="event_aggregate_seq_idx"),
            models.Index(fields=["company", "event_type", "occurred_at"], name="event_type_occurred_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "aggregate_type", "aggregate_id", "sequence"],
                name="uniq_event_company_aggregate_sequence",
            ),
            models.UniqueConstraint(
                fields=["company", "idempotency_key"],
                name="uniq_event_company_idempotency_key",
            ),
        ]

    def __str__(self):
        return f"{self.event_type} {self.aggregate_type}:{self.aggregate_id} #{self.sequence}"

    @classmethod
    def next_sequence(cls, company, aggregate_type: str, aggregate_id: str) -> int:
        current = cls.objects.filter(
            company=company,
            aggregate_type=aggregate_type,
            aggregate_id=aggregate_id,
        ).aggregate(last=Max("sequence"))["last"]
        return (current or 0) + 1

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Events are immutable and cannot be modified.")
        if not (self.idempotency_key or "").strip():
            raise ValueError("idempotency_key is required")

        with transaction.atomic():
            if not self.sequence:
                self.sequence = self.next_sequence(self.company, self.aggregate_type, self.aggregate_id)
            super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Events are immutable and cannot be deleted.")
