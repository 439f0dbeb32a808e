import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="BusinessEvent",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("event_type", models.CharField(db_index=True, help_text="Transition name, one of events.types.EventTypes", max_length=100)),
                ("aggregate_type", models.CharField(db_index=True, help_text="Model the transition applies to, e.g. JournalEntry", max_length=50)),
                ("aggregate_id", models.CharField(db_index=True, help_text="public_id of the journal entry", max_length=64)),
                ("idempotency_key", models.CharField(db_index=True, editable=False, help_text="Replaying a command with the same key returns the stored event", max_length=255)),
                ("sequence", models.PositiveIntegerField(default=0, editable=False, help_text="1-based position in the entry's history")),
                ("data", models.JSONField(default=dict, help_text="Validated payload (see events.types)")),
                ("metadata", models.JSONField(blank=True, default=dict, help_text="Request context such as client IP")),
                ("schema_version", models.PositiveSmallIntegerField(default=1, help_text="Payload layout revision")),
                ("recorded_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("occurred_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("caused_by_user", models.ForeignKey(blank=True, help_text="Actor that ran the command; null for system writes", null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="caused_events", to=settings.AUTH_USER_MODEL)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="events", to="accounts.company")),
            ],
            options={
                "ordering": ["company_id", "recorded_at", "sequence"],
                "indexes": [
                    models.Index(fields=["company", "aggregate_type", "aggregate_id", "sequence"], name="event_aggregate_seq_idx"),
                    models.Index(fields=["company", "event_type", "occurred_at"], name="event_type_occurred_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "aggregate_type", "aggregate_id", "sequence"), name="uniq_event_company_aggregate_sequence"),
                    models.UniqueConstraint(fields=("company", "idempotency_key"), name="uniq_event_company_idempotency_key"),
                ],
            },
        ),
    ]
