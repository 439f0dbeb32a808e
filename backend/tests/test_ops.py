# tests/test_ops.py
"""
Tests for operational plumbing: structured logging, storage retries and
health endpoints.
"""

import json
import logging
from decimal import Decimal

import pytest
from django.db import IntegrityError, OperationalError

from accounting.errors import ErrorCode, TransientStorageError
from accounting.models import JournalLine
from ops import retry as retry_module
from ops.logging_config import JsonFormatter, get_logging_config
from ops.retry import backoff_delay, retry_on_transient


# =============================================================================
# Logging
# =============================================================================

class TestLoggingConfig:

    def test_json_in_production(self, monkeypatch):
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        config = get_logging_config(debug=False)

        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["loggers"]["accounting"]["level"] == "INFO"
        assert config["loggers"]["django.db.backends"]["handlers"] == ["null"]

    def test_console_in_debug(self, monkeypatch):
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        config = get_logging_config(debug=True)

        assert config["handlers"]["console"]["formatter"] == "verbose"
        assert config["loggers"]["projections"]["level"] == "DEBUG"

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "json")
        monkeypatch.setenv("LOG_LEVEL", "WARNING")

        config = get_logging_config(debug=True)

        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["loggers"]["events"]["level"] == "WARNING"

    def test_sql_echo_only_in_debug(self, monkeypatch):
        monkeypatch.setenv("LOG_SQL", "true")

        assert get_logging_config(debug=True)["loggers"]["django.db.backends"]["handlers"] == ["console"]
        assert get_logging_config(debug=False)["loggers"]["django.db.backends"]["handlers"] == ["null"]


class TestJsonFormatter:

    def _record(self, **extra):
        record = logging.LogRecord(
            name="accounting.commands",
            level=logging.INFO,
            pathname=__file__,
            lineno=42,
            msg="Journal entry %s",
            args=("posted",),
            exc_info=None,
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_formats_json_line(self):
        line = JsonFormatter().format(self._record(entry_public_id="abc", version=2))
        payload = json.loads(line)

        assert payload["level"] == "INFO"
        assert payload["logger"] == "accounting.commands"
        assert payload["message"] == "Journal entry posted"
        assert payload["timestamp"].endswith("Z")
        assert payload["extra"] == {"entry_public_id": "abc", "version": 2}

    def test_service_name_from_env(self, monkeypatch):
        monkeypatch.setenv("SERVICE_NAME", "ledger-api")

        payload = json.loads(JsonFormatter().format(self._record()))

        assert payload["service"] == "ledger-api"
        assert "extra" not in payload

    def test_unserializable_extra_is_stringified(self):
        payload = json.loads(JsonFormatter().format(self._record(amount=object())))

        assert payload["extra"]["amount"].startswith("<object object")


# =============================================================================
# Retries
# =============================================================================

class TestBackoffDelay:

    def test_grows_exponentially_with_jitter(self):
        for attempt, base in [(0, 0.1), (1, 0.2), (2, 0.4)]:
            delay = backoff_delay(attempt, 0.1)
            assert base <= delay <= base * 1.25 + 1e-9

    def test_capped(self):
        assert backoff_delay(20, 0.1, max_delay=2.0) <= 2.5


class TestRetryOnTransient:

    @pytest.fixture(autouse=True)
    def _no_sleep(self, monkeypatch):
        self.sleeps = []
        monkeypatch.setattr(retry_module.time, "sleep", self.sleeps.append)

    def test_recovers_from_transient_error(self):
        calls = []

        @retry_on_transient(attempts=3, base_delay=0.01)
        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise OperationalError("could not serialize access")
            return "ok"

        assert flaky() == "ok"
        assert len(calls) == 3
        assert len(self.sleeps) == 2

    def test_gives_up_with_storage_error(self):
        @retry_on_transient(attempts=2, base_delay=0)
        def down():
            raise OperationalError("connection refused")

        with pytest.raises(TransientStorageError) as exc_info:
            down()

        error = exc_info.value
        assert error.code == ErrorCode.STORAGE_UNAVAILABLE
        assert error.retryable is True
        assert isinstance(error.__cause__, OperationalError)
        assert self.sleeps == []

    def test_other_errors_are_not_retried(self):
        calls = []

        @retry_on_transient
        def broken():
            calls.append(1)
            raise IntegrityError("duplicate key")

        with pytest.raises(IntegrityError):
            broken()
        assert len(calls) == 1

    def test_reads_attempts_from_settings(self, settings):
        settings.LEDGER_STORAGE_RETRY_ATTEMPTS = 4
        settings.LEDGER_STORAGE_RETRY_BASE_DELAY = 0
        calls = []

        @retry_on_transient
        def down():
            calls.append(1)
            raise OperationalError("connection refused")

        with pytest.raises(TransientStorageError):
            down()
        assert len(calls) == 4


# =============================================================================
# Health
# =============================================================================

@pytest.mark.django_db
class TestHealthEndpoints:

    def test_live(self, client):
        response = client.get("/_health/live")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    def test_ready(self, client):
        response = client.get("/_health/ready")

        assert response.status_code == 200
        assert response.json()["database"]["status"] == "healthy"

    def test_full(self, client, make_entry, cash, sales):
        make_entry(cash, sales, post=True)
        make_entry(cash, sales)

        response = client.get("/_health/full")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["checks"]["ledger"]["posted_entries"] == 1
        assert body["checks"]["ledger"]["draft_entries"] == 1
        assert body["checks"]["ledger"]["events"] == 3
        assert body["checks"]["ledger"]["posted_difference"] == "0.00"

    def test_full_degraded_when_posted_books_do_not_balance(self, client, make_entry, company, cash, sales):
        entry = make_entry(cash, sales, "100.00", post=True)
        JournalLine.objects.create(
            entry=entry, company=company, line_no=3, account=cash,
            debit=Decimal("0.50"), credit=Decimal("0.00"),
        )

        response = client.get("/_health/full")

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "degraded"
        assert body["checks"]["ledger"]["posted_difference"] == "0.50"
