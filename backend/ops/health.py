"""
Health probes for the ledger service.

    /_health/live   process is up
    /_health/ready  default database answers
    /_health/full   every database, plus ledger counts and a posted-balance check

None of these require authentication; restrict them at the network edge.
"""
import logging
import time
from decimal import Decimal
from typing import Any, Dict

from django.conf import settings
from django.db import DatabaseError, connections
from django.db.models import Count, Sum
from django.http import JsonResponse
from django.views import View

logger = logging.getLogger(__name__)

HEALTHY = "healthy"
UNHEALTHY = "unhealthy"
DEGRADED = "degraded"


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def ping_database(alias: str = "default") -> Dict[str, Any]:
    started = time.perf_counter()
    report = {"alias": alias}
    try:
        with connections[alias].cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except DatabaseError as exc:
        logger.warning("Database ping failed", extra={"alias": alias, "error": str(exc)})
        report.update(status=UNHEALTHY, error=str(exc))
    else:
        report["status"] = HEALTHY
    report["duration_ms"] = _elapsed_ms(started)
    return report


def ledger_summary() -> Dict[str, Any]:
    """
    Entry counts by status, audit event count, and whether posted debits
    equal posted credits across all companies.

    An imbalance marks the ledger degraded rather than down: reads still
    work, but the trial balance will refuse to render for the affected
    company.
    """
    from accounting.models import JournalEntry, JournalLine
    from events.models import BusinessEvent

    try:
        by_status = dict(
            JournalEntry.objects.order_by().values("status").annotate(n=Count("id")).values_list("status", "n")
        )
        posted = JournalLine.objects.filter(entry__status=JournalEntry.Status.POSTED).aggregate(
            debit=Sum("debit"), credit=Sum("credit"),
        )
        events = BusinessEvent.objects.count()
    except DatabaseError as exc:
        return {"status": UNHEALTHY, "error": str(exc)}

    difference = (posted["debit"] or Decimal("0")) - (posted["credit"] or Decimal("0"))
    if difference:
        logger.error("Posted ledger out of balance", extra={"difference": str(difference)})

    return {
        "status": DEGRADED if difference else HEALTHY,
        "draft_entries": by_status.get(JournalEntry.Status.DRAFT, 0),
        "posted_entries": by_status.get(JournalEntry.Status.POSTED, 0),
        "events": events,
        "posted_difference": str(difference.quantize(Decimal("0.01"))),
    }


def full_report() -> Dict[str, Any]:
    databases = {alias: ping_database(alias) for alias in settings.DATABASES}
    checks = {
        "databases": {
            "status": HEALTHY if all(db["status"] == HEALTHY for db in databases.values()) else DEGRADED,
            "databases": databases,
        },
        "ledger": ledger_summary(),
    }

    statuses = {check["status"] for check in checks.values()}
    if statuses == {HEALTHY}:
        overall = HEALTHY
    elif UNHEALTHY in statuses:
        overall = UNHEALTHY
    else:
        overall = DEGRADED

    return {
        "status": overall,
        "checks": checks,
        "version": getattr(settings, "VERSION", "unknown"),
        "environment": "development" if settings.DEBUG else "production",
    }


class LivenessView(View):
    def get(self, request):
        return JsonResponse({"status": "alive"})


class ReadinessView(View):
    """Ready once the default database answers; 503 otherwise."""

    def get(self, request):
        database = ping_database()
        ready = database["status"] == HEALTHY
        return JsonResponse(
            {"status": "ready" if ready else "not_ready", "database": database},
            status=200 if ready else 503,
        )


class FullHealthView(View):
    def get(self, request):
        report = full_report()
        return JsonResponse(report, status=200 if report["status"] == HEALTHY else 503)
