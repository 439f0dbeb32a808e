# ops/retry.py
"""
Bounded retries for transient storage failures.

A dropped connection or a lock timeout (``OperationalError``,
``InterfaceError``) is not the caller's fault and usually clears on its
own. ``retry_on_transient`` re-runs the wrapped call with exponential
backoff and, once attempts are exhausted, raises ``TransientStorageError``
so the API can answer 503 instead of a generic 500.

The wrapped call must be its own transaction (a command decorated with
``@transaction.atomic``); retrying inside an outer atomic block would
reuse a broken transaction.

Settings:
- LEDGER_STORAGE_RETRY_ATTEMPTS: total attempts (default: 3)
- LEDGER_STORAGE_RETRY_BASE_DELAY: first backoff delay in seconds (default: 0.05)
"""

import functools
import logging
import random
import time

from django.conf import settings
from django.db import InterfaceError, OperationalError

from accounting.errors import TransientStorageError


logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (OperationalError, InterfaceError)


def backoff_delay(attempt: int, base: float, max_delay: float = 2.0) -> float:
    """
    Exponential backoff with 0-25% jitter.

    Attempt 0 waits ``base``, attempt 1 waits ``2 * base``, and so on.
    """
    delay = min(base * (2 ** attempt), max_delay)
    return delay + delay * random.uniform(0, 0.25)


def retry_on_transient(func=None, *, attempts: int = None, base_delay: float = None):
    """
    Decorator retrying ``func`` on transient database errors.

    Usage:
        @retry_on_transient
        def load():
            ...

        result = retry_on_transient(post_journal_entry)(actor, entry_id)
    """
    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            max_attempts = attempts or getattr(settings, "LEDGER_STORAGE_RETRY_ATTEMPTS", 3)
            base = base_delay if base_delay is not None else getattr(
                settings, "LEDGER_STORAGE_RETRY_BASE_DELAY", 0.05
            )

            for attempt in range(max_attempts):
                try:
                    return fn(*args, **kwargs)
                except TRANSIENT_ERRORS as exc:
                    if attempt == max_attempts - 1:
                        logger.error(
                            "Storage unavailable after %d attempts",
                            max_attempts,
                            extra={"operation": fn.__name__, "error": str(exc)},
                        )
                        raise TransientStorageError(
                            "Storage is temporarily unavailable. Please retry."
                        ) from exc

                    delay = backoff_delay(attempt, base) if base > 0 else 0
                    logger.warning(
                        "Transient storage error, retrying",
                        extra={
                            "operation": fn.__name__,
                            "attempt": attempt + 1,
                            "delay": delay,
                            "error": str(exc),
                        },
                    )
                    if delay:
                        time.sleep(delay)

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator
