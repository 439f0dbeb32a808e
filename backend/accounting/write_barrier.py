# accounting/write_barrier.py
"""
Write contexts for ledger models.

Journal entries, journal lines and accounts may only be written from a
known context: the command layer (``command_writes_allowed``) or
bootstrap tooling such as seeding and admin (``bootstrap_writes_allowed``).
Anything else (a view saving a model, a serializer's ``.save()``) raises.
"""

from contextlib import contextmanager
import threading

from django.conf import settings


_state = threading.local()


def _context_stack() -> list[str]:
    stack = getattr(_state, "write_context_stack", None)
    if stack is None:
        stack = []
        _state.write_context_stack = stack
    return stack


def current_write_context() -> str | None:
    stack = _context_stack()
    return stack[-1] if stack else None


def write_context_allowed(allowed_contexts: set[str]) -> bool:
    if getattr(settings, "TESTING", False):
        return True
    return current_write_context() in allowed_contexts


def assert_write_allowed(model_name: str, allowed_contexts: set[str]) -> None:
    if not write_context_allowed(allowed_contexts):
        raise RuntimeError(
            f"{model_name} is owned by the command layer. "
            "Direct saves are only allowed within command_writes_allowed() "
            "or bootstrap_writes_allowed()."
        )


@contextmanager
def _push_write_context(name: str):
    stack = _context_stack()
    stack.append(name)
    try:
        yield
    finally:
        stack.pop()


@contextmanager
def command_writes_allowed():
    with _push_write_context("command"):
        yield


@contextmanager
def bootstrap_writes_allowed():
    with _push_write_context("bootstrap"):
        yield
