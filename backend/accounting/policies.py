# accounting/policies.py
"""
Business policy functions for journal entry operations.

Policies answer: "Is this action allowed given the current state?"
They do NOT perform the action; that's the command's job.

Workflow rules (a POSTED entry is locked, only DRAFT entries can be
posted) are enforced HERE, not in model.save(). Model.save() only guards
the write context.

Usage:
    from accounting.policies import can_edit_entry

    allowed, reason = can_edit_entry(actor, entry)
    if not allowed:
        return CommandResult.fail(reason, code=ErrorCode.ENTRY_LOCKED)

Policies are pure functions returning (bool, str) tuples.
"""

# =============================================================================
# Tenant Boundary Policies
# =============================================================================

def check_tenant_boundary(actor, entity) -> bool:
    """
    Verify entity belongs to actor's company.
    This is the fundamental multi-tenant security check.
    """
    entity_company_id = getattr(entity, "company_id", None)
    if entity_company_id is None:
        company = getattr(entity, "company", None)
        entity_company_id = getattr(company, "id", None) if company else None
    return entity_company_id == actor.company.id


# =============================================================================
# Journal Entry Policies
# =============================================================================

def can_edit_entry(actor, entry) -> tuple[bool, str]:
    """
    Check if a journal entry can be edited.

    Rules:
    - Must belong to actor's company
    - Must be in DRAFT status
    """
    if not check_tenant_boundary(actor, entry):
        return False, "Cross-company action denied."

    from accounting.models import JournalEntry

    if entry.status != JournalEntry.Status.DRAFT:
        return False, "Posted entries are locked. Unpost the entry before editing it."

    return True, ""


def can_delete_entry(actor, entry) -> tuple[bool, str]:
    """
    Check if a journal entry can be deleted.

    Rules:
    - Must belong to actor's company
    - Must be in DRAFT status
    """
    if not check_tenant_boundary(actor, entry):
        return False, "Cross-company action denied."

    from accounting.models import JournalEntry

    if entry.status != JournalEntry.Status.DRAFT:
        return False, "Posted entries are locked. Unpost the entry before deleting it."

    return True, ""


def can_post_entry(actor, entry) -> tuple[bool, str]:
    """Only DRAFT entries of the actor's company can be posted."""
    if not check_tenant_boundary(actor, entry):
        return False, "Cross-company action denied."

    from accounting.models import JournalEntry

    if entry.status != JournalEntry.Status.DRAFT:
        return False, "Entry is already posted."

    return True, ""


def can_unpost_entry(actor, entry) -> tuple[bool, str]:
    """Only POSTED entries of the actor's company can be returned to DRAFT."""
    if not check_tenant_boundary(actor, entry):
        return False, "Cross-company action denied."

    from accounting.models import JournalEntry

    if entry.status != JournalEntry.Status.POSTED:
        return False, "Entry is not posted."

    return True, ""


def check_expected_version(entry, expected_version) -> tuple[bool, str]:
    """
    Compare the caller's view of the entry against the stored version.

    ``expected_version=None`` means the caller did not ask for a check.
    """
    if expected_version is None:
        return True, ""
    try:
        expected = int(expected_version)
    except (TypeError, ValueError):
        return False, f"Invalid expected_version: {expected_version!r}."
    if expected != entry.version:
        return False, (
            f"Entry was modified by someone else (version {entry.version}, "
            f"expected {expected}). Reload and try again."
        )
    return True, ""
