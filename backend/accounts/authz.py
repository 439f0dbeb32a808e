# accounts/authz.py
"""
Actor resolution.

Provides:
- ActorContext: Immutable context for the current request
- resolve_actor: Extract actor context from request

Every ledger command receives an ActorContext. The company on the context
scopes all reads and writes; the user is recorded on audit facts.
Role-based permission checks are handled outside the ledger core.
"""

from dataclasses import dataclass

from django.core.exceptions import PermissionDenied
from rest_framework.exceptions import NotAuthenticated

from accounts.models import Company, CompanyMembership


@dataclass(frozen=True)
class ActorContext:
    """
    Immutable context for the current actor (user + company).

    Attributes:
        user: The authenticated user
        company: The active company (tenant)
        membership: The user's membership in the company
    """
    user: object  # User model
    company: Company
    membership: CompanyMembership

    @property
    def is_authenticated(self) -> bool:
        """Mirror Django's user.is_authenticated for compatibility."""
        return bool(getattr(self.user, "is_authenticated", False))

    @property
    def user_email(self) -> str:
        return getattr(self.user, "email", "") or ""

    @property
    def role(self) -> str:
        return self.membership.role


def resolve_actor(request) -> ActorContext:
    """
    Extract ActorContext from the current request.

    The membership is loaded fresh on every request so that a deactivated
    membership takes effect immediately.

    Raises:
        NotAuthenticated: If user is not authenticated
        PermissionDenied: If user has no active company or membership
    """
    user = getattr(request, "user", None)

    if not user or not user.is_authenticated:
        raise NotAuthenticated("Authentication required.")

    company = getattr(user, "active_company", None)

    if not company:
        raise PermissionDenied("No active company selected. Please select a company first.")

    try:
        membership = CompanyMembership.objects.select_related("company").get(
            user=user,
            company=company,
            is_active=True,
        )
    except CompanyMembership.DoesNotExist:
        raise PermissionDenied("You are not an active member of the selected company.")

    return ActorContext(
        user=user,
        company=company,
        membership=membership,
    )
