# tests/conftest.py
"""
Pytest fixtures for FiniTax ledger tests.

- ActorContext requires: user, company, membership
- Commands take actor as first arg and return CommandResult
- Accounts are created directly (tests run with settings.TESTING = True,
  which relaxes the ledger write barrier)
"""

from datetime import date
import pytest
from django.conf import settings
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from accounts.authz import ActorContext
from accounts.models import Company, CompanyMembership
from accounting.commands import create_journal_entry, post_journal_entry
from accounting.models import Account


User = get_user_model()


@pytest.fixture(autouse=True, scope="session")
def _testing_settings():
    """Ensure test-only settings are enabled for the write barrier."""
    settings.TESTING = True


# =============================================================================
# Company & User Fixtures
# =============================================================================

@pytest.fixture
def company(db):
    return Company.objects.create(name="Comercial Cuscatlán", slug="cuscatlan")


@pytest.fixture
def other_company(db):
    """A second tenant for isolation tests."""
    return Company.objects.create(name="Distribuidora Izalco", slug="izalco")


@pytest.fixture
def user(db, company):
    user = User.objects.create_user(
        email="contador@cuscatlan.sv",
        password="testpass123",
        name="Ana Contadora",
    )
    user.active_company = company
    user.save()
    return user


@pytest.fixture
def membership(db, company, user):
    return CompanyMembership.objects.create(
        company=company,
        user=user,
        role=CompanyMembership.Role.OWNER,
    )


@pytest.fixture
def actor(user, company, membership):
    return ActorContext(user=user, company=company, membership=membership)


@pytest.fixture
def other_actor(db, other_company):
    """Owner of the second tenant."""
    other_user = User.objects.create_user(
        email="owner@izalco.sv",
        password="testpass123",
        name="Other Owner",
    )
    other_user.active_company = other_company
    other_user.save()
    other_membership = CompanyMembership.objects.create(
        company=other_company,
        user=other_user,
        role=CompanyMembership.Role.OWNER,
    )
    return ActorContext(user=other_user, company=other_company, membership=other_membership)


# =============================================================================
# Account Fixtures
# =============================================================================

@pytest.fixture
def cash_group(db, company):
    """Header account; has sub-accounts so it cannot be booked against."""
    return Account.objects.create(
        company=company,
        code="1101",
        name="Efectivo y Equivalentes",
        account_type=Account.AccountType.ASSET,
    )


@pytest.fixture
def cash(db, company, cash_group):
    return Account.objects.create(
        company=company,
        code="110101",
        name="Caja General",
        account_type=Account.AccountType.ASSET,
        parent=cash_group,
    )


@pytest.fixture
def bank(db, company, cash_group):
    return Account.objects.create(
        company=company,
        code="110103",
        name="Bancos",
        account_type=Account.AccountType.ASSET,
        parent=cash_group,
    )


@pytest.fixture
def sales(db, company):
    return Account.objects.create(
        company=company,
        code="410101",
        name="Ventas Gravadas",
        account_type=Account.AccountType.REVENUE,
    )


@pytest.fixture
def rent(db, company):
    return Account.objects.create(
        company=company,
        code="520108",
        name="Alquiler - Administración",
        account_type=Account.AccountType.EXPENSE,
    )


@pytest.fixture
def inactive_account(db, company):
    return Account.objects.create(
        company=company,
        code="110102",
        name="Caja Chica",
        account_type=Account.AccountType.ASSET,
        is_active=False,
    )


@pytest.fixture
def foreign_account(db, other_company):
    """Leaf account belonging to the other tenant."""
    return Account.objects.create(
        company=other_company,
        code="110101",
        name="Caja General",
        account_type=Account.AccountType.ASSET,
    )


# =============================================================================
# Journal Entry Helpers
# =============================================================================

def _entry_lines(debit_account, credit_account, amount="100.00"):
    """Two balanced lines: debit one account, credit the other."""
    return [
        {"account_id": debit_account.id, "debit": amount, "credit": None, "description": ""},
        {"account_id": credit_account.id, "debit": None, "credit": amount, "description": ""},
    ]


@pytest.fixture
def entry_lines():
    """The two-line builder, for tests that call commands directly."""
    return _entry_lines


@pytest.fixture
def make_entry(actor):
    """
    Factory creating a journal entry through the command layer.

    Usage:
        entry = make_entry(cash, sales, "250.00", entry_date=date(2025, 1, 5), post=True)
    """

    def _make(debit_account, credit_account, amount="100.00", entry_date=None,
              description="Venta al contado", post=False, by=None):
        creator = by or actor
        result = create_journal_entry(
            creator,
            entry_date=entry_date or date(2025, 1, 15),
            description=description,
            lines=_entry_lines(debit_account, credit_account, amount),
        )
        assert result.success, result.errors
        entry = result.data
        if post:
            posted = post_journal_entry(creator, entry.id)
            assert posted.success, posted.error
            entry = posted.data
        return entry

    return _make


# =============================================================================
# API Fixtures
# =============================================================================

@pytest.fixture
def api_client(user, membership):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def anon_client():
    return APIClient()
