# projections/urls.py
"""
URL configuration for the reports API.

Endpoints:
- /reports/general-ledger/ - Per-account lines with running balances
- /reports/trial-balance/ - Per-account debit/credit totals
"""

from django.urls import path

from .views import GeneralLedgerView, TrialBalanceView

app_name = "projections"

urlpatterns = [
    path("general-ledger/", GeneralLedgerView.as_view(), name="general-ledger"),
    path("trial-balance/", TrialBalanceView.as_view(), name="trial-balance"),
]
