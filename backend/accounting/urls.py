# accounting/urls.py
"""
URL configuration for the ledger API.

Endpoints:
- /accounts/ - Chart of Accounts lookup
- /journal-entries/ - Journal entries with the DRAFT/POSTED workflow
"""

from django.urls import path

from .views import (
    AccountListView,
    JournalEntryDetailView,
    JournalEntryListCreateView,
    JournalEntryPostView,
    JournalEntryUnpostView,
    JournalEntryValidateView,
)

app_name = "accounting"

urlpatterns = [
    # Chart of Accounts
    path("accounts/", AccountListView.as_view(), name="account-list"),

    # Journal entries
    path("journal-entries/", JournalEntryListCreateView.as_view(), name="journal-entry-list"),
    path("journal-entries/validate/", JournalEntryValidateView.as_view(), name="journal-entry-validate"),
    path("journal-entries/<int:pk>/", JournalEntryDetailView.as_view(), name="journal-entry-detail"),
    path("journal-entries/<int:pk>/post/", JournalEntryPostView.as_view(), name="journal-entry-post"),
    path("journal-entries/<int:pk>/unpost/", JournalEntryUnpostView.as_view(), name="journal-entry-unpost"),
]
