# accounting/models.py
"""
Ledger models.

All mutations MUST go through the command layer (accounting/commands.py),
which validates entries, enforces the DRAFT/POSTED workflow and emits one
audit fact per transition. Saves outside ``command_writes_allowed()`` or
``bootstrap_writes_allowed()`` raise (see accounting/write_barrier.py).

Models:
- Account: Chart of Accounts node (read-only lookup for the ledger core)
- JournalEntry: Journal entry header with DRAFT/POSTED status
- JournalLine: One debit-or-credit movement within an entry

Model.save() only enforces TRUE INVARIANTS. Workflow rules (posted entries
are locked) live in accounting/policies.py.
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q, Sum

from accounts.models import Company
from accounting.write_barrier import assert_write_allowed


LEDGER_WRITE_CONTEXTS = {"command", "bootstrap"}


class LedgerModel(models.Model):
    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        assert_write_allowed(self.__class__.__name__, LEDGER_WRITE_CONTEXTS)
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        assert_write_allowed(self.__class__.__name__, LEDGER_WRITE_CONTEXTS)
        return super().delete(*args, **kwargs)


class Account(LedgerModel):
    """
    Chart of Accounts entry.

    Accounts form a tree through ``parent``. Only leaf accounts (no
    children) that are active can receive journal lines. Accounts are
    soft-deactivated, never deleted while referenced by a journal line.
    """

    class AccountType(models.TextChoices):
        ASSET = "ASSET", "Asset"
        LIABILITY = "LIABILITY", "Liability"
        EQUITY = "EQUITY", "Equity"
        REVENUE = "REVENUE", "Revenue"
        EXPENSE = "EXPENSE", "Expense"

    class NormalBalance(models.TextChoices):
        DEBIT = "DEBIT", "Debit"
        CREDIT = "CREDIT", "Credit"

    NORMAL_BALANCE_MAP = {
        AccountType.ASSET: NormalBalance.DEBIT,
        AccountType.LIABILITY: NormalBalance.CREDIT,
        AccountType.EQUITY: NormalBalance.CREDIT,
        AccountType.REVENUE: NormalBalance.CREDIT,
        AccountType.EXPENSE: NormalBalance.DEBIT,
    }

    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name="accounts",
    )
    public_id = models.UUIDField(default=uuid.uuid4, editable=False, unique=True)
    code = models.CharField(max_length=50)
    name = models.CharField(max_length=255)
    account_type = models.CharField(max_length=20, choices=AccountType.choices)
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="children",
    )
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"],
                name="uniq_account_code_per_company",
            )
        ]
        ordering = ["code"]
        indexes = [
            models.Index(fields=["company", "account_type"], name="account_company_type_idx"),
            models.Index(fields=["company", "parent"], name="account_company_parent_idx"),
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    @property
    def normal_balance(self) -> str:
        return self.NORMAL_BALANCE_MAP[self.account_type]

    @property
    def is_leaf(self) -> bool:
        return not self.children.exists()

    @property
    def is_postable(self) -> bool:
        """Returns True if this account can receive journal line postings."""
        return self.is_active and self.is_leaf


class JournalEntry(LedgerModel):
    """
    Journal entry header.

    Workflow: DRAFT <-> POSTED
    - DRAFT: editable and deletable; excluded from posted-only reports
    - POSTED: locked; must be unposted before any edit or delete

    ``version`` is bumped on every edit and transition. Commands compare
    it (and the status) when flipping state so that two racing requests
    cannot both apply.
    """

    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        POSTED = "POSTED", "Posted"

    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name="journal_entries",
    )
    public_id = models.UUIDField(default=uuid.uuid4, editable=False, unique=True)

    entry_date = models.DateField()
    description = models.CharField(max_length=500)
    reference_number = models.CharField(max_length=100, blank=True, default="")

    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.DRAFT,
    )
    version = models.PositiveIntegerField(default=1)

    posted_at = models.DateTimeField(null=True, blank=True)
    posted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="posted_journal_entries",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="created_journal_entries",
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["company", "entry_date", "id"], name="entry_company_date_idx"),
            models.Index(fields=["company", "status"], name="entry_company_status_idx"),
        ]
        ordering = ["-entry_date", "-created_at", "-id"]
        verbose_name_plural = "journal entries"

    def __str__(self):
        ref = self.reference_number or f"#{self.pk}"
        return f"JE {ref} ({self.entry_date}) {self.status}"

    @property
    def is_posted(self) -> bool:
        return self.status == self.Status.POSTED

    @property
    def total_debit(self) -> Decimal:
        return self.lines.aggregate(total=Sum("debit"))["total"] or Decimal("0.00")

    @property
    def total_credit(self) -> Decimal:
        return self.lines.aggregate(total=Sum("credit"))["total"] or Decimal("0.00")

    @property
    def is_balanced(self) -> bool:
        return self.total_debit == self.total_credit


class JournalLine(LedgerModel):
    """
    Individual line within a journal entry.

    Exactly one of debit/credit is strictly positive; the other is zero.
    """

    entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.CASCADE,
        related_name="lines",
    )
    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name="journal_lines",
    )
    line_no = models.PositiveIntegerField()
    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="journal_lines",
    )
    description = models.CharField(max_length=500, blank=True, default="")
    debit = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal("0.00"))
    credit = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal("0.00"))

    class Meta:
        ordering = ["entry_id", "line_no"]
        constraints = [
            models.UniqueConstraint(
                fields=["entry", "line_no"],
                name="uniq_journal_line_no_per_entry",
            ),
            models.CheckConstraint(
                condition=Q(debit__gte=0) & Q(credit__gte=0),
                name="journal_line_amounts_non_negative",
            ),
            models.CheckConstraint(
                condition=(Q(debit__gt=0) & Q(credit=0)) | (Q(debit=0) & Q(credit__gt=0)),
                name="journal_line_single_side",
            ),
        ]
        indexes = [
            models.Index(fields=["company", "account"], name="line_company_account_idx"),
        ]

    def __str__(self):
        side = f"Dr {self.debit}" if self.debit else f"Cr {self.credit}"
        return f"{self.entry_id}:{self.line_no} {self.account_id} {side}"
