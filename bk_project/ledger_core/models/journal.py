from decimal import Decimal
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import JournalLineManager, TenantManager
from ..services.currency import normalize_amount
from .account import Account
from .currency import Currency
from .customer import Customer
from .dimension import Branch, CostCenter, Project
from .document import ApprovalDocument, EntryStatus
from .vendor import Vendor


# ---------- Journal (Header) & JournalLine ----------
class JournalEntry(ApprovalDocument):  # Represents one accounting transaction
    # Human-readable number, "JE-2025-0001" (unique per company)
    entry_number = models.CharField(max_length=32)

    # Business metadata
    date = models.DateField()
    reference = models.CharField(max_length=200, null=True, blank=True)
    description = models.TextField(null=True, blank=True)

    # Document currency; NULL means the company base currency
    currency = models.ForeignKey(
        Currency, null=True, blank=True, on_delete=models.PROTECT
    )
    # Rate at creation time, stored and never recalculated
    exchange_rate = models.DecimalField(
        max_digits=18, decimal_places=6, default=Decimal("1")
    )
    # Totals in base currency
    total_debit = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    total_credit = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    # optional polymorphic source info ("invoice", ...)
    # Helps trace back where the JE originated
    source_type = models.CharField(max_length=50, null=True, blank=True)
    source_id = models.BigIntegerField(null=True, blank=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        verbose_name = "journal entry"
        verbose_name_plural = "journal entries"
        # Speed up listing & filtering
        indexes = [
            models.Index(fields=["company", "date"], name="je_company_date_idx"),
            models.Index(fields=["company", "status"], name="je_company_status_idx"),
        ]
        constraints = [
            # Within one company, each entry number must be unique
            models.UniqueConstraint(
                fields=["company", "entry_number"],
                name="uq_je_company_number",
            ),
            models.CheckConstraint(
                condition=models.Q(exchange_rate__gt=0),
                name="je_exchange_rate_positive",
            ),
        ]

    def __str__(self):
        return f"{self.entry_number} {self.date} [{self.status}]"

    # Aggregate all debit and credit amounts across entry's lines
    def compute_totals(self):
        """Return (debits, credits) in base currency"""
        aggs = self.lines.aggregate(
            total_debit=models.Sum("debit_base"),
            total_credit=models.Sum("credit_base"),
        )
        return (
            aggs["total_debit"] or Decimal("0.00"),
            aggs["total_credit"] or Decimal("0.00"),
        )


class JournalLine(models.Model):  # Stores Lines ( credits / debits )
    """
    One side of a journal entry against one account.
    Amounts are kept in the document currency (debit/credit) and in
    the company base currency (debit_base/credit_base).
    """

    # Belongs to company & a journal entry
    company = models.ForeignKey("Company", on_delete=models.CASCADE)
    journal = models.ForeignKey(
        JournalEntry,
        on_delete=models.CASCADE,
        related_name="lines",
    )

    # Must point to one Account (can't delete account if lines exist → PROTECT)
    account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="lines"
    )
    description = models.CharField(max_length=400, null=True, blank=True)

    # Document currency amounts
    debit = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))
    credit = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))

    # Conversion, copied from the header
    exchange_rate = models.DecimalField(
        max_digits=18, decimal_places=6, default=Decimal("1")
    )

    # Base (reporting currency) amounts
    debit_base = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))
    credit_base = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))

    # Reporting dimensions
    branch = models.ForeignKey(
        Branch, null=True, blank=True, on_delete=models.PROTECT)
    project = models.ForeignKey(
        Project, null=True, blank=True, on_delete=models.PROTECT)
    cost_center = models.ForeignKey(
        CostCenter, null=True, blank=True, on_delete=models.PROTECT)
    customer = models.ForeignKey(
        Customer, null=True, blank=True, on_delete=models.PROTECT)
    vendor = models.ForeignKey(
        Vendor, null=True, blank=True, on_delete=models.PROTECT)

    # Receivable/payable lines age from here
    due_date = models.DateField(null=True, blank=True)

    # Bank reconciliation marker
    reconciled = models.BooleanField(default=False)
    reconciled_at = models.DateTimeField(null=True, blank=True)

    objects = JournalLineManager()

    class Meta:
        # For fast queries like "all lines for this account" /
        # "all lines in this JE."
        indexes = [
            models.Index(fields=["company", "account"], name="jl_company_account_idx"),
            models.Index(fields=["company", "journal"], name="jl_company_journal_idx"),
        ]

        constraints = [
            models.CheckConstraint(
                condition=(models.Q(debit__gte=0) & models.Q(credit__gte=0)),
                name="jl_non_negative_amounts",
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(debit_base__gte=0) & models.Q(credit_base__gte=0)
                ),
                name="jl_non_negative_base_amounts",
            ),
            models.CheckConstraint(
                condition=~(models.Q(debit=0) & models.Q(credit=0)),
                name="jl_debit_or_credit_nonzero",
            ),
        ]

    def __str__(self):
        return f"{self.journal_id} | {self.account_id} | D:{self.debit} C:{self.credit}"

    def clean(self):
        # Redundant with the CheckConstraints but gives a readable message
        if self.debit < 0 or self.credit < 0:
            raise ValidationError("Debit and credit must be >= 0")
        if self.debit > 0 and self.credit > 0:
            raise ValidationError(
                "JournalLine should not have both debit and credit > 0"
            )
        if self.debit == 0 and self.credit == 0:
            raise ValidationError(
                "JournalLine requires a non-0 amount on either debit or credit"
            )

        # Company consistency: journal, account and every dimension
        if self.journal_id and self.company_id != self.journal.company_id:
            raise ValidationError(
                "JournalLine.company must equal JournalEntry.company"
            )
        if self.account_id and self.account.company_id != self.company_id:
            raise ValidationError(
                "JournalLine.account must belong to the same company."
            )
        for field in ("branch", "project", "cost_center", "customer", "vendor"):
            related = getattr(self, field)
            if related is not None and related.company_id != self.company_id:
                raise ValidationError(
                    f"JournalLine.{field} must belong to the same company."
                )

        # Lines of an approved entry are frozen
        if self.journal_id and self.journal.status == EntryStatus.APPROVED:
            raise ValidationError(
                "Cannot add or modify lines of an approved journal entry."
            )

    def save(self, *args, **kwargs):
        # Copy company from the parent journal if missing
        if not self.company_id and self.journal_id:
            self.company_id = self.journal.company_id

        # Base amounts are always derived, never typed in
        self.debit_base = normalize_amount(self.debit, self.exchange_rate)
        self.credit_base = normalize_amount(self.credit, self.exchange_rate)

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if JournalEntry.objects.filter(
            pk=self.journal_id, status=EntryStatus.APPROVED
        ).exists():
            raise ValidationError(
                "Cannot delete JournalLine: parent JournalEntry is approved."
            )
        return super().delete(*args, **kwargs)
