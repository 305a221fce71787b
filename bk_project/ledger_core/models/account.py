from decimal import Decimal
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import TenantManager
from .entitymembership import Company


# Which side increases an account
DEBIT = "DEBIT"
CREDIT = "CREDIT"
NORMAL_SIDE = [
    (DEBIT, "Debit"),
    (CREDIT, "Credit"),
]


# ---------- AccountType ----------
class AccountType(models.Model):
    """
    The five basic accounting types, shared by every company.
    Seeded by migration: ASSET/EXPENSE are debit-normal,
    LIABILITY/EQUITY/INCOME are credit-normal.
    """

    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"

    NAME_CHOICES = [
        (ASSET, "Asset"),
        (LIABILITY, "Liability"),
        (EQUITY, "Equity"),
        (INCOME, "Income"),
        (EXPENSE, "Expense"),
    ]

    # name -> normal side, used by the seed migration and seed_chart
    DEFAULT_SIDES = {
        ASSET: DEBIT,
        EXPENSE: DEBIT,
        LIABILITY: CREDIT,
        EQUITY: CREDIT,
        INCOME: CREDIT,
    }

    name = models.CharField(max_length=10, choices=NAME_CHOICES, unique=True)
    normal_side = models.CharField(max_length=6, choices=NORMAL_SIDE)

    def __str__(self):
        return f"{self.name} ({self.normal_side})"


class Account(models.Model):
    """
    Ledger account in a company's Chart of Accounts.
    - code is unique per company
    - current_balance is only moved by balance propagation (and healing)
    - category marks the accounts with special rules (CASH/BANK overdraft,
      AR/AP aging, REVENUE default for invoices)
    """

    CASH = "CASH"
    BANK = "BANK"
    AR = "AR"
    AP = "AP"
    REVENUE = "REVENUE"
    INVENTORY = "INVENTORY"
    OTHER = "OTHER"

    CATEGORY_CHOICES = [
        (CASH, "Cash"),
        (BANK, "Bank"),
        (AR, "Accounts Receivable"),
        (AP, "Accounts Payable"),
        (REVENUE, "Revenue"),
        (INVENTORY, "Inventory"),
        (OTHER, "Other"),
    ]

    # Overdraft rule applies to these
    LIQUID_CATEGORIES = (CASH, BANK)

    CASH_FLOW_CHOICES = [
        ("OPERATING", "Operating"),
        ("INVESTING", "Investing"),
        ("FINANCING", "Financing"),
    ]

    company = models.ForeignKey(  # Each account belongs to one company
        Company,  # All reports must filter by company_id to prevent data leaks
        on_delete=models.CASCADE,
        related_name="accounts",
    )
    code = models.CharField(max_length=32)  # "1000", "4000"
    name = models.CharField(max_length=200)  # "Cash in Hand", "Sales Revenue"

    # ASSET/LIABILITY/... decides the report and the normal side
    account_type = models.ForeignKey(
        AccountType,
        on_delete=models.PROTECT,
        related_name="accounts",
    )

    # Optional hierarchy (1000 Cash, 1001 Petty Cash)
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,  # you can't delete a parent if children exist
        related_name="children",
    )

    opening_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    # Running balance in base currency (opening + approved lines)
    current_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    category = models.CharField(
        max_length=10, choices=CATEGORY_CHOICES, null=True, blank=True
    )
    cash_flow_type = models.CharField(
        max_length=10, choices=CASH_FLOW_CHOICES, null=True, blank=True
    )
    # Opt-out of the overdraft rule for a single CASH/BANK account
    allow_negative = models.BooleanField(default=False)

    # "soft deactivate": stop new postings without deleting history
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "code"], name="acct_company_code_idx"),
            models.Index(fields=["company", "category"], name="acct_company_category_idx"),
        ]
        # Codes repeat across companies but must be unique within one
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"], name="uq_company_account_code"
            )
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    @property
    def normal_side(self):
        return self.account_type.normal_side

    def is_used(self):
        """True once any journal line references this account."""
        from .journal import JournalLine

        return JournalLine.objects.filter(account_id=self.pk).exists()

    def clean(self):
        # Parent account must live in the same company
        if self.parent_id and self.parent.company_id != self.company_id:
            raise ValidationError(
                "Parent & child accounts must belong to the same company"
            )

    def save(self, *args, **kwargs):
        if not self.pk:
            # New accounts start at their opening balance
            self.current_balance = self.opening_balance
            return super().save(*args, **kwargs)

        old = Account.objects.filter(pk=self.pk).first()

        # Can't disable accounts that are used in journal lines
        if old and old.is_active and not self.is_active and self.is_used():
            raise ValidationError(
                "Cannot disable an account that is used in journal lines."
            )

        # Plain saves never write current_balance; propagation owns it
        if kwargs.get("update_fields") is None:
            kwargs["update_fields"] = [
                f.name
                for f in self._meta.concrete_fields
                if not f.primary_key and f.name != "current_balance"
            ]
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if self.is_used():
            raise ValidationError(
                "Cannot delete an account that is used in journal lines."
            )
        return super().delete(*args, **kwargs)
