from decimal import Decimal
from django.db import models
from ..managers import TenantManager
from .currency import Currency
from .entitymembership import Company


class LetterOfCredit(models.Model):
    """Import LC opened with a bank; watched for upcoming expiry."""

    OPEN = "OPEN"
    APPROVED = "APPROVED"
    CLOSED = "CLOSED"
    STATUS_CHOICES = [
        (OPEN, "Open"),
        (APPROVED, "Approved"),
        (CLOSED, "Closed"),
    ]

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    lc_number = models.CharField(max_length=64)
    bank_name = models.CharField(max_length=200)
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    currency = models.ForeignKey(
        Currency, null=True, blank=True, on_delete=models.PROTECT
    )
    issue_date = models.DateField()
    expiry_date = models.DateField()
    status = models.CharField(
        max_length=10, choices=STATUS_CHOICES, default=OPEN
    )

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        verbose_name = "letter of credit"
        verbose_name_plural = "letters of credit"
        constraints = [
            models.UniqueConstraint(
                fields=["company", "lc_number"], name="uq_company_lc_number"
            )
        ]

    def __str__(self):
        return f"LC {self.lc_number} ({self.bank_name})"


class Loan(models.Model):
    """Bank loan; watched for an approaching end date."""

    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    STATUS_CHOICES = [
        (ACTIVE, "Active"),
        (CLOSED, "Closed"),
    ]

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    loan_number = models.CharField(max_length=64)
    bank_name = models.CharField(max_length=200)
    principal_amount = models.DecimalField(max_digits=18, decimal_places=2)
    outstanding_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    # percent per annum
    interest_rate = models.DecimalField(
        max_digits=6, decimal_places=3, default=Decimal("0")
    )
    start_date = models.DateField()
    end_date = models.DateField()
    status = models.CharField(
        max_length=10, choices=STATUS_CHOICES, default=ACTIVE
    )

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "loan_number"],
                name="uq_company_loan_number",
            )
        ]

    def __str__(self):
        return f"Loan {self.loan_number} ({self.bank_name})"
