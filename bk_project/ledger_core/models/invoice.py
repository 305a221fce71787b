from decimal import ROUND_HALF_UP, Decimal
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import TenantManager
from .account import Account
from .currency import Currency
from .customer import Customer
from .document import ApprovalDocument
from .journal import JournalEntry

CENT = Decimal("0.01")


class Invoice(ApprovalDocument):  # Represents a customer invoice
    """
    Sales invoice. Follows the same workflow as journal entries; approving
    it generates exactly one approved JournalEntry (AR debit / revenue credit).
    """

    # human-readable number (e.g. "INV-2025-0001")
    invoice_number = models.CharField(max_length=32)

    customer = models.ForeignKey(
        Customer,
        # prevent deleting customer who has an invoice
        on_delete=models.PROTECT,
        related_name="invoices",
    )
    invoice_date = models.DateField()  # issue date
    # payment deadline (defaults from the customer's payment terms)
    due_date = models.DateField(null=True, blank=True)

    # Document currency; NULL means the company base currency
    currency = models.ForeignKey(
        Currency, null=True, blank=True, on_delete=models.PROTECT
    )
    exchange_rate = models.DecimalField(
        max_digits=18, decimal_places=6, default=Decimal("1")
    )

    # Foreign currency totals
    subtotal = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))
    tax_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))
    # total × exchange_rate
    total_base = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))

    description = models.TextField(null=True, blank=True)

    # Ledger entry produced on approval
    journal = models.OneToOneField(
        JournalEntry,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="invoice",
    )

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        # Optimize for fast lookups by invoice number or customer
        indexes = [
            models.Index(fields=["company", "customer"], name="inv_company_customer_idx"),
            models.Index(fields=["company", "status"], name="inv_company_status_idx"),
        ]
        constraints = [
            # Within one company, each invoice number must be unique
            # Across companies, duplicates are allowed
            models.UniqueConstraint(
                fields=["company", "invoice_number"],
                name="uq_invoice_company_number",
            ),
            models.CheckConstraint(
                condition=models.Q(exchange_rate__gt=0),
                name="inv_exchange_rate_positive",
            ),
        ]

    def __str__(self):
        return f"{self.invoice_number} [{self.status}]"

    def clean(self):
        if self.customer_id and self.customer.company_id != self.company_id:
            raise ValidationError(
                "Invoice customer must belong to the same company."
            )
        if self.due_date and self.due_date < self.invoice_date:
            raise ValidationError("Due date cannot be before invoice date.")


class InvoiceLine(models.Model):
    """
    One priced line: amount = quantity × unit_price × (1 + tax_rate/100).
    """

    invoice = models.ForeignKey(
        Invoice, on_delete=models.CASCADE, related_name="lines"
    )
    description = models.CharField(max_length=400)
    quantity = models.DecimalField(
        max_digits=18, decimal_places=4, default=Decimal("1"))
    unit_price = models.DecimalField(max_digits=18, decimal_places=2)
    # percent, 15 means 15%
    tax_rate = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("0"))

    # Derived on save
    line_subtotal = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))
    tax_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))
    amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))

    # Income account to credit; NULL → company REVENUE account
    revenue_account = models.ForeignKey(
        Account,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="invoice_lines",
    )

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0),
                name="invline_quantity_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(unit_price__gte=0),
                name="invline_unit_price_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(tax_rate__gte=0),
                name="invline_tax_rate_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.description} x{self.quantity} = {self.amount}"

    def compute_amounts(self):
        """Fill line_subtotal, tax_amount and amount from price and tax."""
        self.line_subtotal = (self.quantity * self.unit_price).quantize(
            CENT, rounding=ROUND_HALF_UP
        )
        self.tax_amount = (
            self.line_subtotal * self.tax_rate / Decimal("100")
        ).quantize(CENT, rounding=ROUND_HALF_UP)
        self.amount = self.line_subtotal + self.tax_amount

    def clean(self):
        acct = self.revenue_account
        if acct and acct.company_id != self.invoice.company_id:
            raise ValidationError(
                "Revenue account must belong to the same company."
            )
        if acct and acct.account_type.name != "INCOME":
            raise ValidationError("Revenue account must be an INCOME account.")

    def save(self, *args, **kwargs):
        self.compute_amounts()
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
