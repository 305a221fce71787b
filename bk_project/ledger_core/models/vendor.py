from django.db import models
from ..managers import TenantManager
from .entitymembership import Company


class Vendor(models.Model):  # Mirrors Customer but for Accounts Payable (AP)

    # Multi-tenant
    company = models.ForeignKey(Company, on_delete=models.CASCADE)

    # Same fields as Customer, but now for suppliers/vendors
    code = models.CharField(max_length=32)
    name = models.CharField(max_length=200)
    contact_email = models.EmailField(null=True, blank=True)
    payment_terms_days = models.IntegerField(default=30)
    is_active = models.BooleanField(default=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "name"], name="vend_company_name_idx"),
        ]

        # Vendor codes must be unique per company
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"], name="uq_company_vendor_code"
            ),
        ]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
