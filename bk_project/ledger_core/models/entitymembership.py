from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import TenantManager


# ---------- Tenant / Company ----------
class Company(models.Model):
    """Tenant / Organization"""
    name = models.CharField(max_length=200)

    slug = models.SlugField(
        max_length=80, unique=True  # no two companies can have the same slug
    )

    # Reporting currency: every ledger amount is normalized into it
    base_currency = models.ForeignKey(
        "Currency",
        # don't allow deleting a currency that a company depends on
        on_delete=models.PROTECT,
        related_name="companies",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "companies"

    def __str__(self):
        return self.name


# ---------- EntityMembership ----------
class EntityMembership(models.Model):
    """
    Bridge between a user and a company, carrying the user's role there.
    The role set decides which ledger transitions the user may perform.
    """

    OWNER = "owner"
    ADMIN = "admin"
    MANAGER = "manager"
    ACCOUNTANT = "accountant"
    USER = "user"

    ROLE_CHOICES = [
        (OWNER, "Owner"),  # full control of the company books
        (ADMIN, "Admin"),  # system administrator
        (MANAGER, "Manager"),  # verifies entries
        (ACCOUNTANT, "Accountant"),  # creates and submits entries
        (USER, "User"),  # drafts only
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="memberships",
    )
    company = models.ForeignKey(
        Company, on_delete=models.CASCADE, related_name="memberships"
    )
    role = models.CharField(
        max_length=20,
        choices=ROLE_CHOICES,
        default=USER,
    )

    # Reporting line inside the company (who verifies whose work)
    manager = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="subordinates",
    )

    # Suspend access without deleting the record
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        # one membership per user per company
        constraints = [
            models.UniqueConstraint(
                fields=["user", "company"], name="uq_user_company_membership"
            ),
        ]
        indexes = [
            models.Index(fields=["company", "user"], name="em_company_user_idx"),
        ]

    def __str__(self):
        return f"{self.user} @ {self.company} ({self.role})"

    def clean(self):
        if self.manager_id and self.manager.company_id != self.company_id:
            raise ValidationError(
                "Manager must be a member of the same company."
            )

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
