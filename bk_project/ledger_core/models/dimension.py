from django.db import models
from ..managers import TenantManager
from .entitymembership import Company


class Dimension(models.Model):
    """
    Reporting dimension a journal line can be tagged with.
    Codes are unique per company.
    """

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    code = models.CharField(max_length=32)
    name = models.CharField(max_length=200)
    is_active = models.BooleanField(default=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        abstract = True

    def __str__(self):
        return f"{self.code} - {self.name}"


class Branch(Dimension):
    class Meta:
        verbose_name_plural = "branches"
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"], name="uq_company_branch_code"
            )
        ]


class Project(Dimension):
    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"], name="uq_company_project_code"
            )
        ]


class CostCenter(Dimension):
    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"], name="uq_company_costcenter_code"
            )
        ]
