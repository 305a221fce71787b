from django.db import models
from ..managers import TenantManager
from .entitymembership import Company


class Notification(models.Model):
    """Company-wide alert shown to the bookkeeping team."""

    PENDING_JOURNAL = "PENDING_JOURNAL"
    OVERDUE_INVOICE = "OVERDUE_INVOICE"
    LC_EXPIRY = "LC_EXPIRY"
    LOAN_DUE = "LOAN_DUE"
    TYPE_CHOICES = [
        (PENDING_JOURNAL, "Pending journal"),
        (OVERDUE_INVOICE, "Overdue invoice"),
        (LC_EXPIRY, "LC expiry"),
        (LOAN_DUE, "Loan due"),
    ]

    INFO = "INFO"
    WARNING = "WARNING"
    DANGER = "DANGER"
    SEVERITY_CHOICES = [
        (INFO, "Info"),
        (WARNING, "Warning"),
        (DANGER, "Danger"),
    ]

    company = models.ForeignKey(
        Company, on_delete=models.CASCADE, related_name="notifications"
    )
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    severity = models.CharField(
        max_length=10, choices=SEVERITY_CHOICES, default=INFO
    )
    title = models.CharField(max_length=200)
    message = models.TextField(blank=True, default="")

    # What the alert is about ("invoice", 42)
    entity_type = models.CharField(max_length=50, null=True, blank=True)
    entity_id = models.BigIntegerField(null=True, blank=True)

    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["company", "is_read"], name="notif_company_read_idx"),
            models.Index(
                fields=["company", "type", "entity_id"], name="notif_company_type_idx"
            ),
        ]

    def __str__(self):
        return f"[{self.severity}] {self.title}"
