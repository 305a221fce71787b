from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from .entitymembership import Company


class EntryStatus(models.TextChoices):
    """
    Shared workflow of journal entries and invoices:
    DRAFT → PENDING_VERIFICATION → VERIFIED → (PENDING_APPROVAL) → APPROVED
    with REJECTED reachable from every review state.
    APPROVED is terminal.
    """

    DRAFT = "DRAFT", "Draft"
    PENDING_VERIFICATION = "PENDING_VERIFICATION", "Pending verification"
    VERIFIED = "VERIFIED", "Verified"
    PENDING_APPROVAL = "PENDING_APPROVAL", "Pending approval"
    APPROVED = "APPROVED", "Approved"
    REJECTED = "REJECTED", "Rejected"


class ApprovalDocument(models.Model):
    """
    Abstract base for documents that go through the maker/checker workflow.
    Carries tenant, status and who-did-what fields.
    """

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    status = models.CharField(
        max_length=24,
        choices=EntryStatus.choices,
        default=EntryStatus.DRAFT,
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="%(class)s_created",
    )
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="%(class)s_verified",
    )
    verified_at = models.DateTimeField(null=True, blank=True)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="%(class)s_approved",
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="%(class)s_rejected",
    )
    rejection_reason = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True

    @property
    def is_approved(self):
        return self.status == EntryStatus.APPROVED

    def _stored_status(self):
        if not self.pk:
            return None
        return (
            type(self)._default_manager.filter(pk=self.pk)
            .values_list("status", flat=True)
            .first()
        )

    def save(self, *args, **kwargs):
        # Approved rows are immutable: nothing may change once APPROVED
        if self._stored_status() == EntryStatus.APPROVED:
            raise ValidationError(
                f"Approved {self._meta.verbose_name} cannot be modified."
            )
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if self._stored_status() == EntryStatus.APPROVED:
            raise ValidationError(
                f"Approved {self._meta.verbose_name} cannot be deleted."
            )
        return super().delete(*args, **kwargs)
