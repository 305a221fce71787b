from typing import Optional
from django.forms.models import model_to_dict
from ..models import AuditLog, Company


def log_action(
    *,
    action: str,
    instance,
    user=None,
    company: Optional[Company] = None,
    changes: dict | None = None,
) -> AuditLog:
    """
    Write one AuditLog row for ``instance``.
    Runs inside the caller's atomic block, so a rolled back change leaves
    no audit trail behind.
    """
    company = company or getattr(instance, "company", None)
    return AuditLog.objects.create(
        company=company,
        user=user,
        action=action,
        object_type=type(instance).__name__,
        object_id=str(instance.pk),
        changes=changes,
    )


def status_change(old, new, **extra):
    """{"status": [old, new], ...} payload of a workflow transition"""
    changes = {"status": [str(old), str(new)]}
    changes.update({k: v for k, v in extra.items() if v is not None})
    return changes


def snapshot(instance, fields):
    """JSON-safe copy of ``fields`` taken before an edit."""
    return {
        name: None if value is None else str(value)
        for name, value in model_to_dict(instance, fields=fields).items()
    }


def field_changes(before, instance):
    """{field: [old, new]} for every snapshotted field that changed."""
    after = snapshot(instance, list(before))
    return {
        name: [before[name], after[name]]
        for name in before
        if before[name] != after[name]
    }
