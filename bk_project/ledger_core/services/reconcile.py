import logging

from django.core.exceptions import ValidationError
from django.utils import timezone

from ..store import select_store
from .reports import ReportFilter

logger = logging.getLogger(__name__)


# ----------------------------------------------
# Bank reconciliation
# ----------------------------------------------
def list_unreconciled_lines(company, account, filt=None, store=None):
    """Approved, not yet reconciled lines of one (bank) account."""
    store = store or select_store()
    filt = filt or ReportFilter()
    lines = store.list_approved_lines(company).filter(
        account=account, reconciled=False
    )
    return list(filt.apply(lines).order_by("journal__date", "pk"))


def mark_reconciled(company, line_ids, store=None):
    """
    Flag lines as matched against the bank statement. All ids must be
    approved, unreconciled lines of ``company``, otherwise nothing changes.
    """
    store = store or select_store()
    ids = set(line_ids)
    with store.atomic():
        lines = store.list_approved_lines(company).select_for_update().filter(
            pk__in=ids, reconciled=False
        )
        found = set(lines.values_list("pk", flat=True))
        if found != ids:
            raise ValidationError(
                "Only approved, unreconciled lines of this company can be "
                f"reconciled: {sorted(ids - found)}"
            )
        # queryset update: lines of approved entries are otherwise frozen
        count = store.list_approved_lines(company).filter(pk__in=ids).update(
            reconciled=True, reconciled_at=timezone.now()
        )
    logger.info("Reconciled %d lines", count, extra={"company_id": company.pk})
    return count


def unmark_reconciled(company, line_ids, store=None):
    store = store or select_store()
    with store.atomic():
        count = store.list_approved_lines(company).filter(
            pk__in=set(line_ids), reconciled=True
        ).update(reconciled=False, reconciled_at=None)
    logger.info("Unreconciled %d lines", count, extra={"company_id": company.pk})
    return count
