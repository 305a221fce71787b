import logging
from datetime import timedelta

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from ..models import (EntryStatus, Invoice, JournalEntry, LetterOfCredit,
                      Loan, Notification)

logger = logging.getLogger(__name__)


# ----------------------------------------------
# Notification sink
# ----------------------------------------------
def notify(company, type, severity, title, message="",
           entity_type=None, entity_id=None):
    """
    Store one notification. Fire-and-forget: a failure here is logged and
    never breaks the ledger operation that triggered it.
    """
    try:
        # savepoint, so a failed insert leaves the caller's transaction usable
        with transaction.atomic():
            return Notification.objects.create(
                company=company,
                type=type,
                severity=severity,
                title=title,
                message=message,
                entity_type=entity_type,
                entity_id=entity_id,
            )
    except DatabaseError:
        logger.exception(
            "Could not store %s notification", type,
            extra={"company_id": company.pk, "entity_id": entity_id},
        )
        return None


def notify_pending_journal(entry):
    return notify(
        entry.company,
        Notification.PENDING_JOURNAL,
        Notification.INFO,
        f"Journal pending verification: {entry.entry_number}",
        f"Journal {entry.entry_number} is waiting for verification.",
        entity_type="JournalEntry",
        entity_id=entry.pk,
    )


def _has_unread(company, type, entity_id=None):
    qs = Notification.objects.filter(company=company, type=type, is_read=False)
    if entity_id is not None:
        qs = qs.filter(entity_id=entity_id)
    return qs.exists()


# ----------------------------------------------
# Derived from ledger state
# ----------------------------------------------
def derive_notifications(company, now=None):
    """
    Scan the company for conditions worth an alert and store one
    notification per condition. Safe to run repeatedly: an unread
    notification of the same (type, entity) suppresses a new one.
    Returns the created notifications.
    """
    today = timezone.localdate(now) if now else timezone.localdate()
    created = []

    def add(*args, **kwargs):
        n = notify(company, *args, **kwargs)
        if n is not None:
            created.append(n)

    # 1. Overdue approved invoices
    overdue = Invoice.objects.filter(
        company=company, status=EntryStatus.APPROVED, due_date__lt=today,
    ).order_by("due_date", "pk")[:10]
    for inv in overdue:
        if _has_unread(company, Notification.OVERDUE_INVOICE, inv.pk):
            continue
        days = (today - inv.due_date).days
        add(
            Notification.OVERDUE_INVOICE,
            Notification.DANGER,
            f"Overdue Invoice: {inv.invoice_number}",
            f"Invoice {inv.invoice_number} is {days} day(s) overdue. "
            f"Amount: {inv.total_base:,}.",
            entity_type="Invoice",
            entity_id=inv.pk,
        )

    # 2. Open LCs expiring soon
    lc_limit = today + timedelta(days=settings.LEDGER_LC_EXPIRY_DAYS)
    expiring = LetterOfCredit.objects.filter(
        company=company,
        status=LetterOfCredit.OPEN,
        expiry_date__gte=today,
        expiry_date__lte=lc_limit,
    ).order_by("expiry_date", "pk")[:10]
    for lc in expiring:
        if _has_unread(company, Notification.LC_EXPIRY, lc.pk):
            continue
        days_left = (lc.expiry_date - today).days
        add(
            Notification.LC_EXPIRY,
            Notification.DANGER if days_left <= 3 else Notification.WARNING,
            f"LC Expiry: {lc.lc_number}",
            f"LC {lc.lc_number} expires in {days_left} day(s). "
            f"Value: {lc.amount:,} {lc.currency_id or ''}.",
            entity_type="LC",
            entity_id=lc.pk,
        )

    # 3. Journals waiting for verification (one summary alert)
    pending = JournalEntry.objects.filter(
        company=company, status=EntryStatus.PENDING_VERIFICATION
    ).count()
    if pending and not _has_unread(company, Notification.PENDING_JOURNAL):
        noun = "entries are" if pending > 1 else "entry is"
        add(
            Notification.PENDING_JOURNAL,
            Notification.INFO,
            "Journals Pending Verification",
            f"{pending} journal {noun} awaiting review and approval.",
            entity_type="JournalEntry",
        )

    # 4. Active loans maturing soon
    loan_limit = today + timedelta(days=settings.LEDGER_LOAN_DUE_DAYS)
    maturing = Loan.objects.filter(
        company=company,
        status=Loan.ACTIVE,
        end_date__gte=today,
        end_date__lte=loan_limit,
    ).order_by("end_date", "pk")[:5]
    for loan in maturing:
        if _has_unread(company, Notification.LOAN_DUE, loan.pk):
            continue
        days_left = (loan.end_date - today).days
        add(
            Notification.LOAN_DUE,
            Notification.WARNING,
            f"Loan Maturity: {loan.loan_number}",
            f"Loan {loan.loan_number} matures in {days_left} day(s). "
            f"Outstanding: {loan.outstanding_balance:,}.",
            entity_type="Loan",
            entity_id=loan.pk,
        )

    logger.info(
        "Derived %d notifications", len(created),
        extra={"company_id": company.pk},
    )
    return created


# ----------------------------------------------
# Read state
# ----------------------------------------------
def list_notifications(company, limit=50):
    """Unread first, newest first."""
    return list(
        Notification.objects.filter(company=company)
        .order_by("is_read", "-created_at", "-pk")[:limit]
    )


def unread_count(company):
    return Notification.objects.filter(company=company, is_read=False).count()


def mark_read(company, notification_id):
    return Notification.objects.filter(
        company=company, pk=notification_id
    ).update(is_read=True)


def mark_all_read(company):
    return Notification.objects.filter(
        company=company, is_read=False
    ).update(is_read=True)
