"""
Ledger store selection.

Services talk to persistence through a store object. ``LiveStore`` is the
ORM; ``UnavailableStore`` is what callers get when the database health
check fails, and every call on it raises ``StoreUnavailableError`` so no
fabricated numbers ever reach a report.
"""
import logging

from django.db import DEFAULT_DB_ALIAS, DatabaseError, connections, transaction
from django.db.models import F

from .exceptions import NotFoundError, StoreUnavailableError
from .models import Account, JournalEntry, JournalLine

logger = logging.getLogger(__name__)


class LiveStore:
    """ORM-backed store."""

    available = True

    def __init__(self, using=DEFAULT_DB_ALIAS):
        self.using = using

    def atomic(self):
        return transaction.atomic(using=self.using)

    def find_account(self, company, account_id, for_update=False):
        qs = Account.objects.using(self.using).select_related("account_type")
        if for_update:
            qs = qs.select_for_update()
        try:
            return qs.get(company=company, pk=account_id)
        except Account.DoesNotExist:
            raise NotFoundError(f"Account {account_id} not found.")

    def find_journal_entry(self, company, entry_id, for_update=False):
        qs = JournalEntry.objects.using(self.using)
        if for_update:
            qs = qs.select_for_update()
        try:
            return qs.get(company=company, pk=entry_id)
        except JournalEntry.DoesNotExist:
            raise NotFoundError(f"Journal entry {entry_id} not found.")

    def lock_accounts(self, company, account_ids):
        # Primary-key order so concurrent approvals lock in the same order
        return list(
            Account.objects.using(self.using)
            .select_for_update()
            .select_related("account_type")
            .filter(company=company, pk__in=account_ids)
            .order_by("pk")
        )

    def create_journal_entry(self, **fields):
        return JournalEntry.objects.using(self.using).create(**fields)

    def create_journal_line(self, **fields):
        line = JournalLine(**fields)
        line.save(using=self.using)
        return line

    def update_journal_entry_status(self, entry, status, **fields):
        entry.status = status
        for name, value in fields.items():
            setattr(entry, name, value)
        entry.save(
            using=self.using,
            update_fields=["status", "updated_at", *fields.keys()],
        )
        return entry

    def increment_account_balance(self, account_id, delta):
        return Account.objects.using(self.using).filter(pk=account_id).update(
            current_balance=F("current_balance") + delta
        )

    def list_approved_lines(self, company):
        return (
            JournalLine.objects.using(self.using)
            .approved(company)
            .select_related("journal", "account", "account__account_type")
        )


class UnavailableStore:
    """Returned when the database is down. Fails every call loudly."""

    available = False

    def __init__(self, reason="Ledger database is unavailable."):
        self.reason = reason

    def _fail(self, *args, **kwargs):
        raise StoreUnavailableError(self.reason)

    atomic = find_account = find_journal_entry = lock_accounts = _fail
    create_journal_entry = create_journal_line = _fail
    update_journal_entry_status = increment_account_balance = _fail
    list_approved_lines = _fail


def database_available(using=DEFAULT_DB_ALIAS) -> bool:
    """SELECT 1 against the ledger database."""
    try:
        with connections[using].cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except DatabaseError:
        logger.exception("Ledger database health check failed", extra={"alias": using})
        return False
    return True


def select_store(health_check=database_available, using=DEFAULT_DB_ALIAS):
    """Run the health check once and hand back the matching store."""
    if health_check(using):
        return LiveStore(using=using)
    logger.error("Serving UnavailableStore for alias %s", using)
    return UnavailableStore(f"Ledger database '{using}' is unavailable.")
