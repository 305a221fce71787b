"""
Customer payment receipts.

A receipt settles part or all of an approved invoice. It is booked as an
approved journal entry (Dr Cash/Bank, Cr Accounts Receivable) in the base
currency, numbered like any other journal and propagated in the same
atomic block, so AR aging and account balances move together.
"""
import logging
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db.models import Sum
from django.utils import timezone

from ..exceptions import ForbiddenError, NotFoundError
from ..models import (Account, DocumentSequence, EntryStatus, Invoice,
                      JournalEntry)
from ..store import select_store
from .audit_helper import log_action
from .authz import DIRECT_SUBMIT_ROLES, ensure_same_company
from .currency import normalize_amount
from .invoicing import get_ar_account
from .propagation import propagate_entry
from .workflow import check_entry_date, coerce_date, create_numbered

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
PAYMENT_SOURCE = "payment"


def payments_for(invoice):
    """Approved receipt entries booked against ``invoice``."""
    return JournalEntry.objects.filter(
        company=invoice.company,
        source_type=PAYMENT_SOURCE,
        source_id=invoice.pk,
        status=EntryStatus.APPROVED,
    )


def invoice_outstanding(invoice):
    """Base-currency amount still owed on an approved invoice."""
    paid = payments_for(invoice).aggregate(total=Sum("total_debit"))["total"]
    return invoice.total_base - (paid or ZERO)


def _receiving_account(company, account_id):
    account = (
        Account.objects.filter(company=company, pk=getattr(account_id, "pk", account_id))
        .first()
    )
    if account is None:
        raise ValidationError(f"Account {account_id} does not belong to this company.")
    if account.category not in Account.LIQUID_CATEGORIES:
        raise ValidationError("Payments must be received into a cash or bank account.")
    if not account.is_active:
        raise ValidationError(f"Account {account} is inactive.")
    return account


def record_payment(company, actor, invoice_id, account_id, amount, date=None,
                   reference=None, store=None):
    """
    Receive ``amount`` (base currency) against an approved invoice into a
    cash or bank account. Overpayment is refused.
    """
    store = store or select_store()
    ensure_same_company(actor, company.pk)
    if not actor.has_any(DIRECT_SUBMIT_ROLES):
        raise ForbiddenError("Your role cannot record payments.")

    amount = normalize_amount(amount)
    if amount <= 0:
        raise ValidationError("Valid payment amount is required")
    pay_date = coerce_date(date) if date else timezone.localdate()
    check_entry_date(actor, pay_date)
    account = _receiving_account(company, account_id)

    with store.atomic():
        invoice = (
            Invoice.objects.select_for_update()
            .select_related("customer")
            .filter(company=company, pk=invoice_id)
            .first()
        )
        if invoice is None:
            raise NotFoundError(f"Invoice {invoice_id} not found.")
        if invoice.status != EntryStatus.APPROVED:
            raise ValidationError("Only approved invoices can receive payments.")

        outstanding = invoice_outstanding(invoice)
        if amount > outstanding:
            raise ValidationError(
                f"Payment {amount} exceeds invoice outstanding amount {outstanding}"
            )
        ar_account = get_ar_account(company)

        def build(number):
            entry = store.create_journal_entry(
                company=company,
                entry_number=number,
                date=pay_date,
                description=f"Payment received for Invoice {invoice.invoice_number}",
                reference=reference or invoice.invoice_number,
                total_debit=amount,
                total_credit=amount,
                status=EntryStatus.VERIFIED,
                created_by=actor.user,
                source_type=PAYMENT_SOURCE,
                source_id=invoice.pk,
            )
            store.create_journal_line(
                company=company,
                journal=entry,
                account=account,
                description=f"Receipt for Invoice {invoice.invoice_number}",
                debit=amount,
                customer=invoice.customer,
            )
            store.create_journal_line(
                company=company,
                journal=entry,
                account=ar_account,
                description=f"Settles Invoice {invoice.invoice_number}",
                credit=amount,
                customer=invoice.customer,
                due_date=invoice.due_date,
            )
            return entry

        entry = create_numbered(company, DocumentSequence.JOURNAL, build, store)
        propagate_entry(entry, store)
        store.update_journal_entry_status(
            entry,
            EntryStatus.APPROVED,
            approved_by=actor.user,
            approved_at=timezone.now(),
        )
        log_action(
            action="payment",
            instance=invoice,
            user=actor.user,
            changes={
                "entry_id": entry.pk,
                "account_id": account.pk,
                "amount": str(amount),
                "outstanding": str(outstanding - amount),
            },
        )

    logger.info(
        "Payment %s received for invoice %s", amount, invoice.invoice_number,
        extra={"invoice_id": invoice.pk, "entry_id": entry.pk,
               "company_id": company.pk, "action": "payment"},
    )
    return entry
