import logging
from datetime import timedelta
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.utils import timezone

from ..exceptions import NotFoundError, UnbalancedJournalError
from ..models import (Account, Customer, DocumentSequence, EntryStatus,
                      Invoice, InvoiceLine, JournalLine)
from ..store import select_store
from .audit_helper import field_changes, log_action, snapshot, status_change
from .authz import (APPROVE, DELETE, DIRECT_SUBMIT_ROLES, EDIT, REJECT,
                    RETRIEVE, TRANSITIONS, VERIFY, authorize,
                    ensure_same_company)
from .currency import normalize_amount, normalize_rate, to_decimal
from .numbering import next_document_number
from .propagation import propagate_entry
from .workflow import check_entry_date, coerce_date, create_numbered

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


# ----------------------------------------------
# Account lookup for the approval journal
# ----------------------------------------------
def _category_account(company, category, label):
    account = (
        Account.objects.filter(company=company, category=category, is_active=True)
        .order_by("code")
        .first()
    )
    if account is None:
        raise ValidationError(f"No active {label} account configured for company")
    return account


def get_ar_account(company):
    return _category_account(company, Account.AR, "Accounts Receivable")


def get_revenue_account(company):
    return _category_account(company, Account.REVENUE, "Revenue")


# ----------------------------------------------
# Invoice lines and totals
# ----------------------------------------------
def prepare_invoice_lines(raw_lines):
    """
    Parse submitted invoice lines into InvoiceLine field dicts.
    Every amount goes through to_decimal so bad input is a ValidationError.
    """
    if not raw_lines:
        raise ValidationError("Cannot create an invoice with no lines.")

    prepared = []
    for index, raw in enumerate(raw_lines, start=1):
        if raw.get("unit_price") in (None, ""):
            raise ValidationError(f"Line {index}: unit_price is required.")
        quantity = to_decimal(raw.get("quantity", 1), "quantity")
        unit_price = to_decimal(raw["unit_price"], "unit_price")
        tax_rate = to_decimal(raw.get("tax_rate"), "tax_rate")
        if quantity <= 0:
            raise ValidationError(f"Line {index}: quantity must be > 0.")
        if unit_price < 0 or tax_rate < 0:
            raise ValidationError(
                f"Line {index}: unit_price and tax_rate must be >= 0."
            )
        prepared.append({
            "description": raw.get("description") or "",
            "quantity": quantity,
            "unit_price": unit_price,
            "tax_rate": tax_rate,
            "revenue_account_id": getattr(
                raw.get("revenue_account"), "pk", raw.get("revenue_account")
            ),
        })
    return prepared


def write_invoice_lines(invoice, lines):
    """Save ``lines`` under ``invoice`` and refresh its totals."""
    subtotal = tax = ZERO
    for fields in lines:
        line = InvoiceLine(invoice=invoice, **fields)
        line.save()
        subtotal += line.line_subtotal
        tax += line.tax_amount

    invoice.subtotal = subtotal
    invoice.tax_amount = tax
    invoice.total = subtotal + tax
    invoice.total_base = normalize_amount(invoice.total, invoice.exchange_rate)


# ----------------------------------------------
# Invoice creation
# ----------------------------------------------
def create_invoice(company, actor, data, store=None):
    """
    Create an invoice with priced lines.

    ``data``: customer, invoice_date, due_date (defaults from the customer's
    payment terms), currency, exchange_rate, description and ``lines``
    (description, quantity, unit_price, tax_rate, revenue_account).
    """
    store = store or select_store()
    ensure_same_company(actor, company.pk)

    customer = Customer.objects.filter(
        company=company, pk=getattr(data.get("customer"), "pk", data.get("customer"))
    ).first()
    if customer is None:
        raise ValidationError("Customer is required and must belong to this company.")

    invoice_date = coerce_date(data.get("invoice_date"), "invoice_date")
    check_entry_date(actor, invoice_date)
    if data.get("due_date"):
        due_date = coerce_date(data["due_date"], "due_date")
    else:
        due_date = invoice_date + timedelta(days=customer.payment_terms_days)
    rate = normalize_rate(data.get("exchange_rate"))
    lines = prepare_invoice_lines(data.get("lines"))

    if actor.has_any(DIRECT_SUBMIT_ROLES):
        status = EntryStatus.PENDING_VERIFICATION
    else:
        status = EntryStatus.DRAFT

    def build(number):
        invoice = Invoice(
            company=company,
            invoice_number=number,
            customer=customer,
            invoice_date=invoice_date,
            due_date=due_date,
            currency_id=data.get("currency") or None,
            exchange_rate=rate,
            description=data.get("description"),
            status=status,
            created_by=actor.user,
        )
        # number uniqueness is left to the database so create_numbered can retry
        invoice.full_clean(validate_constraints=False)
        invoice.save()

        write_invoice_lines(invoice, lines)
        invoice.save(update_fields=["subtotal", "tax_amount", "total", "total_base"])

        log_action(
            action="create",
            instance=invoice,
            user=actor.user,
            changes={"status": str(status), "total": str(invoice.total)},
        )
        return invoice

    invoice = create_numbered(company, DocumentSequence.INVOICE, build, store)
    logger.info(
        "Created invoice %s", invoice.invoice_number,
        extra={"invoice_id": invoice.pk, "company_id": company.pk, "action": "create"},
    )
    return invoice


# ----------------------------------------------
# Edit / delete
# ----------------------------------------------
def _locked_invoice(actor, invoice_id):
    invoice = (
        Invoice.objects.select_for_update()
        .filter(company=actor.company, pk=invoice_id)
        .first()
    )
    if invoice is None:
        raise NotFoundError(f"Invoice {invoice_id} not found.")
    return invoice


def update_invoice(invoice_id, actor, data, store=None):
    """
    Edit header fields and/or replace the line set of an invoice.
    Same rights as journal edits; new lines recompute every total.
    """
    store = store or select_store()
    with store.atomic():
        invoice = _locked_invoice(actor, invoice_id)
        authorize(actor, EDIT, invoice.status)

        before = snapshot(
            invoice,
            ["description", "invoice_date", "due_date", "exchange_rate", "total"],
        )
        if "description" in data:
            invoice.description = data["description"]
        if "invoice_date" in data:
            invoice.invoice_date = coerce_date(data["invoice_date"], "invoice_date")
            check_entry_date(actor, invoice.invoice_date)
        if "due_date" in data:
            invoice.due_date = (
                coerce_date(data["due_date"], "due_date") if data["due_date"] else None
            )
        if "exchange_rate" in data:
            invoice.exchange_rate = normalize_rate(data["exchange_rate"])
        invoice.full_clean(validate_constraints=False)

        if "lines" in data:
            lines = prepare_invoice_lines(data["lines"])
            invoice.lines.all().delete()
            write_invoice_lines(invoice, lines)
        else:
            invoice.total_base = normalize_amount(invoice.total, invoice.exchange_rate)

        invoice.save()
        changed = field_changes(before, invoice)
        if "lines" in data:
            changed["lines"] = len(data["lines"])
        log_action(action=EDIT, instance=invoice, user=actor.user, changes=changed)

    logger.info(
        "Edited invoice %s", invoice.invoice_number,
        extra={"invoice_id": invoice.pk, "company_id": invoice.company_id, "action": EDIT},
    )
    return invoice


def delete_invoice(invoice_id, actor, store=None):
    """Delete a DRAFT/REJECTED invoice and its lines."""
    store = store or select_store()
    with store.atomic():
        invoice = _locked_invoice(actor, invoice_id)
        authorize(actor, DELETE, invoice.status)
        log_action(
            action=DELETE,
            instance=invoice,
            user=actor.user,
            changes={"invoice_number": invoice.invoice_number, "status": invoice.status},
        )
        invoice.delete()
    logger.info(
        "Deleted invoice %s", invoice_id,
        extra={"invoice_id": invoice_id, "company_id": actor.company.pk, "action": DELETE},
    )


# ----------------------------------------------
# Approval journal (AR debit / revenue credit)
# ----------------------------------------------
def build_invoice_journal(invoice, actor, store):
    """
    Create the journal entry for an invoice being approved and propagate it.
    Produces, per revenue account the lines are booked to:
      Debit: Accounts Receivable (customer + due date on the line)
      Credit: that revenue account
    Both sides of a pair carry the same foreign amount and rate, so their
    base amounts round identically and the entry balances to the cent.
    """
    if invoice.total <= 0:
        raise ValidationError("Invoice total must be > 0 to post revenue JE")

    ar_account = get_ar_account(invoice.company)

    # Group credits by revenue account, foreign currency
    credits = {}
    for line in invoice.lines.select_related("revenue_account"):
        account = line.revenue_account or get_revenue_account(invoice.company)
        credits[account] = credits.get(account, ZERO) + line.amount
    if not credits:
        raise ValidationError("Invoice has no lines to post")
    groups = sorted(credits.items(), key=lambda kv: kv[0].pk)

    number = next_document_number(invoice.company, DocumentSequence.JOURNAL)
    now = timezone.now()
    entry = store.create_journal_entry(
        company=invoice.company,
        entry_number=number,
        date=invoice.invoice_date,
        description=f"Invoice {invoice.invoice_number}",
        reference=invoice.invoice_number,
        currency_id=invoice.currency_id,
        exchange_rate=invoice.exchange_rate,
        status=EntryStatus.VERIFIED,
        created_by=invoice.created_by,
        verified_by=invoice.verified_by,
        verified_at=invoice.verified_at,
        source_type="invoice",
        source_id=invoice.pk,
    )
    for account, amount in groups:
        store.create_journal_line(
            company=invoice.company,
            journal=entry,
            account=ar_account,
            description=f"AR for Invoice {invoice.invoice_number}",
            debit=amount,
            exchange_rate=invoice.exchange_rate,
            customer=invoice.customer,
            due_date=invoice.due_date,
        )
    for account, amount in groups:
        store.create_journal_line(
            company=invoice.company,
            journal=entry,
            account=account,
            description=f"Revenue for Invoice {invoice.invoice_number}",
            credit=amount,
            exchange_rate=invoice.exchange_rate,
            customer=invoice.customer,
        )

    entry.total_debit, entry.total_credit = entry.compute_totals()
    if entry.total_debit != entry.total_credit:
        raise UnbalancedJournalError(
            f"Journal not balanced: debits={entry.total_debit}, "
            f"credits={entry.total_credit}"
        )
    propagate_entry(entry, store)
    store.update_journal_entry_status(
        entry,
        EntryStatus.APPROVED,
        approved_by=actor.user,
        approved_at=now,
        total_debit=entry.total_debit,
        total_credit=entry.total_credit,
    )
    log_action(
        action=APPROVE,
        instance=entry,
        user=actor.user,
        changes=status_change(
            EntryStatus.VERIFIED.value, EntryStatus.APPROVED.value,
            source=f"invoice:{invoice.pk}",
        ),
    )
    return entry


# ----------------------------------------------
# Transitions
# ----------------------------------------------
def transition_invoice(invoice_id, action, actor, reason=None, store=None):
    """Same workflow as journal entries; approve also books the journal."""
    if action not in TRANSITIONS:
        raise ValidationError(f"Unknown action: {action}")

    store = store or select_store()
    with store.atomic():
        invoice = _locked_invoice(actor, invoice_id)
        authorize(actor, action, invoice.status)

        old_status = invoice.status
        now = timezone.now()
        update_fields = ["status", "updated_at"]

        if action == VERIFY:
            invoice.verified_by, invoice.verified_at = actor.user, now
            update_fields += ["verified_by", "verified_at"]
        elif action == REJECT:
            if not reason or not str(reason).strip():
                raise ValidationError("A rejection reason is required.")
            invoice.rejected_by = actor.user
            invoice.rejection_reason = str(reason).strip()
            update_fields += ["rejected_by", "rejection_reason"]
        elif action == RETRIEVE:
            invoice.rejected_by = None
            invoice.rejection_reason = None
            update_fields += ["rejected_by", "rejection_reason"]
        elif action == APPROVE:
            invoice.journal = build_invoice_journal(invoice, actor, store)
            # booked base amount, the sum of the per-account roundings
            invoice.total_base = invoice.journal.total_debit
            invoice.approved_by, invoice.approved_at = actor.user, now
            update_fields += ["journal", "total_base", "approved_by", "approved_at"]

        invoice.status = TRANSITIONS[action]
        invoice.save(update_fields=update_fields)
        log_action(
            action=action,
            instance=invoice,
            user=actor.user,
            changes=status_change(old_status, str(invoice.status), reason=reason),
        )

    logger.info(
        "Invoice %s: %s -> %s", invoice.invoice_number, old_status, invoice.status,
        extra={"invoice_id": invoice.pk, "company_id": invoice.company_id, "action": action},
    )
    return invoice


def invoice_journal_lines(invoice):
    """Lines of the journal booked for ``invoice`` (empty before approval)."""
    if not invoice.journal_id:
        return JournalLine.objects.none()
    return invoice.journal.lines.select_related("account")
