"""
Entry State Machine for journal entries.

create_entry / update_entry / delete_entry / transition are the only ways a
journal entry changes. Each runs in one atomic block, checks the actor
against the capability table in ``authz`` and writes an AuditLog row.
"""
import logging
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import IntegrityError
from django.utils import timezone
from django.utils.dateparse import parse_date

from ..exceptions import ConflictError, FutureDateError, UnbalancedJournalError
from ..models import (Account, Branch, CostCenter, Customer, DocumentSequence,
                      EntryStatus, Project, Vendor)
from ..store import select_store
from .audit_helper import field_changes, log_action, snapshot, status_change
from .authz import (APPROVE, DELETE, DIRECT_SUBMIT_ROLES, EDIT, REJECT,
                    RETRIEVE, SUBMIT, TRANSITIONS, VERIFY, authorize,
                    ensure_same_company)
from .currency import normalize_lines, normalize_rate
from .notifications import notify_pending_journal
from .numbering import next_document_number, resync_sequence
from .propagation import propagate_entry

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

# line key -> model, for the optional dimensions of a line
LINE_DIMENSIONS = {
    "branch": Branch,
    "project": Project,
    "cost_center": CostCenter,
    "customer": Customer,
    "vendor": Vendor,
}


# ----------------------------------------------
# Validation helpers
# ----------------------------------------------
def coerce_date(value, field="date"):
    if value in (None, ""):
        raise ValidationError(f"{field.capitalize()} is required.")
    if isinstance(value, str):
        parsed = parse_date(value)
        if parsed is None:
            raise ValidationError(f"Invalid {field}: {value!r}")
        return parsed
    return value


def check_entry_date(actor, entry_date):
    """Only owners/admins may date a document after today."""
    if entry_date > timezone.localdate() and not actor.is_privileged:
        raise FutureDateError(
            "Future transaction dates are only allowed for owners"
        )


def _company_object(model, company, value, label):
    if value in (None, ""):
        return None
    pk = getattr(value, "pk", value)
    obj = model.objects.filter(company=company, pk=pk).first()
    if obj is None:
        raise ValidationError(f"{label} {pk} does not belong to this company.")
    return obj


def check_balance(lines):
    """|Σdebit − Σcredit| within tolerance, in document and base currency."""
    tolerance = settings.LEDGER_BALANCE_TOLERANCE
    debit = sum((ln["debit"] for ln in lines), ZERO)
    credit = sum((ln["credit"] for ln in lines), ZERO)
    debit_base = sum((ln["debit_base"] for ln in lines), ZERO)
    credit_base = sum((ln["credit_base"] for ln in lines), ZERO)
    if abs(debit - credit) > tolerance or abs(debit_base - credit_base) > tolerance:
        raise UnbalancedJournalError(
            f"Journal not balanced: debits={debit}, credits={credit}"
        )
    return debit_base, credit_base


def prepare_lines(company, raw_lines, rate):
    """
    Validate the submitted lines and resolve their references.
    Returns normalized line dicts ready for JournalLine(**line).
    """
    if not raw_lines or len(raw_lines) < 2:
        raise ValidationError("A journal entry needs at least two lines.")

    lines = normalize_lines(raw_lines, rate)
    prepared = []
    for index, line in enumerate(lines, start=1):
        debit, credit = line["debit"], line["credit"]
        if debit < 0 or credit < 0:
            raise ValidationError(f"Line {index}: amounts must be >= 0.")
        if (debit > 0) == (credit > 0):
            raise ValidationError(
                f"Line {index}: exactly one of debit or credit must be positive."
            )

        account = _company_object(Account, company, line.get("account"), "Account")
        if account is None:
            raise ValidationError(f"Line {index}: account is required.")
        if not account.is_active:
            raise ValidationError(f"Line {index}: account {account} is inactive.")

        row = {
            "account": account,
            "description": line.get("description") or None,
            "debit": debit,
            "credit": credit,
            "debit_base": line["debit_base"],
            "credit_base": line["credit_base"],
            "exchange_rate": line["exchange_rate"],
            "due_date": (
                coerce_date(line["due_date"], "due_date")
                if line.get("due_date") else None
            ),
        }
        for key, model in LINE_DIMENSIONS.items():
            row[key] = _company_object(model, company, line.get(key), key)
        prepared.append(row)

    check_balance(prepared)
    return prepared


def write_lines(entry, lines, store):
    for line in lines:
        store.create_journal_line(company=entry.company, journal=entry, **line)


def line_payload(line):
    """Submitted-line shape of a stored JournalLine."""
    payload = {
        "account": line.account_id,
        "description": line.description,
        "debit": line.debit,
        "credit": line.credit,
        "due_date": line.due_date,
    }
    for key in LINE_DIMENSIONS:
        payload[key] = getattr(line, f"{key}_id")
    return payload


def _totals(lines):
    return (
        sum((ln["debit_base"] for ln in lines), ZERO),
        sum((ln["credit_base"] for ln in lines), ZERO),
    )


# ----------------------------------------------
# Creation (with numbering retry)
# ----------------------------------------------
def create_numbered(company, doc_type, build, store, today=None):
    """
    Call ``build(number)`` with a fresh document number inside a savepoint.
    A duplicate number (IntegrityError) resyncs the sequence and retries;
    after LEDGER_NUMBER_RETRIES attempts the conflict is surfaced.
    """
    attempts = settings.LEDGER_NUMBER_RETRIES
    for attempt in range(1, attempts + 1):
        try:
            with store.atomic():
                number = next_document_number(company, doc_type, today=today)
                return build(number)
        except IntegrityError:
            logger.warning(
                "Duplicate %s number on attempt %d/%d", doc_type, attempt, attempts,
                extra={"company_id": company.pk},
            )
            resync_sequence(company, doc_type, today=today)
    raise ConflictError(
        f"Could not allocate a unique {doc_type} number after {attempts} attempts."
    )


def create_entry(company, actor, data, store=None):
    """
    Create a journal entry.

    ``data``: date, description, reference, exchange_rate, currency and
    ``lines`` (dicts with account, debit, credit and optional description,
    dimensions and due_date). Accountants, owners and admins skip DRAFT.
    """
    store = store or select_store()
    ensure_same_company(actor, company.pk)

    entry_date = coerce_date(data.get("date"))
    check_entry_date(actor, entry_date)
    rate = normalize_rate(data.get("exchange_rate"))
    lines = prepare_lines(company, data.get("lines"), rate)
    total_debit, total_credit = _totals(lines)

    if actor.has_any(DIRECT_SUBMIT_ROLES):
        status = EntryStatus.PENDING_VERIFICATION
    else:
        status = EntryStatus.DRAFT

    def build(number):
        entry = store.create_journal_entry(
            company=company,
            entry_number=number,
            date=entry_date,
            description=data.get("description"),
            reference=data.get("reference"),
            currency_id=data.get("currency") or None,
            exchange_rate=rate,
            total_debit=total_debit,
            total_credit=total_credit,
            status=status,
            created_by=actor.user,
            source_type=data.get("source_type"),
            source_id=data.get("source_id"),
        )
        write_lines(entry, lines, store)
        log_action(
            action="create",
            instance=entry,
            user=actor.user,
            changes={"status": str(status), "total": str(total_debit)},
        )
        return entry

    entry = create_numbered(company, DocumentSequence.JOURNAL, build, store)
    logger.info(
        "Created journal %s", entry.entry_number,
        extra={"entry_id": entry.pk, "company_id": company.pk, "action": "create"},
    )
    if status == EntryStatus.PENDING_VERIFICATION:
        notify_pending_journal(entry)
    return entry


# ----------------------------------------------
# Edit / delete
# ----------------------------------------------
def update_entry(entry_id, actor, data, store=None):
    """
    Edit description, reference, date, exchange rate and/or the full line set.
    Owners may edit until approval, accountants only DRAFT/REJECTED.
    """
    store = store or select_store()
    with store.atomic():
        entry = store.find_journal_entry(actor.company, entry_id, for_update=True)
        authorize(actor, EDIT, entry.status)

        before = snapshot(entry, ["description", "reference", "date"])
        for field in ("description", "reference"):
            if field in data:
                setattr(entry, field, data[field])
        if "date" in data:
            entry.date = coerce_date(data["date"])
            check_entry_date(actor, entry.date)
        changed = field_changes(before, entry)

        if "lines" in data or "exchange_rate" in data:
            # a new rate alone re-normalizes the stored lines
            raw_lines = (
                data["lines"] if "lines" in data
                else [line_payload(line) for line in entry.lines.all()]
            )
            rate = normalize_rate(data.get("exchange_rate", entry.exchange_rate))
            lines = prepare_lines(entry.company, raw_lines, rate)
            entry.lines.all().delete()
            entry.exchange_rate = rate
            entry.total_debit, entry.total_credit = _totals(lines)
            write_lines(entry, lines, store)
            changed["lines"] = len(lines)
            changed["total"] = str(entry.total_debit)
            if "exchange_rate" in data:
                changed["exchange_rate"] = str(rate)

        entry.save()
        log_action(action="edit", instance=entry, user=actor.user, changes=changed)

    logger.info(
        "Edited journal %s", entry.entry_number,
        extra={"entry_id": entry.pk, "company_id": entry.company_id, "action": EDIT},
    )
    return entry


def delete_entry(entry_id, actor, store=None):
    """Delete a DRAFT/REJECTED entry (owner or accountant)."""
    store = store or select_store()
    with store.atomic():
        entry = store.find_journal_entry(actor.company, entry_id, for_update=True)
        authorize(actor, DELETE, entry.status)
        log_action(
            action="delete",
            instance=entry,
            user=actor.user,
            changes={"entry_number": entry.entry_number, "status": entry.status},
        )
        entry.delete()
    logger.info(
        "Deleted journal %s", entry_id,
        extra={"entry_id": entry_id, "company_id": actor.company.pk, "action": DELETE},
    )


# ----------------------------------------------
# Transitions
# ----------------------------------------------
def transition(entry_id, action, actor, reason=None,
               override_overdraft=False, store=None):
    """
    Move a journal entry along the workflow.

    One of submit/verify/reject/retrieve/approve. Disallowed combinations
    of role, action and current status raise ForbiddenError and write
    nothing. ``approve`` propagates balances in the same atomic block;
    ``override_overdraft`` is honored for owners and admins only.
    """
    if action not in TRANSITIONS:
        raise ValidationError(f"Unknown action: {action}")

    store = store or select_store()
    with store.atomic():
        entry = store.find_journal_entry(actor.company, entry_id, for_update=True)
        authorize(actor, action, entry.status)

        old_status = entry.status
        now = timezone.now()
        fields = {}

        if action == VERIFY:
            fields = {"verified_by": actor.user, "verified_at": now}
        elif action == REJECT:
            if not reason or not str(reason).strip():
                raise ValidationError("A rejection reason is required.")
            fields = {"rejected_by": actor.user, "rejection_reason": str(reason).strip()}
        elif action == RETRIEVE:
            fields = {"rejected_by": None, "rejection_reason": None}
        elif action == APPROVE:
            propagate_entry(
                entry, store,
                override_overdraft=override_overdraft and actor.is_privileged,
            )
            fields = {"approved_by": actor.user, "approved_at": now}

        store.update_journal_entry_status(entry, TRANSITIONS[action], **fields)
        log_action(
            action=action,
            instance=entry,
            user=actor.user,
            changes=status_change(old_status, entry.status, reason=reason),
        )

    logger.info(
        "Journal %s: %s -> %s", entry.entry_number, old_status, entry.status,
        extra={"entry_id": entry.pk, "company_id": entry.company_id, "action": action},
    )
    if action == SUBMIT:
        notify_pending_journal(entry)
    return entry
