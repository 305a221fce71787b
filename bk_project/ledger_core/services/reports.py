"""
Report Aggregator.

Every report is computed from APPROVED journal lines of one company plus
account metadata (type, normal side, opening balance). Nothing here reads
``Account.current_balance``.
"""
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Optional

from django.core.exceptions import ValidationError
from django.db.models import Sum
from django.utils import timezone

from ..models import Account, AccountType
from ..store import select_store
from .currency import to_decimal
from .propagation import line_delta

ZERO = Decimal("0.00")

# Aging bucket keys, in order
AGING_BUCKETS = ("current", "days_1_30", "days_31_60", "days_61_90", "days_90_plus")


@dataclass(frozen=True)
class ReportFilter:
    """Shared filter shape of all reports. Every field is optional."""
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    branch_id: Optional[int] = None
    project_id: Optional[int] = None
    cost_center_id: Optional[int] = None
    customer_id: Optional[int] = None
    vendor_id: Optional[int] = None
    account_id: Optional[int] = None

    def apply(self, lines, dates=True):
        """Narrow a JournalLine queryset."""
        if dates and self.date_from:
            lines = lines.filter(journal__date__gte=self.date_from)
        if dates and self.date_to:
            lines = lines.filter(journal__date__lte=self.date_to)
        for field in ("branch_id", "project_id", "cost_center_id",
                      "customer_id", "vendor_id", "account_id"):
            value = getattr(self, field)
            if value is not None:
                lines = lines.filter(**{field: value})
        return lines


def _lines(company, filt, store, dates=True):
    store = store or select_store()
    return (filt or ReportFilter()).apply(store.list_approved_lines(company), dates)


def _per_account(lines):
    """account_id -> (debit_base, credit_base) sums"""
    rows = lines.values("account_id").annotate(
        dr=Sum("debit_base"), cr=Sum("credit_base")
    ).order_by()
    return {r["account_id"]: (r["dr"] or ZERO, r["cr"] or ZERO) for r in rows}


def _accounts(company, type_names=None):
    qs = Account.objects.filter(company=company).select_related("account_type")
    if type_names:
        qs = qs.filter(account_type__name__in=type_names)
    return qs.order_by("code")


# ----------------------------------------------
# Trial Balance
# ----------------------------------------------
def get_trial_balance(company, filt=None, store=None):
    sums = _per_account(_lines(company, filt, store))
    rows = []
    total_debit = total_credit = ZERO
    for account in _accounts(company).filter(pk__in=list(sums)):
        debit, credit = sums[account.pk]
        rows.append({
            "account_id": account.pk,
            "code": account.code,
            "name": account.name,
            "account_type": account.account_type.name,
            "debit": debit,
            "credit": credit,
            "balance": debit - credit,
        })
        total_debit += debit
        total_credit += credit
    return {
        "rows": rows,
        "total_debit": total_debit,
        "total_credit": total_credit,
    }


# ----------------------------------------------
# Profit & Loss
# ----------------------------------------------
def get_profit_loss(company, filt=None, store=None):
    sums = _per_account(_lines(company, filt, store))
    income, expenses = [], []
    total_income = total_expense = ZERO
    types = (AccountType.INCOME, AccountType.EXPENSE)
    for account in _accounts(company, types).filter(pk__in=list(sums)):
        debit, credit = sums[account.pk]
        if account.account_type.name == AccountType.INCOME:
            amount = abs(credit - debit)
            income.append(_amount_row(account, amount))
            total_income += amount
        else:
            amount = abs(debit - credit)
            expenses.append(_amount_row(account, amount))
            total_expense += amount
    return {
        "income": income,
        "expenses": expenses,
        "total_income": total_income,
        "total_expense": total_expense,
        "net_profit": total_income - total_expense,
    }


def _amount_row(account, amount):
    return {
        "account_id": account.pk,
        "code": account.code,
        "name": account.name,
        "amount": amount,
    }


# ----------------------------------------------
# Balance Sheet
# ----------------------------------------------
def get_balance_sheet(company, filt=None, store=None):
    """
    Cumulative position at ``date_to``; ``date_from`` is ignored.
    Net profit of the same window is added to equity as
    "Retained Earnings (Net Profit)" so assets = liabilities + equity.
    """
    filt = replace(filt or ReportFilter(), date_from=None)
    sums = _per_account(_lines(company, filt, store))

    sections = {
        AccountType.ASSET: [],
        AccountType.LIABILITY: [],
        AccountType.EQUITY: [],
    }
    totals = dict.fromkeys(sections, ZERO)
    net_profit = ZERO

    for account in _accounts(company):
        debit, credit = sums.get(account.pk, (ZERO, ZERO))
        type_name = account.account_type.name
        if type_name == AccountType.INCOME:
            net_profit += credit - debit
            continue
        if type_name == AccountType.EXPENSE:
            net_profit -= debit - credit
            continue
        balance = account.opening_balance + line_delta(
            account.account_type.normal_side, debit, credit
        )
        if not balance and account.pk not in sums:
            continue
        sections[type_name].append(_amount_row(account, balance))
        totals[type_name] += balance

    sections[AccountType.EQUITY].append({
        "account_id": None,
        "code": None,
        "name": "Retained Earnings (Net Profit)",
        "amount": net_profit,
    })
    totals[AccountType.EQUITY] += net_profit

    return {
        "assets": sections[AccountType.ASSET],
        "liabilities": sections[AccountType.LIABILITY],
        "equity": sections[AccountType.EQUITY],
        "total_assets": totals[AccountType.ASSET],
        "total_liabilities": totals[AccountType.LIABILITY],
        "total_equity": totals[AccountType.EQUITY],
        "net_profit": net_profit,
    }


# ----------------------------------------------
# Aging
# ----------------------------------------------
def aging_bucket(days_overdue):
    if days_overdue <= 0:
        return "current"
    if days_overdue <= 30:
        return "days_1_30"
    if days_overdue <= 60:
        return "days_31_60"
    if days_overdue <= 90:
        return "days_61_90"
    return "days_90_plus"


def get_aging(company, party="customer", as_of=None, filt=None, store=None):
    """
    Receivables (party="customer", AR accounts) or payables
    (party="vendor", AP accounts) per party, bucketed by days past due.
    Due date: line due date, else the linked invoice's, else entry date.
    """
    if party == "customer":
        category, party_field = Account.AR, "customer"
    elif party == "vendor":
        category, party_field = Account.AP, "vendor"
    else:
        raise ValidationError(f"Unknown aging party: {party}")

    as_of = as_of or timezone.localdate()
    filt = replace(filt or ReportFilter(), date_from=None, date_to=as_of)
    lines = _lines(company, filt, store).filter(
        account__category=category, **{f"{party_field}__isnull": False}
    ).values(
        f"{party_field}_id",
        f"{party_field}__name",
        "debit_base",
        "credit_base",
        "due_date",
        "journal__invoice__due_date",
        "journal__date",
        "account__account_type__normal_side",
    )

    parties = {}
    for line in lines:
        party_id = line[f"{party_field}_id"]
        row = parties.setdefault(party_id, {
            "party_id": party_id,
            "name": line[f"{party_field}__name"],
            "balance": ZERO,
            **dict.fromkeys(AGING_BUCKETS, ZERO),
        })
        amount = line_delta(
            line["account__account_type__normal_side"],
            line["debit_base"],
            line["credit_base"],
        )
        due = (
            line["due_date"]
            or line["journal__invoice__due_date"]
            or line["journal__date"]
        )
        row[aging_bucket((as_of - due).days)] += amount
        row["balance"] += amount

    return sorted(
        (row for row in parties.values() if row["balance"] != 0),
        key=lambda row: row["name"],
    )


# ----------------------------------------------
# General Ledger
# ----------------------------------------------
def get_ledger(company, filt=None, store=None):
    """
    Chronological approved lines (one account when filt.account_id is set)
    with the entry header, dimensions and a running balance per account.
    The running balance starts from opening balance plus everything
    approved before ``date_from``.
    """
    filt = filt or ReportFilter()
    store = store or select_store()
    lines = _lines(company, filt, store).select_related(
        "branch", "project", "cost_center", "customer", "vendor"
    ).order_by("journal__date", "journal__entry_number", "pk")

    running = {}
    if filt.date_from:
        earlier = _lines(
            company, replace(filt, date_from=None, date_to=None), store
        ).filter(journal__date__lt=filt.date_from)
        earlier_sums = _per_account(earlier)
    else:
        earlier_sums = {}

    rows = []
    for line in lines:
        account = line.account
        side = account.account_type.normal_side
        if account.pk not in running:
            dr, cr = earlier_sums.get(account.pk, (ZERO, ZERO))
            running[account.pk] = account.opening_balance + line_delta(side, dr, cr)
        running[account.pk] += line_delta(side, line.debit_base, line.credit_base)
        entry = line.journal
        rows.append({
            "line_id": line.pk,
            "entry_id": entry.pk,
            "entry_number": entry.entry_number,
            "date": entry.date,
            "description": line.description or entry.description,
            "reference": entry.reference,
            "account_id": account.pk,
            "account_code": account.code,
            "account_name": account.name,
            "branch": line.branch.name if line.branch else None,
            "project": line.project.name if line.project else None,
            "cost_center": line.cost_center.name if line.cost_center else None,
            "customer": line.customer.name if line.customer else None,
            "vendor": line.vendor.name if line.vendor else None,
            "debit": line.debit_base,
            "credit": line.credit_base,
            "running_balance": running[account.pk],
        })
    return rows


# ----------------------------------------------
# Receivables search
# ----------------------------------------------
def search_receivables(company, customer_name=None, reference=None,
                       min_amount=None, max_amount=None, filt=None, store=None):
    """
    Approved AR lines, newest first, narrowed by customer name and entry
    reference (case-insensitive substring) and by base debit amount range,
    on top of the usual ReportFilter dimensions and dates.
    """
    lines = _lines(company, filt, store).filter(account__category=Account.AR)
    if customer_name:
        lines = lines.filter(customer__name__icontains=customer_name)
    if reference:
        lines = lines.filter(journal__reference__icontains=reference)
    if min_amount not in (None, ""):
        lines = lines.filter(debit_base__gte=to_decimal(min_amount, "min_amount"))
    if max_amount not in (None, ""):
        lines = lines.filter(debit_base__lte=to_decimal(max_amount, "max_amount"))

    lines = lines.select_related("customer", "branch").order_by(
        "-journal__date", "-journal__entry_number", "pk"
    )
    return [
        {
            "line_id": line.pk,
            "entry_id": line.journal_id,
            "entry_number": line.journal.entry_number,
            "date": line.journal.date,
            "reference": line.journal.reference,
            "description": line.description or line.journal.description,
            "customer": line.customer.name if line.customer else None,
            "branch": line.branch.name if line.branch else None,
            "due_date": line.due_date,
            "debit": line.debit_base,
            "credit": line.credit_base,
        }
        for line in lines
    ]
