"""
Balance Propagation Engine.

Moves ``Account.current_balance`` when a journal entry is approved. It is
called from the approve transition only, inside the same atomic block as
the status change, so either every delta and the new status commit
together or nothing does.
"""
import logging
from collections import defaultdict
from decimal import Decimal

from django.db import DatabaseError, transaction
from django.db.models import Q, Sum

from ..exceptions import OverdraftError, PropagationError
from ..models import Account

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def line_delta(normal_side, debit_base, credit_base):
    """Signed effect of a line on an account with the given normal side."""
    if normal_side == "DEBIT":
        return debit_base - credit_base
    return credit_base - debit_base


def entry_deltas(entry):
    """account_id -> summed delta of all lines of ``entry``"""
    deltas = defaultdict(lambda: ZERO)
    lines = entry.lines.select_related("account__account_type")
    for line in lines:
        deltas[line.account_id] += line_delta(
            line.account.account_type.normal_side,
            line.debit_base,
            line.credit_base,
        )
    return dict(deltas)


def check_overdraft(account, projected, override=False):
    """CASH/BANK accounts may not go below zero unless allowed."""
    if (
        account.category in Account.LIQUID_CATEGORIES
        and projected < 0
        and not account.allow_negative
        and not override
    ):
        raise OverdraftError(account, projected)


def propagate_entry(entry, store, override_overdraft=False):
    """
    Apply the balance effect of ``entry``.

    Accounts are locked in primary-key order, deltas are checked against
    the overdraft rule for every account before the first write, then
    applied with F() increments. Must be called inside ``store.atomic()``.
    """
    deltas = entry_deltas(entry)
    accounts = store.lock_accounts(entry.company, sorted(deltas))

    # Validate everything first: a rejected approval writes nothing
    for account in accounts:
        projected = account.current_balance + deltas[account.pk]
        check_overdraft(account, projected, override=override_overdraft)

    current = None
    try:
        for account in accounts:
            current = account
            store.increment_account_balance(account.pk, deltas[account.pk])
    except DatabaseError as exc:
        logger.error(
            "Balance propagation failed",
            extra={
                "entry_id": entry.pk,
                "account_id": current.pk if current else None,
                "company_id": entry.company_id,
            },
            exc_info=True,
        )
        raise PropagationError(
            f"Could not update balances for entry {entry.pk}",
            entry_id=entry.pk,
            account_id=current.pk if current else None,
        ) from exc

    logger.info(
        "Propagated entry %s to %d accounts",
        entry.pk, len(accounts),
        extra={"entry_id": entry.pk, "company_id": entry.company_id},
    )
    return deltas


# ----------------------------------------------
# Auditing and repair
# ----------------------------------------------
def ledger_balances(company):
    """
    account_id -> (stored current_balance, balance rebuilt from the ledger)
    where rebuilt = opening_balance + approved line deltas.
    """
    approved = Q(lines__journal__status="APPROVED")
    accounts = (
        Account.objects.filter(company=company)
        .select_related("account_type")
        .annotate(
            dr=Sum("lines__debit_base", filter=approved),
            cr=Sum("lines__credit_base", filter=approved),
        )
    )
    result = {}
    for account in accounts:
        rebuilt = account.opening_balance + line_delta(
            account.account_type.normal_side,
            account.dr or ZERO,
            account.cr or ZERO,
        )
        result[account.pk] = (account.current_balance, rebuilt)
    return result


def audit_account_balances(company):
    """Accounts whose stored balance drifted: [(account_id, stored, rebuilt)]."""
    return [
        (account_id, stored, rebuilt)
        for account_id, (stored, rebuilt) in sorted(ledger_balances(company).items())
        if stored != rebuilt
    ]


@transaction.atomic
def heal_account_balances(company):
    """Rewrite drifted balances from the ledger. Returns the healed ids."""
    healed = []
    # lock first so no approval runs between the read and the write
    list(Account.objects.select_for_update().filter(company=company).order_by("pk"))
    for account_id, stored, rebuilt in audit_account_balances(company):
        Account.objects.filter(pk=account_id).update(current_balance=rebuilt)
        logger.warning(
            "Healed balance of account %s: %s -> %s",
            account_id, stored, rebuilt,
            extra={"account_id": account_id, "company_id": company.pk},
        )
        healed.append(account_id)
    return healed
