from decimal import Decimal
from unittest import mock

from django.db import DatabaseError
from django.test import TestCase

from ..exceptions import OverdraftError, PropagationError
from ..models import Account, EntryStatus
from ..services.propagation import (audit_account_balances, entry_deltas,
                                    heal_account_balances, line_delta)
from ..services.workflow import create_entry, transition
from ..store import LiveStore
from .helpers import LedgerTestMixin


class LineDeltaTests(TestCase):
    def test_debit_normal_account(self):
        self.assertEqual(line_delta("DEBIT", Decimal("10"), Decimal("0")), Decimal("10"))
        self.assertEqual(line_delta("DEBIT", Decimal("0"), Decimal("4")), Decimal("-4"))

    def test_credit_normal_account(self):
        self.assertEqual(line_delta("CREDIT", Decimal("0"), Decimal("7")), Decimal("7"))
        self.assertEqual(line_delta("CREDIT", Decimal("3"), Decimal("0")), Decimal("-3"))


class OverdraftTests(LedgerTestMixin, TestCase):
    def _verified_rent(self, amount="5000"):
        entry = create_entry(self.company, self.accountant, self.entry_data(amount=amount))
        transition(entry.pk, "verify", self.manager)
        return entry

    """ Scenario: rent paid from an empty cash account """
    def test_overdraft_rejects_approval_and_changes_nothing(self):
        entry = self._verified_rent()

        with self.assertRaises(OverdraftError) as cm:
            transition(entry.pk, "approve", self.owner)

        self.assertIn("Cash in Hand", str(cm.exception))
        self.assertIn("Overdraft not allowed", str(cm.exception))
        self.assertEqual(cm.exception.projected_balance, Decimal("-5000.00"))

        entry.refresh_from_db()
        self.cash.refresh_from_db()
        self.rent.refresh_from_db()
        self.assertEqual(entry.status, EntryStatus.VERIFIED)
        self.assertIsNone(entry.approved_by)
        self.assertEqual(self.cash.current_balance, Decimal("0.00"))
        self.assertEqual(self.rent.current_balance, Decimal("0.00"))

    def test_non_liquid_accounts_may_go_negative(self):
        # Inventory credit against an expense: asset goes negative, no check
        data = self.entry_data(amount="300")
        data["lines"] = self.rent_lines("300", credit_account=self.inventory)
        entry = create_entry(self.company, self.accountant, data)
        transition(entry.pk, "verify", self.manager)
        transition(entry.pk, "approve", self.owner)
        self.inventory.refresh_from_db()
        self.assertEqual(self.inventory.current_balance, Decimal("-300.00"))

    def test_allow_negative_account_skips_check(self):
        Account.objects.filter(pk=self.cash.pk).update(allow_negative=True)
        entry = self._verified_rent()
        transition(entry.pk, "approve", self.owner)
        self.cash.refresh_from_db()
        self.assertEqual(self.cash.current_balance, Decimal("-5000.00"))

    def test_owner_override(self):
        entry = self._verified_rent()
        transition(entry.pk, "approve", self.owner, override_overdraft=True)
        self.cash.refresh_from_db()
        self.assertEqual(self.cash.current_balance, Decimal("-5000.00"))

    def test_admin_override(self):
        # admins hold the same override as owners
        entry = self._verified_rent()
        transition(entry.pk, "approve", self.admin, override_overdraft=True)
        self.cash.refresh_from_db()
        self.assertEqual(self.cash.current_balance, Decimal("-5000.00"))

    def test_exact_zero_is_allowed(self):
        self.fund_cash("5000")
        entry = self._verified_rent("5000")
        transition(entry.pk, "approve", self.owner)
        self.cash.refresh_from_db()
        self.assertEqual(self.cash.current_balance, Decimal("0.00"))


class PropagationFailureTests(LedgerTestMixin, TestCase):
    def test_database_error_becomes_propagation_error(self):
        self.fund_cash("10000")
        entry = create_entry(self.company, self.accountant, self.entry_data(amount="100"))
        transition(entry.pk, "verify", self.manager)

        with mock.patch.object(
            LiveStore, "increment_account_balance", side_effect=DatabaseError("disk full")
        ):
            with self.assertLogs("ledger_core.services.propagation", level="ERROR"):
                with self.assertRaises(PropagationError) as cm:
                    transition(entry.pk, "approve", self.owner)

        self.assertEqual(cm.exception.entry_id, entry.pk)
        self.assertIsNotNone(cm.exception.account_id)
        entry.refresh_from_db()
        self.assertEqual(entry.status, EntryStatus.VERIFIED)


class BalanceAuditTests(LedgerTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.fund_cash("1000")
        entry = create_entry(self.company, self.owner, self.entry_data(amount="250"))
        transition(entry.pk, "verify", self.owner)
        transition(entry.pk, "approve", self.owner)
        self.entry = entry

    def test_entry_deltas_follow_normal_side(self):
        deltas = entry_deltas(self.entry)
        self.assertEqual(deltas[self.rent.pk], Decimal("250.00"))
        self.assertEqual(deltas[self.cash.pk], Decimal("-250.00"))

    def test_balances_match_ledger_after_approvals(self):
        self.assertEqual(audit_account_balances(self.company), [])

    def test_heal_rewrites_drifted_balance(self):
        Account.objects.filter(pk=self.cash.pk).update(current_balance=Decimal("1.00"))
        drift = audit_account_balances(self.company)
        self.assertEqual(drift, [(self.cash.pk, Decimal("1.00"), Decimal("750.00"))])

        with self.assertLogs("ledger_core.services.propagation", level="WARNING"):
            healed = heal_account_balances(self.company)

        self.assertEqual(healed, [self.cash.pk])
        self.cash.refresh_from_db()
        self.assertEqual(self.cash.current_balance, Decimal("750.00"))
        self.assertEqual(audit_account_balances(self.company), [])

    def test_pending_entries_do_not_count(self):
        create_entry(self.company, self.accountant, self.entry_data(amount="100"))
        self.assertEqual(audit_account_balances(self.company), [])
