from unittest import mock

import pytest
from django.db import DatabaseError
from django.test import TestCase

from ..exceptions import NotFoundError, StoreUnavailableError
from ..services.reconcile import (list_unreconciled_lines, mark_reconciled,
                                  unmark_reconciled)
from ..services.reports import get_trial_balance
from ..services.workflow import create_entry, transition
from ..store import LiveStore, UnavailableStore, database_available, select_store
from .helpers import LedgerTestMixin


@pytest.mark.parametrize(
    "method,args",
    [
        ("atomic", ()),
        ("find_journal_entry", (None, 1)),
        ("lock_accounts", (None, [1])),
        ("increment_account_balance", (1, 1)),
        ("list_approved_lines", (None,)),
    ],
)
def test_unavailable_store_fails_every_call(method, args):
    store = UnavailableStore("down for maintenance")
    with pytest.raises(StoreUnavailableError, match="down for maintenance"):
        getattr(store, method)(*args)


def test_select_store_with_failing_health_check():
    store = select_store(health_check=lambda using: False)
    assert isinstance(store, UnavailableStore)
    assert store.available is False


@pytest.mark.django_db
def test_select_store_with_live_database():
    store = select_store()
    assert isinstance(store, LiveStore)
    assert store.available


@pytest.mark.django_db
def test_health_check_reports_database_errors():
    with mock.patch("ledger_core.store.connections") as conns:
        conns.__getitem__.return_value.cursor.side_effect = DatabaseError("gone")
        assert database_available() is False


class UnavailableStoreServiceTests(LedgerTestMixin, TestCase):
    def test_reports_refuse_instead_of_guessing(self):
        with self.assertRaises(StoreUnavailableError):
            get_trial_balance(self.company, store=UnavailableStore())

    def test_creation_refused(self):
        with self.assertRaises(StoreUnavailableError):
            create_entry(self.company, self.accountant, self.entry_data(),
                         store=UnavailableStore())

    def test_transition_refused(self):
        entry = create_entry(self.company, self.accountant, self.entry_data())
        with self.assertRaises(StoreUnavailableError):
            transition(entry.pk, "verify", self.manager, store=UnavailableStore())
        entry.refresh_from_db()
        self.assertEqual(entry.status, "PENDING_VERIFICATION")

    def test_reconciliation_refused(self):
        with self.assertRaises(StoreUnavailableError):
            list_unreconciled_lines(self.company, self.cash, store=UnavailableStore())
        with self.assertRaises(StoreUnavailableError):
            mark_reconciled(self.company, [1], store=UnavailableStore())
        with self.assertRaises(StoreUnavailableError):
            unmark_reconciled(self.company, [1], store=UnavailableStore())


class LiveStoreTests(LedgerTestMixin, TestCase):
    def test_find_account_is_tenant_scoped(self):
        store = LiveStore()
        self.assertEqual(store.find_account(self.company, self.cash.pk), self.cash)
        with self.assertRaises(NotFoundError):
            store.find_account(self.company, 999999)

    def test_lock_accounts_in_key_order(self):
        store = LiveStore()
        with store.atomic():
            locked = store.lock_accounts(self.company, [self.rent.pk, self.cash.pk])
        self.assertEqual([a.pk for a in locked], sorted([self.rent.pk, self.cash.pk]))
