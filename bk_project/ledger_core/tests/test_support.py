import json
import logging
from io import StringIO
from unittest import mock

import pytest
from django.core.exceptions import ValidationError
from django.core.management import CommandError, call_command
from django.test import TestCase

from bk_project.logging_config import JsonFormatter, get_logging_config

from ..exceptions import (ConflictError, ForbiddenError, NotFoundError,
                          OverdraftError, PropagationError,
                          StoreUnavailableError, UnbalancedJournalError,
                          error_status)
from ..models import Account, Company, Currency, JournalEntry, Notification
from ..tasks import (generate_all_notifications_task,
                     generate_notifications_task, heal_balances_task)
from .helpers import LedgerTestMixin, make_company


# ----------------------------------------------
# Error taxonomy
# ----------------------------------------------
@pytest.mark.parametrize(
    "exc,status",
    [
        (UnbalancedJournalError("x"), 422),
        (ValidationError("x"), 422),
        (ForbiddenError("x"), 403),
        (NotFoundError("x"), 404),
        (ConflictError("x"), 409),
        (StoreUnavailableError("x"), 503),
        (PropagationError("x", entry_id=1, account_id=2), 500),
        (RuntimeError("x"), 500),
    ],
)
def test_error_status(exc, status):
    assert error_status(exc) == status


def test_overdraft_error_names_the_account():
    account = Account(name="Cash in Hand")
    exc = OverdraftError(account, -5000)
    assert exc.account is account
    assert error_status(exc) == 422
    assert exc.messages == [
        "Transaction rejected: Cash in Hand balance (-5000) would be negative. "
        "Overdraft not allowed for this account."
    ]


# ----------------------------------------------
# Logging
# ----------------------------------------------
def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord(
        "ledger_core.services.workflow", logging.INFO, __file__, 10,
        "Journal %s approved", ("JE-2025-0001",), None,
    )
    record.entry_id = 42
    record.actor = object()

    payload = json.loads(JsonFormatter().format(record))
    assert payload["level"] == "INFO"
    assert payload["message"] == "Journal JE-2025-0001 approved"
    assert payload["extra"]["entry_id"] == 42
    # non-serializable extras are stringified
    assert isinstance(payload["extra"]["actor"], str)


def test_logging_config_switches_format(monkeypatch):
    monkeypatch.setenv("LOG_FORMAT", "json")
    assert "json" in get_logging_config(debug=True)["formatters"]
    monkeypatch.setenv("LOG_FORMAT", "console")
    config = get_logging_config(debug=False)
    assert "verbose" in config["formatters"]
    assert config["loggers"]["ledger_core"]["propagate"] is False


# ----------------------------------------------
# Celery tasks (eager in tests)
# ----------------------------------------------
class TaskTests(LedgerTestMixin, TestCase):
    def test_heal_balances_task(self):
        Account.objects.filter(pk=self.cash.pk).update(current_balance=5)
        result = heal_balances_task.apply(args=(self.company.pk,))
        self.assertEqual(result.get(), [self.cash.pk])

    def test_generate_notifications_task(self):
        Notification.objects.all().delete()
        JournalEntry.objects.create(
            company=self.company, entry_number="JE-2020-0009", date=self.today,
            status="PENDING_VERIFICATION",
        )
        ids = generate_notifications_task.apply(args=(self.company.pk,)).get()
        self.assertEqual(len(ids), 1)
        self.assertEqual(Notification.objects.get(pk=ids[0]).type, Notification.PENDING_JOURNAL)

    def test_fan_out_to_every_company(self):
        other = make_company(name="Other Co", slug="other-co")
        with mock.patch.object(generate_notifications_task, "delay") as delay:
            ids = generate_all_notifications_task()
        self.assertEqual(sorted(ids), sorted([self.company.pk, other.pk]))
        self.assertEqual(delay.call_count, 2)


# ----------------------------------------------
# seed_chart management command
# ----------------------------------------------
class SeedChartCommandTests(TestCase):
    def setUp(self):
        currency = Currency.objects.create(code="USD", name="US Dollar")
        self.company = Company.objects.create(
            name="Fresh Co", slug="fresh", base_currency=currency
        )

    def test_seeds_starter_chart_once(self):
        out = StringIO()
        call_command("seed_chart", "--company", "fresh", stdout=out)
        self.assertIn("11 account(s) created", out.getvalue())
        self.assertTrue(self.company.accounts.filter(code="1000", category="CASH").exists())

        out = StringIO()
        call_command("seed_chart", "--company", "fresh", stdout=out)
        self.assertIn("0 account(s) created", out.getvalue())

    def test_unknown_company(self):
        with self.assertRaises(CommandError):
            call_command("seed_chart", "--company", "nope", stdout=StringIO())
