import datetime
import threading
from unittest import mock, skipUnless

import pytest
from django.db import connection
from django.test import TestCase, TransactionTestCase
from django.utils import timezone

from ..exceptions import ConflictError
from ..models import Customer, DocumentSequence, JournalEntry
from ..services.invoicing import create_invoice
from ..services.numbering import (format_number, highest_issued,
                                  next_document_number, resync_sequence)
from ..services.workflow import create_entry
from .helpers import LedgerTestMixin, make_actor, make_company


@pytest.mark.parametrize(
    "doc_type,year,value,expected",
    [
        ("journal", 2025, 7, "JE-2025-0007"),
        ("invoice", 2024, 1, "INV-2024-0001"),
        ("journal", 2025, 12345, "JE-2025-12345"),
    ],
)
def test_format_number(doc_type, year, value, expected):
    assert format_number(doc_type, year, value) == expected


class SequenceTests(LedgerTestMixin, TestCase):
    def test_numbers_increase_per_company_and_type(self):
        day = datetime.date(2025, 3, 1)
        self.assertEqual(next_document_number(self.company, "journal", day), "JE-2025-0001")
        self.assertEqual(next_document_number(self.company, "journal", day), "JE-2025-0002")
        # invoices have their own counter
        self.assertEqual(next_document_number(self.company, "invoice", day), "INV-2025-0001")

        other = make_company(name="Other Co", slug="other-co")
        self.assertEqual(next_document_number(other, "journal", day), "JE-2025-0001")

    def test_new_year_restarts_at_one(self):
        next_document_number(self.company, "journal", datetime.date(2024, 12, 31))
        next_document_number(self.company, "journal", datetime.date(2024, 12, 31))
        self.assertEqual(
            next_document_number(self.company, "journal", datetime.date(2025, 1, 1)),
            "JE-2025-0001",
        )
        self.assertEqual(
            DocumentSequence.objects.get(company=self.company, year=2024).last_value, 2
        )

    def test_first_use_starts_after_stored_numbers(self):
        JournalEntry.objects.create(
            company=self.company, entry_number="JE-2025-0041",
            date=datetime.date(2025, 2, 1),
        )
        self.assertEqual(highest_issued(self.company, "journal", 2025), 41)
        self.assertEqual(
            next_document_number(self.company, "journal", datetime.date(2025, 2, 2)),
            "JE-2025-0042",
        )

    def test_resync_only_moves_forward(self):
        day = datetime.date(2025, 5, 5)
        for _ in range(3):
            next_document_number(self.company, "journal", day)
        # nothing stored yet, counter stays where it is
        self.assertEqual(resync_sequence(self.company, "journal", day), 3)


class NumberCollisionTests(LedgerTestMixin, TestCase):
    def _taken(self, number):
        return JournalEntry.objects.create(
            company=self.company, entry_number=number, date=self.today,
        )

    def test_collision_resyncs_and_retries(self):
        # sequence row exists but lags behind an imported entry
        DocumentSequence.objects.create(
            company=self.company, doc_type="journal", year=self.today.year, last_value=0
        )
        self._taken(format_number("journal", self.today.year, 1))

        with self.assertLogs("ledger_core.services.workflow", level="WARNING"):
            entry = create_entry(self.company, self.accountant, self.entry_data())

        self.assertEqual(entry.entry_number, format_number("journal", self.today.year, 2))

    def test_persistent_collision_raises_conflict(self):
        taken = self._taken(format_number("journal", self.today.year, 1))

        with mock.patch(
            "ledger_core.services.workflow.next_document_number",
            return_value=taken.entry_number,
        ) as numbers:
            with self.assertRaises(ConflictError):
                create_entry(self.company, self.accountant, self.entry_data())

        self.assertEqual(numbers.call_count, 3)
        self.assertEqual(JournalEntry.objects.count(), 1)

    def test_interleaved_creations_that_read_the_same_counter(self):
        first = create_entry(self.company, self.accountant, self.entry_data())
        # the second writer read the counter before the first one bumped it
        DocumentSequence.objects.filter(company=self.company).update(last_value=0)

        with self.assertLogs("ledger_core.services.workflow", level="WARNING") as logs:
            second = create_entry(self.company, self.owner, self.entry_data())

        self.assertIn("Duplicate journal number", logs.output[0])
        self.assertEqual(first.entry_number, format_number("journal", self.today.year, 1))
        self.assertEqual(second.entry_number, format_number("journal", self.today.year, 2))
        self.assertEqual(JournalEntry.objects.count(), 2)

    def test_interleaved_invoice_creations_get_distinct_numbers(self):
        customer = Customer.objects.create(company=self.company, code="C1", name="Acme")
        data = {
            "customer": customer.pk,
            "invoice_date": self.today,
            "lines": [{"description": "Widget", "unit_price": "10"}],
        }
        first = create_invoice(self.company, self.accountant, data)
        DocumentSequence.objects.filter(
            company=self.company, doc_type="invoice"
        ).update(last_value=0)

        with self.assertLogs("ledger_core.services.workflow", level="WARNING"):
            second = create_invoice(self.company, self.accountant, data)

        self.assertEqual(
            [first.invoice_number, second.invoice_number],
            [format_number("invoice", self.today.year, n) for n in (1, 2)],
        )

    """ Scenario: two entries created back to back get distinct, rising numbers """
    def test_consecutive_entries_get_increasing_numbers(self):
        first = create_entry(self.company, self.accountant, self.entry_data())
        second = create_entry(self.company, self.accountant, self.entry_data())
        self.assertNotEqual(first.entry_number, second.entry_number)
        self.assertLess(first.entry_number, second.entry_number)


@pytest.mark.postgres
@skipUnless(
    connection.features.has_select_for_update,
    "row locks are needed to serialize concurrent numbering; set DATABASE_URL "
    "to a PostgreSQL database to run this",
)
class ConcurrentNumberingTests(TransactionTestCase):
    def test_parallel_creation_never_duplicates(self):
        company = make_company()
        owner = make_actor(company, "owner")
        cash = company.accounts.get(code="1000")
        rent = company.accounts.get(code="5000")
        data = {
            "date": timezone.localdate(),
            "lines": [
                {"account": rent.pk, "debit": "10", "credit": "0"},
                {"account": cash.pk, "debit": "0", "credit": "10"},
            ],
        }
        numbers, errors = [], []

        def worker():
            try:
                numbers.append(create_entry(company, owner, data).entry_number)
            except Exception as exc:  # collected and asserted below
                errors.append(exc)
            finally:
                connection.close()

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        self.assertEqual(len(set(numbers)), 4)
        self.assertEqual(
            sorted(numbers),
            [format_number("journal", data["date"].year, n) for n in range(1, 5)],
        )
