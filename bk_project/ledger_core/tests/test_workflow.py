from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.test import TestCase

from ..exceptions import ForbiddenError, NotFoundError
from ..models import AuditLog, EntryStatus, JournalEntry, Notification
from ..services.authz import CAPABILITIES, TRANSITIONS
from ..services.workflow import (create_entry, delete_entry, transition,
                                 update_entry)
from .helpers import LedgerTestMixin, make_actor, make_company


class ApprovalFlowTests(LedgerTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.fund_cash("100000")
        self.entry = create_entry(self.company, self.accountant, self.entry_data())

    def _reload(self):
        self.entry.refresh_from_db()
        self.cash.refresh_from_db()
        self.rent.refresh_from_db()

    """ Scenario: accountant creates, manager verifies, owner approves """
    def test_verify_then_approve_moves_balances(self):
        transition(self.entry.pk, "verify", self.manager)
        self._reload()
        self.assertEqual(self.entry.status, EntryStatus.VERIFIED)
        self.assertEqual(self.entry.verified_by, self.manager.user)
        self.assertIsNotNone(self.entry.verified_at)
        # verification alone never moves balances
        self.assertEqual(self.cash.current_balance, Decimal("100000.00"))

        transition(self.entry.pk, "approve", self.owner)
        self._reload()
        self.assertEqual(self.entry.status, EntryStatus.APPROVED)
        self.assertEqual(self.entry.approved_by, self.owner.user)
        self.assertEqual(self.cash.current_balance, Decimal("55000.00"))
        self.assertEqual(self.rent.current_balance, Decimal("45000.00"))

    """ Scenario: approving a second time is forbidden and changes nothing """
    def test_second_approval_is_forbidden(self):
        transition(self.entry.pk, "verify", self.manager)
        transition(self.entry.pk, "approve", self.owner)

        with self.assertRaises(ForbiddenError):
            transition(self.entry.pk, "approve", self.owner)

        self._reload()
        self.assertEqual(self.cash.current_balance, Decimal("55000.00"))
        self.assertEqual(self.rent.current_balance, Decimal("45000.00"))

    def test_manager_cannot_approve(self):
        transition(self.entry.pk, "verify", self.manager)
        with self.assertRaises(ForbiddenError):
            transition(self.entry.pk, "approve", self.manager)
        self._reload()
        self.assertEqual(self.entry.status, EntryStatus.VERIFIED)

    def test_accountant_cannot_verify(self):
        with self.assertRaises(ForbiddenError):
            transition(self.entry.pk, "verify", self.accountant)

    def test_unverified_entry_cannot_be_approved(self):
        with self.assertRaises(ForbiddenError):
            transition(self.entry.pk, "approve", self.owner)
        self._reload()
        self.assertEqual(self.entry.status, EntryStatus.PENDING_VERIFICATION)
        self.assertEqual(self.cash.current_balance, Decimal("100000.00"))

    def test_reject_and_retrieve_round_trip(self):
        transition(self.entry.pk, "reject", self.manager, reason="Wrong account")
        self._reload()
        self.assertEqual(self.entry.status, EntryStatus.REJECTED)
        self.assertEqual(self.entry.rejected_by, self.manager.user)
        self.assertEqual(self.entry.rejection_reason, "Wrong account")

        transition(self.entry.pk, "retrieve", self.accountant)
        self._reload()
        self.assertEqual(self.entry.status, EntryStatus.DRAFT)
        self.assertIsNone(self.entry.rejected_by)
        self.assertIsNone(self.entry.rejection_reason)

        transition(self.entry.pk, "submit", self.accountant)
        self._reload()
        self.assertEqual(self.entry.status, EntryStatus.PENDING_VERIFICATION)

    def test_verified_entry_can_still_be_rejected(self):
        transition(self.entry.pk, "verify", self.manager)
        transition(self.entry.pk, "reject", self.owner, reason="Duplicate")
        self._reload()
        self.assertEqual(self.entry.status, EntryStatus.REJECTED)

    def test_reject_requires_reason(self):
        for reason in (None, "", "   "):
            with self.assertRaises(ValidationError):
                transition(self.entry.pk, "reject", self.manager, reason=reason)
        self._reload()
        self.assertEqual(self.entry.status, EntryStatus.PENDING_VERIFICATION)

    def test_unknown_action_is_rejected(self):
        with self.assertRaises(ValidationError):
            transition(self.entry.pk, "publish", self.owner)

    def test_entry_of_other_company_is_not_found(self):
        other = make_company(name="Other Co", slug="other-co")
        outsider = make_actor(other, "owner")
        with self.assertRaises(NotFoundError):
            transition(self.entry.pk, "verify", outsider)

    def test_each_transition_is_audited(self):
        transition(self.entry.pk, "verify", self.manager)
        transition(self.entry.pk, "approve", self.owner)

        logs = AuditLog.objects.filter(
            object_type="JournalEntry", object_id=str(self.entry.pk)
        ).order_by("pk")
        self.assertEqual(
            [log.action for log in logs], ["create", "verify", "approve"]
        )
        self.assertEqual(
            logs.last().changes["status"],
            [EntryStatus.VERIFIED.value, EntryStatus.APPROVED.value],
        )

    def test_forbidden_transition_writes_no_audit_row(self):
        before = AuditLog.objects.count()
        with self.assertRaises(ForbiddenError):
            transition(self.entry.pk, "approve", self.user)
        self.assertEqual(AuditLog.objects.count(), before)


class SubmitNotificationTests(LedgerTestMixin, TestCase):
    def test_direct_submission_notifies(self):
        entry = create_entry(self.company, self.accountant, self.entry_data())
        note = Notification.objects.get(company=self.company)
        self.assertEqual(note.type, Notification.PENDING_JOURNAL)
        self.assertEqual(note.entity_id, entry.pk)
        self.assertIn(entry.entry_number, note.title)

    def test_draft_notifies_only_on_submit(self):
        entry = create_entry(self.company, self.user, self.entry_data())
        self.assertFalse(Notification.objects.exists())

        # a plain user may not submit; the accountant does it for them
        with self.assertRaises(ForbiddenError):
            transition(entry.pk, "submit", self.user)
        transition(entry.pk, "submit", self.accountant)
        self.assertEqual(Notification.objects.count(), 1)


class EditDeleteTests(LedgerTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.fund_cash("100000")
        self.draft = create_entry(self.company, self.user, self.entry_data())

    """ Scenario: accountant tries to approve a draft """
    def test_accountant_cannot_approve_draft(self):
        with self.assertRaises(ForbiddenError):
            transition(self.draft.pk, "approve", self.accountant)
        self.draft.refresh_from_db()
        self.assertEqual(self.draft.status, EntryStatus.DRAFT)
        self.assertIsNone(self.draft.approved_by)

    def test_accountant_edits_draft_lines(self):
        entry = update_entry(
            self.draft.pk, self.accountant,
            {"description": "Rent (corrected)", "lines": self.rent_lines("40000")},
        )
        entry.refresh_from_db()
        self.assertEqual(entry.description, "Rent (corrected)")
        self.assertEqual(entry.total_debit, Decimal("40000.00"))
        self.assertEqual(entry.lines.count(), 2)
        log = AuditLog.objects.filter(action="edit").get()
        self.assertEqual(log.changes["lines"], 2)
        self.assertEqual(log.changes["description"], ["Office rent", "Rent (corrected)"])
        self.assertNotIn("reference", log.changes)

    def test_edit_keeps_balance_rule(self):
        lines = self.rent_lines("40000")
        lines[1]["credit"] = Decimal("1")
        with self.assertRaises(ValidationError):
            update_entry(self.draft.pk, self.accountant, {"lines": lines})
        self.assertEqual(self.draft.lines.count(), 2)

    def test_rate_alone_renormalizes_stored_lines(self):
        entry = update_entry(self.draft.pk, self.accountant, {"exchange_rate": "1.5"})
        entry.refresh_from_db()
        self.assertEqual(entry.exchange_rate, Decimal("1.5"))
        self.assertEqual(entry.total_debit, Decimal("67500.00"))
        self.assertEqual(entry.total_credit, Decimal("67500.00"))
        for line in entry.lines.all():
            self.assertEqual(line.exchange_rate, Decimal("1.5"))
            self.assertEqual(line.debit_base + line.credit_base, Decimal("67500.00"))
            self.assertEqual(line.debit + line.credit, Decimal("45000.00"))
        log = AuditLog.objects.filter(action="edit").get()
        self.assertEqual(log.changes["exchange_rate"], "1.5")

    def test_invalid_rate_alone_is_rejected(self):
        with self.assertRaises(ValidationError):
            update_entry(self.draft.pk, self.accountant, {"exchange_rate": "0"})
        self.draft.refresh_from_db()
        self.assertEqual(self.draft.exchange_rate, Decimal("1"))

    def test_accountant_cannot_edit_pending_entry(self):
        transition(self.draft.pk, "submit", self.accountant)
        with self.assertRaises(ForbiddenError):
            update_entry(self.draft.pk, self.accountant, {"description": "x"})

    def test_owner_can_edit_until_approval(self):
        transition(self.draft.pk, "submit", self.accountant)
        transition(self.draft.pk, "verify", self.manager)
        update_entry(self.draft.pk, self.owner, {"reference": "R-1"})
        self.draft.refresh_from_db()
        self.assertEqual(self.draft.reference, "R-1")

        transition(self.draft.pk, "approve", self.owner)
        with self.assertRaises(ForbiddenError):
            update_entry(self.draft.pk, self.owner, {"reference": "R-2"})

    def test_manager_cannot_edit(self):
        with self.assertRaises(ForbiddenError):
            update_entry(self.draft.pk, self.manager, {"description": "x"})

    def test_delete_draft(self):
        delete_entry(self.draft.pk, self.accountant)
        self.assertFalse(JournalEntry.objects.filter(pk=self.draft.pk).exists())
        self.assertTrue(AuditLog.objects.filter(action="delete").exists())

    def test_delete_pending_entry_is_forbidden(self):
        transition(self.draft.pk, "submit", self.accountant)
        with self.assertRaises(ForbiddenError):
            delete_entry(self.draft.pk, self.owner)
        self.assertTrue(JournalEntry.objects.filter(pk=self.draft.pk).exists())


# ----------------------------------------------
# Capability table
# ----------------------------------------------
ROLES = ["owner", "admin", "manager", "accountant", "user"]


@pytest.mark.parametrize(
    "role,action,status,allowed",
    [
        ("accountant", "submit", "DRAFT", True),
        ("accountant", "submit", "REJECTED", True),
        ("user", "submit", "DRAFT", False),
        ("manager", "submit", "DRAFT", False),
        ("manager", "verify", "PENDING_VERIFICATION", True),
        ("manager", "verify", "DRAFT", False),
        ("accountant", "verify", "PENDING_VERIFICATION", False),
        ("manager", "reject", "VERIFIED", True),
        ("manager", "reject", "PENDING_APPROVAL", True),
        ("manager", "reject", "APPROVED", False),
        ("accountant", "retrieve", "REJECTED", True),
        ("manager", "retrieve", "REJECTED", False),
        ("owner", "approve", "VERIFIED", True),
        ("admin", "approve", "PENDING_APPROVAL", True),
        ("owner", "approve", "PENDING_VERIFICATION", False),
        ("owner", "approve", "APPROVED", False),
        ("manager", "approve", "VERIFIED", False),
        ("accountant", "approve", "VERIFIED", False),
    ],
)
def test_capability_table(role, action, status, allowed):
    granted = status in CAPABILITIES.get((role, action), ())
    assert granted is allowed


def test_nothing_leaves_approved():
    for (role, action), statuses in CAPABILITIES.items():
        assert EntryStatus.APPROVED not in statuses, (role, action)


def test_every_transition_has_a_target_status():
    assert set(TRANSITIONS.values()) <= set(EntryStatus.values)
    assert EntryStatus.PENDING_APPROVAL not in TRANSITIONS.values()


@pytest.mark.django_db
@pytest.mark.parametrize("role", ROLES)
def test_create_starting_status_by_role(role):
    company = make_company()
    actor = make_actor(company, role)
    cash = company.accounts.get(code="1000")
    rent = company.accounts.get(code="5000")
    entry = create_entry(company, actor, {
        "date": "2024-01-15",
        "lines": [
            {"account": rent.pk, "debit": "10", "credit": "0"},
            {"account": cash.pk, "debit": "0", "credit": "10"},
        ],
    })
    expected = (
        EntryStatus.DRAFT if role in ("manager", "user")
        else EntryStatus.PENDING_VERIFICATION
    )
    assert entry.status == expected
