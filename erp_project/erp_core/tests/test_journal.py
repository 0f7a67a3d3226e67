import datetime
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db.models.deletion import ProtectedError
from django.test import TestCase

from erp_core.models import JournalEntry, JournalLine
from erp_core.services.posting import (create_posted_journal,
                                       post_journal_entry)

from ..exceptions import AlreadyPostedDifferentPayload, UnbalancedJournalError
from .factories import TestDataFactory

""" Success tests """
class JournalEntrySuccessTests(TestCase):

    def setUp(self):
        self.f = TestDataFactory()
        self.org = self.f.organization
        self.je = JournalEntry.objects.create(
            organization=self.org, date=datetime.date(2025, 9, 15), description="Cash sale"
        )
        # Arrange: create a balanced journal entry
        JournalLine.objects.create(journal=self.je, account=self.f.bank, debit=Decimal("100.00"))
        JournalLine.objects.create(journal=self.je, account=self.f.expense, credit=Decimal("100.00"))

    def test_balanced_entry_posts_successfully(self):
        self.je.post()
        self.je.refresh_from_db()
        self.assertEqual(self.je.status, "posted")
        self.assertIsNotNone(self.je.posted_at)
        self.assertTrue(self.je.posting_fingerprint)

    def test_entry_number_is_sequential_per_year(self):
        second = JournalEntry.objects.create(organization=self.org, date=datetime.date(2025, 10, 1))
        self.assertEqual(self.je.entry_number, "JE-2025-0001")
        self.assertEqual(second.entry_number, "JE-2025-0002")

    """ Test for Idempotency
          Posting the same payload twice is a no-op.
    """
    def test_posting_twice_is_idempotent(self):
        self.je.post()
        first = JournalEntry.objects.get(pk=self.je.pk)
        self.je.post()
        again = JournalEntry.objects.get(pk=self.je.pk)
        self.assertEqual(first.posted_at, again.posted_at)
        self.assertEqual(again.lines.count(), 2)

    def test_post_journal_entry_service_locks_and_posts(self):
        je = post_journal_entry(self.je.pk)
        self.assertEqual(je.status, "posted")

    def test_void_posted_entry(self):
        self.je.post()
        self.je.void()
        self.je.refresh_from_db()
        self.assertEqual(self.je.status, "voided")


""" Failure tests """
class JournalEntryFailureTests(TestCase):

    def setUp(self):
        self.f = TestDataFactory()
        self.org = self.f.organization

    def make_entry(self, *lines):
        je = JournalEntry.objects.create(organization=self.org, date=datetime.date(2025, 9, 15))
        for account, debit, credit in lines:
            JournalLine.objects.create(
                journal=je, account=account, debit=Decimal(debit), credit=Decimal(credit)
            )
        return je

    def test_unbalanced_entry_raises(self):
        je = self.make_entry((self.f.bank, "100.00", "0"), (self.f.expense, "0", "90.00"))
        with self.assertRaises(UnbalancedJournalError):
            je.post()
        je.refresh_from_db()
        self.assertEqual(je.status, "draft")

    def test_single_line_entry_cannot_post(self):
        je = self.make_entry((self.f.bank, "100.00", "0"))
        with self.assertRaises(ValidationError):
            je.post()

    def test_line_needs_exactly_one_side(self):
        je = self.make_entry()
        with self.assertRaises(ValidationError):
            JournalLine.objects.create(
                journal=je, account=self.f.bank, debit=Decimal("10.00"), credit=Decimal("10.00")
            )
        with self.assertRaises(ValidationError):
            JournalLine.objects.create(journal=je, account=self.f.bank)

    def test_line_account_must_share_organization(self):
        other = TestDataFactory(name="Other Co")
        je = self.make_entry()
        with self.assertRaises(ValidationError):
            JournalLine.objects.create(journal=je, account=other.bank, debit=Decimal("5.00"))

    def test_repost_with_different_payload_raises(self):
        je = self.make_entry((self.f.bank, "100.00", "0"), (self.f.expense, "0", "100.00"))
        je.post()
        # tamper with a posted line behind the model's back
        JournalLine.objects.filter(journal=je, debit__gt=0).update(description="edited")
        with self.assertRaises(AlreadyPostedDifferentPayload):
            je.post()

    def test_no_lines_added_after_posting(self):
        je = self.make_entry((self.f.bank, "100.00", "0"), (self.f.expense, "0", "100.00"))
        je.post()
        with self.assertRaises(ValidationError):
            JournalLine.objects.create(journal=je, account=self.f.bank, debit=Decimal("1.00"))

    def test_posted_entry_is_immutable(self):
        je = self.make_entry((self.f.bank, "100.00", "0"), (self.f.expense, "0", "100.00"))
        je.post()
        je.description = "changed"
        with self.assertRaises(ValidationError):
            je.save()

    def test_used_account_cannot_be_deleted(self):
        je = self.make_entry((self.f.bank, "100.00", "0"), (self.f.expense, "0", "100.00"))
        je.post()
        self.assertTrue(self.f.bank.is_used())
        with self.assertRaises((ValidationError, ProtectedError)):
            self.f.bank.delete()


class CreatePostedJournalTests(TestCase):

    def setUp(self):
        self.f = TestDataFactory()

    def test_zero_lines_are_dropped_and_rest_posts(self):
        je = create_posted_journal(
            organization=self.f.organization,
            date=datetime.date(2025, 9, 1),
            description="Rent",
            lines=[
                (self.f.expense, Decimal("250.00"), 0, "Rent"),
                (self.f.bank, 0, Decimal("250.00"), "Rent"),
                (self.f.inventory, 0, 0, "nothing"),
            ],
            source_type="manual",
        )
        self.assertEqual(je.status, "posted")
        self.assertEqual(je.lines.count(), 2)
        self.assertEqual(je.compute_totals(), (Decimal("250.00"), Decimal("250.00")))

    def test_unbalanced_lines_roll_back_everything(self):
        with self.assertRaises(UnbalancedJournalError):
            create_posted_journal(
                organization=self.f.organization,
                date=datetime.date(2025, 9, 1),
                description="Broken",
                lines=[
                    (self.f.expense, Decimal("250.00"), 0, ""),
                    (self.f.bank, 0, Decimal("200.00"), ""),
                ],
            )
        self.assertFalse(JournalEntry.objects.for_organization(self.f.organization).exists())
