import datetime
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TransactionTestCase

from ..models import Bill, Payment, PaymentAllocation
from ..services.payment import payment_stats, record_payment
from .factories import TestDataFactory


class RecordPaymentTests(TransactionTestCase):
    reset_sequences = True

    def setUp(self):
        self.f = TestDataFactory()
        self.org = self.f.organization
        self.user = self.f.member("payer", role="accountant")
        self.vendor = self.f.vendor()

        # two approved bills with outstanding amounts
        self.bill1 = self.f.bill(vendor=self.vendor, amounts=("200.00",), status="approved")
        self.bill2 = self.f.bill(vendor=self.vendor, amounts=("150.00",), status="approved")

    def pay(self, amount, allocations, **extra):
        data = {
            "vendor": self.vendor,
            "payment_date": datetime.date(2025, 9, 20),
            "amount": Decimal(amount),
            "payment_method": "bank_transfer",
            "bank_account": self.f.bank,
            "allocations": [{"bill": bill, "amount": Decimal(a)} for bill, a in allocations],
        }
        data.update(extra)
        return record_payment(self.org, self.user, data)

    def test_partial_then_full_payment(self):
        payment = self.pay("50.00", [(self.bill1, "50.00")])
        self.bill1.refresh_from_db()
        self.assertEqual(payment.payment_number, "PAY-2025-0001")
        self.assertEqual(self.bill1.status, "partially_paid")
        self.assertEqual(self.bill1.amount_paid, Decimal("50.00"))
        self.assertEqual(self.bill1.amount_due, Decimal("150.00"))

        self.pay("150.00", [(self.bill1, "150.00")])
        self.bill1.refresh_from_db()
        self.assertEqual(self.bill1.status, "paid")
        self.assertEqual(self.bill1.amount_due, Decimal("0.00"))

    def test_payment_spanning_two_bills_posts_one_journal(self):
        payment = self.pay("350.00", [(self.bill1, "200.00"), (self.bill2, "150.00")])
        self.assertEqual(payment.allocated_total(), Decimal("350.00"))
        je = payment.journal_entry
        self.assertEqual(je.status, "posted")
        self.assertEqual(je.lines.get(account=self.f.payable).debit, Decimal("350.00"))
        self.assertEqual(je.lines.get(account=self.f.bank).credit, Decimal("350.00"))
        self.assertEqual(
            set(Bill.objects.filter(pk__in=[self.bill1.pk, self.bill2.pk]).values_list("status", flat=True)),
            {"paid"},
        )

    def test_prevent_over_apply(self):
        """
        Allocating more than a bill's amount due raises and
        no allocation or payment rows are persisted.
        """
        with self.assertRaises(ValidationError):
            self.pay("250.00", [(self.bill1, "250.00")])

        self.assertEqual(PaymentAllocation.objects.count(), 0)
        self.assertEqual(Payment.objects.count(), 0)
        self.bill1.refresh_from_db()
        self.assertEqual(self.bill1.amount_due, Decimal("200.00"))

    def test_repeated_bill_allocations_add_up(self):
        # 120 + 100 on a 200 bill is an over-apply even though each fits
        with self.assertRaises(ValidationError):
            self.pay("220.00", [(self.bill1, "120.00"), (self.bill1, "100.00")])
        self.assertEqual(PaymentAllocation.objects.count(), 0)

    def test_allocations_must_match_amount(self):
        with self.assertRaises(ValidationError):
            self.pay("100.00", [(self.bill1, "60.00")])

    def test_one_cent_tolerance(self):
        payment = self.pay("60.01", [(self.bill1, "60.00")])
        self.assertEqual(payment.amount, Decimal("60.01"))

    def test_ap_debit_matches_amount_applied_to_bills(self):
        payment = self.pay("200.01", [(self.bill1, "200.00")])
        self.bill1.refresh_from_db()
        self.assertEqual(self.bill1.status, "paid")
        self.assertEqual(self.bill1.amount_due, Decimal("0.00"))

        lines = payment.journal_entry.lines
        self.assertEqual(lines.get(account=self.f.payable).debit, payment.allocated_total())
        self.assertEqual(lines.get(account=self.f.bank).credit, Decimal("200.01"))
        # the stray cent goes to the rounding account
        self.assertEqual(lines.get(account=self.f.expense).debit, Decimal("0.01"))

    def test_underpaid_cent_credits_rounding_account(self):
        payment = self.pay("149.99", [(self.bill2, "150.00")])
        lines = payment.journal_entry.lines
        self.assertEqual(lines.get(account=self.f.payable).debit, Decimal("150.00"))
        self.assertEqual(lines.get(account=self.f.bank).credit, Decimal("149.99"))
        self.assertEqual(lines.get(account=self.f.expense).credit, Decimal("0.01"))

    def test_draft_bill_cannot_be_paid(self):
        draft = self.f.bill(vendor=self.vendor, amounts=("80.00",))
        with self.assertRaises(ValidationError):
            self.pay("80.00", [(draft, "80.00")])

    def test_other_vendor_bill_rejected(self):
        other_vendor = self.f.vendor(name="Initech")
        other_bill = self.f.bill(vendor=other_vendor, amounts=("80.00",), status="approved")
        with self.assertRaises(ValidationError):
            self.pay("80.00", [(other_bill, "80.00")])

    def test_atomicity_when_posting_fails(self):
        """If the AP account is missing the whole payment rolls back."""
        self.f.payable.is_active = False
        self.f.payable.save()
        with self.assertRaises(ValidationError):
            self.pay("50.00", [(self.bill1, "50.00")])
        self.assertEqual(Payment.objects.count(), 0)
        self.bill1.refresh_from_db()
        self.assertEqual(self.bill1.status, "approved")
        self.assertEqual(self.bill1.amount_paid, Decimal("0.00"))

    def test_paid_bill_cannot_be_voided(self):
        self.pay("200.00", [(self.bill1, "200.00")])
        self.bill1.refresh_from_db()
        with self.assertRaises(ValidationError):
            self.bill1.transition_to("voided")

    def test_payment_stats_by_method(self):
        self.pay("50.00", [(self.bill1, "50.00")])
        self.pay("20.00", [(self.bill2, "20.00")], payment_method="check")
        stats = payment_stats(Payment.objects.for_organization(self.org))
        self.assertEqual(stats["count"], 2)
        self.assertEqual(stats["total_amount"], Decimal("70.00"))
        self.assertEqual(stats["by_method"]["check"]["count"], 1)
