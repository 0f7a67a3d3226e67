from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from ..utils import ensure_same_organization, next_document_number, yearly_prefix
from .account import Account
from .bill import Bill
from .journal import JournalEntry
from .organization import Organization
from .vendor import Vendor

PAYMENT_METHODS = [
    ("cash", "Cash"),
    ("check", "Check"),
    ("bank_transfer", "Bank transfer"),
    ("credit_card", "Credit card"),
    ("debit_card", "Debit card"),
    ("online_payment", "Online payment"),
    ("other", "Other"),
]

# Allocations may differ from the payment amount by at most this much
ALLOCATION_TOLERANCE = Decimal("0.01")


# ---------- Vendor payment ----------
class Payment(models.Model):
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    # PAY-2025-0001
    payment_number = models.CharField(max_length=30, blank=True)
    vendor = models.ForeignKey(Vendor, on_delete=models.PROTECT, related_name="payments")
    payment_date = models.DateField()
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHODS)
    # asset account the money leaves from (credited on posting)
    bank_account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="vendor_payments"
    )
    reference_number = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    journal_entry = models.ForeignKey(
        JournalEntry, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL
    )
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("-payment_date", "-id")
        indexes = [
            models.Index(fields=["organization", "payment_date"]),
            models.Index(fields=["organization", "vendor"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "payment_number"], name="uq_org_payment_number"
            ),
            models.CheckConstraint(condition=models.Q(amount__gt=0), name="ck_payment_amount_pos"),
        ]

    def __str__(self):
        return f"{self.payment_number} {self.amount}"

    def allocated_total(self):
        return self.allocations.aggregate(s=models.Sum("amount"))["s"] or Decimal("0.00")

    def clean(self):
        ensure_same_organization(self, "vendor", "bank_account")
        if self.amount is not None and self.amount <= 0:
            raise ValidationError({"amount": "Payment amount must be greater than 0"})
        if self.bank_account_id and self.bank_account.account_type != "asset":
            raise ValidationError({"bank_account": "Payments must come from an asset account"})

    def save(self, *args, **kwargs):
        if not self.payment_number:
            self.payment_number = next_document_number(
                Payment, self.organization, "payment_number",
                yearly_prefix("PAY", self.payment_date), 4,
            )
        self.full_clean()
        return super().save(*args, **kwargs)


class PaymentAllocation(models.Model):
    """ This much of the payment settles this bill """

    payment = models.ForeignKey(Payment, on_delete=models.CASCADE, related_name="allocations")
    bill = models.ForeignKey(Bill, on_delete=models.PROTECT, related_name="payment_allocations")
    amount = models.DecimalField(max_digits=18, decimal_places=2)

    class Meta:
        constraints = [
            models.CheckConstraint(condition=models.Q(amount__gt=0), name="ck_allocation_amount_pos"),
        ]

    def __str__(self):
        return f"{self.payment.payment_number} → {self.bill.bill_number}: {self.amount}"

    def clean(self):
        if self.amount is not None and self.amount <= 0:
            raise ValidationError({"amount": "Allocation amount must be greater than 0"})
        if self.bill_id and self.payment_id:
            if self.bill.organization_id != self.payment.organization_id:
                raise ValidationError("Payment and bill must belong to the same organization")
            if self.bill.vendor_id != self.payment.vendor_id:
                raise ValidationError("Bill belongs to a different vendor")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
