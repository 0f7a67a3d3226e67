import datetime
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from ..managers import TenantManager
from ..utils import ensure_same_organization, money, next_document_number, yearly_prefix
from .account import Account
from .journal import JournalEntry
from .organization import Organization
from .vendor import Vendor

BILL_STATUS_CHOICES = [
    ("draft", "Draft"),                    # editable, no ledger impact
    ("submitted", "Submitted"),            # waiting for approval
    ("approved", "Approved"),              # posted to the ledger, payable
    ("partially_paid", "Partially paid"),
    ("paid", "Paid"),
    ("overdue", "Overdue"),                # past due_date with a balance
    ("cancelled", "Cancelled"),            # abandoned before posting
    ("voided", "Voided"),                  # reversed after posting
]

# Allowed status moves; anything else is rejected
BILL_TRANSITIONS = {
    "draft": ["submitted", "cancelled"],
    "submitted": ["approved", "draft", "cancelled"],
    "approved": ["partially_paid", "paid", "overdue", "voided"],
    "partially_paid": ["paid", "overdue"],
    "overdue": ["partially_paid", "paid", "voided"],
    "paid": [],
    "cancelled": [],
    "voided": [],
}

# Statuses that can receive payments
PAYABLE_STATUSES = ("approved", "partially_paid", "overdue")

PAYMENT_TERMS_CHOICES = [
    ("due_on_receipt", "Due on receipt"),
    ("net_15", "Net 15"),
    ("net_30", "Net 30"),
    ("net_60", "Net 60"),
    ("net_90", "Net 90"),
]

PAYMENT_TERMS_DAYS = {
    "due_on_receipt": 0,
    "net_15": 15,
    "net_30": 30,
    "net_60": 60,
    "net_90": 90,
}


def compute_due_date(bill_date, payment_terms):
    """Due date = bill date + the payment-terms offset."""
    if payment_terms not in PAYMENT_TERMS_DAYS:
        raise ValidationError(f"Unknown payment terms: {payment_terms}")
    return bill_date + datetime.timedelta(days=PAYMENT_TERMS_DAYS[payment_terms])


def terms_for_days(days):
    """Map a vendor's day count to a payment-terms code, net_30 when none fits."""
    for code, offset in PAYMENT_TERMS_DAYS.items():
        if offset == days:
            return code
    return "net_30"


# ---------- Bill (AP) ----------
class Bill(models.Model):
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    # BILL-2025-0001
    bill_number = models.CharField(max_length=30, blank=True)
    vendor = models.ForeignKey(Vendor, on_delete=models.PROTECT, related_name="bills")
    # the vendor's own invoice number
    vendor_reference = models.CharField(max_length=100, blank=True)
    bill_date = models.DateField()
    payment_terms = models.CharField(
        max_length=20, choices=PAYMENT_TERMS_CHOICES, default="net_30"
    )
    due_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=BILL_STATUS_CHOICES, default="draft")
    currency_code = models.CharField(max_length=3, default="USD")

    # Totals (kept in sync by recalc_totals)
    subtotal = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    tax_amount = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    # withheld at source, paid to the tax authority instead of the vendor
    wht_amount = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    amount_paid = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    amount_due = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))

    notes = models.TextField(blank=True)
    journal_entry = models.ForeignKey(
        JournalEntry, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("-bill_date", "-id")
        indexes = [
            models.Index(fields=["organization", "status"]),
            models.Index(fields=["organization", "vendor"]),
            models.Index(fields=["organization", "due_date"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "bill_number"], name="uq_org_bill_number"
            )
        ]

    def __str__(self):
        return f"{self.bill_number} {self.vendor.company_name} {self.total}"

    @property
    def net_payable(self):
        return self.total - self.wht_amount

    @property
    def is_overdue(self):
        return (
            self.status in PAYABLE_STATUSES
            and self.due_date is not None
            and self.due_date < timezone.localdate()
            and self.amount_due > 0
        )

    def recalc_totals(self):
        """
        subtotal = Σ qty × unit price
        tax      = Σ item tax
        total    = subtotal + tax
        due      = total − withholding − paid
        """
        subtotal = Decimal("0.00")
        tax = Decimal("0.00")
        wht = Decimal("0.00")
        if self.pk:
            for item in self.items.prefetch_related("tax_lines"):
                subtotal += item.net_amount
                tax += item.tax_amount
                wht += sum(
                    (tl.tax_amount for tl in item.tax_lines.all() if tl.is_withholding),
                    Decimal("0.00"),
                )
            paid = self.payment_allocations.aggregate(s=models.Sum("amount"))["s"]
        else:
            paid = None
        self.subtotal = money(subtotal)
        self.tax_amount = money(tax)
        self.total = money(subtotal + tax)
        self.wht_amount = money(wht)
        self.amount_paid = money(paid or 0)
        self.amount_due = max(money(self.total - self.wht_amount - self.amount_paid), Decimal("0.00"))
        return self.total

    def transition_to(self, new_status):
        if new_status not in BILL_TRANSITIONS.get(self.status, []):
            raise ValidationError(f"Cannot go from {self.status} to {new_status}")
        if new_status == "voided" and self.payment_allocations.exists():
            raise ValidationError("Cannot void a bill with applied payments.")
        self.status = new_status
        self.save(update_fields=["status", "updated_at"])
        return self

    def clean(self):
        ensure_same_organization(self, "vendor")
        if self.due_date and self.bill_date and self.due_date < self.bill_date:
            raise ValidationError({"due_date": "Due date cannot be before the bill date"})
        if self.amount_paid > self.total:
            raise ValidationError("Amount paid cannot exceed the bill total")

        # Enforce immutability once a bill is settled or closed out
        if self.pk:
            orig = Bill.objects.filter(pk=self.pk).first()
            if orig and orig.status in ("paid", "cancelled", "voided"):
                for f in ("vendor_id", "bill_date", "due_date", "total", "amount_paid", "status"):
                    if getattr(orig, f) != getattr(self, f):
                        raise ValidationError(f"Cannot modify a {orig.status} bill.")

    def save(self, *args, **kwargs):
        if not self.bill_number:
            self.bill_number = next_document_number(
                Bill, self.organization, "bill_number",
                yearly_prefix("BILL", self.bill_date), 4,
            )
        if not self.due_date and self.bill_date:
            bill_date = self.bill_date
            if isinstance(bill_date, str):
                bill_date = datetime.date.fromisoformat(bill_date)
            self.due_date = compute_due_date(bill_date, self.payment_terms)
        self.full_clean()
        return super().save(*args, **kwargs)


class BillItem(models.Model):
    bill = models.ForeignKey(Bill, on_delete=models.CASCADE, related_name="items")
    description = models.CharField(max_length=255)
    quantity = models.DecimalField(max_digits=18, decimal_places=4, default=Decimal("1"))
    unit_price = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    # expense (or asset) account debited when the bill is approved
    account = models.ForeignKey(Account, on_delete=models.PROTECT, related_name="bill_items")
    tax_amount = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    # qty × unit price + tax, recomputed on save
    line_total = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))

    class Meta:
        ordering = ("id",)

    def __str__(self):
        return f"{self.description} x{self.quantity}"

    @property
    def organization_id(self):
        return self.bill.organization_id

    @property
    def net_amount(self):
        return money(self.quantity * self.unit_price)

    def clean(self):
        if not (self.description or "").strip():
            raise ValidationError({"description": "Item description is required"})
        if self.quantity is None or self.quantity <= 0:
            raise ValidationError({"quantity": "Quantity must be greater than 0"})
        if self.unit_price is None or self.unit_price < 0:
            raise ValidationError({"unit_price": "Unit price cannot be negative"})
        if self.tax_amount is None or self.tax_amount < 0:
            raise ValidationError({"tax_amount": "Tax amount cannot be negative"})
        if self.account_id:
            ensure_same_organization(self, "account")
            if not self.account.is_active:
                raise ValidationError({"account": "Account is inactive"})

    def save(self, *args, **kwargs):
        self.line_total = money(self.net_amount + (self.tax_amount or 0))
        self.full_clean()
        return super().save(*args, **kwargs)


class BillTaxLine(models.Model):
    """
    One tax applied to one bill item.
    Withholding lines reduce what the vendor is paid;
    the rest add to the item's tax.
    """

    item = models.ForeignKey(BillItem, on_delete=models.CASCADE, related_name="tax_lines")
    tax_type = models.CharField(max_length=30)  # VAT, EXCISE, WHT ...
    rate = models.DecimalField(max_digits=7, decimal_places=4)  # percent
    base_amount = models.DecimalField(max_digits=18, decimal_places=2, null=True, blank=True)
    tax_amount = models.DecimalField(max_digits=18, decimal_places=2, null=True, blank=True)
    # compound taxes are charged on net + earlier taxes
    is_compound = models.BooleanField(default=False)
    compound_sequence = models.PositiveSmallIntegerField(default=0)
    is_withholding = models.BooleanField(default=False)

    class Meta:
        ordering = ("compound_sequence", "id")

    def __str__(self):
        return f"{self.tax_type} {self.rate}%"

    def default_base(self):
        base = self.item.net_amount
        if self.is_compound:
            # stack on top of the non-withholding taxes sequenced before this one
            earlier = self.item.tax_lines.filter(
                is_withholding=False, compound_sequence__lt=self.compound_sequence
            )
            if self.pk:
                earlier = earlier.exclude(pk=self.pk)
            base += sum((tl.tax_amount or 0 for tl in earlier), Decimal("0.00"))
        return money(base)

    def clean(self):
        if self.rate is None or self.rate < 0:
            raise ValidationError({"rate": "Tax rate cannot be negative"})
        if self.tax_amount is not None and self.tax_amount < 0:
            raise ValidationError({"tax_amount": "Tax amount cannot be negative"})

    def save(self, *args, **kwargs):
        if self.base_amount is None:
            self.base_amount = self.default_base()
        if self.tax_amount is None:
            self.tax_amount = money(self.base_amount * self.rate / Decimal("100"))
        self.full_clean()
        return super().save(*args, **kwargs)
