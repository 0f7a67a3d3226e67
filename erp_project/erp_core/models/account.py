from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .organization import Organization

# Choice Lists
ACCOUNT_TYPES = [
    ("asset", "Asset"),
    ("liability", "Liability"),
    ("equity", "Equity"),
    ("revenue", "Revenue"),
    ("expense", "Expense"),
]

# Types that increase on the debit side; everything else is credit-normal
DEBIT_NORMAL_TYPES = ("asset", "expense")


class Account(models.Model):
    """
    Ledger account in the Chart of Accounts.
    - code is unique per organization
    - account_type decides balance sheet vs P&L
    """

    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    # Codes group accounts in reports: 1xxx assets, 2xxx liabilities ...
    code = models.CharField(max_length=32)
    name = models.CharField(max_length=200)
    account_type = models.CharField(max_length=10, choices=ACCOUNT_TYPES)
    description = models.TextField(blank=True)
    # Optional hierarchy (e.g. 1000 Cash, 1010 Petty Cash)
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        # can't delete a parent while children exist
        on_delete=models.PROTECT,
        related_name="children",
    )
    # soft deactivate: hide from pickers, stop new postings, keep history
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("code",)
        indexes = [
            models.Index(fields=["organization", "account_type"]),
            models.Index(fields=["organization", "code"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "code"], name="uq_org_account_code"
            )
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    @property
    def normal_balance(self):
        return "debit" if self.account_type in DEBIT_NORMAL_TYPES else "credit"

    def is_used(self):
        return self.journal_lines.exists()

    def clean(self):
        if self.parent_id:
            if self.parent.organization_id != self.organization_id:
                raise ValidationError(
                    "Parent & child accounts must belong to the same organization"
                )
            if self.pk and self.parent_id == self.pk:
                raise ValidationError("An account cannot be its own parent")

    def save(self, *args, **kwargs):
        # Can't disable an account that journal lines already reference
        if self.pk:
            old = Account.objects.filter(pk=self.pk).first()
            if old and old.is_active and not self.is_active and self.is_used():
                raise ValidationError(
                    "Cannot disable an account that is used in journal lines."
                )
        self.full_clean()
        return super().save(*args, **kwargs)
