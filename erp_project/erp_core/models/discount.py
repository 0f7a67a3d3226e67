from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from ..managers import TenantManager
from ..utils import money, to_decimal
from .organization import Organization

DISCOUNT_TYPES = [
    ("percentage", "Percentage"),
    ("fixed_amount", "Fixed amount"),
]


# ---------- Discount (master data) ----------
class Discount(models.Model):
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    # stored upper-case, e.g. SUMMER10
    code = models.CharField(max_length=50)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    discount_type = models.CharField(max_length=20, choices=DISCOUNT_TYPES)
    # percent for percentage, currency amount for fixed_amount
    value = models.DecimalField(max_digits=18, decimal_places=2)
    min_purchase = models.DecimalField(max_digits=18, decimal_places=2, null=True, blank=True)
    # cap for percentage discounts
    max_discount = models.DecimalField(max_digits=18, decimal_places=2, null=True, blank=True)
    valid_from = models.DateField()
    valid_to = models.DateField()
    # NULL = unlimited
    usage_limit = models.PositiveIntegerField(null=True, blank=True)
    usage_count = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("-created_at", "-id")
        indexes = [models.Index(fields=["organization", "is_active"])]
        constraints = [
            models.UniqueConstraint(fields=["organization", "code"], name="uq_org_discount_code")
        ]

    def __str__(self):
        return f"{self.code} ({self.name})"

    def is_usable(self, on_date=None):
        on_date = on_date or timezone.localdate()
        if not self.is_active:
            return False
        if not (self.valid_from <= on_date <= self.valid_to):
            return False
        if self.usage_limit is not None and self.usage_count >= self.usage_limit:
            return False
        return True

    def calculate(self, amount):
        """Discount granted on a purchase of `amount`."""
        amount = to_decimal(amount, "amount")
        if self.min_purchase is not None and amount < self.min_purchase:
            return Decimal("0.00")
        if self.discount_type == "percentage":
            discount = amount * self.value / Decimal("100")
            if self.max_discount is not None:
                discount = min(discount, self.max_discount)
        else:
            discount = min(self.value, amount)
        return money(discount)

    def clean(self):
        if self.code:
            self.code = self.code.strip().upper()
        if self.value is not None:
            if self.value <= 0:
                raise ValidationError({"value": "Discount value must be greater than 0"})
            if self.discount_type == "percentage" and self.value > 100:
                raise ValidationError({"value": "Percentage discount cannot exceed 100"})
        if self.valid_from and self.valid_to and self.valid_to < self.valid_from:
            raise ValidationError({"valid_to": "valid_to must be on or after valid_from"})
        for field in ("min_purchase", "max_discount"):
            value = getattr(self, field)
            if value is not None and value < 0:
                raise ValidationError({field: "Cannot be negative"})

    def save(self, *args, **kwargs):
        if self.code:
            self.code = self.code.strip().upper()
        self.full_clean()
        return super().save(*args, **kwargs)
