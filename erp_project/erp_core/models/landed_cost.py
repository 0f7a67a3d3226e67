from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from ..managers import TenantManager
from ..utils import ensure_same_organization, money, next_document_number, yearly_prefix
from .inventory import Product
from .journal import JournalEntry
from .organization import Organization

ALLOCATION_METHODS = [
    ("by_value", "By value"),
    ("by_weight", "By weight"),
    ("by_volume", "By volume"),
    ("by_quantity", "By quantity"),
    ("manual", "Manual"),
]

LANDED_COST_STATUS = [
    ("draft", "Draft"),
    ("allocated", "Allocated"),  # spread across the receipt lines
    ("posted", "Posted"),        # GL entry written, product costs moved
]

# The cost buckets that make up a landed cost, in display order
COST_COMPONENT_FIELDS = (
    "freight",
    "insurance",
    "customs_duty",
    "handling",
    "clearing_agent",
    "storage",
    "other",
)


# ---------- Landed cost ----------
class LandedCost(models.Model):
    """Freight, duty and the like, spread over the goods they brought in."""

    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    # LC-2025-0001
    landed_cost_number = models.CharField(max_length=30, blank=True)
    # receipt / shipment the costs belong to
    reference = models.CharField(max_length=100, blank=True)
    cost_date = models.DateField(default=timezone.localdate)
    allocation_method = models.CharField(max_length=20, choices=ALLOCATION_METHODS)

    freight = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    insurance = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    customs_duty = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    handling = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    clearing_agent = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    storage = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    other = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))

    currency_code = models.CharField(max_length=3, default="USD")
    # converts component currency → organization base currency
    exchange_rate = models.DecimalField(max_digits=18, decimal_places=6, default=Decimal("1"))
    # Σ components (× exchange rate for foreign currency), in base currency
    total_cost = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    status = models.CharField(max_length=20, choices=LANDED_COST_STATUS, default="draft")
    journal_entry = models.ForeignKey(
        JournalEntry, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL
    )
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("-cost_date", "-id")
        indexes = [models.Index(fields=["organization", "status"])]
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "landed_cost_number"], name="uq_org_landed_cost_number"
            )
        ]

    def __str__(self):
        return f"{self.landed_cost_number} {self.total_cost}"

    def components(self):
        return {name: getattr(self, name) or Decimal("0.00") for name in COST_COMPONENT_FIELDS}

    def compute_total(self):
        total = sum(self.components().values(), Decimal("0.00"))
        # foreign currency costs are converted at the captured rate
        if self.currency_code and self.currency_code != self.organization.base_currency:
            total = total * self.exchange_rate
        self.total_cost = money(total)
        return self.total_cost

    def clean(self):
        for name, value in self.components().items():
            if value < 0:
                raise ValidationError({name: "Cost components cannot be negative"})
        if self.exchange_rate is not None and self.exchange_rate <= 0:
            raise ValidationError({"exchange_rate": "Exchange rate must be greater than 0"})

    def save(self, *args, **kwargs):
        if not self.landed_cost_number:
            self.landed_cost_number = next_document_number(
                LandedCost, self.organization, "landed_cost_number",
                yearly_prefix("LC", self.cost_date), 4,
            )
        if self.currency_code:
            self.currency_code = self.currency_code.upper()
        self.compute_total()
        self.full_clean()
        return super().save(*args, **kwargs)


class LandedCostAllocation(models.Model):
    """Share of a landed cost carried by one received product line."""

    landed_cost = models.ForeignKey(
        LandedCost, on_delete=models.CASCADE, related_name="allocations"
    )
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="landed_costs")
    quantity = models.DecimalField(max_digits=18, decimal_places=4)
    # product cost before the landed cost
    unit_cost = models.DecimalField(max_digits=18, decimal_places=4)
    # line totals (per-unit measure × quantity) used by by_weight / by_volume
    weight = models.DecimalField(max_digits=18, decimal_places=4, default=Decimal("0"))
    volume = models.DecimalField(max_digits=18, decimal_places=4, default=Decimal("0"))
    allocated_amount = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    # unit_cost + allocated / quantity
    new_unit_cost = models.DecimalField(max_digits=18, decimal_places=4, default=Decimal("0"))
    cost_increase_percent = models.DecimalField(
        max_digits=9, decimal_places=2, default=Decimal("0.00")
    )

    class Meta:
        ordering = ("id",)

    def __str__(self):
        return f"{self.product.sku}: {self.allocated_amount}"

    @property
    def organization_id(self):
        return self.landed_cost.organization_id

    @property
    def product_cost(self):
        return money(self.quantity * self.unit_cost)

    def clean(self):
        ensure_same_organization(self, "product")
        if self.quantity is not None and self.quantity <= 0:
            raise ValidationError({"quantity": "Quantity must be greater than 0"})
        if self.unit_cost is not None and self.unit_cost < 0:
            raise ValidationError({"unit_cost": "Unit cost cannot be negative"})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
