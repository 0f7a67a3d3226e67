from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import EffectiveDateManager, TenantManager
from ..utils import (ensure_same_organization, money, next_document_number,
                     to_decimal, yearly_prefix)
from .inventory import Product, Warehouse
from .journal import JournalEntry
from .organization import Organization

COSTING_METHODS = [
    ("standard", "Standard"),
    ("fifo", "FIFO"),
    ("lifo", "LIFO"),
    ("weighted_average", "Weighted average"),
    ("specific_identification", "Specific identification"),
]


# ---------- Standard cost ----------
class StandardCost(models.Model):
    """Planned per-unit cost of a product, split into components."""

    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="standard_costs")
    costing_method = models.CharField(max_length=30, choices=COSTING_METHODS, default="standard")
    material_cost = models.DecimalField(max_digits=18, decimal_places=4, default=Decimal("0"))
    labor_cost = models.DecimalField(max_digits=18, decimal_places=4, default=Decimal("0"))
    overhead_cost = models.DecimalField(max_digits=18, decimal_places=4, default=Decimal("0"))
    # material + labor + overhead, recomputed on save
    total_cost = models.DecimalField(max_digits=18, decimal_places=4, default=Decimal("0"))
    effective_from = models.DateField()
    # NULL = open ended
    effective_to = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL
    )
    created_at = models.DateTimeField(auto_now_add=True)

    # tenant scoping + effective_on(date)
    objects = EffectiveDateManager()

    class Meta:
        ordering = ("-effective_from", "-id")
        indexes = [
            models.Index(fields=["organization", "product", "effective_from"]),
        ]

    def __str__(self):
        return f"{self.product.sku} {self.costing_method} {self.total_cost}"

    def clean(self):
        ensure_same_organization(self, "product")
        for field in ("material_cost", "labor_cost", "overhead_cost"):
            value = getattr(self, field)
            if value is not None and value < 0:
                raise ValidationError({field: "Cost components cannot be negative"})
        if self.effective_to and self.effective_from and self.effective_to < self.effective_from:
            raise ValidationError({"effective_to": "effective_to must be on or after effective_from"})

    def save(self, *args, **kwargs):
        self.total_cost = (
            to_decimal(self.material_cost or 0)
            + to_decimal(self.labor_cost or 0)
            + to_decimal(self.overhead_cost or 0)
        )
        self.full_clean()
        return super().save(*args, **kwargs)


# ---------- Cost revaluation ----------
REVALUATION_STATUS = [
    ("draft", "Draft"),
    ("pending_approval", "Pending approval"),
    ("approved", "Approved"),
    ("posted", "Posted"),        # GL entry written, product cost moved
    ("cancelled", "Cancelled"),
]

REVALUATION_TRANSITIONS = {
    "draft": ["pending_approval", "cancelled"],
    "pending_approval": ["approved", "cancelled"],
    "approved": ["posted", "cancelled"],
    "posted": [],
    "cancelled": [],
}


class CostRevaluation(models.Model):
    """Change of a product's carrying cost with its value impact."""

    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    # REV-2025-0001
    revaluation_number = models.CharField(max_length=30, blank=True)
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="revaluations")
    warehouse = models.ForeignKey(
        Warehouse, null=True, blank=True, on_delete=models.PROTECT, related_name="revaluations"
    )
    revaluation_date = models.DateField()
    reason = models.CharField(max_length=255)
    old_unit_cost = models.DecimalField(max_digits=18, decimal_places=4)
    new_unit_cost = models.DecimalField(max_digits=18, decimal_places=4)
    quantity = models.DecimalField(max_digits=18, decimal_places=4)
    # (new − old) × quantity
    value_difference = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    status = models.CharField(max_length=20, choices=REVALUATION_STATUS, default="pending_approval")
    journal_entry = models.ForeignKey(
        JournalEntry, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="approved_revaluations",
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="created_revaluations",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("-revaluation_date", "-id")
        indexes = [models.Index(fields=["organization", "status"])]
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "revaluation_number"], name="uq_org_revaluation_number"
            )
        ]

    def __str__(self):
        return f"{self.revaluation_number} {self.product.sku} {self.value_difference}"

    def transition_to(self, new_status):
        if new_status not in REVALUATION_TRANSITIONS.get(self.status, []):
            raise ValidationError(f"Cannot go from {self.status} to {new_status}")
        self.status = new_status

    def clean(self):
        ensure_same_organization(self, "product", "warehouse")
        if self.quantity is not None and self.quantity <= 0:
            raise ValidationError({"quantity": "Quantity must be greater than 0"})
        if self.new_unit_cost is not None and self.new_unit_cost < 0:
            raise ValidationError({"new_unit_cost": "New unit cost cannot be negative"})
        if self.old_unit_cost is not None and self.old_unit_cost < 0:
            raise ValidationError({"old_unit_cost": "Old unit cost cannot be negative"})

    def save(self, *args, **kwargs):
        if not self.revaluation_number:
            self.revaluation_number = next_document_number(
                CostRevaluation, self.organization, "revaluation_number",
                yearly_prefix("REV", self.revaluation_date), 4,
            )
        if None not in (self.new_unit_cost, self.old_unit_cost, self.quantity):
            self.value_difference = money(
                (to_decimal(self.new_unit_cost) - to_decimal(self.old_unit_cost)) * to_decimal(self.quantity)
            )
        self.full_clean()
        return super().save(*args, **kwargs)


# ---------- Cost variance ----------
VARIANCE_TYPES = [
    ("material_price", "Material price"),
    ("material_usage", "Material usage"),
    ("labor_rate", "Labor rate"),
    ("labor_efficiency", "Labor efficiency"),
    ("overhead_spending", "Overhead spending"),
    ("overhead_volume", "Overhead volume"),
    ("purchase_price", "Purchase price"),
    ("production", "Production"),
]

COST_COMPONENTS = ("material", "labor", "overhead")


class CostVariance(models.Model):
    """
    Actual vs standard unit cost for a quantity of product.
    component variance = (actual − standard) × quantity
    positive total = unfavorable (spent more than planned)
    """

    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="cost_variances")
    standard_cost = models.ForeignKey(
        StandardCost, null=True, blank=True, on_delete=models.SET_NULL, related_name="variances"
    )
    variance_type = models.CharField(max_length=30, choices=VARIANCE_TYPES)
    variance_date = models.DateField()
    quantity = models.DecimalField(max_digits=18, decimal_places=4)

    standard_material = models.DecimalField(max_digits=18, decimal_places=4, default=Decimal("0"))
    standard_labor = models.DecimalField(max_digits=18, decimal_places=4, default=Decimal("0"))
    standard_overhead = models.DecimalField(max_digits=18, decimal_places=4, default=Decimal("0"))
    actual_material = models.DecimalField(max_digits=18, decimal_places=4, default=Decimal("0"))
    actual_labor = models.DecimalField(max_digits=18, decimal_places=4, default=Decimal("0"))
    actual_overhead = models.DecimalField(max_digits=18, decimal_places=4, default=Decimal("0"))

    material_variance = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    labor_variance = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    overhead_variance = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    total_variance = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    is_favorable = models.BooleanField(default=False)

    # free-form source, e.g. a work order or receipt number
    reference = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("-variance_date", "-id")
        indexes = [
            models.Index(fields=["organization", "variance_type"]),
            models.Index(fields=["organization", "variance_date"]),
        ]

    def __str__(self):
        return f"{self.product.sku} {self.variance_type} {self.total_variance}"

    def compute(self):
        qty = to_decimal(self.quantity)
        for component in COST_COMPONENTS:
            actual = to_decimal(getattr(self, f"actual_{component}") or 0)
            standard = to_decimal(getattr(self, f"standard_{component}") or 0)
            setattr(self, f"{component}_variance", money((actual - standard) * qty))
        self.total_variance = money(
            self.material_variance + self.labor_variance + self.overhead_variance
        )
        self.is_favorable = self.total_variance < 0

    def clean(self):
        ensure_same_organization(self, "product", "standard_cost")
        if self.quantity is not None and self.quantity <= 0:
            raise ValidationError({"quantity": "Quantity must be greater than 0"})
        if self.standard_cost_id and self.standard_cost.product_id != self.product_id:
            raise ValidationError({"standard_cost": "Standard cost belongs to another product"})

    def save(self, *args, **kwargs):
        if self.quantity is not None:
            self.compute()
        self.full_clean()
        return super().save(*args, **kwargs)
