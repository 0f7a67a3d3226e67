from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .organization import Organization


# ---------- Product ----------
# Stocked item that costing, quality and planning records point at
class Product(models.Model):
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    sku = models.CharField(max_length=64)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    # current carrying cost per unit, moved by revaluations and landed costs
    unit_cost = models.DecimalField(max_digits=18, decimal_places=4, default=Decimal("0"))
    quantity_on_hand = models.DecimalField(max_digits=18, decimal_places=4, default=Decimal("0"))
    # per-unit physical measures used by landed cost allocation
    weight = models.DecimalField(max_digits=12, decimal_places=4, null=True, blank=True)
    volume = models.DecimalField(max_digits=12, decimal_places=4, null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("sku",)
        indexes = [models.Index(fields=["organization", "name"])]
        constraints = [
            models.UniqueConstraint(fields=["organization", "sku"], name="uq_org_product_sku")
        ]

    def __str__(self):
        return f"{self.sku} - {self.name}"

    def clean(self):
        if self.unit_cost is not None and self.unit_cost < 0:
            raise ValidationError({"unit_cost": "Unit cost cannot be negative"})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


# ---------- Warehouse ----------
class Warehouse(models.Model):
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    code = models.CharField(max_length=32)
    name = models.CharField(max_length=200)
    is_active = models.BooleanField(default=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("code",)
        constraints = [
            models.UniqueConstraint(fields=["organization", "code"], name="uq_org_warehouse_code")
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
