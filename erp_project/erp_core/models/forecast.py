from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from ..utils import ensure_same_organization, to_decimal
from .inventory import Product, Warehouse
from .organization import Organization

FORECAST_METHODS = [
    ("moving_average", "Moving average"),
    ("exponential_smoothing", "Exponential smoothing"),
    ("linear_regression", "Linear regression"),
    ("seasonal", "Seasonal"),
    ("machine_learning", "Machine learning"),
    ("manual", "Manual"),
]


def forecast_accuracy(forecast, actual):
    """
    100 × (1 − |actual − forecast| / actual), never below 0.
    With no actual demand a zero forecast is exact, anything else is a miss.
    """
    forecast = to_decimal(forecast)
    actual = to_decimal(actual)
    if actual == 0:
        return Decimal("100.00") if forecast == 0 else Decimal("0.00")
    accuracy = Decimal("100") * (Decimal("1") - abs(actual - forecast) / actual)
    return max(accuracy, Decimal("0")).quantize(Decimal("0.01"))


# ---------- Demand forecast ----------
class DemandForecast(models.Model):
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="forecasts")
    warehouse = models.ForeignKey(
        Warehouse, null=True, blank=True, on_delete=models.SET_NULL, related_name="forecasts"
    )
    period_start = models.DateField()
    period_end = models.DateField()
    forecast_method = models.CharField(max_length=30, choices=FORECAST_METHODS, default="manual")
    forecast_quantity = models.DecimalField(max_digits=18, decimal_places=4)
    confidence_lower = models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)
    confidence_upper = models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)
    # filled in once the period is over
    actual_demand = models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)
    # percent, derived from actual_demand
    accuracy = models.DecimalField(max_digits=7, decimal_places=2, null=True, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("-period_start", "-id")
        indexes = [models.Index(fields=["organization", "product", "period_start"])]

    def __str__(self):
        return f"{self.product.sku} {self.period_start}..{self.period_end}"

    def clean(self):
        ensure_same_organization(self, "product", "warehouse")
        if self.period_start and self.period_end and self.period_end < self.period_start:
            raise ValidationError({"period_end": "period_end must be on or after period_start"})
        if self.forecast_quantity is not None and self.forecast_quantity < 0:
            raise ValidationError({"forecast_quantity": "Forecast quantity cannot be negative"})
        if self.actual_demand is not None and self.actual_demand < 0:
            raise ValidationError({"actual_demand": "Actual demand cannot be negative"})
        if (
            self.confidence_lower is not None
            and self.confidence_upper is not None
            and self.confidence_lower > self.confidence_upper
        ):
            raise ValidationError("confidence_lower cannot exceed confidence_upper")

    def save(self, *args, **kwargs):
        if self.actual_demand is not None and self.forecast_quantity is not None:
            self.accuracy = forecast_accuracy(self.forecast_quantity, self.actual_demand)
        else:
            self.accuracy = None
        self.full_clean()
        return super().save(*args, **kwargs)
