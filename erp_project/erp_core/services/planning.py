from decimal import Decimal

from django.db import models

from ..models import DemandForecast


def forecast_summary(queryset):
    """Totals shown above the forecast list."""
    with_actuals = queryset.filter(actual_demand__isnull=False)
    avg = with_actuals.aggregate(a=models.Avg("accuracy"))["a"]
    by_method = {
        row["forecast_method"]: row["count"]
        for row in queryset.order_by().values("forecast_method").annotate(count=models.Count("id"))
    }
    return {
        "total": queryset.count(),
        "with_actuals": with_actuals.count(),
        # NULL until some forecast has an actual to compare with
        "average_accuracy": (
            Decimal(str(avg)).quantize(Decimal("0.01")) if avg is not None else None
        ),
        "by_method": by_method,
    }


def update_forecast(forecast: DemandForecast, data) -> DemandForecast:
    for field, value in data.items():
        setattr(forecast, field, value)
    # accuracy follows actual_demand on save
    forecast.save()
    return forecast
