import datetime
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.test import TestCase

from ..models import DemandForecast, Discount
from ..models.forecast import forecast_accuracy
from ..services.discounts import expire_discounts, save_discount
from ..services.planning import forecast_summary, update_forecast
from ..services.reporting import add_widget, create_dashboard, visible_dashboards
from .factories import TestDataFactory


@pytest.mark.parametrize(
    "forecast, actual, expected",
    [
        ("90", "100", "90.00"),
        ("110", "100", "90.00"),
        ("300", "100", "0.00"),   # never below zero
        ("0", "0", "100.00"),
        ("5", "0", "0.00"),
    ],
)
def test_forecast_accuracy(forecast, actual, expected):
    assert forecast_accuracy(Decimal(forecast), Decimal(actual)) == Decimal(expected)


class ForecastTests(TestCase):
    def setUp(self):
        self.f = TestDataFactory()
        self.product = self.f.product()

    def make_forecast(self, qty="100", **kwargs):
        return DemandForecast.objects.create(
            organization=self.f.organization,
            product=self.product,
            period_start=kwargs.pop("period_start", datetime.date(2025, 10, 1)),
            period_end=kwargs.pop("period_end", datetime.date(2025, 10, 31)),
            forecast_method="moving_average",
            forecast_quantity=Decimal(qty),
            **kwargs,
        )

    def test_accuracy_follows_actual_demand(self):
        forecast = self.make_forecast()
        self.assertIsNone(forecast.accuracy)
        forecast = update_forecast(forecast, {"actual_demand": Decimal("80")})
        self.assertEqual(forecast.accuracy, Decimal("75.00"))

    def test_period_end_before_start_rejected(self):
        with self.assertRaises(ValidationError):
            self.make_forecast(period_end=datetime.date(2025, 9, 1))

    def test_confidence_bounds_ordered(self):
        with self.assertRaises(ValidationError):
            self.make_forecast(confidence_lower=Decimal("120"), confidence_upper=Decimal("80"))

    def test_summary_averages_only_forecasts_with_actuals(self):
        self.make_forecast(actual_demand=Decimal("100"))
        self.make_forecast(qty="50", actual_demand=Decimal("100"))
        self.make_forecast(qty="10")
        summary = forecast_summary(DemandForecast.objects.for_organization(self.f.organization))
        self.assertEqual(summary["total"], 3)
        self.assertEqual(summary["with_actuals"], 2)
        self.assertEqual(summary["average_accuracy"], Decimal("75.00"))
        self.assertEqual(summary["by_method"], {"moving_average": 3})


class DiscountTests(TestCase):
    def setUp(self):
        self.f = TestDataFactory()
        self.user = self.f.member("pricing")

    def make_discount(self, **data):
        payload = {
            "code": "autumn10",
            "name": "Autumn",
            "discount_type": "percentage",
            "value": Decimal("10"),
            "valid_from": datetime.date(2025, 9, 1),
            "valid_to": datetime.date(2025, 11, 30),
        }
        payload.update(data)
        return save_discount(Discount(organization=self.f.organization), self.user, payload)

    def test_code_is_upper_cased(self):
        self.assertEqual(self.make_discount().code, "AUTUMN10")

    def test_percentage_capped_by_max_discount(self):
        discount = self.make_discount(max_discount=Decimal("15.00"))
        self.assertEqual(discount.calculate(Decimal("100.00")), Decimal("10.00"))
        self.assertEqual(discount.calculate(Decimal("500.00")), Decimal("15.00"))

    def test_fixed_amount_never_exceeds_purchase(self):
        discount = self.make_discount(code="FLAT", discount_type="fixed_amount", value=Decimal("25.00"))
        self.assertEqual(discount.calculate(Decimal("20.00")), Decimal("20.00"))

    def test_min_purchase(self):
        discount = self.make_discount(min_purchase=Decimal("50.00"))
        self.assertEqual(discount.calculate(Decimal("49.99")), Decimal("0.00"))

    def test_invalid_values_rejected(self):
        with self.assertRaises(ValidationError):
            self.make_discount(value=Decimal("120"))
        with self.assertRaises(ValidationError):
            self.make_discount(code="ZERO", value=Decimal("0"))
        with self.assertRaises(ValidationError):
            self.make_discount(code="BACK", valid_to=datetime.date(2025, 8, 1))

    def test_usable_window_and_limit(self):
        discount = self.make_discount(usage_limit=1)
        self.assertTrue(discount.is_usable(datetime.date(2025, 10, 1)))
        self.assertFalse(discount.is_usable(datetime.date(2025, 12, 1)))
        discount.usage_count = 1
        self.assertFalse(discount.is_usable(datetime.date(2025, 10, 1)))

    def test_expire_discounts(self):
        discount = self.make_discount()
        self.assertEqual(expire_discounts(today=datetime.date(2025, 12, 1)), 1)
        discount.refresh_from_db()
        self.assertFalse(discount.is_active)


class DashboardTests(TestCase):
    def setUp(self):
        self.f = TestDataFactory()
        self.alice = self.f.member("alice")
        self.bob = self.f.member("bob", role="viewer")

    def test_private_dashboards_only_visible_to_owner(self):
        create_dashboard(self.f.organization, self.alice, {"name": "Mine"})
        create_dashboard(self.f.organization, self.alice, {"name": "Shared", "is_public": True})
        names = [d.name for d in visible_dashboards(self.f.organization, self.bob)]
        self.assertEqual(names, ["Shared"])

    def test_widget_gets_default_position(self):
        dashboard = create_dashboard(self.f.organization, self.alice, {"name": "KPIs"})
        widget = add_widget(dashboard, self.alice, {"widget_type": "kpi", "title": "Open AP"})
        self.assertEqual(widget.position, {"x": 0, "y": 0, "w": 4, "h": 2})
        self.assertEqual(visible_dashboards(self.f.organization, self.alice).get().widget_count, 1)
