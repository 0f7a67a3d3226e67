import datetime
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase, override_settings

from ..models import CostVariance, StandardCost
from ..services import costing
from .factories import TestDataFactory


class StandardCostTests(TestCase):
    def setUp(self):
        self.f = TestDataFactory()
        self.product = self.f.product()

    def make_cost(self, start, end=None, **components):
        return StandardCost.objects.create(
            organization=self.f.organization,
            product=self.product,
            material_cost=Decimal(components.get("material", "5.00")),
            labor_cost=Decimal(components.get("labor", "2.00")),
            overhead_cost=Decimal(components.get("overhead", "1.00")),
            effective_from=start,
            effective_to=end,
        )

    def test_total_is_sum_of_components(self):
        cost = self.make_cost(datetime.date(2025, 1, 1))
        self.assertEqual(cost.total_cost, Decimal("8.00"))

    def test_effective_on_picks_covering_range(self):
        old = self.make_cost(datetime.date(2024, 1, 1), datetime.date(2024, 12, 31))
        current = self.make_cost(datetime.date(2025, 1, 1))
        qs = StandardCost.objects.for_organization(self.f.organization)
        self.assertEqual(list(qs.effective_on(datetime.date(2024, 6, 1))), [old])
        self.assertEqual(list(qs.effective_on(datetime.date(2026, 6, 1))), [current])

    def test_end_before_start_rejected(self):
        with self.assertRaises(ValidationError):
            self.make_cost(datetime.date(2025, 6, 1), datetime.date(2025, 1, 1))


class RevaluationTests(TestCase):
    def setUp(self):
        self.f = TestDataFactory()
        self.org = self.f.organization
        self.user = self.f.member("costing", role="accountant")
        self.product = self.f.product(unit_cost="10.0000")

    def create(self, new_cost, qty="100", **extra):
        data = {
            "product": self.product,
            "new_unit_cost": Decimal(new_cost),
            "quantity": Decimal(qty),
            "reason": "Supplier price change",
        }
        data.update(extra)
        return costing.create_revaluation(self.org, self.user, data)

    def test_preview_writes_nothing_and_shows_gl_lines(self):
        preview = costing.preview_revaluation(self.org, self.product, Decimal("12.50"), Decimal("40"))
        self.assertEqual(preview["value_difference"], Decimal("100.00"))
        self.assertEqual(preview["percentage_change"], Decimal("25.00"))
        self.assertEqual(
            [(line["account_code"], line["debit"], line["credit"]) for line in preview["gl_lines"]],
            [("1300", Decimal("100.00"), Decimal("0.00")), ("4900", Decimal("0.00"), Decimal("100.00"))],
        )
        # 25% hits the default warning threshold
        self.assertEqual(len(preview["warnings"]), 1)
        self.product.refresh_from_db()
        self.assertEqual(self.product.unit_cost, Decimal("10.0000"))

    def test_preview_decrease_uses_loss_account(self):
        preview = costing.preview_revaluation(self.org, self.product, Decimal("9.00"), Decimal("10"))
        self.assertEqual(preview["value_difference"], Decimal("-10.00"))
        self.assertEqual(preview["gl_lines"][0]["account_code"], "6900")
        self.assertEqual(preview["warnings"], [])

    def test_preview_rejects_zero_quantity(self):
        with self.assertRaises(ValidationError):
            costing.preview_revaluation(self.org, self.product, Decimal("9.00"), Decimal("0"))

    def test_new_revaluation_waits_for_approval(self):
        reval = self.create("11.00")
        self.assertEqual(reval.status, "pending_approval")
        self.assertEqual(reval.old_unit_cost, Decimal("10.0000"))
        self.assertEqual(reval.value_difference, Decimal("100.00"))
        self.assertTrue(reval.revaluation_number.startswith("REV-"))

    def test_approve_then_post_moves_cost_and_ledger(self):
        reval = self.create("11.00")
        reval = costing.approve_revaluation(reval, self.user)
        self.assertEqual(reval.status, "approved")
        self.assertEqual(reval.approved_by, self.user)

        reval = costing.post_revaluation(reval, self.user)
        self.product.refresh_from_db()
        self.assertEqual(reval.status, "posted")
        self.assertEqual(self.product.unit_cost, Decimal("11.0000"))
        je = reval.journal_entry
        self.assertEqual(je.source_type, "cost_revaluation")
        self.assertEqual(je.lines.get(account=self.f.inventory).debit, Decimal("100.00"))

    def test_post_requires_approval(self):
        reval = self.create("11.00")
        with self.assertRaises(ValidationError):
            costing.post_revaluation(reval, self.user)

    def test_approve_twice_rejected(self):
        reval = costing.approve_revaluation(self.create("11.00"), self.user)
        with self.assertRaises(ValidationError):
            costing.approve_revaluation(reval, self.user)

    @override_settings(ERP_REVALUATION_AUTO_APPROVE_LIMIT=Decimal("500.00"))
    def test_auto_approve_under_limit_only(self):
        small = self.create("11.00", auto_approve=True)
        large = self.create("20.00", auto_approve=True)
        self.assertEqual(small.status, "approved")
        self.assertEqual(large.status, "pending_approval")

    def test_zero_difference_posts_without_journal(self):
        reval = costing.approve_revaluation(self.create("10.00"), self.user)
        reval = costing.post_revaluation(reval, self.user)
        self.assertEqual(reval.status, "posted")
        self.assertIsNone(reval.journal_entry)


class VarianceTests(TestCase):
    def setUp(self):
        self.f = TestDataFactory()
        self.product = self.f.product()
        self.standard = StandardCost.objects.create(
            organization=self.f.organization,
            product=self.product,
            material_cost=Decimal("5.00"),
            labor_cost=Decimal("2.00"),
            overhead_cost=Decimal("1.00"),
            effective_from=datetime.date(2025, 1, 1),
        )

    def test_variance_defaults_standard_from_standard_cost(self):
        variance = costing.record_variance(self.f.organization, None, {
            "product": self.product,
            "standard_cost": self.standard,
            "variance_type": "production",
            "quantity": Decimal("10"),
            "actual_material": Decimal("5.50"),
            "actual_labor": Decimal("1.80"),
            "actual_overhead": Decimal("1.00"),
        })
        self.assertEqual(variance.material_variance, Decimal("5.00"))
        self.assertEqual(variance.labor_variance, Decimal("-2.00"))
        self.assertEqual(variance.overhead_variance, Decimal("0.00"))
        self.assertEqual(variance.total_variance, Decimal("3.00"))
        self.assertFalse(variance.is_favorable)

    def test_summary_counts_favorable(self):
        for actual in ("4.00", "6.00"):
            costing.record_variance(self.f.organization, None, {
                "product": self.product,
                "standard_cost": self.standard,
                "variance_type": "material_price",
                "quantity": Decimal("1"),
                "actual_material": Decimal(actual),
                "actual_labor": Decimal("2.00"),
                "actual_overhead": Decimal("1.00"),
            })
        summary = costing.variance_summary(CostVariance.objects.for_organization(self.f.organization))
        self.assertEqual(summary["favorable_count"], 1)
        self.assertEqual(summary["unfavorable_count"], 1)
        self.assertEqual(summary["total_variance"], Decimal("0.00"))
        self.assertEqual(summary["by_type"]["material_price"]["count"], 2)

    def test_standard_cost_of_other_product_rejected(self):
        other = self.f.product(sku="SKU-2")
        with self.assertRaises(ValidationError):
            costing.record_variance(self.f.organization, None, {
                "product": other,
                "standard_cost": self.standard,
                "variance_type": "production",
                "quantity": Decimal("1"),
            })
