from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.test import TestCase

from ..services.costing import allocate_amounts, create_landed_cost, post_landed_cost
from .factories import TestDataFactory


def line(qty, cost, weight=None, volume=None, allocated=None):
    return {
        "quantity": Decimal(qty),
        "unit_cost": Decimal(cost),
        "weight": Decimal(weight) if weight else None,
        "volume": Decimal(volume) if volume else None,
        "allocated_amount": Decimal(allocated) if allocated else None,
    }


""" Allocation arithmetic (no database) """


def test_by_quantity_remainder_lands_on_last_line():
    amounts = allocate_amounts(Decimal("100.00"), [line("1", "1"), line("1", "1"), line("1", "1")], "by_quantity")
    assert amounts == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]
    assert sum(amounts) == Decimal("100.00")


def test_by_value_is_proportional():
    amounts = allocate_amounts(Decimal("90.00"), [line("10", "2.00"), line("5", "8.00")], "by_value")
    # values 20 and 40
    assert amounts == [Decimal("30.00"), Decimal("60.00")]


def test_by_weight_with_zero_weight_rejected():
    with pytest.raises(ValidationError):
        allocate_amounts(Decimal("10.00"), [line("1", "1")], "by_weight")


def test_by_volume_with_zero_volume_rejected():
    with pytest.raises(ValidationError):
        allocate_amounts(Decimal("10.00"), [line("1", "1"), line("2", "1")], "by_volume")


def test_by_value_with_zero_total_value_allocates_nothing():
    amounts = allocate_amounts(Decimal("25.00"), [line("3", "0"), line("1", "0")], "by_value")
    assert amounts == [Decimal("0.00"), Decimal("0.00")]


@pytest.mark.parametrize(
    "total, lines, expected",
    [
        # rounding up the first shares used to push the zero-value line below zero
        ("0.01", [line("1", "1"), line("1", "1"), line("1", "0")], ["0.00", "0.01", "0.00"]),
        ("0.02", [line("1", "1")] * 4, ["0.00", "0.00", "0.01", "0.01"]),
        ("10.00", [line("1", "1"), line("1", "1"), line("1", "1")], ["3.33", "3.33", "3.34"]),
    ],
)
def test_shares_never_negative_and_add_up(total, lines, expected):
    amounts = allocate_amounts(Decimal(total), lines, "by_value")
    assert amounts == [Decimal(e) for e in expected]
    assert all(a >= 0 for a in amounts)
    assert sum(amounts) == Decimal(total)


def test_manual_must_add_up():
    ok = allocate_amounts(
        Decimal("50.00"), [line("1", "1", allocated="20.00"), line("1", "1", allocated="30.00")], "manual"
    )
    assert ok == [Decimal("20.00"), Decimal("30.00")]
    with pytest.raises(ValidationError):
        allocate_amounts(
            Decimal("50.00"), [line("1", "1", allocated="20.00"), line("1", "1", allocated="20.00")], "manual"
        )


def test_empty_lines_rejected():
    with pytest.raises(ValidationError):
        allocate_amounts(Decimal("10.00"), [], "by_quantity")


class LandedCostFlowTests(TestCase):
    def setUp(self):
        self.f = TestDataFactory()
        self.org = self.f.organization
        self.user = self.f.member("receiver", role="accountant")
        self.widget = self.f.product(sku="W-1", unit_cost="10.0000", weight=Decimal("2"))
        self.gadget = self.f.product(sku="G-1", unit_cost="30.0000", weight=Decimal("1"))

    def create(self, method="by_weight", **extra):
        data = {
            "reference": "PO-77",
            "allocation_method": method,
            "freight": Decimal("80.00"),
            "customs_duty": Decimal("20.00"),
            "items": [
                {"product": self.widget, "quantity": Decimal("10")},
                {"product": self.gadget, "quantity": Decimal("30")},
            ],
        }
        data.update(extra)
        return create_landed_cost(self.org, self.user, data)

    def test_create_allocates_by_product_weight(self):
        lc = self.create()
        self.assertEqual(lc.status, "allocated")
        self.assertEqual(lc.total_cost, Decimal("100.00"))
        allocations = {a.product.sku: a for a in lc.allocations.select_related("product")}
        # weights: 10 × 2 = 20 and 30 × 1 = 30
        self.assertEqual(allocations["W-1"].allocated_amount, Decimal("40.00"))
        self.assertEqual(allocations["G-1"].allocated_amount, Decimal("60.00"))
        self.assertEqual(allocations["W-1"].new_unit_cost, Decimal("14.0000"))
        self.assertEqual(allocations["W-1"].cost_increase_percent, Decimal("40.00"))

    def test_foreign_currency_converted_at_rate(self):
        lc = self.create(currency_code="eur", exchange_rate=Decimal("1.10"))
        self.assertEqual(lc.currency_code, "EUR")
        self.assertEqual(lc.total_cost, Decimal("110.00"))

    def test_post_updates_products_and_ledger(self):
        lc = post_landed_cost(self.create(), self.user)
        self.widget.refresh_from_db()
        self.gadget.refresh_from_db()
        self.assertEqual(lc.status, "posted")
        self.assertEqual(self.widget.unit_cost, Decimal("14.0000"))
        self.assertEqual(self.gadget.unit_cost, Decimal("32.0000"))
        je = lc.journal_entry
        self.assertEqual(je.lines.get(account=self.f.inventory).debit, Decimal("100.00"))
        self.assertEqual(je.lines.get(account=self.f.accounts["2300"]).credit, Decimal("100.00"))

    def test_posting_twice_rejected(self):
        lc = post_landed_cost(self.create(), self.user)
        with self.assertRaises(ValidationError):
            post_landed_cost(lc, self.user)

    def test_negative_component_rejected(self):
        with self.assertRaises(ValidationError):
            self.create(freight=Decimal("-1.00"))

    def test_tiny_total_posts_without_negative_unit_cost(self):
        free_sample = self.f.product(sku="S-0", unit_cost="0.0000")
        lc = self.create(
            method="by_value",
            freight=Decimal("0.01"),
            customs_duty=None,
            items=[
                {"product": self.widget, "quantity": Decimal("1"), "unit_cost": Decimal("1")},
                {"product": self.gadget, "quantity": Decimal("1"), "unit_cost": Decimal("1")},
                {"product": free_sample, "quantity": Decimal("1")},
            ],
        )
        self.assertTrue(all(a.allocated_amount >= 0 for a in lc.allocations.all()))
        post_landed_cost(lc, self.user)
        free_sample.refresh_from_db()
        self.assertEqual(free_sample.unit_cost, Decimal("0.0000"))

    def test_same_product_on_two_lines_rejected(self):
        with self.assertRaises(ValidationError):
            self.create(items=[
                {"product": self.widget, "quantity": Decimal("4")},
                {"product": self.widget, "quantity": Decimal("6")},
            ])
