import logging
from decimal import ROUND_DOWN, Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.utils import timezone

from ..models import (CostRevaluation, CostVariance, LandedCost,
                      LandedCostAllocation, Product)
from ..models.costing import COST_COMPONENTS
from ..models.landed_cost import COST_COMPONENT_FIELDS
from ..utils import CENT, money, to_decimal, unit_cost
from .audit_helper import log_action
from .posting import (create_landed_cost_journal, create_revaluation_journal,
                      revaluation_lines)

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


# ----------------------------
# Revaluations
# ----------------------------
def percentage_change(old_cost, new_cost):
    old_cost, new_cost = to_decimal(old_cost), to_decimal(new_cost)
    if old_cost == 0:
        return ZERO
    return money((new_cost - old_cost) / old_cost * HUNDRED)


def preview_revaluation(organization, product, new_unit_cost, quantity, old_unit_cost=None):
    """
    What a revaluation would do, without writing anything:
    value impact, % change, the GL lines and any warnings.
    """
    quantity = to_decimal(quantity, "quantity")
    new_unit_cost = to_decimal(new_unit_cost, "new_unit_cost")
    if quantity <= 0:
        raise ValidationError("Quantity must be greater than 0")
    old = product.unit_cost if old_unit_cost is None else to_decimal(old_unit_cost, "old_unit_cost")

    diff = money((new_unit_cost - old) * quantity)
    pct = percentage_change(old, new_unit_cost)

    warnings = []
    threshold = settings.ERP_REVALUATION_WARNING_PERCENT
    if abs(pct) >= threshold:
        warnings.append(f"Cost changes by {pct}% (threshold {threshold}%)")
    if new_unit_cost <= 0:
        warnings.append("New unit cost is zero or negative")

    gl_lines = []
    if diff != 0:
        gl_lines = [
            {
                "account_code": account.code,
                "account_name": account.name,
                "debit": money(debit),
                "credit": money(credit),
            }
            for account, debit, credit, _ in revaluation_lines(organization, diff, "preview")
        ]

    return {
        "product_id": product.pk,
        "sku": product.sku,
        "old_unit_cost": unit_cost(old),
        "new_unit_cost": unit_cost(new_unit_cost),
        "quantity": quantity,
        "value_difference": diff,
        "percentage_change": pct,
        "gl_lines": gl_lines,
        "warnings": warnings,
    }


def create_revaluation(organization, user, data) -> CostRevaluation:
    """
    New revaluations wait for approval; with auto_approve a small
    enough value change is approved on the spot.
    """
    product = data["product"]
    old = data.get("old_unit_cost")
    with transaction.atomic():
        reval = CostRevaluation.objects.create(
            organization=organization,
            product=product,
            warehouse=data.get("warehouse"),
            revaluation_date=data.get("revaluation_date") or timezone.localdate(),
            reason=data["reason"],
            old_unit_cost=product.unit_cost if old is None else old,
            new_unit_cost=data["new_unit_cost"],
            quantity=data["quantity"],
            notes=data.get("notes", ""),
            status="pending_approval",
            created_by=user,
        )
        log_action(
            action="create", instance=reval, user=user,
            changes={"value_difference": reval.value_difference},
        )
        limit = settings.ERP_REVALUATION_AUTO_APPROVE_LIMIT
        if data.get("auto_approve") and abs(reval.value_difference) < limit:
            reval = approve_revaluation(reval, user)
    return reval


def approve_revaluation(reval: CostRevaluation, user=None) -> CostRevaluation:
    with transaction.atomic():
        reval = CostRevaluation.objects.select_for_update().get(pk=reval.pk)
        if reval.status != "pending_approval":
            raise ValidationError(f"Only pending revaluations can be approved (status: {reval.status})")
        reval.transition_to("approved")
        reval.approved_by = user
        reval.approved_at = timezone.now()
        reval.save()
        log_action(action="approve", instance=reval, user=user)
    logger.info("Revaluation %s approved", reval.revaluation_number)
    return reval


def post_revaluation(reval: CostRevaluation, user=None) -> CostRevaluation:
    """
    approved → posted: write the GL entry (unless nothing changes in value)
    and move the product to its new unit cost.
    """
    with transaction.atomic():
        reval = CostRevaluation.objects.select_for_update().get(pk=reval.pk)
        if reval.status != "approved":
            raise ValidationError(f"Only approved revaluations can be posted (status: {reval.status})")

        if reval.value_difference != 0:
            reval.journal_entry = create_revaluation_journal(reval, user=user)
        reval.transition_to("posted")
        reval.save()

        product = Product.objects.select_for_update().get(pk=reval.product_id)
        product.unit_cost = reval.new_unit_cost
        product.save()

        log_action(
            action="post", instance=reval, user=user,
            changes={
                "journal_entry": reval.journal_entry.entry_number if reval.journal_entry else None,
                "new_unit_cost": reval.new_unit_cost,
            },
        )
    logger.info("Revaluation %s posted (%s)", reval.revaluation_number, reval.value_difference)
    return reval


# ----------------------------
# Variances
# ----------------------------
def record_variance(organization, user, data) -> CostVariance:
    """Standard components default from the linked standard cost."""
    standard = data.get("standard_cost")
    values = {}
    for component in COST_COMPONENTS:
        std_key = f"standard_{component}"
        if data.get(std_key) is not None:
            values[std_key] = data[std_key]
        elif standard is not None:
            values[std_key] = getattr(standard, f"{component}_cost")
        values[f"actual_{component}"] = data.get(f"actual_{component}") or Decimal("0")

    variance = CostVariance.objects.create(
        organization=organization,
        product=data["product"],
        standard_cost=standard,
        variance_type=data["variance_type"],
        variance_date=data.get("variance_date") or timezone.localdate(),
        quantity=data["quantity"],
        reference=data.get("reference", ""),
        notes=data.get("notes", ""),
        **values,
    )
    log_action(
        action="create", instance=variance, user=user,
        changes={"total_variance": variance.total_variance},
    )
    return variance


def variance_summary(queryset):
    totals = queryset.aggregate(
        material=models.Sum("material_variance"),
        labor=models.Sum("labor_variance"),
        overhead=models.Sum("overhead_variance"),
        total=models.Sum("total_variance"),
    )
    by_type = {
        row["variance_type"]: {"count": row["count"], "total": row["total"] or ZERO}
        for row in queryset.order_by()
        .values("variance_type")
        .annotate(count=models.Count("id"), total=models.Sum("total_variance"))
    }
    return {
        "total_material": totals["material"] or ZERO,
        "total_labor": totals["labor"] or ZERO,
        "total_overhead": totals["overhead"] or ZERO,
        "total_variance": totals["total"] or ZERO,
        "favorable_count": queryset.filter(is_favorable=True).count(),
        "unfavorable_count": queryset.filter(is_favorable=False).count(),
        "by_type": by_type,
    }


# ----------------------------
# Landed costs
# ----------------------------
def _basis(line, method):
    if method == "by_value":
        return line["quantity"] * line["unit_cost"]
    if method == "by_weight":
        return line.get("weight") or ZERO
    if method == "by_volume":
        return line.get("volume") or ZERO
    return line["quantity"]


def allocate_amounts(total, lines, method):
    """
    Split `total` across lines in proportion to the method's basis.
    Shares are cut down to whole cents, then the cents left over go one at a
    time to the lines that lost the most in the cut (the later line on ties),
    so the shares add back to the total and none goes below zero.
    """
    total = money(total)
    if not lines:
        raise ValidationError("At least one item is required to allocate landed costs")

    if method == "manual":
        amounts = [money(line.get("allocated_amount") or 0) for line in lines]
        if abs(sum(amounts, ZERO) - total) > Decimal("0.01"):
            raise ValidationError(
                f"Manual allocations ({sum(amounts, ZERO)}) must equal the total landed cost ({total})"
            )
        return amounts

    bases = [to_decimal(_basis(line, method)) for line in lines]
    base_total = sum(bases, ZERO)
    if base_total == 0:
        if method == "by_weight":
            raise ValidationError("Total weight is zero; cannot allocate by weight")
        if method == "by_volume":
            raise ValidationError("Total volume is zero; cannot allocate by volume")
        # nothing to weigh the shares by
        return [ZERO for _ in lines]

    exact = [total * basis / base_total for basis in bases]
    amounts = [share.quantize(CENT, rounding=ROUND_DOWN) for share in exact]
    leftover_cents = int((total - sum(amounts, ZERO)) / CENT)
    by_loss = sorted(range(len(lines)), key=lambda i: (exact[i] - amounts[i], i), reverse=True)
    for i in by_loss[:leftover_cents]:
        amounts[i] += CENT
    return amounts


def create_landed_cost(organization, user, data) -> LandedCost:
    """Create a landed cost and allocate it across the given items at once."""
    items = data.get("items") or []
    method = data["allocation_method"]
    # posting moves each product to one new unit cost
    seen = set()
    for item in items:
        if item["product"].pk in seen:
            raise ValidationError(
                f"Product {item['product'].sku} appears on more than one line; combine them into one"
            )
        seen.add(item["product"].pk)
    with transaction.atomic():
        lc = LandedCost(
            organization=organization,
            reference=data.get("reference", ""),
            cost_date=data.get("cost_date") or timezone.localdate(),
            allocation_method=method,
            currency_code=data.get("currency_code") or organization.base_currency,
            exchange_rate=data.get("exchange_rate") or Decimal("1"),
            notes=data.get("notes", ""),
            created_by=user,
        )
        for name in COST_COMPONENT_FIELDS:
            if data.get(name) is not None:
                setattr(lc, name, data[name])
        lc.save()

        lines = []
        for item in items:
            product = item["product"]
            qty = to_decimal(item["quantity"], "quantity")
            cost = item.get("unit_cost")
            cost = product.unit_cost if cost is None else to_decimal(cost, "unit_cost")
            weight = item.get("weight")
            volume = item.get("volume")
            # fall back to the product's per-unit measures
            if weight is None and product.weight is not None:
                weight = product.weight * qty
            if volume is None and product.volume is not None:
                volume = product.volume * qty
            lines.append({
                "product": product,
                "quantity": qty,
                "unit_cost": cost,
                "weight": unit_cost(weight or 0),
                "volume": unit_cost(volume or 0),
                "allocated_amount": item.get("allocated_amount"),
            })

        amounts = allocate_amounts(lc.total_cost, lines, method)
        for line, amount in zip(lines, amounts):
            base_value = line["quantity"] * line["unit_cost"]
            LandedCostAllocation.objects.create(
                landed_cost=lc,
                product=line["product"],
                quantity=line["quantity"],
                unit_cost=unit_cost(line["unit_cost"]),
                weight=line["weight"],
                volume=line["volume"],
                allocated_amount=amount,
                new_unit_cost=unit_cost(line["unit_cost"] + amount / line["quantity"]),
                cost_increase_percent=money(amount / base_value * HUNDRED) if base_value else ZERO,
            )

        lc.status = "allocated"
        lc.save()
        log_action(
            action="create", instance=lc, user=user,
            changes={"total_cost": lc.total_cost, "method": method, "lines": len(lines)},
        )
    return lc


def post_landed_cost(lc: LandedCost, user=None) -> LandedCost:
    """allocated → posted: GL entry plus new unit costs on the products."""
    with transaction.atomic():
        lc = LandedCost.objects.select_for_update().get(pk=lc.pk)
        if lc.status != "allocated":
            raise ValidationError(f"Only allocated landed costs can be posted (status: {lc.status})")

        if lc.total_cost > 0:
            lc.journal_entry = create_landed_cost_journal(lc, user=user)
        for alloc in lc.allocations.select_related("product"):
            product = Product.objects.select_for_update().get(pk=alloc.product_id)
            product.unit_cost = alloc.new_unit_cost
            product.save()
        lc.status = "posted"
        lc.save()
        log_action(action="post", instance=lc, user=user)
    logger.info("Landed cost %s posted (%s)", lc.landed_cost_number, lc.total_cost)
    return lc


def landed_cost_summary(queryset):
    by_status = {
        row["status"]: row["count"]
        for row in queryset.order_by().values("status").annotate(count=models.Count("id"))
    }
    by_method = {
        row["allocation_method"]: {"count": row["count"], "total": row["total"] or ZERO}
        for row in queryset.order_by()
        .values("allocation_method")
        .annotate(count=models.Count("id"), total=models.Sum("total_cost"))
    }
    return {
        "total_landed_cost": queryset.aggregate(s=models.Sum("total_cost"))["s"] or ZERO,
        "count": queryset.count(),
        "by_status": by_status,
        "by_method": by_method,
    }
