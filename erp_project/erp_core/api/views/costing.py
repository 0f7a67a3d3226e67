from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from ...models import CostRevaluation, CostVariance, LandedCost, StandardCost
from ...services import costing as costing_service
from ...services.audit_helper import log_action
from ..envelope import ok, paginate, parse_bool, parse_date
from ..permissions import Permission, require_permission
from ..serializers import (CostRevaluationSerializer, CostVarianceSerializer,
                           LandedCostInputSerializer, LandedCostSerializer,
                           RevaluationInputSerializer,
                           RevaluationPreviewSerializer,
                           StandardCostSerializer, VarianceInputSerializer)
from .common import context_for, get_for_org, product_from, query_id, require_fields


# ----------------------------
# Standard costs
# ----------------------------
@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def standard_cost_list_create(request, org_slug):
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_STANDARD_COSTS)
        qs = StandardCost.objects.for_organization(org).select_related("product")
        product_id = query_id(request, "product_id")
        if product_id:
            qs = qs.filter(product_id=product_id)
        method = request.query_params.get("costing_method")
        if method:
            qs = qs.filter(costing_method=method)
        effective = parse_date(request, "effective_date")
        if effective:
            qs = qs.effective_on(effective)
        is_active = parse_bool(request, "is_active")
        if is_active is not None:
            qs = qs.filter(is_active=is_active)
        items, pagination = paginate(request, qs)
        return ok(StandardCostSerializer(items, many=True).data, pagination=pagination)

    org, _ = require_permission(request, org_slug, Permission.MANAGE_STANDARD_COSTS)
    require_fields(request.data, "product_id", "effective_from")
    product = product_from(request.data, org)
    serializer = StandardCostSerializer(data=request.data, context=context_for(request, org))
    serializer.is_valid(raise_exception=True)
    standard = serializer.save(organization=org, product=product, created_by=request.user)
    log_action(
        action="create", instance=standard, user=request.user,
        changes={"sku": product.sku, "total_cost": standard.total_cost},
    )
    return ok(StandardCostSerializer(standard).data, status=status.HTTP_201_CREATED)


# ----------------------------
# Revaluations
# ----------------------------
@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def revaluation_list_create(request, org_slug):
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_COST_REVALUATIONS)
        qs = CostRevaluation.objects.for_organization(org).select_related(
            "product", "journal_entry"
        )
        reval_status = request.query_params.get("status")
        if reval_status:
            qs = qs.filter(status=reval_status)
        product_id = query_id(request, "product_id")
        if product_id:
            qs = qs.filter(product_id=product_id)
        date_from = parse_date(request, "date_from")
        if date_from:
            qs = qs.filter(revaluation_date__gte=date_from)
        date_to = parse_date(request, "date_to")
        if date_to:
            qs = qs.filter(revaluation_date__lte=date_to)
        items, pagination = paginate(request, qs)
        return ok(CostRevaluationSerializer(items, many=True).data, pagination=pagination)

    org, _ = require_permission(request, org_slug, Permission.MANAGE_COST_REVALUATIONS)
    require_fields(request.data, "product_id", "new_unit_cost", "quantity", "reason")
    product = product_from(request.data, org)
    serializer = RevaluationInputSerializer(data=request.data, context=context_for(request, org))
    serializer.is_valid(raise_exception=True)
    data = dict(serializer.validated_data, product=product)
    reval = costing_service.create_revaluation(org, request.user, data)
    return ok(CostRevaluationSerializer(reval).data, status=status.HTTP_201_CREATED)


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def revaluation_preview(request, org_slug):
    """Value impact and GL lines of a revaluation, nothing is saved"""
    org, _ = require_permission(request, org_slug, Permission.VIEW_COST_REVALUATIONS)
    require_fields(request.data, "product_id", "new_unit_cost", "quantity")
    product = product_from(request.data, org)
    serializer = RevaluationPreviewSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    preview = costing_service.preview_revaluation(
        org, product, data["new_unit_cost"], data["quantity"], data.get("old_unit_cost")
    )
    return ok(preview)


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def revaluation_approve(request, org_slug, pk):
    org, _ = require_permission(request, org_slug, Permission.APPROVE_COST_REVALUATIONS)
    reval = get_for_org(CostRevaluation, org, pk, "Revaluation")
    reval = costing_service.approve_revaluation(reval, user=request.user)
    return ok(CostRevaluationSerializer(reval).data)


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def revaluation_post(request, org_slug, pk):
    org, _ = require_permission(request, org_slug, Permission.APPROVE_COST_REVALUATIONS)
    reval = get_for_org(CostRevaluation, org, pk, "Revaluation")
    reval = costing_service.post_revaluation(reval, user=request.user)
    return ok(CostRevaluationSerializer(reval).data)


# ----------------------------
# Variances
# ----------------------------
@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def variance_list_create(request, org_slug):
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_COST_VARIANCES)
        qs = CostVariance.objects.for_organization(org).select_related("product")
        product_id = query_id(request, "product_id")
        if product_id:
            qs = qs.filter(product_id=product_id)
        variance_type = request.query_params.get("variance_type")
        if variance_type:
            qs = qs.filter(variance_type=variance_type)
        date_from = parse_date(request, "date_from")
        if date_from:
            qs = qs.filter(variance_date__gte=date_from)
        date_to = parse_date(request, "date_to")
        if date_to:
            qs = qs.filter(variance_date__lte=date_to)
        favorable = parse_bool(request, "favorable")
        if favorable is not None:
            qs = qs.filter(is_favorable=favorable)
        summary = costing_service.variance_summary(qs)
        items, pagination = paginate(request, qs)
        return ok(
            CostVarianceSerializer(items, many=True).data,
            pagination=pagination, summary=summary,
        )

    org, _ = require_permission(request, org_slug, Permission.MANAGE_COST_VARIANCES)
    require_fields(request.data, "product_id", "variance_type", "quantity")
    product = product_from(request.data, org)
    serializer = VarianceInputSerializer(data=request.data, context=context_for(request, org))
    serializer.is_valid(raise_exception=True)
    data = dict(serializer.validated_data, product=product)
    variance = costing_service.record_variance(org, request.user, data)
    return ok(CostVarianceSerializer(variance).data, status=status.HTTP_201_CREATED)


# ----------------------------
# Landed costs
# ----------------------------
@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def landed_cost_list_create(request, org_slug):
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_LANDED_COSTS)
        qs = LandedCost.objects.for_organization(org).prefetch_related("allocations__product")
        lc_status = request.query_params.get("status")
        if lc_status:
            qs = qs.filter(status=lc_status)
        method = request.query_params.get("allocation_method")
        if method:
            qs = qs.filter(allocation_method=method)
        date_from = parse_date(request, "date_from")
        if date_from:
            qs = qs.filter(cost_date__gte=date_from)
        date_to = parse_date(request, "date_to")
        if date_to:
            qs = qs.filter(cost_date__lte=date_to)
        summary = costing_service.landed_cost_summary(qs)
        items, pagination = paginate(request, qs)
        return ok(
            LandedCostSerializer(items, many=True).data,
            pagination=pagination, summary=summary,
        )

    org, _ = require_permission(request, org_slug, Permission.MANAGE_LANDED_COSTS)
    require_fields(request.data, "allocation_method", "items")
    serializer = LandedCostInputSerializer(data=request.data, context=context_for(request, org))
    serializer.is_valid(raise_exception=True)
    lc = costing_service.create_landed_cost(org, request.user, serializer.validated_data)
    return ok(LandedCostSerializer(lc).data, status=status.HTTP_201_CREATED)


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def landed_cost_detail(request, org_slug, pk):
    org, _ = require_permission(request, org_slug, Permission.VIEW_LANDED_COSTS)
    lc = get_for_org(LandedCost, org, pk, "Landed cost")
    return ok(LandedCostSerializer(lc).data)


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def landed_cost_post(request, org_slug, pk):
    org, _ = require_permission(request, org_slug, Permission.MANAGE_LANDED_COSTS)
    lc = get_for_org(LandedCost, org, pk, "Landed cost")
    lc = costing_service.post_landed_cost(lc, user=request.user)
    return ok(LandedCostSerializer(lc).data)
