from django.db.models import Q
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from ...models import Customer, Discount, Product, Warehouse
from ...services.audit_helper import log_action
from ...services.discounts import save_discount
from ..envelope import ok, paginate, parse_bool
from ..permissions import Permission, require_permission
from ..serializers import (CustomerSerializer, DiscountSerializer,
                           ProductSerializer, WarehouseSerializer)
from .common import context_for, get_for_org, require_fields

DISCOUNT_REQUIRED = ("code", "name", "discount_type", "value", "valid_from", "valid_to")


def _reference_list_create(request, org_slug, model, serializer_class, view_perm, manage_perm,
                           search_fields):
    """Shared GET/POST for the small reference tables."""
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, view_perm)
        qs = model.objects.for_organization(org)
        search = request.query_params.get("search")
        if search:
            query = Q()
            for field in search_fields:
                query |= Q(**{f"{field}__icontains": search})
            qs = qs.filter(query)
        is_active = parse_bool(request, "is_active")
        if is_active is not None:
            qs = qs.filter(is_active=is_active)
        items, pagination = paginate(request, qs)
        return ok(serializer_class(items, many=True).data, pagination=pagination)

    org, _ = require_permission(request, org_slug, manage_perm)
    serializer = serializer_class(data=request.data, context=context_for(request, org))
    serializer.is_valid(raise_exception=True)
    obj = serializer.save()
    log_action(action="create", instance=obj, user=request.user)
    return ok(serializer_class(obj).data, status=status.HTTP_201_CREATED)


# ---------- Inventory ----------
@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def product_list_create(request, org_slug):
    return _reference_list_create(
        request, org_slug, Product, ProductSerializer,
        Permission.VIEW_INVENTORY, Permission.MANAGE_INVENTORY, ("sku", "name"),
    )


@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def warehouse_list_create(request, org_slug):
    return _reference_list_create(
        request, org_slug, Warehouse, WarehouseSerializer,
        Permission.VIEW_INVENTORY, Permission.MANAGE_INVENTORY, ("code", "name"),
    )


# ---------- Customers ----------
@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def customer_list_create(request, org_slug):
    return _reference_list_create(
        request, org_slug, Customer, CustomerSerializer,
        Permission.VIEW_CUSTOMERS, Permission.MANAGE_CUSTOMERS, ("name", "email", "phone"),
    )


# ---------- Discounts ----------
@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def discount_list_create(request, org_slug):
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_DISCOUNTS)
        qs = Discount.objects.for_organization(org)
        is_active = parse_bool(request, "is_active")
        if is_active is not None:
            qs = qs.filter(is_active=is_active)
        discount_type = request.query_params.get("discount_type")
        if discount_type:
            qs = qs.filter(discount_type=discount_type)
        search = request.query_params.get("search")
        if search:
            qs = qs.filter(Q(code__icontains=search) | Q(name__icontains=search))
        items, pagination = paginate(request, qs)
        return ok(DiscountSerializer(items, many=True).data, pagination=pagination)

    org, _ = require_permission(request, org_slug, Permission.MANAGE_DISCOUNTS)
    require_fields(request.data, *DISCOUNT_REQUIRED)
    serializer = DiscountSerializer(data=request.data, context=context_for(request, org))
    serializer.is_valid(raise_exception=True)
    discount = save_discount(Discount(organization=org), request.user, serializer.validated_data)
    return ok(DiscountSerializer(discount).data, status=status.HTTP_201_CREATED)


@api_view(["PUT", "DELETE"])
@permission_classes([IsAuthenticated])
def discount_detail(request, org_slug, pk):
    org, _ = require_permission(request, org_slug, Permission.MANAGE_DISCOUNTS)
    discount = get_for_org(Discount, org, pk, "Discount")

    if request.method == "PUT":
        serializer = DiscountSerializer(
            discount, data=request.data, partial=True, context=context_for(request, org)
        )
        serializer.is_valid(raise_exception=True)
        discount = save_discount(discount, request.user, serializer.validated_data)
        return ok(DiscountSerializer(discount).data)

    log_action(action="delete", instance=discount, user=request.user, changes={"code": discount.code})
    discount.delete()
    return ok({"deleted": True})
