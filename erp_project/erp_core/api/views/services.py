from django.db.models import Q
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from ...models import (ServiceBooking, ServiceCatalog, ServiceDelivery,
                       ServiceTimeEntry)
from ...services import service_management as service_ops
from ...services.audit_helper import log_action
from ..envelope import ok, paginate, parse_bool, parse_date
from ..permissions import Permission, require_permission
from ..serializers import (ServiceBookingSerializer, ServiceCatalogSerializer,
                           ServiceDeliverySerializer,
                           ServiceTimeEntryInputSerializer,
                           ServiceTimeEntrySerializer)
from .common import context_for, get_for_org, query_id


# ----------------------------
# Catalog
# ----------------------------
@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def catalog_list_create(request, org_slug):
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_SERVICES)
        qs = ServiceCatalog.objects.for_organization(org)
        service_type = request.query_params.get("service_type")
        if service_type:
            qs = qs.filter(service_type=service_type)
        is_active = parse_bool(request, "is_active")
        if is_active is not None:
            qs = qs.filter(is_active=is_active)
        search = request.query_params.get("search")
        if search:
            qs = qs.filter(Q(service_code__icontains=search) | Q(name__icontains=search))
        items, pagination = paginate(request, qs)
        return ok(ServiceCatalogSerializer(items, many=True).data, pagination=pagination)

    org, _ = require_permission(request, org_slug, Permission.CREATE_SERVICES)
    serializer = ServiceCatalogSerializer(data=request.data, context=context_for(request, org))
    serializer.is_valid(raise_exception=True)
    service = serializer.save()
    log_action(action="create", instance=service, user=request.user)
    return ok(ServiceCatalogSerializer(service).data, status=status.HTTP_201_CREATED)


# ----------------------------
# Bookings
# ----------------------------
@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def booking_list_create(request, org_slug):
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_SERVICE_BOOKINGS)
        qs = ServiceBooking.objects.for_organization(org).select_related("service", "customer")
        for param in ("status", "priority"):
            value = request.query_params.get(param)
            if value:
                qs = qs.filter(**{param: value})
        customer_id = query_id(request, "customer_id")
        if customer_id:
            qs = qs.filter(customer_id=customer_id)
        service_id = query_id(request, "service_id")
        if service_id:
            qs = qs.filter(service_id=service_id)
        date_from = parse_date(request, "date_from")
        if date_from:
            qs = qs.filter(requested_date__gte=date_from)
        date_to = parse_date(request, "date_to")
        if date_to:
            qs = qs.filter(requested_date__lte=date_to)
        items, pagination = paginate(request, qs)
        return ok(ServiceBookingSerializer(items, many=True).data, pagination=pagination)

    org, _ = require_permission(request, org_slug, Permission.CREATE_SERVICE_BOOKINGS)
    serializer = ServiceBookingSerializer(data=request.data, context=context_for(request, org))
    serializer.is_valid(raise_exception=True)
    booking = service_ops.create_booking(org, request.user, serializer.validated_data)
    return ok(ServiceBookingSerializer(booking).data, status=status.HTTP_201_CREATED)


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def booking_approve(request, org_slug, pk):
    org, _ = require_permission(request, org_slug, Permission.APPROVE_SERVICE_BOOKINGS)
    booking = get_for_org(ServiceBooking, org, pk, "Booking")
    booking = service_ops.approve_booking(booking, user=request.user)
    return ok(ServiceBookingSerializer(booking).data)


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def booking_cancel(request, org_slug, pk):
    org, _ = require_permission(request, org_slug, Permission.MANAGE_SERVICE_BOOKINGS)
    booking = get_for_org(ServiceBooking, org, pk, "Booking")
    booking = service_ops.cancel_booking(
        booking, user=request.user, reason=request.data.get("reason", "")
    )
    return ok(ServiceBookingSerializer(booking).data)


# ----------------------------
# Deliveries
# ----------------------------
@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def delivery_list_create(request, org_slug):
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_SERVICE_DELIVERIES)
        qs = ServiceDelivery.objects.for_organization(org).select_related("service", "customer")
        delivery_status = request.query_params.get("status")
        if delivery_status:
            qs = qs.filter(status=delivery_status)
        for param in ("customer_id", "service_id", "booking_id"):
            value = query_id(request, param)
            if value:
                qs = qs.filter(**{param: value})
        items, pagination = paginate(request, qs)
        return ok(ServiceDeliverySerializer(items, many=True).data, pagination=pagination)

    org, _ = require_permission(request, org_slug, Permission.CREATE_SERVICE_DELIVERIES)
    serializer = ServiceDeliverySerializer(data=request.data, context=context_for(request, org))
    serializer.is_valid(raise_exception=True)
    delivery = service_ops.create_delivery(org, request.user, serializer.validated_data)
    return ok(ServiceDeliverySerializer(delivery).data, status=status.HTTP_201_CREATED)


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def delivery_start(request, org_slug, pk):
    org, _ = require_permission(request, org_slug, Permission.MANAGE_SERVICE_DELIVERIES)
    delivery = get_for_org(ServiceDelivery, org, pk, "Delivery")
    delivery = service_ops.start_delivery(delivery, user=request.user)
    return ok(ServiceDeliverySerializer(delivery).data)


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def delivery_complete(request, org_slug, pk):
    org, _ = require_permission(request, org_slug, Permission.MANAGE_SERVICE_DELIVERIES)
    delivery = get_for_org(ServiceDelivery, org, pk, "Delivery")
    delivery = service_ops.complete_delivery(
        delivery, user=request.user, notes=request.data.get("notes", "")
    )
    return ok(ServiceDeliverySerializer(delivery).data)


# ----------------------------
# Time entries
# ----------------------------
@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def time_entry_list_create(request, org_slug):
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_SERVICE_TIME)
        qs = ServiceTimeEntry.objects.filter(delivery__organization=org).select_related(
            "delivery", "user"
        )
        delivery_id = query_id(request, "delivery_id")
        if delivery_id:
            qs = qs.filter(delivery_id=delivery_id)
        user_id = query_id(request, "user_id")
        if user_id:
            qs = qs.filter(user_id=user_id)
        is_billable = parse_bool(request, "is_billable")
        if is_billable is not None:
            qs = qs.filter(is_billable=is_billable)
        date_from = parse_date(request, "date_from")
        if date_from:
            qs = qs.filter(entry_date__gte=date_from)
        date_to = parse_date(request, "date_to")
        if date_to:
            qs = qs.filter(entry_date__lte=date_to)
        items, pagination = paginate(request, qs.order_by("-entry_date", "-id"))
        return ok(ServiceTimeEntrySerializer(items, many=True).data, pagination=pagination)

    org, _ = require_permission(request, org_slug, Permission.LOG_SERVICE_TIME)
    serializer = ServiceTimeEntryInputSerializer(data=request.data, context=context_for(request, org))
    serializer.is_valid(raise_exception=True)
    data = dict(serializer.validated_data)
    delivery = data.pop("delivery")
    entry = service_ops.log_time(delivery, request.user, data)
    return ok(ServiceTimeEntrySerializer(entry).data, status=status.HTTP_201_CREATED)


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def service_metrics(request, org_slug):
    org, _ = require_permission(request, org_slug, Permission.VIEW_SERVICES)
    return ok(service_ops.service_metrics(
        org, date_from=parse_date(request, "date_from"), date_to=parse_date(request, "date_to"),
    ))
