from django.db.models import Q
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from ...models import CAPA, CapaTask, NonConformanceReport
from ...services import quality as quality_service
from ...services.audit_helper import log_action
from ..envelope import ok, paginate, parse_date
from ..permissions import Permission, check_permission, require_permission
from ..serializers import (CAPADetailSerializer, CAPASerializer,
                           CapaTaskSerializer, NonConformanceReportSerializer)
from .common import context_for, get_for_org, query_id

# status moves that need more than manage:capa
CAPA_STATUS_PERMISSIONS = {
    "verifying": Permission.VERIFY_CAPA,
    "verified": Permission.VERIFY_CAPA,
    "closed": Permission.CLOSE_CAPA,
}


# ----------------------------
# NCR
# ----------------------------
@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def ncr_list_create(request, org_slug):
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_NCR)
        qs = NonConformanceReport.objects.for_organization(org).select_related(
            "product", "vendor", "customer"
        )
        for param in ("status", "severity", "source"):
            value = request.query_params.get(param)
            if value:
                qs = qs.filter(**{param: value})
        assigned_to = query_id(request, "assigned_to")
        if assigned_to:
            qs = qs.filter(assigned_to_id=assigned_to)
        product_id = query_id(request, "product_id")
        if product_id:
            qs = qs.filter(product_id=product_id)
        date_from = parse_date(request, "date_from")
        if date_from:
            qs = qs.filter(detected_date__gte=date_from)
        date_to = parse_date(request, "date_to")
        if date_to:
            qs = qs.filter(detected_date__lte=date_to)
        search = request.query_params.get("search")
        if search:
            qs = qs.filter(Q(ncr_number__icontains=search) | Q(title__icontains=search))
        items, pagination = paginate(request, qs)
        return ok(NonConformanceReportSerializer(items, many=True).data, pagination=pagination)

    org, _ = require_permission(request, org_slug, Permission.MANAGE_NCR)
    serializer = NonConformanceReportSerializer(data=request.data, context=context_for(request, org))
    serializer.is_valid(raise_exception=True)
    # new reports always start open
    ncr = serializer.save(detected_by=request.user, status="open")
    log_action(action="create", instance=ncr, user=request.user, changes={"severity": ncr.severity})
    return ok(NonConformanceReportSerializer(ncr).data, status=status.HTTP_201_CREATED)


@api_view(["GET", "PATCH", "DELETE"])
@permission_classes([IsAuthenticated])
def ncr_detail(request, org_slug, pk):
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_NCR)
        ncr = get_for_org(NonConformanceReport, org, pk, "NCR")
        return ok(NonConformanceReportSerializer(ncr).data)

    org, membership = require_permission(request, org_slug, Permission.MANAGE_NCR)
    ncr = get_for_org(NonConformanceReport, org, pk, "NCR")

    if request.method == "PATCH":
        serializer = NonConformanceReportSerializer(
            ncr, data=request.data, partial=True, context=context_for(request, org)
        )
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        if data.get("status") == "closed":
            check_permission(membership, Permission.CLOSE_NCR)
        ncr = quality_service.update_ncr(ncr, request.user, data)
        return ok(NonConformanceReportSerializer(ncr).data)

    quality_service.delete_ncr(ncr, user=request.user)
    return ok({"deleted": True})


# ----------------------------
# CAPA
# ----------------------------
@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def capa_list_create(request, org_slug):
    """
    GET lists CAPAs with statistics.
    POST creates one, or converts an NCR when `ncr_id` is given.
    """
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_CAPA)
        qs = CAPA.objects.for_organization(org).select_related("ncr")
        for param in ("status", "priority", "risk_level", "capa_type", "source"):
            value = request.query_params.get(param)
            if value:
                qs = qs.filter(**{param: value})
        assigned_to = query_id(request, "assigned_to")
        if assigned_to:
            qs = qs.filter(assigned_to_id=assigned_to)
        search = request.query_params.get("search")
        if search:
            qs = qs.filter(Q(capa_number__icontains=search) | Q(title__icontains=search))
        stats = quality_service.capa_statistics(CAPA.objects.for_organization(org))
        items, pagination = paginate(request, qs)
        return ok(CAPASerializer(items, many=True).data, pagination=pagination, stats=stats)

    org, _ = require_permission(request, org_slug, Permission.MANAGE_CAPA)
    ncr_id = request.data.get("ncr_id")
    if ncr_id:
        ncr = get_for_org(NonConformanceReport, org, ncr_id, "NCR")
        serializer = CAPASerializer(data=request.data, partial=True, context=context_for(request, org))
        serializer.is_valid(raise_exception=True)
        capa = quality_service.convert_ncr_to_capa(ncr, request.user, **serializer.validated_data)
        return ok(CAPADetailSerializer(capa).data, status=status.HTTP_201_CREATED)

    serializer = CAPASerializer(data=request.data, context=context_for(request, org))
    serializer.is_valid(raise_exception=True)
    capa = serializer.save(created_by=request.user)
    log_action(action="create", instance=capa, user=request.user)
    return ok(CAPADetailSerializer(capa).data, status=status.HTTP_201_CREATED)


@api_view(["GET", "PUT", "DELETE"])
@permission_classes([IsAuthenticated])
def capa_detail(request, org_slug, pk):
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_CAPA)
        capa = get_for_org(CAPA, org, pk, "CAPA")
        return ok(CAPADetailSerializer(capa).data)

    org, membership = require_permission(request, org_slug, Permission.MANAGE_CAPA)
    capa = get_for_org(CAPA, org, pk, "CAPA")

    if request.method == "PUT":
        serializer = CAPASerializer(
            capa, data=request.data, partial=True, context=context_for(request, org)
        )
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        new_status = request.data.get("status")
        if new_status:
            needed = CAPA_STATUS_PERMISSIONS.get(new_status)
            if needed:
                check_permission(membership, needed)
            data["status"] = new_status
        capa = quality_service.update_capa(capa, request.user, data)
        return ok(CAPADetailSerializer(capa).data)

    quality_service.delete_capa(capa, user=request.user)
    return ok({"deleted": True})


# ----------------------------
# CAPA tasks
# ----------------------------
def _tasks_for(organization):
    return CapaTask.objects.filter(capa__organization=organization).select_related("capa")


@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def capa_task_list_create(request, org_slug):
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_CAPA)
        qs = _tasks_for(org)
        capa_id = query_id(request, "capa_id")
        if capa_id:
            qs = qs.filter(capa_id=capa_id)
        task_status = request.query_params.get("status")
        if task_status:
            qs = qs.filter(status=task_status)
        assigned_to = query_id(request, "assigned_to")
        if assigned_to:
            qs = qs.filter(assigned_to_id=assigned_to)
        return ok(CapaTaskSerializer(qs, many=True).data)

    org, _ = require_permission(request, org_slug, Permission.MANAGE_CAPA)
    serializer = CapaTaskSerializer(data=request.data, context=context_for(request, org))
    serializer.is_valid(raise_exception=True)
    task = quality_service.save_capa_task(CapaTask(), request.user, serializer.validated_data)
    return ok(CapaTaskSerializer(task).data, status=status.HTTP_201_CREATED)


@api_view(["PUT", "DELETE"])
@permission_classes([IsAuthenticated])
def capa_task_detail(request, org_slug, pk):
    org, _ = require_permission(request, org_slug, Permission.MANAGE_CAPA)
    task = get_for_org(CapaTask, org, pk, "CAPA task", queryset=_tasks_for(org))

    if request.method == "PUT":
        serializer = CapaTaskSerializer(
            task, data=request.data, partial=True, context=context_for(request, org)
        )
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        # a task stays on its CAPA
        data.pop("capa", None)
        task = quality_service.save_capa_task(task, request.user, data)
        return ok(CapaTaskSerializer(task).data)

    log_action(
        action="delete", instance=task, user=request.user, organization=org,
        changes={"task_number": task.task_number},
    )
    task.delete()
    return ok({"deleted": True})
