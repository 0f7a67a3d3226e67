from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from ...models import Dashboard
from ...services import reporting as reporting_service
from ...services.audit_helper import log_action
from ..envelope import ok
from ..permissions import Permission, check_permission, require_permission
from ..serializers import (DashboardDetailSerializer, DashboardSerializer,
                           DashboardWidgetSerializer)
from .common import context_for, get_for_org


def _dashboard(request, org, pk):
    return get_for_org(
        Dashboard, org, pk, "Dashboard",
        queryset=reporting_service.visible_dashboards(org, request.user),
    )


def _check_owner(request, membership, dashboard):
    """Owners edit their own dashboards, everyone else needs manage:dashboards."""
    if dashboard.created_by_id != request.user.pk:
        check_permission(membership, Permission.MANAGE_DASHBOARDS)


@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def dashboard_list_create(request, org_slug):
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_DASHBOARDS)
        dashboards = reporting_service.visible_dashboards(org, request.user)
        return ok(DashboardSerializer(dashboards, many=True).data)

    org, _ = require_permission(request, org_slug, Permission.CREATE_DASHBOARDS)
    serializer = DashboardSerializer(data=request.data, context=context_for(request, org))
    serializer.is_valid(raise_exception=True)
    dashboard = reporting_service.create_dashboard(org, request.user, serializer.validated_data)
    return ok(DashboardDetailSerializer(dashboard).data, status=status.HTTP_201_CREATED)


@api_view(["GET", "DELETE"])
@permission_classes([IsAuthenticated])
def dashboard_detail(request, org_slug, pk):
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_DASHBOARDS)
        return ok(DashboardDetailSerializer(_dashboard(request, org, pk)).data)

    org, membership = require_permission(request, org_slug, Permission.CREATE_DASHBOARDS)
    dashboard = _dashboard(request, org, pk)
    _check_owner(request, membership, dashboard)
    log_action(action="delete", instance=dashboard, user=request.user, changes={"name": dashboard.name})
    dashboard.delete()
    return ok({"deleted": True})


@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def widget_list_create(request, org_slug, pk):
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_DASHBOARDS)
        dashboard = _dashboard(request, org, pk)
        return ok(DashboardWidgetSerializer(dashboard.widgets.all(), many=True).data)

    org, membership = require_permission(request, org_slug, Permission.CREATE_DASHBOARDS)
    dashboard = _dashboard(request, org, pk)
    _check_owner(request, membership, dashboard)
    serializer = DashboardWidgetSerializer(data=request.data, context=context_for(request, org))
    serializer.is_valid(raise_exception=True)
    widget = reporting_service.add_widget(dashboard, request.user, serializer.validated_data)
    return ok(DashboardWidgetSerializer(widget).data, status=status.HTTP_201_CREATED)
