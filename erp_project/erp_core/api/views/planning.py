from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from ...models import DemandForecast
from ...services.audit_helper import log_action
from ...services.planning import forecast_summary, update_forecast
from ..envelope import ok, paginate, parse_date
from ..permissions import Permission, require_permission
from ..serializers import DemandForecastSerializer
from .common import context_for, get_for_org, query_id


@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def forecast_list_create(request, org_slug):
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_DEMAND_FORECASTS)
        qs = DemandForecast.objects.for_organization(org).select_related("product")
        product_id = query_id(request, "product_id")
        if product_id:
            qs = qs.filter(product_id=product_id)
        warehouse_id = query_id(request, "warehouse_id")
        if warehouse_id:
            qs = qs.filter(warehouse_id=warehouse_id)
        method = request.query_params.get("forecast_method")
        if method:
            qs = qs.filter(forecast_method=method)
        period_from = parse_date(request, "period_from")
        if period_from:
            qs = qs.filter(period_start__gte=period_from)
        period_to = parse_date(request, "period_to")
        if period_to:
            qs = qs.filter(period_end__lte=period_to)
        summary = forecast_summary(qs)
        items, pagination = paginate(request, qs)
        return ok(
            DemandForecastSerializer(items, many=True).data,
            pagination=pagination, summary=summary,
        )

    org, _ = require_permission(request, org_slug, Permission.MANAGE_DEMAND_FORECASTS)
    serializer = DemandForecastSerializer(data=request.data, context=context_for(request, org))
    serializer.is_valid(raise_exception=True)
    forecast = serializer.save()
    log_action(
        action="create", instance=forecast, user=request.user,
        changes={"forecast_quantity": forecast.forecast_quantity},
    )
    return ok(DemandForecastSerializer(forecast).data, status=status.HTTP_201_CREATED)


@api_view(["GET", "PUT", "DELETE"])
@permission_classes([IsAuthenticated])
def forecast_detail(request, org_slug, pk):
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_DEMAND_FORECASTS)
        forecast = get_for_org(DemandForecast, org, pk, "Forecast")
        return ok(DemandForecastSerializer(forecast).data)

    org, _ = require_permission(request, org_slug, Permission.MANAGE_DEMAND_FORECASTS)
    forecast = get_for_org(DemandForecast, org, pk, "Forecast")

    if request.method == "PUT":
        serializer = DemandForecastSerializer(
            forecast, data=request.data, partial=True, context=context_for(request, org)
        )
        serializer.is_valid(raise_exception=True)
        forecast = update_forecast(forecast, serializer.validated_data)
        log_action(
            action="update", instance=forecast, user=request.user,
            changes={k: str(v) for k, v in serializer.validated_data.items()},
        )
        return ok(DemandForecastSerializer(forecast).data)

    log_action(action="delete", instance=forecast, user=request.user)
    forecast.delete()
    return ok({"deleted": True})
