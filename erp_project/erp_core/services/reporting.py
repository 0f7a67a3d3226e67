from django.db import models, transaction

from ..models import Dashboard, DashboardWidget
from .audit_helper import log_action


def visible_dashboards(organization, user):
    """Public dashboards plus the user's own, defaults first."""
    return (
        Dashboard.objects.for_organization(organization)
        .filter(models.Q(is_public=True) | models.Q(created_by=user))
        .annotate(widget_count=models.Count("widgets"))
        .order_by("-is_default", "-created_at")
    )


def create_dashboard(organization, user, data) -> Dashboard:
    with transaction.atomic():
        dashboard = Dashboard.objects.create(organization=organization, created_by=user, **data)
        log_action(action="create", instance=dashboard, user=user)
    return dashboard


def add_widget(dashboard: Dashboard, user, data) -> DashboardWidget:
    widget = DashboardWidget.objects.create(dashboard=dashboard, **data)
    log_action(
        action="add_widget", instance=dashboard, user=user,
        changes={"widget": widget.title, "type": widget.widget_type},
    )
    return widget
