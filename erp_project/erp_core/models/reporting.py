from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .organization import Organization


def default_widget_position():
    return {"x": 0, "y": 0, "w": 4, "h": 2}


# ---------- Dashboards ----------
class Dashboard(models.Model):
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    # grid settings for the front-end (columns, breakpoints ...)
    layout = models.JSONField(default=dict, blank=True)
    # at most one default per user, enforced in save()
    is_default = models.BooleanField(default=False)
    # public dashboards are visible to the whole organization
    is_public = models.BooleanField(default=False)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="dashboards",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("-is_default", "-created_at")
        indexes = [models.Index(fields=["organization", "created_by"])]

    def __str__(self):
        return self.name

    def clean(self):
        if not (self.name or "").strip():
            raise ValidationError({"name": "Dashboard name is required"})
        if not isinstance(self.layout, dict):
            raise ValidationError({"layout": "Layout must be an object"})

    def save(self, *args, **kwargs):
        self.full_clean()
        result = super().save(*args, **kwargs)
        if self.is_default and self.created_by_id:
            (
                Dashboard.objects.for_organization(self.organization)
                .filter(created_by_id=self.created_by_id, is_default=True)
                .exclude(pk=self.pk)
                .update(is_default=False)
            )
        return result


WIDGET_TYPES = [
    ("kpi", "KPI"),
    ("line_chart", "Line chart"),
    ("bar_chart", "Bar chart"),
    ("pie_chart", "Pie chart"),
    ("table", "Table"),
    ("gauge", "Gauge"),
    ("text", "Text"),
]


class DashboardWidget(models.Model):
    dashboard = models.ForeignKey(Dashboard, on_delete=models.CASCADE, related_name="widgets")
    widget_type = models.CharField(max_length=30, choices=WIDGET_TYPES)
    title = models.CharField(max_length=200)
    # {x, y, w, h} in grid units
    position = models.JSONField(default=default_widget_position, blank=True)
    # data source, filters, colors ... (front-end owned)
    config = models.JSONField(default=dict, blank=True)
    # seconds, NULL = no auto refresh
    refresh_interval = models.PositiveIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("id",)

    def __str__(self):
        return f"{self.dashboard.name}: {self.title}"

    @property
    def organization_id(self):
        return self.dashboard.organization_id

    def clean(self):
        if not (self.title or "").strip():
            raise ValidationError({"title": "Widget title is required"})
        if self.refresh_interval is not None and self.refresh_interval <= 0:
            raise ValidationError({"refresh_interval": "Refresh interval must be positive"})
        if not isinstance(self.position, dict):
            raise ValidationError({"position": "Position must be an object"})

    def save(self, *args, **kwargs):
        if not self.position:
            self.position = default_widget_position()
        self.full_clean()
        return super().save(*args, **kwargs)
