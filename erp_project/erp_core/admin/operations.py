from django.contrib import admin

from erp_core.models import (Dashboard, DemandForecast, Discount,
                             ServiceBooking, ServiceCatalog, ServiceDelivery,
                             ServiceTimeEntry)

from .inlines import DashboardWidgetInline
from .mixins import TenantAdminMixin


# ---------- Reporting ----------
@admin.register(Dashboard)
class DashboardAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("name", "created_by", "is_default", "is_public", "organization")
    list_filter = ("is_public", "is_default")
    inlines = [DashboardWidgetInline]


# ---------- Master data / planning ----------
@admin.register(Discount)
class DiscountAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("code", "name", "discount_type", "value", "valid_from", "valid_to", "usage_count", "is_active")
    list_filter = ("discount_type", "is_active")
    search_fields = ("code", "name")
    readonly_fields = ("usage_count",)


@admin.register(DemandForecast)
class DemandForecastAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("product", "period_start", "period_end", "forecast_method", "forecast_quantity", "actual_demand", "accuracy")
    list_filter = ("forecast_method",)
    readonly_fields = ("accuracy",)


# ---------- Services ----------
@admin.register(ServiceCatalog)
class ServiceCatalogAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("service_code", "name", "service_type", "pricing_model", "standard_rate", "is_active")
    list_filter = ("service_type", "pricing_model", "is_active")
    search_fields = ("service_code", "name")


@admin.register(ServiceBooking)
class ServiceBookingAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("booking_number", "service", "customer", "requested_date", "priority", "status")
    list_filter = ("status", "priority")
    search_fields = ("booking_number", "customer__name")
    readonly_fields = ("booking_number", "approved_price", "approved_by", "approved_at")


@admin.register(ServiceDelivery)
class ServiceDeliveryAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("delivery_number", "service", "customer", "status", "progress", "actual_hours")
    list_filter = ("status",)
    search_fields = ("delivery_number",)
    readonly_fields = ("delivery_number", "actual_start", "actual_end", "actual_hours")


@admin.register(ServiceTimeEntry)
class ServiceTimeEntryAdmin(TenantAdminMixin, admin.ModelAdmin):
    # time entries belong to an organization through their delivery
    tenant_lookup = "delivery__organization"
    list_display = ("delivery", "user", "entry_date", "duration_hours", "is_billable", "total_amount")
    list_filter = ("is_billable",)
    readonly_fields = ("total_amount",)
