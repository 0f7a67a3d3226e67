from django.contrib import admin

from erp_core.models import CAPA, NonConformanceReport

from .inlines import CapaTaskInline
from .mixins import TenantAdminMixin


@admin.register(NonConformanceReport)
class NonConformanceReportAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("ncr_number", "title", "source", "severity", "status", "detected_date", "organization")
    list_filter = ("status", "severity", "source")
    search_fields = ("ncr_number", "title", "lot_number")
    readonly_fields = ("ncr_number", "closed_at", "closed_by")


@admin.register(CAPA)
class CAPAAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("capa_number", "title", "capa_type", "priority", "status", "due_date", "organization")
    list_filter = ("status", "capa_type", "priority", "risk_level")
    search_fields = ("capa_number", "title")
    readonly_fields = ("capa_number", "verified_by", "verified_at", "closed_by", "closure_date")
    inlines = [CapaTaskInline]
