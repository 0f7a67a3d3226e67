from django.contrib import admin

from erp_core.models import (CostRevaluation, CostVariance, Customer,
                             LandedCost, Product, StandardCost, Warehouse)

from .inlines import LandedCostAllocationInline
from .mixins import TenantAdminMixin


# ---------- Reference data ----------
@admin.register(Product)
class ProductAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("sku", "name", "unit_cost", "quantity_on_hand", "is_active", "organization")
    list_filter = ("is_active", "organization")
    search_fields = ("sku", "name")


@admin.register(Warehouse)
class WarehouseAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("code", "name", "is_active", "organization")
    search_fields = ("code", "name")


@admin.register(Customer)
class CustomerAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("name", "email", "phone", "is_active", "organization")
    search_fields = ("name", "email")


# ---------- Costing ----------
@admin.register(StandardCost)
class StandardCostAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("product", "costing_method", "total_cost", "effective_from", "effective_to", "is_active")
    list_filter = ("costing_method", "is_active")
    search_fields = ("product__sku", "product__name")
    readonly_fields = ("total_cost",)


@admin.register(CostRevaluation)
class CostRevaluationAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("revaluation_number", "product", "old_unit_cost", "new_unit_cost", "value_difference", "status")
    list_filter = ("status",)
    search_fields = ("revaluation_number", "product__sku")
    readonly_fields = ("revaluation_number", "value_difference", "journal_entry", "approved_by", "approved_at")

    def get_readonly_fields(self, request, obj=None):
        # posted revaluations already moved the ledger and the product cost
        if obj and obj.status == "posted":
            return [f.name for f in self.model._meta.fields]
        return super().get_readonly_fields(request, obj)


@admin.register(CostVariance)
class CostVarianceAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("product", "variance_type", "variance_date", "total_variance", "is_favorable")
    list_filter = ("variance_type", "is_favorable")
    readonly_fields = ("material_variance", "labor_variance", "overhead_variance", "total_variance", "is_favorable")


@admin.register(LandedCost)
class LandedCostAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("landed_cost_number", "reference", "cost_date", "allocation_method", "total_cost", "status")
    list_filter = ("status", "allocation_method")
    search_fields = ("landed_cost_number", "reference")
    readonly_fields = ("landed_cost_number", "total_cost", "status", "journal_entry")
    inlines = [LandedCostAllocationInline]
