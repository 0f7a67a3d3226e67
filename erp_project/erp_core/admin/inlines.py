from django.contrib import admin

from erp_core.models import (BillItem, CapaTask, DashboardWidget, JournalLine,
                             LandedCostAllocation, PaymentAllocation)

# ---------- Inline admin classes ----------


class JournalLineInline(admin.TabularInline):
    """Show JournalLine rows on the JournalEntry page"""

    model = JournalLine
    extra = 0  # don't show empty rows by default
    fields = ("account", "description", "debit", "credit")
    ordering = ("id",)  # lines appear in creation order

    def get_readonly_fields(self, request, obj=None):
        # Once a journal is posted its lines are locked
        if obj and obj.status != "draft":
            return self.fields
        return ()

    def has_add_permission(self, request, obj=None):
        if obj and obj.status != "draft":
            return False
        return super().has_add_permission(request, obj)

    def has_delete_permission(self, request, obj=None):
        if obj and obj.status != "draft":
            return False
        return super().has_delete_permission(request, obj)


class BillItemInline(admin.TabularInline):
    model = BillItem
    extra = 0
    fields = ("description", "quantity", "unit_price", "account", "tax_amount", "line_total")
    readonly_fields = ("line_total",)


class PaymentAllocationInline(admin.TabularInline):
    model = PaymentAllocation
    extra = 0
    fields = ("bill", "amount")
    readonly_fields = ("bill", "amount")  # allocations only come from record_payment
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


class LandedCostAllocationInline(admin.TabularInline):
    model = LandedCostAllocation
    extra = 0
    readonly_fields = (
        "product", "quantity", "unit_cost", "weight", "volume",
        "allocated_amount", "new_unit_cost", "cost_increase_percent",
    )
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


class CapaTaskInline(admin.TabularInline):
    model = CapaTask
    extra = 0
    fields = ("task_number", "title", "assigned_to", "due_date", "status", "completed_at")
    readonly_fields = ("task_number", "completed_at")


class DashboardWidgetInline(admin.StackedInline):
    model = DashboardWidget
    extra = 0
