from django.contrib import admin

from erp_core.models import Bill, Payment, Vendor

from .actions import approve_bills
from .inlines import BillItemInline, PaymentAllocationInline
from .mixins import TenantAdminMixin


@admin.register(Vendor)
class VendorAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("vendor_number", "company_name", "email", "payment_terms_days", "is_active", "organization")
    list_filter = ("is_active", "organization")
    search_fields = ("vendor_number", "company_name", "contact_name", "email")
    readonly_fields = ("vendor_number",)


@admin.register(Bill)
class BillAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "bill_number",
        "vendor",
        "bill_date",
        "due_date",
        "status",
        "total",
        "amount_due",
        "organization",
    )
    list_filter = ("status", "bill_date", "organization")
    search_fields = ("bill_number", "vendor_reference", "vendor__company_name")
    readonly_fields = (
        "bill_number", "subtotal", "tax_amount", "total", "wht_amount",
        "amount_paid", "amount_due", "journal_entry",
    )
    actions = [approve_bills]
    inlines = [BillItemInline]

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("organization", "vendor")

    """ Enforce immutability at admin level """

    def get_readonly_fields(self, request, obj=None):
        # paid / cancelled / voided bills: every field becomes read-only
        if obj and obj.status in ("paid", "cancelled", "voided"):
            return [f.name for f in self.model._meta.fields]
        return super().get_readonly_fields(request, obj)

    def has_delete_permission(self, request, obj=None):
        # only drafts may go
        if obj and obj.status != "draft":
            return False
        return super().has_delete_permission(request, obj)


@admin.register(Payment)
class PaymentAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("payment_number", "vendor", "payment_date", "amount", "payment_method", "organization")
    list_filter = ("payment_method", "organization")
    search_fields = ("payment_number", "reference_number", "vendor__company_name")
    inlines = [PaymentAllocationInline]

    # payments are recorded through the API so bills and the ledger stay in step
    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
