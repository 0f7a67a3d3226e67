from django.contrib import admin

from erp_core.models import Account, AuditLog, JournalEntry

from .actions import post_journal_entries
from .inlines import JournalLineInline
from .mixins import TenantAdminMixin
from .readonly import ReadOnlyAdmin


@admin.register(Account)
class AccountAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("code", "name", "account_type", "parent", "is_active", "organization")
    list_filter = ("account_type", "is_active", "organization")
    search_fields = ("code", "name")
    ordering = ("organization", "code")

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("organization", "parent")


@admin.register(JournalEntry)
class JournalEntryAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("entry_number", "date", "status", "source_type", "source_id", "organization")
    list_filter = ("status", "source_type", "organization")
    search_fields = ("entry_number", "description")
    readonly_fields = ("entry_number", "posted_at", "posting_fingerprint", "created_by")
    actions = [post_journal_entries]
    inlines = [JournalLineInline]

    """ Posted entries are immutable at admin level """

    def get_readonly_fields(self, request, obj=None):
        if obj and obj.status != "draft":
            return [f.name for f in self.model._meta.fields]
        return super().get_readonly_fields(request, obj)

    def has_delete_permission(self, request, obj=None):
        if obj and obj.status != "draft":
            return False
        return super().has_delete_permission(request, obj)


@admin.register(AuditLog)
class AuditLogAdmin(TenantAdminMixin, ReadOnlyAdmin):
    list_display = ("id", "organization", "user", "action", "object_type", "object_id", "created_at")

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("organization", "user")
