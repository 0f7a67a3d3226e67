from django.contrib import admin
from django.core.exceptions import PermissionDenied


class ReadOnlyAdmin(admin.ModelAdmin):
    """Base admin for rows written only by the application (audit trail)."""

    list_per_page = 50

    # make every model field readonly
    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    # the change page stays viewable, saving is refused
    def save_model(self, request, obj, form, change):
        raise PermissionDenied(f"{self.model._meta.verbose_name} rows are written by the application only.")

    def get_actions(self, request):
        return {}

    def get_list_filter(self, request):
        present = {f.name for f in self.model._meta.fields}
        return tuple(name for name in ("organization", "action", "object_type", "created_at") if name in present)

    def get_search_fields(self, request):
        present = {f.name for f in self.model._meta.fields}
        return tuple(name for name in ("object_type", "object_id", "user__username") if name.split("__")[0] in present)
