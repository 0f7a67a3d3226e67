from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin
from django.utils.translation import gettext_lazy as _

from erp_core.models import Organization, OrganizationMembership, User

from .mixins import TenantAdminMixin


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "slug", "base_currency", "created_at")
    search_fields = ("name", "slug")
    ordering = ("name",)


# Extend stock `DjangoUserAdmin`
@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    list_display = (
        "username", "email", "get_full_name", "is_staff", "default_organization")
    list_filter = ("is_staff", "is_superuser", "is_active")
    search_fields = ("username", "email", "first_name", "last_name")
    ordering = ("username",)

    fieldsets = DjangoUserAdmin.fieldsets + (
        (_("Organization / Defaults"), {"fields": ("default_organization", "phone")}),
    )
    add_fieldsets = DjangoUserAdmin.add_fieldsets + (
        (_("Organization / Defaults"), {"fields": ("email", "default_organization")}),
    )

    # limit visible users to members of the request.user's organizations
    def get_queryset(self, request):
        qs = super().get_queryset(request)
        if request.user.is_superuser:
            return qs
        allowed = request.user.memberships.values_list("organization_id", flat=True)
        return qs.filter(memberships__organization_id__in=allowed).distinct()


@admin.register(OrganizationMembership)
class OrganizationMembershipAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("user", "organization", "role", "is_active", "created_at")
    list_filter = ("role", "is_active", "organization")
    search_fields = ("user__username", "user__email", "organization__name")
    readonly_fields = ("created_at",)

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("organization", "user")

    def _admin_org_ids(self, request):
        return set(
            request.user.memberships.filter(role="admin", is_active=True)
            .values_list("organization_id", flat=True)
        )

    # Only organization admins may change memberships
    def has_change_permission(self, request, obj=None):
        if request.user.is_superuser:
            return True
        org_ids = self._admin_org_ids(request)
        if obj is None:
            return bool(org_ids)
        return obj.organization_id in org_ids

    def has_delete_permission(self, request, obj=None):
        return self.has_change_permission(request, obj)

    def has_add_permission(self, request):
        return request.user.is_superuser or bool(self._admin_org_ids(request))
