from django.contrib.auth.models import UserManager
from django.db import models


# -----------------------------------------
# Enforce tenant scoping across all models
# that belong to an organization
# -----------------------------------------
class TenantQuerySet(models.QuerySet):
    def for_organization(self, organization):
        return self.filter(organization=organization)

    def active(self, organization):
        return self.filter(
            organization=organization,  # enforce tenant scoping
            is_active=True,             # only fetch active records
        )
    # Enables query:
    # Vendor.objects.active(request.organization)


# Attach TenantQuerySet to .objects
class TenantManager(models.Manager.from_queryset(TenantQuerySet)):
    pass


class OrganizationUserManager(UserManager):
    """ Default UserManager plus tenant-aware helpers """

    def members_of(self, organization):
        # only users holding an active membership in the organization
        return self.filter(
            memberships__organization=organization,
            memberships__is_active=True,
        ).distinct()


class EffectiveDateQuerySet(TenantQuerySet):
    """ Records valid over a date range (effective_from .. effective_to) """

    def effective_on(self, on_date):
        # open-ended records (effective_to is NULL) stay valid
        return self.filter(effective_from__lte=on_date).filter(
            models.Q(effective_to__isnull=True) | models.Q(effective_to__gte=on_date)
        )


class EffectiveDateManager(models.Manager.from_queryset(EffectiveDateQuerySet)):
    pass
