from rest_framework import exceptions

from ..exceptions import TenantAccessError
from ..models import Organization, OrganizationMembership


class Permission:
    """Permission strings, `verb:resource`."""

    # General ledger
    VIEW_CHART_OF_ACCOUNTS = "view:chart_of_accounts"
    MANAGE_CHART_OF_ACCOUNTS = "manage:chart_of_accounts"
    VIEW_JOURNAL_ENTRIES = "view:journal_entries"
    CREATE_JOURNAL_ENTRY = "create:journal_entry"
    VOID_TRANSACTION = "void:transaction"

    # Accounts payable
    VIEW_VENDORS = "view:vendors"
    MANAGE_VENDORS = "manage:vendors"
    VIEW_BILLS = "view:bills"
    CREATE_BILL = "create:bill"
    APPROVE_BILL = "approve:bill"
    VIEW_PAYMENTS = "view:payments"
    CREATE_PAYMENT = "create:payment"

    # Inventory / customers
    VIEW_INVENTORY = "view:inventory"
    MANAGE_INVENTORY = "manage:inventory"
    VIEW_CUSTOMERS = "view:customers"
    MANAGE_CUSTOMERS = "manage:customers"

    # Costing
    VIEW_STANDARD_COSTS = "view:standard_costs"
    MANAGE_STANDARD_COSTS = "manage:standard_costs"
    VIEW_COST_VARIANCES = "view:cost_variances"
    MANAGE_COST_VARIANCES = "manage:cost_variances"
    VIEW_LANDED_COSTS = "view:landed_costs"
    MANAGE_LANDED_COSTS = "manage:landed_costs"
    VIEW_COST_REVALUATIONS = "view:cost_revaluations"
    MANAGE_COST_REVALUATIONS = "manage:cost_revaluations"
    APPROVE_COST_REVALUATIONS = "approve:cost_revaluations"

    # Quality
    VIEW_NCR = "view:ncr"
    MANAGE_NCR = "manage:ncr"
    CLOSE_NCR = "close:ncr"
    VIEW_CAPA = "view:capa"
    MANAGE_CAPA = "manage:capa"
    VERIFY_CAPA = "verify:capa"
    CLOSE_CAPA = "close:capa"

    # Reporting
    VIEW_DASHBOARDS = "view:dashboards"
    CREATE_DASHBOARDS = "create:dashboards"
    MANAGE_DASHBOARDS = "manage:dashboards"

    # Master data / planning
    VIEW_DISCOUNTS = "view:discounts"
    MANAGE_DISCOUNTS = "manage:discounts"
    VIEW_DEMAND_FORECASTS = "view:demand_forecasts"
    MANAGE_DEMAND_FORECASTS = "manage:demand_forecasts"

    # Services
    VIEW_SERVICES = "view:services"
    CREATE_SERVICES = "create:services"
    MANAGE_SERVICES = "manage:services"
    VIEW_SERVICE_BOOKINGS = "view:service_bookings"
    CREATE_SERVICE_BOOKINGS = "create:service_bookings"
    MANAGE_SERVICE_BOOKINGS = "manage:service_bookings"
    APPROVE_SERVICE_BOOKINGS = "approve:service_bookings"
    VIEW_SERVICE_DELIVERIES = "view:service_deliveries"
    CREATE_SERVICE_DELIVERIES = "create:service_deliveries"
    MANAGE_SERVICE_DELIVERIES = "manage:service_deliveries"
    LOG_SERVICE_TIME = "log:service_time"
    VIEW_SERVICE_TIME = "view:service_time"

    # Security
    VIEW_AUDIT_LOG = "view:audit_log"

    @classmethod
    def all(cls):
        return frozenset(
            value for name, value in vars(cls).items()
            if name.isupper() and isinstance(value, str)
        )


# ---------- Role sets (cumulative) ----------
VIEWER_PERMISSIONS = frozenset(p for p in Permission.all() if p.startswith("view:"))

MANAGER_PERMISSIONS = VIEWER_PERMISSIONS | {
    Permission.MANAGE_VENDORS,
    Permission.CREATE_BILL,
    Permission.APPROVE_BILL,
    Permission.MANAGE_NCR,
    Permission.MANAGE_CAPA,
    Permission.CREATE_DASHBOARDS,
    Permission.MANAGE_DEMAND_FORECASTS,
    Permission.CREATE_SERVICES,
    Permission.MANAGE_SERVICES,
    Permission.CREATE_SERVICE_BOOKINGS,
    Permission.MANAGE_SERVICE_BOOKINGS,
    Permission.CREATE_SERVICE_DELIVERIES,
    Permission.MANAGE_SERVICE_DELIVERIES,
    Permission.LOG_SERVICE_TIME,
    Permission.MANAGE_CUSTOMERS,
}

ACCOUNTANT_PERMISSIONS = MANAGER_PERMISSIONS | {
    Permission.MANAGE_CHART_OF_ACCOUNTS,
    Permission.CREATE_JOURNAL_ENTRY,
    Permission.VOID_TRANSACTION,
    Permission.CREATE_PAYMENT,
    Permission.MANAGE_INVENTORY,
    Permission.MANAGE_STANDARD_COSTS,
    Permission.MANAGE_COST_VARIANCES,
    Permission.MANAGE_LANDED_COSTS,
    Permission.MANAGE_COST_REVALUATIONS,
    Permission.APPROVE_COST_REVALUATIONS,
    Permission.CLOSE_NCR,
    Permission.VERIFY_CAPA,
    Permission.CLOSE_CAPA,
    Permission.MANAGE_DASHBOARDS,
    Permission.MANAGE_DISCOUNTS,
    Permission.APPROVE_SERVICE_BOOKINGS,
}

ADMIN_PERMISSIONS = Permission.all()

ROLE_PERMISSIONS = {
    "viewer": VIEWER_PERMISSIONS,
    "manager": MANAGER_PERMISSIONS,
    "accountant": ACCOUNTANT_PERMISSIONS,
    "admin": ADMIN_PERMISSIONS,
}

ROLE_HIERARCHY = {
    "viewer": 1,
    "manager": 2,
    "accountant": 3,
    "admin": 4,
}


def has_minimum_role(role, required):
    return ROLE_HIERARCHY.get(role, 0) >= ROLE_HIERARCHY.get(required, 99)


def membership_has_permission(membership: OrganizationMembership, permission):
    if permission in ROLE_PERMISSIONS.get(membership.role, frozenset()):
        return True
    extra = membership.permissions or []
    return "*" in extra or permission in extra


def require_permission(request, org_slug, permission):
    """
    Resolve the organization behind `org_slug` and check the caller may
    `permission` in it. Returns (organization, membership).
    """
    user = request.user
    if not user or not user.is_authenticated:
        raise exceptions.NotAuthenticated()

    organization = Organization.objects.filter(slug=org_slug).first()
    if organization is None:
        raise exceptions.NotFound("Organization not found")

    membership = OrganizationMembership.objects.filter(
        user=user, organization=organization, is_active=True
    ).first()
    if membership is None:
        raise TenantAccessError("You are not a member of this organization")

    if not membership_has_permission(membership, permission):
        raise exceptions.PermissionDenied("Insufficient permissions")
    return organization, membership


def check_permission(membership, permission):
    """Second check inside a view that already resolved the membership."""
    if not membership_has_permission(membership, permission):
        raise exceptions.PermissionDenied("Insufficient permissions")
