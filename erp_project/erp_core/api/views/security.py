from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from ...models import AuditLog
from ..envelope import ok, paginate, parse_date
from ..permissions import Permission, require_permission
from ..serializers import AuditLogSerializer
from .common import query_id


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def audit_log_list(request, org_slug):
    org, _ = require_permission(request, org_slug, Permission.VIEW_AUDIT_LOG)
    qs = AuditLog.objects.for_organization(org).select_related("user")
    for param in ("action", "object_type", "object_id"):
        value = request.query_params.get(param)
        if value:
            qs = qs.filter(**{param: value})
    user_id = query_id(request, "user_id")
    if user_id:
        qs = qs.filter(user_id=user_id)
    date_from = parse_date(request, "date_from")
    if date_from:
        qs = qs.filter(created_at__date__gte=date_from)
    date_to = parse_date(request, "date_to")
    if date_to:
        qs = qs.filter(created_at__date__lte=date_to)
    items, pagination = paginate(request, qs)
    return ok(AuditLogSerializer(items, many=True).data, pagination=pagination)
