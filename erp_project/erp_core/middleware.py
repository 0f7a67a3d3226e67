from django.utils.deprecation import MiddlewareMixin
from .models import Organization


class CurrentOrganizationMiddleware(MiddlewareMixin):
    # Attach request.organization for session-authenticated screens (admin).
    # API views resolve the organization from the URL slug instead.
    def process_request(self, request):
        if not request.user.is_authenticated:
            request.organization = None
            return

        # Default organization fallback when the user hasn't switched
        request.organization = getattr(request.user, "default_organization", None)

        # A switched organization is stored in the session as "active_organization_id"
        organization_id = request.session.get("active_organization_id")
        if organization_id:
            try:
                # user must still hold an active membership there
                request.organization = Organization.objects.get(
                    id=organization_id,
                    memberships__user=request.user,
                    memberships__is_active=True,
                )
            except Organization.DoesNotExist:
                # tampered or stale session value
                request.organization = None
