from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from ..envelope import ok
from ..serializers import MembershipSerializer, UserSerializer


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def me(request):
    """Current user with the organizations they can act in."""
    memberships = request.user.memberships.filter(is_active=True).select_related("organization")
    data = UserSerializer(request.user).data
    data["memberships"] = MembershipSerializer(memberships, many=True).data
    return ok(data)
