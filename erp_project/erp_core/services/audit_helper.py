import logging
from typing import Optional

from ..models import AuditLog, Organization

logger = logging.getLogger(__name__)


def log_action(
    *,
    action: str,
    instance,
    user=None,
    organization: Optional[Organization] = None,
    changes: dict | None = None,
):
    """
    Central audit logger.
    Safe to call multiple times (caller ensures idempotency).
    """

    if not organization:
        organization = getattr(instance, "organization", None)

    # anonymous / task-driven writes are stored without a user
    if user is not None and not getattr(user, "is_authenticated", False):
        user = None

    entry = AuditLog.objects.create(
        organization=organization,
        user=user,
        action=action,
        object_type=instance.__class__.__name__,
        object_id=str(instance.pk),
        changes=changes,
    )
    logger.debug("audit %s %s(%s)", action, entry.object_type, entry.object_id)
    return entry


def field_changes(validated_data: dict) -> dict:
    """JSON-safe copy of a serializer's validated fields: related rows by pk, the rest as text."""
    changes = {}
    for name, value in validated_data.items():
        if hasattr(value, "pk"):
            value = value.pk
        elif not isinstance(value, (bool, int, str, type(None))):
            value = str(value)
        changes[name] = value
    return changes
