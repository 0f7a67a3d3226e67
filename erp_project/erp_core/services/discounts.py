import logging

from django.db import transaction
from django.utils import timezone

from ..models import Discount
from .audit_helper import log_action

logger = logging.getLogger(__name__)


def save_discount(discount: Discount, user, data) -> Discount:
    creating = discount.pk is None
    for field, value in data.items():
        setattr(discount, field, value)
    with transaction.atomic():
        discount.save()
        log_action(
            action="create" if creating else "update", instance=discount, user=user,
            changes={k: str(v) for k, v in data.items()},
        )
    return discount


def expire_discounts(organization=None, today=None) -> int:
    """Deactivate discounts whose validity window has closed."""
    today = today or timezone.localdate()
    qs = Discount.objects.filter(is_active=True, valid_to__lt=today)
    if organization is not None:
        qs = qs.for_organization(organization)
    count = qs.update(is_active=False)
    if count:
        logger.info("Expired %s discount(s)", count)
    return count
