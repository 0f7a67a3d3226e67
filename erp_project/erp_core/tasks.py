import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task  # register this function as a Celery task
def mark_overdue_bills(organization_id=None):
    """Daily sweep: payable bills past due with money owed become overdue."""
    # import lazily to avoid circular imports at module import time
    from .models import Organization
    from .services.bills import mark_overdue_bills as mark_overdue

    organization = None
    if organization_id is not None:
        organization = Organization.objects.get(pk=organization_id)
    count = mark_overdue(organization=organization)
    logger.info("mark_overdue_bills: %s bill(s) moved to overdue", count)
    return count


@shared_task
def expire_discounts():
    """Deactivate discounts whose valid_to date has passed."""
    from .services.discounts import expire_discounts as expire

    count = expire()
    logger.info("expire_discounts: %s discount(s) deactivated", count)
    return count
