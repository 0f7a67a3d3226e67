import logging
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models, transaction

from ..models import (ServiceBooking, ServiceCatalog, ServiceDelivery,
                      ServiceTimeEntry)
from ..models.service import ACTIVE_DELIVERY_STATUSES
from ..utils import money
from .audit_helper import log_action

logger = logging.getLogger(__name__)


# ----------------------------
# Bookings
# ----------------------------
def create_booking(organization, user, data) -> ServiceBooking:
    service = data["service"]
    if not service.is_active:
        raise ValidationError("Service is inactive")
    fields = dict(data)
    # quote from the catalog when the caller gives none
    if fields.get("quoted_price") is None and service.pricing_model == "fixed":
        fields["quoted_price"] = service.standard_rate
    elif fields.get("quoted_price") is None and fields.get("estimated_hours") is not None \
            and service.pricing_model == "hourly":
        fields["quoted_price"] = money(service.standard_rate * fields["estimated_hours"])
    booking = ServiceBooking.objects.create(organization=organization, created_by=user, **fields)
    log_action(action="create", instance=booking, user=user)
    return booking


def approve_booking(booking: ServiceBooking, user=None) -> ServiceBooking:
    """
    requested / pending_approval → confirmed.
    Auto-scheduling services get a planned delivery straight away.
    """
    with transaction.atomic():
        booking = ServiceBooking.objects.select_for_update().get(pk=booking.pk)
        booking.approve(user)
        booking.save()

        delivery = None
        if booking.service.auto_scheduling:
            delivery = ServiceDelivery.objects.create(
                organization=booking.organization,
                service=booking.service,
                customer=booking.customer,
                booking=booking,
                status="planned",
                estimated_hours=booking.estimated_hours or booking.service.standard_duration_hours,
            )
        log_action(
            action="approve", instance=booking, user=user,
            changes={
                "approved_price": booking.approved_price,
                "delivery": delivery.delivery_number if delivery else None,
            },
        )
    return booking


def cancel_booking(booking: ServiceBooking, user=None, reason="") -> ServiceBooking:
    with transaction.atomic():
        booking = ServiceBooking.objects.select_for_update().get(pk=booking.pk)
        booking.cancel()
        if reason:
            booking.notes = f"{booking.notes}\nCancelled: {reason}".strip()
        booking.save()
        log_action(action="cancel", instance=booking, user=user, changes={"reason": reason})
    return booking


# ----------------------------
# Deliveries
# ----------------------------
def create_delivery(organization, user, data) -> ServiceDelivery:
    fields = dict(data)
    booking = fields.get("booking")
    if booking is not None:
        fields["service"] = fields.get("service") or booking.service
        fields["customer"] = fields.get("customer") or booking.customer
    if fields.get("service") is None or fields.get("customer") is None:
        raise ValidationError("service and customer are required")
    delivery = ServiceDelivery.objects.create(organization=organization, **fields)
    log_action(action="create", instance=delivery, user=user)
    return delivery


def start_delivery(delivery: ServiceDelivery, user=None) -> ServiceDelivery:
    with transaction.atomic():
        delivery = ServiceDelivery.objects.select_for_update().get(pk=delivery.pk)
        delivery.start()
        delivery.save()
        log_action(action="start", instance=delivery, user=user)
    return delivery


def complete_delivery(delivery: ServiceDelivery, user=None, notes="") -> ServiceDelivery:
    with transaction.atomic():
        delivery = ServiceDelivery.objects.select_for_update().get(pk=delivery.pk)
        delivery.complete()
        if notes:
            delivery.notes = f"{delivery.notes}\n{notes}".strip()
        delivery.save()
        # the booking is done when its delivery is
        if delivery.booking_id:
            ServiceBooking.objects.filter(pk=delivery.booking_id).exclude(
                status__in=("completed", "cancelled")
            ).update(status="completed")
        log_action(
            action="complete", instance=delivery, user=user,
            changes={"actual_hours": delivery.actual_hours},
        )
    return delivery


def log_time(delivery: ServiceDelivery, user, data) -> ServiceTimeEntry:
    """Record time against a delivery and add it to the delivery's actual hours."""
    with transaction.atomic():
        delivery = ServiceDelivery.objects.select_for_update().get(pk=delivery.pk)
        if delivery.status in ("completed", "cancelled"):
            raise ValidationError(f"Cannot log time on a {delivery.status} delivery")
        fields = dict(data)
        if fields.get("hourly_rate") is None:
            fields["hourly_rate"] = (
                delivery.service.standard_rate
                if delivery.service.pricing_model == "hourly"
                else Decimal("0.00")
            )
        if "is_billable" not in fields:
            fields["is_billable"] = delivery.service.is_billable
        entry = ServiceTimeEntry.objects.create(delivery=delivery, user=user, **fields)
        delivery.actual_hours = (delivery.actual_hours or Decimal("0.00")) + entry.duration_hours
        delivery.save()
        log_action(
            action="log_time", instance=entry, user=user, organization=delivery.organization,
            changes={"hours": entry.duration_hours, "delivery": delivery.delivery_number},
        )
    return entry


# ----------------------------
# Metrics
# ----------------------------
def service_metrics(organization, date_from=None, date_to=None):
    deliveries = ServiceDelivery.objects.for_organization(organization)
    entries = ServiceTimeEntry.objects.filter(delivery__organization=organization)
    if date_from:
        deliveries = deliveries.filter(created_at__date__gte=date_from)
        entries = entries.filter(entry_date__gte=date_from)
    if date_to:
        deliveries = deliveries.filter(created_at__date__lte=date_to)
        entries = entries.filter(entry_date__lte=date_to)

    zero = Decimal("0.00")
    total_hours = entries.aggregate(s=models.Sum("duration_hours"))["s"] or zero
    users = entries.values("user").distinct().count()
    return {
        "total_services": ServiceCatalog.objects.active(organization).count(),
        "active_deliveries": deliveries.filter(status__in=ACTIVE_DELIVERY_STATUSES).count(),
        "completed_deliveries": deliveries.filter(status="completed").count(),
        "billable_amount": entries.filter(is_billable=True).aggregate(
            s=models.Sum("total_amount"))["s"] or zero,
        "total_hours": total_hours,
        "average_hours_per_user": money(total_hours / users) if users else zero,
    }
