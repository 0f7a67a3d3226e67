from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from ..managers import TenantManager
from ..utils import ensure_same_organization, money, monthly_prefix, next_document_number
from .customer import Customer
from .organization import Organization

SERVICE_TYPES = [
    ("consulting", "Consulting"),
    ("installation", "Installation"),
    ("maintenance", "Maintenance"),
    ("repair", "Repair"),
    ("training", "Training"),
    ("support", "Support"),
    ("other", "Other"),
]

PRICING_MODELS = [
    ("fixed", "Fixed"),
    ("hourly", "Hourly"),
    ("daily", "Daily"),
    ("per_unit", "Per unit"),
]


# ---------- Service catalog ----------
class ServiceCatalog(models.Model):
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    service_code = models.CharField(max_length=50)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    service_type = models.CharField(max_length=20, choices=SERVICE_TYPES, default="other")
    pricing_model = models.CharField(max_length=20, choices=PRICING_MODELS, default="fixed")
    standard_rate = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    standard_duration_hours = models.DecimalField(
        max_digits=8, decimal_places=2, null=True, blank=True
    )
    is_billable = models.BooleanField(default=True)
    is_active = models.BooleanField(default=True)
    # approved bookings get a planned delivery right away
    auto_scheduling = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("service_code",)
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "service_code"], name="uq_org_service_code"
            )
        ]
        verbose_name = "service"

    def __str__(self):
        return f"{self.service_code} - {self.name}"

    def clean(self):
        if self.standard_rate is not None and self.standard_rate < 0:
            raise ValidationError({"standard_rate": "Rate cannot be negative"})
        if self.standard_duration_hours is not None and self.standard_duration_hours <= 0:
            raise ValidationError({"standard_duration_hours": "Duration must be greater than 0"})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


# ---------- Bookings ----------
BOOKING_PRIORITY = [
    ("low", "Low"),
    ("medium", "Medium"),
    ("high", "High"),
    ("urgent", "Urgent"),
]

BOOKING_STATUS = [
    ("requested", "Requested"),
    ("pending_approval", "Pending approval"),
    ("confirmed", "Confirmed"),
    ("scheduled", "Scheduled"),
    ("in_progress", "In progress"),
    ("completed", "Completed"),
    ("cancelled", "Cancelled"),
    ("no_show", "No show"),
    ("rescheduled", "Rescheduled"),
]

APPROVABLE_BOOKING_STATUSES = ("requested", "pending_approval")
CLOSED_BOOKING_STATUSES = ("completed", "cancelled")


class ServiceBooking(models.Model):
    """Customer request for a catalog service, approved before delivery."""

    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    # BK2025060001
    booking_number = models.CharField(max_length=30, blank=True)
    service = models.ForeignKey(ServiceCatalog, on_delete=models.PROTECT, related_name="bookings")
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name="service_bookings")
    contact_name = models.CharField(max_length=200, blank=True)
    contact_email = models.EmailField(blank=True)
    contact_phone = models.CharField(max_length=32, blank=True)
    requested_date = models.DateField()
    priority = models.CharField(max_length=10, choices=BOOKING_PRIORITY, default="medium")
    estimated_hours = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    quoted_price = models.DecimalField(max_digits=18, decimal_places=2, null=True, blank=True)
    approved_price = models.DecimalField(max_digits=18, decimal_places=2, null=True, blank=True)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="approved_bookings",
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=BOOKING_STATUS, default="requested")
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="created_bookings",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("-requested_date", "-id")
        indexes = [models.Index(fields=["organization", "status"])]
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "booking_number"], name="uq_org_booking_number"
            )
        ]

    def __str__(self):
        return f"{self.booking_number} {self.service.name}"

    def approve(self, user=None):
        if self.status not in APPROVABLE_BOOKING_STATUSES:
            raise ValidationError(f"Cannot approve a {self.status} booking")
        self.status = "confirmed"
        self.approved_by = user
        self.approved_at = timezone.now()
        if self.approved_price is None:
            self.approved_price = self.quoted_price
        return self

    def cancel(self):
        if self.status in CLOSED_BOOKING_STATUSES:
            raise ValidationError(f"Cannot cancel a {self.status} booking")
        self.status = "cancelled"
        return self

    def clean(self):
        ensure_same_organization(self, "service", "customer")
        for field in ("estimated_hours", "quoted_price", "approved_price"):
            value = getattr(self, field)
            if value is not None and value < 0:
                raise ValidationError({field: "Cannot be negative"})

    def save(self, *args, **kwargs):
        if not self.booking_number:
            self.booking_number = next_document_number(
                ServiceBooking, self.organization, "booking_number",
                monthly_prefix("BK"), 4,
            )
        self.full_clean()
        return super().save(*args, **kwargs)


# ---------- Deliveries ----------
DELIVERY_STATUS = [
    ("planned", "Planned"),
    ("scheduled", "Scheduled"),
    ("in_progress", "In progress"),
    ("on_hold", "On hold"),
    ("completed", "Completed"),
    ("cancelled", "Cancelled"),
    ("rescheduled", "Rescheduled"),
    ("pending_approval", "Pending approval"),
]

STARTABLE_DELIVERY_STATUSES = ("planned", "scheduled")
COMPLETABLE_DELIVERY_STATUSES = ("in_progress", "on_hold")
ACTIVE_DELIVERY_STATUSES = ("scheduled", "in_progress")


class ServiceDelivery(models.Model):
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    # SD2025060001
    delivery_number = models.CharField(max_length=30, blank=True)
    service = models.ForeignKey(ServiceCatalog, on_delete=models.PROTECT, related_name="deliveries")
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name="service_deliveries")
    booking = models.ForeignKey(
        ServiceBooking, null=True, blank=True, on_delete=models.SET_NULL, related_name="deliveries"
    )
    status = models.CharField(max_length=20, choices=DELIVERY_STATUS, default="planned")
    planned_start = models.DateTimeField(null=True, blank=True)
    planned_end = models.DateTimeField(null=True, blank=True)
    actual_start = models.DateTimeField(null=True, blank=True)
    actual_end = models.DateTimeField(null=True, blank=True)
    estimated_hours = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    # running total of logged time
    actual_hours = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    # percent complete
    progress = models.PositiveSmallIntegerField(default=0)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("-created_at", "-id")
        indexes = [models.Index(fields=["organization", "status"])]
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "delivery_number"], name="uq_org_delivery_number"
            )
        ]
        verbose_name_plural = "service deliveries"

    def __str__(self):
        return f"{self.delivery_number} {self.service.name} [{self.status}]"

    def start(self):
        if self.status not in STARTABLE_DELIVERY_STATUSES:
            raise ValidationError(f"Cannot start a {self.status} delivery")
        self.status = "in_progress"
        self.actual_start = timezone.now()
        return self

    def complete(self):
        if self.status not in COMPLETABLE_DELIVERY_STATUSES:
            raise ValidationError(f"Cannot complete a {self.status} delivery")
        self.status = "completed"
        self.progress = 100
        self.actual_end = timezone.now()
        return self

    def clean(self):
        ensure_same_organization(self, "service", "customer", "booking")
        if self.progress is not None and not (0 <= self.progress <= 100):
            raise ValidationError({"progress": "Progress must be between 0 and 100"})
        if self.planned_start and self.planned_end and self.planned_end < self.planned_start:
            raise ValidationError({"planned_end": "planned_end must be after planned_start"})

    def save(self, *args, **kwargs):
        if not self.delivery_number:
            self.delivery_number = next_document_number(
                ServiceDelivery, self.organization, "delivery_number",
                monthly_prefix("SD"), 4,
            )
        self.full_clean()
        return super().save(*args, **kwargs)


# ---------- Time entries ----------
class ServiceTimeEntry(models.Model):
    delivery = models.ForeignKey(
        ServiceDelivery, on_delete=models.CASCADE, related_name="time_entries"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="service_time_entries"
    )
    entry_date = models.DateField(default=timezone.localdate)
    duration_hours = models.DecimalField(max_digits=8, decimal_places=2)
    hourly_rate = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    is_billable = models.BooleanField(default=True)
    # rate × hours for billable time, 0 otherwise
    total_amount = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-entry_date", "-id")
        verbose_name_plural = "service time entries"

    def __str__(self):
        return f"{self.user} {self.duration_hours}h on {self.delivery.delivery_number}"

    @property
    def organization_id(self):
        return self.delivery.organization_id

    def clean(self):
        if self.duration_hours is None or self.duration_hours <= 0:
            raise ValidationError({"duration_hours": "Duration must be greater than 0"})
        if self.hourly_rate is not None and self.hourly_rate < 0:
            raise ValidationError({"hourly_rate": "Rate cannot be negative"})

    def save(self, *args, **kwargs):
        if self.is_billable:
            self.total_amount = money((self.hourly_rate or 0) * (self.duration_hours or 0))
        else:
            self.total_amount = Decimal("0.00")
        self.full_clean()
        return super().save(*args, **kwargs)
