from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from ..managers import TenantManager
from ..utils import ensure_same_organization, next_document_number, yearly_prefix
from .customer import Customer
from .inventory import Product
from .organization import Organization
from .vendor import Vendor

SEVERITY_CHOICES = [
    ("low", "Low"),
    ("medium", "Medium"),
    ("high", "High"),
    ("critical", "Critical"),
]

NCR_SOURCES = [
    ("receiving_inspection", "Receiving inspection"),
    ("in_process", "In process"),
    ("final_inspection", "Final inspection"),
    ("customer_complaint", "Customer complaint"),
    ("vendor_issue", "Vendor issue"),
    ("internal_audit", "Internal audit"),
    ("external_audit", "External audit"),
]

NCR_STATUS = [
    ("open", "Open"),
    ("investigating", "Investigating"),
    ("containment", "Containment"),
    ("root_cause_analysis", "Root cause analysis"),
    ("corrective_action", "Corrective action"),
    ("verification", "Verification"),
    ("closed", "Closed"),
    ("cancelled", "Cancelled"),
]

NCR_TERMINAL = ("closed", "cancelled")


# ---------- Non-conformance report ----------
class NonConformanceReport(models.Model):
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    # NCR-2025-00001
    ncr_number = models.CharField(max_length=30, blank=True)
    title = models.CharField(max_length=200)
    description = models.TextField()
    source = models.CharField(max_length=30, choices=NCR_SOURCES)
    severity = models.CharField(max_length=10, choices=SEVERITY_CHOICES, default="medium")
    status = models.CharField(max_length=30, choices=NCR_STATUS, default="open")

    # what / who the problem was found on (all optional)
    product = models.ForeignKey(
        Product, null=True, blank=True, on_delete=models.SET_NULL, related_name="ncrs"
    )
    vendor = models.ForeignKey(
        Vendor, null=True, blank=True, on_delete=models.SET_NULL, related_name="ncrs"
    )
    customer = models.ForeignKey(
        Customer, null=True, blank=True, on_delete=models.SET_NULL, related_name="ncrs"
    )
    lot_number = models.CharField(max_length=64, blank=True)
    quantity = models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)

    detected_date = models.DateField(default=timezone.localdate)
    detected_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="detected_ncrs",
    )
    root_cause = models.TextField(blank=True)
    containment_action = models.TextField(blank=True)
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="assigned_ncrs",
    )
    target_close_date = models.DateField(null=True, blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)
    closed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="closed_ncrs",
    )
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("-detected_date", "-id")
        indexes = [
            models.Index(fields=["organization", "status"]),
            models.Index(fields=["organization", "severity"]),
        ]
        constraints = [
            models.UniqueConstraint(fields=["organization", "ncr_number"], name="uq_org_ncr_number")
        ]
        verbose_name = "non-conformance report"

    def __str__(self):
        return f"{self.ncr_number} {self.title}"

    @property
    def is_closed(self):
        return self.status in NCR_TERMINAL

    def set_status(self, new_status, user=None):
        if new_status == self.status:
            return self
        if self.status in NCR_TERMINAL:
            raise ValidationError(f"Cannot change a {self.status} NCR.")
        if new_status not in dict(NCR_STATUS):
            raise ValidationError(f"Unknown NCR status: {new_status}")
        self.status = new_status
        # closure is stamped once
        if new_status == "closed" and not self.closed_at:
            self.closed_at = timezone.now()
            self.closed_by = user
        return self

    def clean(self):
        ensure_same_organization(self, "product", "vendor", "customer")
        if self.quantity is not None and self.quantity < 0:
            raise ValidationError({"quantity": "Quantity cannot be negative"})
        if self.pk:
            orig = NonConformanceReport.objects.filter(pk=self.pk).first()
            if orig and orig.status in NCR_TERMINAL and orig.status != self.status:
                raise ValidationError(f"Cannot change a {orig.status} NCR.")

    def save(self, *args, **kwargs):
        if not self.ncr_number:
            self.ncr_number = next_document_number(
                NonConformanceReport, self.organization, "ncr_number",
                yearly_prefix("NCR", self.detected_date), 5,
            )
        self.full_clean()
        return super().save(*args, **kwargs)


# ---------- CAPA ----------
CAPA_TYPES = [
    ("corrective", "Corrective"),
    ("preventive", "Preventive"),
    ("both", "Both"),
]

CAPA_SOURCES = [
    ("ncr", "NCR"),
    ("audit", "Audit"),
    ("customer_complaint", "Customer complaint"),
    ("management_review", "Management review"),
    ("risk_assessment", "Risk assessment"),
    ("other", "Other"),
]

CAPA_STATUS = [
    ("open", "Open"),
    ("in_progress", "In progress"),
    ("implemented", "Implemented"),
    ("verifying", "Verifying"),
    ("verified", "Verified"),
    ("closed", "Closed"),
    ("cancelled", "Cancelled"),
]

CAPA_TRANSITIONS = {
    "open": ["in_progress", "cancelled"],
    "in_progress": ["implemented", "cancelled"],
    "implemented": ["verifying", "in_progress"],
    # failed verification goes back to the work
    "verifying": ["verified", "in_progress"],
    "verified": ["closed"],
    "closed": [],
    "cancelled": [],
}

CAPA_OPEN_STATUSES = ("open", "in_progress", "implemented", "verifying", "verified")


class CAPA(models.Model):
    """Corrective / preventive action, optionally raised from an NCR."""

    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    # CAPA-2025-0001
    capa_number = models.CharField(max_length=30, blank=True)
    title = models.CharField(max_length=200)
    description = models.TextField()
    capa_type = models.CharField(max_length=20, choices=CAPA_TYPES, default="corrective")
    source = models.CharField(max_length=30, choices=CAPA_SOURCES, default="other")
    priority = models.CharField(max_length=10, choices=SEVERITY_CHOICES, default="medium")
    risk_level = models.CharField(max_length=10, choices=SEVERITY_CHOICES, default="medium")
    status = models.CharField(max_length=20, choices=CAPA_STATUS, default="open")
    # one CAPA per NCR
    ncr = models.OneToOneField(
        NonConformanceReport, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="capa",
    )
    root_cause = models.TextField(blank=True)
    corrective_action = models.TextField(blank=True)
    preventive_action = models.TextField(blank=True)
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="assigned_capas",
    )
    due_date = models.DateField(null=True, blank=True)
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="verified_capas",
    )
    verified_at = models.DateTimeField(null=True, blank=True)
    verification_notes = models.TextField(blank=True)
    closed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="closed_capas",
    )
    closure_date = models.DateField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="created_capas",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("-created_at", "-id")
        indexes = [
            models.Index(fields=["organization", "status"]),
            models.Index(fields=["organization", "due_date"]),
        ]
        constraints = [
            models.UniqueConstraint(fields=["organization", "capa_number"], name="uq_org_capa_number")
        ]
        verbose_name = "CAPA"
        verbose_name_plural = "CAPAs"

    def __str__(self):
        return f"{self.capa_number} {self.title}"

    @property
    def is_overdue(self):
        return (
            self.status in CAPA_OPEN_STATUSES
            and self.due_date is not None
            and self.due_date < timezone.localdate()
        )

    def transition_to(self, new_status, user=None):
        """Move along CAPA_TRANSITIONS, stamping verifier / closer on the way."""
        if new_status not in CAPA_TRANSITIONS.get(self.status, []):
            raise ValidationError(f"Cannot go from {self.status} to {new_status}")
        self.status = new_status
        if new_status == "verified":
            self.verified_by = user
            self.verified_at = timezone.now()
        elif new_status == "closed":
            self.closed_by = user
            self.closure_date = timezone.localdate()
        return self

    def clean(self):
        ensure_same_organization(self, "ncr")

    def save(self, *args, **kwargs):
        if not self.capa_number:
            self.capa_number = next_document_number(
                CAPA, self.organization, "capa_number", yearly_prefix("CAPA"), 4,
            )
        self.full_clean()
        return super().save(*args, **kwargs)


TASK_STATUS = [
    ("open", "Open"),
    ("in_progress", "In progress"),
    ("completed", "Completed"),
    ("cancelled", "Cancelled"),
]


class CapaTask(models.Model):
    capa = models.ForeignKey(CAPA, on_delete=models.CASCADE, related_name="tasks")
    # CAPA-2025-0001-T01
    task_number = models.CharField(max_length=40, blank=True)
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="capa_tasks",
    )
    due_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=TASK_STATUS, default="open")
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("task_number", "id")

    def __str__(self):
        return f"{self.task_number} {self.title}"

    @property
    def organization_id(self):
        return self.capa.organization_id

    def _next_task_number(self):
        prefix = f"{self.capa.capa_number}-T"
        highest = 0
        for number in CapaTask.objects.filter(capa=self.capa).values_list("task_number", flat=True):
            suffix = number[len(prefix):]
            if number.startswith(prefix) and suffix.isdigit():
                highest = max(highest, int(suffix))
        return f"{prefix}{highest + 1:02d}"

    def save(self, *args, **kwargs):
        if not self.task_number:
            self.task_number = self._next_task_number()
        if self.status == "completed" and not self.completed_at:
            self.completed_at = timezone.now()
        elif self.status != "completed":
            self.completed_at = None
        self.full_clean()
        return super().save(*args, **kwargs)

