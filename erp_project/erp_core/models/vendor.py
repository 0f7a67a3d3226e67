from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from ..utils import next_document_number
from .organization import Organization


# ---------- Vendor ----------
# Supplier who sends us bills (AP side)
class Vendor(models.Model):
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    # VEND-0001, assigned on first save
    vendor_number = models.CharField(max_length=30, blank=True)
    company_name = models.CharField(max_length=200)
    contact_name = models.CharField(max_length=200, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=32, blank=True)
    tax_id_number = models.CharField(max_length=50, blank=True)
    # Standard credit terms: 30 → bill due 30 days after bill date
    payment_terms_days = models.PositiveIntegerField(default=30)
    is_active = models.BooleanField(default=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("company_name",)
        indexes = [models.Index(fields=["organization", "company_name"])]
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "company_name"], name="uq_org_vendor_name"
            ),
            models.UniqueConstraint(
                fields=["organization", "vendor_number"], name="uq_org_vendor_number"
            ),
        ]

    def __str__(self):
        return f"{self.vendor_number} {self.company_name}"

    def clean(self):
        if self.payment_terms_days is not None and self.payment_terms_days > 365:
            raise ValidationError({"payment_terms_days": "Payment terms cannot exceed 365 days"})

    def save(self, *args, **kwargs):
        if not self.vendor_number:
            self.vendor_number = next_document_number(
                Vendor, self.organization, "vendor_number", "VEND-", 4
            )
        self.full_clean()
        return super().save(*args, **kwargs)
