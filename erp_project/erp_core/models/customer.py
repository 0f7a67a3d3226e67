from django.db import models

from ..managers import TenantManager
from .organization import Organization


# ---------- Customer ----------
# Who service bookings are for and who raises complaints (NCR source)
class Customer(models.Model):
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    name = models.CharField(max_length=200)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=32, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("name",)
        indexes = [models.Index(fields=["organization", "name"])]
        constraints = [
            models.UniqueConstraint(fields=["organization", "name"], name="uq_org_customer_name")
        ]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
