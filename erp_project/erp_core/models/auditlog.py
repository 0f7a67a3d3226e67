from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models

from ..managers import TenantManager
from .organization import Organization


# ---------- Audit / Event log ----------
class AuditLog(models.Model):
    # Nullable because some events are system-wide
    organization = models.ForeignKey(
        Organization, null=True, blank=True, on_delete=models.SET_NULL
    )
    # Nullable for automated actions (celery tasks, imports)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL
    )
    # create, update, delete, post, approve, void ...
    action = models.CharField(max_length=50)
    object_type = models.CharField(max_length=100)  # "Bill", "CAPA" ...
    object_id = models.CharField(max_length=100)
    # before/after details
    changes = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("-created_at", "-id")
        indexes = [
            models.Index(fields=["organization", "user"]),
            models.Index(fields=["organization", "created_at"]),
            models.Index(fields=["organization", "object_type", "object_id"]),
        ]

    def __str__(self):
        return (
            f"[{self.created_at:%Y-%m-%d %H:%M}] {self.user} "
            f"{self.action} {self.object_type}({self.object_id})"
        )
