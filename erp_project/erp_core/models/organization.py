from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import OrganizationUserManager


# ---------- Tenant / Organization ----------
class Organization(models.Model):
    """Tenant. Every business record hangs off one of these."""

    name = models.CharField(max_length=200)
    # URL identifier used by every API route: /api/orgs/<slug>/...
    slug = models.SlugField(max_length=80, unique=True)
    # ISO code all automatic postings are expressed in
    base_currency = models.CharField(max_length=3, default="USD")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("name",)

    def __str__(self):
        return self.name

    def clean(self):
        if self.base_currency:
            self.base_currency = self.base_currency.upper()
        if len(self.base_currency or "") != 3:
            raise ValidationError({"base_currency": "Use a 3-letter ISO currency code"})


# ---------- Custom User ----------
class User(AbstractUser):
    """
    AUTH_USER_MODEL = "erp_core.User" must be set
    before the very first migrate.
    """

    # Organization shown when the user hasn't picked one (admin screens)
    default_organization = models.ForeignKey(
        "Organization",
        null=True,
        blank=True,
        # keep the user, just clear the default
        on_delete=models.SET_NULL,
        related_name="default_users",
    )
    phone = models.CharField(max_length=32, blank=True)

    objects = OrganizationUserManager()

    class Meta:
        indexes = [models.Index(fields=["default_organization"])]

    def __str__(self):
        # Fall back to username if no name is set
        return self.get_full_name() or self.username

    def membership_for(self, organization):
        return self.memberships.filter(organization=organization).first()


# ---------- OrganizationMembership ----------
ROLE_CHOICES = [
    ("admin", "Admin"),            # everything
    ("accountant", "Accountant"),  # ledger, payments, costing approvals
    ("manager", "Manager"),        # day-to-day operations
    ("viewer", "Viewer"),          # read-only
]


class OrganizationMembership(models.Model):
    """Join table between User and Organization carrying the role."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="memberships",
    )
    organization = models.ForeignKey(
        Organization, on_delete=models.CASCADE, related_name="memberships"
    )
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default="viewer")
    # Extra permission strings granted on top of the role, "*" grants all
    permissions = models.JSONField(default=list, blank=True)
    # Suspend access without deleting the record
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            # one membership per user per organization
            models.UniqueConstraint(
                fields=["user", "organization"], name="uq_membership_user_org"
            )
        ]
        indexes = [models.Index(fields=["organization", "role"])]

    def __str__(self):
        return f"{self.user} @ {self.organization} ({self.role})"

    def clean(self):
        if not isinstance(self.permissions, list) or not all(
            isinstance(p, str) for p in self.permissions
        ):
            raise ValidationError({"permissions": "Must be a list of permission strings"})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
