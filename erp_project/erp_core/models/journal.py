import hashlib
import json
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.utils import timezone

from ..exceptions import AlreadyPostedDifferentPayload, UnbalancedJournalError
from ..managers import TenantManager
from ..utils import ensure_same_organization, next_document_number, yearly_prefix
from .account import Account
from .organization import Organization

JOURNAL_STATUS = [
    ("draft", "Draft"),    # still editable
    ("posted", "Posted"),  # finalized
    ("voided", "Voided"),  # cancelled after posting, kept for history
]


# ---------- Journal (Header) & JournalLine ----------
class JournalEntry(models.Model):
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    # JE-2025-0001
    entry_number = models.CharField(max_length=30, blank=True)
    date = models.DateField()
    description = models.TextField(blank=True)
    status = models.CharField(max_length=10, choices=JOURNAL_STATUS, default="draft")
    posted_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL
    )
    # where the entry came from (bill, payment, cost_revaluation, landed_cost, manual)
    source_type = models.CharField(max_length=50, blank=True)
    source_id = models.BigIntegerField(null=True, blank=True)
    # Fingerprint-based idempotency (safe to post twice if nothing changed)
    posting_fingerprint = models.CharField(max_length=64, blank=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("-date", "-id")
        indexes = [
            models.Index(fields=["organization", "date"]),
            models.Index(fields=["organization", "status"]),
            models.Index(fields=["organization", "source_type", "source_id"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "entry_number"], name="uq_org_je_number"
            )
        ]
        verbose_name_plural = "journal entries"

    def __str__(self):
        return f"{self.entry_number} {self.date} [{self.status}]"

    def compute_totals(self):
        """Return (debits, credits) summed over the lines."""
        aggs = self.lines.aggregate(
            total_debit=models.Sum("debit"),
            total_credit=models.Sum("credit"),
        )
        return (
            aggs["total_debit"] or Decimal("0.00"),
            aggs["total_credit"] or Decimal("0.00"),
        )

    def is_balanced(self):
        debit, credit = self.compute_totals()
        return debit == credit

    def _posting_payload(self):
        """
        Deterministic JSON snapshot of what matters for posting:
        same data in, same string out.
        """
        lines = [
            {
                "acct": line.account_id,
                "debit": str(line.debit),
                "credit": str(line.credit),
                "desc": line.description or "",
            }
            for line in self.lines.order_by("id")
        ]
        payload = {
            "organization": self.organization_id,
            "date": self.date.isoformat(),
            "lines": lines,
        }
        return json.dumps(payload, separators=(",", ":"), sort_keys=True)

    def _fingerprint(self):
        return hashlib.sha256(self._posting_payload().encode()).hexdigest()

    @transaction.atomic
    def post(self, user=None):
        """
        Post the entry: validate, lock, stamp.
        Posting the same payload twice is a no-op.
        """
        # Lock header + lines against concurrent edits
        je = JournalEntry.objects.select_for_update().get(pk=self.pk)
        lines = je.lines.select_for_update()

        if lines.count() < 2:
            raise ValidationError("A journal entry needs at least two lines.")

        # Double-entry rule: debits = credits
        total_debit, total_credit = je.compute_totals()
        if total_debit != total_credit:
            raise UnbalancedJournalError(
                f"Journal not balanced: debits={total_debit}, credits={total_credit}"
            )

        # every line must stay inside the journal's tenant
        if lines.exclude(account__organization_id=je.organization_id).exists():
            raise ValidationError(
                "All journal lines must use accounts of the journal's organization."
            )

        fp = je._fingerprint()

        """ Idempotency & immutability """
        if je.status == "posted":
            if je.posting_fingerprint == fp:
                return je
            raise AlreadyPostedDifferentPayload(
                "Journal already posted with different payload."
            )
        if je.status == "voided":
            raise ValidationError("Cannot post a voided journal entry.")

        je.status = "posted"
        je.posted_at = timezone.now()
        if user and not je.created_by_id:
            je.created_by = user
        je.posting_fingerprint = fp
        je.save(update_fields=["status", "posted_at", "created_by", "posting_fingerprint"])

        # keep the caller's instance in sync
        self.status, self.posted_at = je.status, je.posted_at
        self.posting_fingerprint = je.posting_fingerprint
        return je

    def void(self):
        if self.status != "posted":
            raise ValidationError("Only posted journal entries can be voided.")
        self.status = "voided"
        self.save(update_fields=["status"])
        return self

    def clean(self):
        # posted entries are immutable apart from voiding
        if self.pk:
            orig = JournalEntry.objects.filter(pk=self.pk).first()
            if orig and orig.status == "posted":
                for f in ("date", "description", "organization_id"):
                    if getattr(orig, f) != getattr(self, f):
                        raise ValidationError(
                            "Cannot modify a posted JournalEntry. It is immutable."
                        )
                if self.status == "draft":
                    raise ValidationError("Cannot unpost a posted journal")

    def save(self, *args, **kwargs):
        if not self.entry_number:
            self.entry_number = next_document_number(
                JournalEntry, self.organization, "entry_number",
                yearly_prefix("JE", self.date), 4,
            )
        self.full_clean()
        return super().save(*args, **kwargs)


class JournalLine(models.Model):
    """One debit or credit against one account."""

    journal = models.ForeignKey(
        JournalEntry, on_delete=models.CASCADE, related_name="lines"
    )
    account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="journal_lines"
    )
    description = models.CharField(max_length=255, blank=True)
    debit = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    credit = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(debit__gte=0) & models.Q(credit__gte=0),
                name="ck_jl_non_negative",
            ),
            # exactly one side carries the amount
            models.CheckConstraint(
                condition=(
                    (models.Q(debit__gt=0) & models.Q(credit=0))
                    | (models.Q(debit=0) & models.Q(credit__gt=0))
                ),
                name="ck_jl_one_side",
            ),
        ]
        indexes = [models.Index(fields=["account"])]

    def __str__(self):
        return f"{self.account.code} Dr {self.debit} Cr {self.credit}"

    @property
    def organization_id(self):
        return self.journal.organization_id

    def clean(self):
        if self.debit < 0 or self.credit < 0:
            raise ValidationError("Debit and credit cannot be negative.")
        if (self.debit > 0) == (self.credit > 0):
            raise ValidationError("A journal line must be either a debit or a credit.")
        if self.journal_id and self.journal.status != "draft":
            raise ValidationError("Cannot add lines to a posted journal entry.")
        if self.account_id and self.journal_id:
            ensure_same_organization(self, "account")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
