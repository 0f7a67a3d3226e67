import logging

from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.utils import timezone

from ..models import CAPA, CapaTask, NonConformanceReport
from ..models.quality import CAPA_OPEN_STATUSES
from .audit_helper import log_action

logger = logging.getLogger(__name__)

# NCR severity → CAPA priority / risk level
SEVERITY_TO_PRIORITY = {
    "low": "low",
    "medium": "medium",
    "high": "high",
    "critical": "critical",
}


# ----------------------------
# NCR
# ----------------------------
def update_ncr(ncr: NonConformanceReport, user, data) -> NonConformanceReport:
    """Field edits plus optional status move; closing stamps closer and time."""
    with transaction.atomic():
        ncr = NonConformanceReport.objects.select_for_update().get(pk=ncr.pk)
        if ncr.is_closed:
            raise ValidationError(f"Cannot modify a {ncr.status} NCR.")
        new_status = data.pop("status", None)
        for field, value in data.items():
            setattr(ncr, field, value)
        if new_status:
            ncr.set_status(new_status, user=user)
        ncr.save()
        changes = {k: str(v) for k, v in data.items()}
        if new_status:
            changes["status"] = new_status
        log_action(action="update", instance=ncr, user=user, changes=changes)
    return ncr


def delete_ncr(ncr: NonConformanceReport, user=None):
    if ncr.status != "open":
        raise ValidationError("Only open NCRs can be deleted")
    if CAPA.objects.filter(ncr=ncr).exists():
        raise ValidationError("Cannot delete an NCR linked to a CAPA")
    log_action(action="delete", instance=ncr, user=user, changes={"ncr_number": ncr.ncr_number})
    ncr.delete()


# ----------------------------
# CAPA
# ----------------------------
def convert_ncr_to_capa(ncr: NonConformanceReport, user=None, **overrides) -> CAPA:
    """
    Raise a CAPA from an NCR (once per NCR).
    The NCR moves to corrective_action.
    """
    with transaction.atomic():
        ncr = NonConformanceReport.objects.select_for_update().get(pk=ncr.pk)
        if CAPA.objects.filter(ncr=ncr).exists():
            raise ValidationError(f"NCR {ncr.ncr_number} already has a CAPA")
        if ncr.is_closed:
            raise ValidationError(f"Cannot raise a CAPA from a {ncr.status} NCR")

        level = SEVERITY_TO_PRIORITY.get(ncr.severity, "medium")
        fields = {
            "title": ncr.title,
            "description": ncr.description,
            "root_cause": ncr.root_cause,
            "capa_type": "corrective",
            "source": "ncr",
            "priority": level,
            "risk_level": level,
            "assigned_to": ncr.assigned_to,
        }
        fields.update({k: v for k, v in overrides.items() if v is not None})
        capa = CAPA.objects.create(
            organization=ncr.organization, ncr=ncr, created_by=user, **fields
        )

        ncr.set_status("corrective_action")
        ncr.save()
        log_action(
            action="convert_to_capa", instance=ncr, user=user,
            changes={"capa_number": capa.capa_number},
        )
        log_action(action="create", instance=capa, user=user, changes={"ncr": ncr.ncr_number})
    logger.info("NCR %s converted to %s", ncr.ncr_number, capa.capa_number)
    return capa


def update_capa(capa: CAPA, user, data) -> CAPA:
    """
    Edit fields and walk the status machine.
    Permission checks for verify / close happen in the API layer.
    """
    with transaction.atomic():
        capa = CAPA.objects.select_for_update().get(pk=capa.pk)
        if capa.status in ("closed", "cancelled"):
            raise ValidationError(f"Cannot modify a {capa.status} CAPA.")
        new_status = data.pop("status", None)
        for field, value in data.items():
            setattr(capa, field, value)
        old_status = capa.status
        if new_status and new_status != capa.status:
            capa.transition_to(new_status, user=user)
        capa.save()
        changes = {k: str(v) for k, v in data.items()}
        if new_status and new_status != old_status:
            changes["status"] = {"from": old_status, "to": new_status}
        log_action(action="update", instance=capa, user=user, changes=changes)
    return capa


def delete_capa(capa: CAPA, user=None):
    if capa.status not in ("open", "cancelled"):
        raise ValidationError("Only open or cancelled CAPAs can be deleted")
    with transaction.atomic():
        log_action(action="delete", instance=capa, user=user, changes={"capa_number": capa.capa_number})
        capa.delete()


def capa_statistics(queryset):
    today = timezone.localdate()
    by_risk = {
        row["risk_level"]: row["count"]
        for row in queryset.order_by().values("risk_level").annotate(count=models.Count("id"))
    }
    by_source = {
        row["source"]: row["count"]
        for row in queryset.order_by().values("source").annotate(count=models.Count("id"))
    }
    open_qs = queryset.filter(status__in=CAPA_OPEN_STATUSES)
    return {
        "total": queryset.count(),
        "open": open_qs.count(),
        "closed": queryset.filter(status="closed").count(),
        "overdue": open_qs.filter(due_date__lt=today).count(),
        "critical": queryset.filter(
            models.Q(priority="critical") | models.Q(risk_level="critical")
        ).count(),
        "by_risk_level": by_risk,
        "by_source": by_source,
    }


def save_capa_task(task: CapaTask, user, data) -> CapaTask:
    creating = task.pk is None
    for field, value in data.items():
        setattr(task, field, value)
    task.save()
    log_action(
        action="create" if creating else "update",
        instance=task, user=user, organization=task.capa.organization,
        changes={k: str(v) for k, v in data.items()},
    )
    return task
