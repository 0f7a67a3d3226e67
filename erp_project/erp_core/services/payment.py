import logging
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models, transaction

# Import models
from ..models import Bill, Payment, PaymentAllocation
from ..models.bill import PAYABLE_STATUSES
from ..models.payment import ALLOCATION_TOLERANCE
from .audit_helper import log_action
from .posting import create_payment_journal

logger = logging.getLogger(__name__)


# ----------------------------
# Payment-related workflows
# ----------------------------
def record_payment(organization, user, data) -> Payment:
    """
    Record a vendor payment and apply it to one or more bills.
    Locks every bill touched until the transaction finishes.
    """
    allocations = data.get("allocations") or []
    if not allocations:
        raise ValidationError("At least one bill allocation is required")

    amount = data["amount"]
    allocated = sum((a["amount"] for a in allocations), Decimal("0.00"))
    if abs(allocated - amount) > ALLOCATION_TOLERANCE:
        raise ValidationError(
            f"Allocations ({allocated}) must equal the payment amount ({amount})"
        )

    vendor = data["vendor"]

    # Everything inside either succeeds
    # as one unit or rolls back if something fails
    with transaction.atomic():
        # Lock the bills in a stable order to avoid deadlocks
        bill_ids = sorted({a["bill"].pk for a in allocations})
        locked = {
            b.pk: b
            for b in Bill.objects.select_for_update()
            .filter(organization=organization, pk__in=bill_ids)
            .order_by("pk")
        }

        remaining = {pk: b.amount_due for pk, b in locked.items()}
        for alloc in allocations:
            bill = locked.get(alloc["bill"].pk)
            if bill is None:
                raise ValidationError(f"Bill {alloc['bill'].pk} not found")
            if bill.vendor_id != vendor.pk:
                raise ValidationError(f"Bill {bill.bill_number} belongs to another vendor")
            if bill.status not in PAYABLE_STATUSES:
                raise ValidationError(f"Bill {bill.bill_number} is {bill.status} and cannot be paid")
            if alloc["amount"] <= 0:
                raise ValidationError("Allocation amounts must be greater than 0")
            # Validate bill outstanding
            if alloc["amount"] > remaining[bill.pk]:
                raise ValidationError(
                    f"Allocation {alloc['amount']} exceeds amount due {remaining[bill.pk]} "
                    f"on bill {bill.bill_number}"
                )
            remaining[bill.pk] -= alloc["amount"]

        payment = Payment.objects.create(
            organization=organization,
            vendor=vendor,
            payment_date=data["payment_date"],
            amount=amount,
            payment_method=data["payment_method"],
            bank_account=data["bank_account"],
            reference_number=data.get("reference_number", ""),
            notes=data.get("notes", ""),
            created_by=user,
        )

        for alloc in allocations:
            bill = locked[alloc["bill"].pk]
            PaymentAllocation.objects.create(payment=payment, bill=bill, amount=alloc["amount"])
            _apply_to_bill(bill)

        je = create_payment_journal(payment, user=user)
        payment.journal_entry = je
        payment.save(update_fields=["journal_entry"])

        log_action(
            action="create", instance=payment, user=user,
            changes={
                "amount": payment.amount,
                "bills": [locked[a["bill"].pk].bill_number for a in allocations],
            },
        )
    logger.info(
        "Payment %s of %s posted as %s", payment.payment_number, payment.amount, je.entry_number
    )
    return payment


def _apply_to_bill(bill: Bill):
    """Refresh paid / due amounts and move the bill along."""
    bill.recalc_totals()
    bill.save(update_fields=["amount_paid", "amount_due", "updated_at"])
    new_status = "paid" if bill.amount_due <= 0 else "partially_paid"
    if bill.status != new_status:
        bill.transition_to(new_status)
    return bill


def payment_stats(queryset):
    by_method = {
        row["payment_method"]: {"count": row["count"], "total": row["total"]}
        for row in queryset.order_by()
        .values("payment_method")
        .annotate(count=models.Count("id"), total=models.Sum("amount"))
    }
    return {
        "count": queryset.count(),
        "total_amount": queryset.aggregate(s=models.Sum("amount"))["s"] or Decimal("0.00"),
        "by_method": by_method,
    }
