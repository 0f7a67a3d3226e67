import logging
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.utils import timezone

from ..models import Bill, BillItem, BillTaxLine
from ..models.bill import PAYABLE_STATUSES, terms_for_days
from .audit_helper import log_action
from .posting import create_bill_journal, void_journal_entry

logger = logging.getLogger(__name__)

# header fields a draft edit may touch
EDITABLE_BILL_FIELDS = (
    "vendor", "vendor_reference", "bill_date", "payment_terms",
    "due_date", "currency_code", "notes",
)


# ----------------------------
# Items & tax lines
# ----------------------------
def _add_items(bill: Bill, items):
    """
    Create items (and their tax lines) for a bill.
    An item without an explicit tax_amount takes the sum of its
    non-withholding tax lines.
    """
    if not items:
        raise ValidationError("A bill needs at least one item")

    for data in items:
        tax_lines = data.get("tax_lines") or []
        explicit_tax = data.get("tax_amount")
        item = BillItem.objects.create(
            bill=bill,
            description=data.get("description", ""),
            quantity=data.get("quantity", Decimal("1")),
            unit_price=data.get("unit_price", Decimal("0.00")),
            account=data["account"],
            tax_amount=explicit_tax if explicit_tax is not None else Decimal("0.00"),
        )
        # sequence order so compound lines see the taxes before them
        for tl in sorted(tax_lines, key=lambda t: t.get("compound_sequence", 0)):
            BillTaxLine.objects.create(
                item=item,
                tax_type=tl["tax_type"],
                rate=tl["rate"],
                base_amount=tl.get("base_amount"),
                tax_amount=tl.get("tax_amount"),
                is_compound=tl.get("is_compound", False),
                compound_sequence=tl.get("compound_sequence", 0),
                is_withholding=tl.get("is_withholding", False),
            )
        if explicit_tax is None and tax_lines:
            item.tax_amount = sum(
                (t.tax_amount for t in item.tax_lines.filter(is_withholding=False)),
                Decimal("0.00"),
            )
            item.save()


def _refresh_totals(bill: Bill):
    bill.recalc_totals()
    bill.save(update_fields=[
        "subtotal", "tax_amount", "total", "wht_amount",
        "amount_paid", "amount_due", "updated_at",
    ])
    return bill


# ----------------------------
# Bill workflows
# ----------------------------
def create_bill(organization, user, data) -> Bill:
    """Create a draft bill with its items in one transaction."""
    vendor = data["vendor"]
    if not vendor.is_active:
        raise ValidationError("Vendor is inactive")

    with transaction.atomic():
        bill = Bill(
            organization=organization,
            vendor=vendor,
            vendor_reference=data.get("vendor_reference", ""),
            bill_date=data["bill_date"],
            # vendor's standard terms unless the bill says otherwise
            payment_terms=data.get("payment_terms") or terms_for_days(vendor.payment_terms_days),
            due_date=data.get("due_date"),
            currency_code=(data.get("currency_code") or organization.base_currency).upper(),
            notes=data.get("notes", ""),
            created_by=user,
        )
        bill.save()
        _add_items(bill, data.get("items"))
        _refresh_totals(bill)
        log_action(
            action="create", instance=bill, user=user,
            changes={"total": bill.total, "vendor": vendor.company_name},
        )
    return bill


def update_bill(bill: Bill, user, data) -> Bill:
    """Edit a draft bill; items are replaced wholesale when given."""
    with transaction.atomic():
        bill = Bill.objects.select_for_update().get(pk=bill.pk)
        if bill.status != "draft":
            raise ValidationError("Only draft bills can be edited")

        changes = {}
        for field in EDITABLE_BILL_FIELDS:
            if field in data:
                setattr(bill, field, data[field])
                changes[field] = str(data[field])
        # terms changed without an explicit due date → derive it again
        if ("payment_terms" in data or "bill_date" in data) and "due_date" not in data:
            bill.due_date = None
        bill.save()

        if "items" in data:
            bill.items.all().delete()
            _add_items(bill, data["items"])
            changes["items"] = len(data["items"])
        _refresh_totals(bill)
        log_action(action="update", instance=bill, user=user, changes=changes)
    return bill


def approve_bill(bill: Bill, user=None) -> Bill:
    """
    submitted → approved, posting the bill to the ledger.
    Both succeed together or neither does.
    """
    with transaction.atomic():
        bill = Bill.objects.select_for_update().get(pk=bill.pk)
        _refresh_totals(bill)
        bill.transition_to("approved")
        je = create_bill_journal(bill, user=user)
        bill.journal_entry = je
        bill.save(update_fields=["journal_entry", "updated_at"])
        log_action(
            action="approve", instance=bill, user=user,
            changes={"journal_entry": je.entry_number, "total": bill.total},
        )
    logger.info("Bill %s approved and posted as %s", bill.bill_number, je.entry_number)
    return bill


def void_bill(bill: Bill, user=None) -> Bill:
    with transaction.atomic():
        bill = Bill.objects.select_for_update().get(pk=bill.pk)
        # transition_to refuses bills with applied payments
        bill.transition_to("voided")
        void_journal_entry(bill.journal_entry)
        log_action(action="void", instance=bill, user=user)
    logger.info("Bill %s voided", bill.bill_number)
    return bill


def change_bill_status(bill: Bill, new_status, user=None) -> Bill:
    """Status change entry point; approve / void carry ledger side effects."""
    if new_status == "approved":
        return approve_bill(bill, user=user)
    if new_status == "voided":
        return void_bill(bill, user=user)
    if new_status in ("partially_paid", "paid"):
        raise ValidationError("Payment statuses are set by recording payments")

    old_status = bill.status
    with transaction.atomic():
        bill = Bill.objects.select_for_update().get(pk=bill.pk)
        bill.transition_to(new_status)
        log_action(
            action="status_change", instance=bill, user=user,
            changes={"from": old_status, "to": new_status},
        )
    return bill


def delete_bill(bill: Bill, user=None):
    if bill.status != "draft":
        raise ValidationError("Only draft bills can be deleted")
    if bill.payment_allocations.exists():
        raise ValidationError("Cannot delete a bill with applied payments")
    with transaction.atomic():
        log_action(action="delete", instance=bill, user=user, changes={"bill_number": bill.bill_number})
        bill.delete()


def bill_stats(queryset):
    """Headline numbers for the bill list."""
    today = timezone.localdate()
    zero = Decimal("0.00")
    open_bills = queryset.filter(status__in=PAYABLE_STATUSES)
    overdue = open_bills.filter(
        models.Q(status="overdue") | models.Q(due_date__lt=today), amount_due__gt=0
    )
    paid = queryset.filter(status="paid")
    return {
        "total_outstanding": open_bills.aggregate(s=models.Sum("amount_due"))["s"] or zero,
        "overdue_count": overdue.count(),
        "overdue_amount": overdue.aggregate(s=models.Sum("amount_due"))["s"] or zero,
        "paid_count": paid.count(),
        "paid_amount": paid.aggregate(s=models.Sum("total"))["s"] or zero,
        "draft_count": queryset.filter(status="draft").count(),
    }


def vendor_balance(vendor) -> Decimal:
    """Open payable balance owed to a vendor."""
    return (
        vendor.bills.filter(status__in=PAYABLE_STATUSES)
        .aggregate(s=models.Sum("amount_due"))["s"]
        or Decimal("0.00")
    )


def mark_overdue_bills(organization=None, today=None) -> int:
    """Flag payable bills that are past due with money still owed."""
    today = today or timezone.localdate()
    qs = Bill.objects.filter(
        status__in=("approved", "partially_paid"),
        due_date__lt=today,
        amount_due__gt=0,
    )
    if organization is not None:
        qs = qs.for_organization(organization)

    count = 0
    for bill in qs.select_related("organization"):
        with transaction.atomic():
            bill.transition_to("overdue")
            log_action(
                action="status_change", instance=bill,
                changes={"to": "overdue", "due_date": bill.due_date},
            )
        count += 1
    logger.info("Marked %s bill(s) overdue", count)
    return count
