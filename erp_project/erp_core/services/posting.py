import logging
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction

# Import models
from ..models import Account, JournalEntry, JournalLine
from ..utils import money

logger = logging.getLogger(__name__)


# ----------------------------
# Chart of accounts lookups
# ----------------------------
def gl_prefix(key):
    """Code prefix configured for an automatic posting role, e.g. "accounts_payable" → "2000"."""
    try:
        return settings.ERP_GL_ACCOUNTS[key]
    except KeyError:
        raise ValidationError(f"No GL account configured for '{key}'")


def find_account(organization, code_prefix, account_type=None):
    """
    Lowest-code active account whose code starts with `code_prefix`.
    Raise so the caller can respond when the chart of accounts lacks it.
    """
    qs = Account.objects.active(organization).filter(code__startswith=code_prefix)
    if account_type:
        qs = qs.filter(account_type=account_type)
    account = qs.order_by("code").first()
    if not account:
        raise ValidationError(
            f"No active account with code starting '{code_prefix}' configured for organization"
        )
    return account


def control_account(organization, key, account_type=None):
    return find_account(organization, gl_prefix(key), account_type)


# ----------------------------
# Journal-related workflows
# ----------------------------
def create_posted_journal(
    *, organization, date, description, lines, source_type="manual", source_id=None, user=None
) -> JournalEntry:
    """
    Create & post a JE from (account, debit, credit, description) tuples.
    Zero lines are dropped; what's left must balance.
    """
    with transaction.atomic():
        je = JournalEntry.objects.create(
            organization=organization,
            date=date,
            description=description,
            status="draft",
            source_type=source_type,
            source_id=source_id,
            created_by=user,
        )
        for account, debit, credit, line_desc in lines:
            debit, credit = money(debit or 0), money(credit or 0)
            if debit == 0 and credit == 0:
                continue
            JournalLine.objects.create(
                journal=je,
                account=account,
                description=line_desc or "",
                debit=debit,
                credit=credit,
            )
        # Post (this runs validations: balance, tenant, line count)
        je.post(user=user)
    logger.info(
        "Posted %s for %s #%s in org %s", je.entry_number, source_type, source_id, organization.pk
    )
    return je


def post_journal_entry(journal_entry_id, user=None):
    """
    Wraps pure business logic with transaction management + orchestration
    """
    with transaction.atomic():
        # Lock the row to avoid race conditions
        je = JournalEntry.objects.select_for_update().get(pk=journal_entry_id)
        je.post(user=user)
    return je


def void_journal_entry(je: JournalEntry):
    if je is None or je.status != "posted":
        return je
    return je.void()


# ----------------------------
# Source-document postings
# ----------------------------
def create_bill_journal(bill, user=None) -> JournalEntry:
    """
    Create & post JE for an approved bill.
    Produces:
      Debit: each item's account = item line total
      Credit: Accounts Payable = total − withholding
      Credit: WHT payable = withholding (when any)
    """
    items = list(bill.items.select_related("account"))
    if not items:
        raise ValidationError("Bill has no items to post")
    if bill.total <= 0:
        raise ValidationError("Bill total must be > 0 to post")

    # Prepare debits aggregated by item account
    debits = {}
    for item in items:
        debits.setdefault(item.account, Decimal("0.00"))
        debits[item.account] += item.line_total

    org = bill.organization
    label = f"Bill {bill.bill_number}"
    lines = [(acct, amt, 0, f"{label}: {acct.name}") for acct, amt in debits.items()]
    lines.append(
        (control_account(org, "accounts_payable", "liability"), 0, bill.total - bill.wht_amount,
         f"AP for {label}")
    )
    if bill.wht_amount > 0:
        lines.append(
            (control_account(org, "withholding_tax_payable", "liability"), 0, bill.wht_amount,
             f"WHT withheld on {label}")
        )
    return create_posted_journal(
        organization=org,
        date=bill.bill_date,
        description=f"{label} - {bill.vendor.company_name}",
        lines=lines,
        source_type="bill",
        source_id=bill.pk,
        user=user,
    )


def create_payment_journal(payment, user=None) -> JournalEntry:
    """
    Debit Accounts Payable with what was applied to bills, credit the bank
    with what left it. A cent of difference (allocation tolerance) is booked
    to the payment rounding account so AP stays equal to the bills' amount due.
    """
    org = payment.organization
    label = f"Payment {payment.payment_number}"
    applied = payment.allocated_total()
    lines = [
        (control_account(org, "accounts_payable", "liability"), applied, 0, f"Clear AP: {label}"),
        (payment.bank_account, 0, payment.amount, label),
    ]
    difference = money(payment.amount - applied)
    if difference:
        rounding = control_account(org, "payment_rounding")
        if difference > 0:
            lines.append((rounding, difference, 0, f"Rounding: {label}"))
        else:
            lines.append((rounding, 0, -difference, f"Rounding: {label}"))
    return create_posted_journal(
        organization=org,
        date=payment.payment_date,
        description=f"{label} - {payment.vendor.company_name}",
        lines=lines,
        source_type="payment",
        source_id=payment.pk,
        user=user,
    )


def revaluation_lines(organization, value_difference, label):
    """
    Increase: debit Inventory, credit Revaluation Gain.
    Decrease: debit Revaluation Loss, credit Inventory.
    """
    amount = abs(value_difference)
    inventory = control_account(organization, "inventory", "asset")
    if value_difference > 0:
        gain = control_account(organization, "revaluation_gain")
        return [
            (inventory, amount, 0, label),
            (gain, 0, amount, label),
        ]
    loss = control_account(organization, "revaluation_loss")
    return [
        (loss, amount, 0, label),
        (inventory, 0, amount, label),
    ]


def create_revaluation_journal(revaluation, user=None) -> JournalEntry:
    label = f"Revaluation {revaluation.revaluation_number}"
    return create_posted_journal(
        organization=revaluation.organization,
        date=revaluation.revaluation_date,
        description=f"{label} - {revaluation.product.sku}: {revaluation.reason}",
        lines=revaluation_lines(revaluation.organization, revaluation.value_difference, label),
        source_type="cost_revaluation",
        source_id=revaluation.pk,
        user=user,
    )


def create_landed_cost_journal(landed_cost, user=None) -> JournalEntry:
    """Debit Inventory, credit Landed Cost Clearing for the full landed cost."""
    org = landed_cost.organization
    label = f"Landed cost {landed_cost.landed_cost_number}"
    return create_posted_journal(
        organization=org,
        date=landed_cost.cost_date,
        description=label,
        lines=[
            (control_account(org, "inventory", "asset"), landed_cost.total_cost, 0, label),
            (control_account(org, "landed_cost_clearing", "liability"), 0, landed_cost.total_cost, label),
        ],
        source_type="landed_cost",
        source_id=landed_cost.pk,
        user=user,
    )
