import logging

from django.contrib import admin, messages
from django.core.exceptions import ValidationError

from erp_core.exceptions import AlreadyPostedDifferentPayload, UnbalancedJournalError
from erp_core.services.bills import approve_bill
from erp_core.services.posting import post_journal_entry

logger = logging.getLogger(__name__)


def _reason(exc):
    if isinstance(exc, ValidationError):
        return "; ".join(exc.messages)
    return str(exc)


# ---------- Admin actions ----------
@admin.action(description="Approve and post selected bills")
def approve_bills(modeladmin, request, queryset):
    done = 0
    for bill in queryset.filter(status="submitted"):
        try:
            approve_bill(bill, user=request.user)
            done += 1
        except (ValidationError, UnbalancedJournalError) as exc:
            logger.warning("Admin approval of %s failed: %s", bill.bill_number, exc)
            modeladmin.message_user(request, f"{bill.bill_number}: {_reason(exc)}", messages.ERROR)
    modeladmin.message_user(request, f"{done} bill(s) approved")


@admin.action(description="Post selected journal entries")
def post_journal_entries(modeladmin, request, queryset):
    done = 0
    for je in queryset.filter(status="draft"):
        try:
            post_journal_entry(je.pk, user=request.user)
            done += 1
        except (ValidationError, UnbalancedJournalError, AlreadyPostedDifferentPayload) as exc:
            logger.warning("Admin posting of %s failed: %s", je.entry_number, exc)
            modeladmin.message_user(request, f"{je.entry_number}: {_reason(exc)}", messages.ERROR)
    modeladmin.message_user(request, f"{done} journal entr(ies) posted")
