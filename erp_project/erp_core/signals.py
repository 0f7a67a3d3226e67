from django.core.exceptions import ValidationError
from django.db.models.signals import pre_delete
from django.dispatch import receiver

from .models import (CAPA, Account, Bill, JournalEntry, JournalLine,
                     NonConformanceReport, PaymentAllocation, Vendor)

"""Block vendor deletion while bills reference it."""


# pre_delete fires just before Django deletes the instance,
# raising here aborts the delete
@receiver(pre_delete, sender=Vendor)
def prevent_delete_vendor_with_bills(sender, instance, **kwargs):
    count = Bill.objects.filter(vendor=instance).count()
    if count:
        raise ValidationError(
            f"Cannot delete vendor with {count} bill(s). Mark as inactive instead."
        )


"""Block bill deletion if any payments are applied."""


@receiver(pre_delete, sender=Bill)
def prevent_delete_bill_with_payments(sender, instance, **kwargs):
    if PaymentAllocation.objects.filter(bill=instance).exists():
        raise ValidationError("Cannot delete bill with applied payments.")


"""Block deletion if account has ever been used in a journal line."""


@receiver(pre_delete, sender=Account)
def prevent_delete_account_with_journal_lines(sender, instance, **kwargs):
    if JournalLine.objects.filter(account=instance).exists():
        raise ValidationError("Cannot delete account used in journal lines.")


"""Posted entries are only ever voided."""


@receiver(pre_delete, sender=JournalEntry)
def prevent_delete_posted_journal(sender, instance, **kwargs):
    if instance.status == "posted":
        raise ValidationError("Cannot delete a posted journal entry. Void it instead.")


"""An NCR that raised a CAPA stays for traceability."""


@receiver(pre_delete, sender=NonConformanceReport)
def prevent_delete_ncr_with_capa(sender, instance, **kwargs):
    if CAPA.objects.filter(ncr=instance).exists():
        raise ValidationError("Cannot delete an NCR linked to a CAPA.")
