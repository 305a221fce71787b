from django.core.exceptions import ValidationError
from django.db.models.signals import pre_delete
from django.dispatch import receiver

from .models import Account, EntryStatus, Invoice, JournalEntry, JournalLine

"""Block deletion if account has ever been used in a journal line."""


# pre_delete also fires for queryset deletes, which skip Model.delete()
@receiver(pre_delete, sender=Account)
def prevent_delete_account_with_journal_lines(sender, instance, **kwargs):
    if JournalLine.objects.filter(account=instance).exists():
        raise ValidationError("Cannot delete account used in journal lines.")


"""Approved documents are part of the ledger and are never deleted."""


@receiver(pre_delete, sender=JournalEntry)
def prevent_delete_approved_journal(sender, instance, **kwargs):
    if instance.status == EntryStatus.APPROVED:
        raise ValidationError("Cannot delete an approved journal entry.")


@receiver(pre_delete, sender=Invoice)
def prevent_delete_approved_invoice(sender, instance, **kwargs):
    if instance.status == EntryStatus.APPROVED:
        raise ValidationError("Cannot delete an approved invoice.")
