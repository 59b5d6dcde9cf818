from django.core.exceptions import ValidationError
from django.db.models.signals import post_save, pre_delete
from django.dispatch import receiver

from .models import Account, Company, Invoice, JournalEntry, JournalLine
from .services.chart import initialize_chart_of_accounts

"""Block invoice deletion once a bank transaction settled it."""


# pre_delete fires just before Django deletes the instance
@receiver(pre_delete, sender=Invoice)
def prevent_delete_invoice_with_payments(sender, instance, **kwargs):
    if instance.bank_transactions.exists():
        raise ValidationError("Cannot delete invoice matched to bank transactions.")


"""Block deletion if account has ever been used in a journal line."""


@receiver(pre_delete, sender=Account)
def prevent_delete_account_with_journal_lines(sender, instance, **kwargs):
    if JournalLine.objects.filter(account=instance).exists():
        raise ValidationError("Cannot delete account used in journal lines.")


"""Posted journals are corrected by reversal, never deleted."""


@receiver(pre_delete, sender=JournalEntry)
def prevent_delete_posted_journal(sender, instance, **kwargs):
    if instance.status == "posted":
        raise ValidationError(
            "Cannot delete a posted journal; post a reversal instead.")


@receiver(pre_delete, sender=JournalLine)
def prevent_delete_posted_line(sender, instance, **kwargs):
    if instance.is_posted:
        raise ValidationError("Cannot delete a line of a posted journal.")


"""Every new company starts with the standard chart of accounts."""


@receiver(post_save, sender=Company)
def seed_chart_for_new_company(sender, instance, created, raw=False, **kwargs):
    if created and not raw:
        initialize_chart_of_accounts(instance)
