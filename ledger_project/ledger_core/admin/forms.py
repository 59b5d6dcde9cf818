from decimal import Decimal

from django import forms
from django.contrib.auth.forms import UserChangeForm as DjangoUserChangeForm
from django.contrib.auth.forms import UserCreationForm as DjangoUserCreationForm
from django.core.exceptions import ValidationError

from ledger_core.models import Invoice, InvoiceItem, JournalLine, User

# -----------------------------
# Register custom admin forms
# ----------------------------


# Subclass `DjangoUserCreationForm` (form used when adding a new user)
class UserAdminCreationForm(DjangoUserCreationForm):
    class Meta(DjangoUserCreationForm.Meta):
        model = User  # Points `model` to custom User model
        fields = ("username", "email")


# Subclass `DjangoUserChangeForm` (form used when editing an existing user)
class UserAdminChangeForm(DjangoUserChangeForm):
    class Meta(DjangoUserChangeForm.Meta):
        model = User
        fields = (
            "username",
            "email",
            "is_active",
            "is_staff",
            "is_superuser",
            "default_company",
        )


# Inline form for JournalLine (admin)
class JournalLineInlineForm(forms.ModelForm):
    class Meta:
        model = JournalLine
        exclude = ("company", "is_posted")  # company comes from the journal

    def clean(self):
        cleaned = super().clean()

        # exactly one side carries the amount
        debit = cleaned.get("debit") or Decimal("0.00")
        credit = cleaned.get("credit") or Decimal("0.00")
        if (debit > 0) == (credit > 0):
            raise ValidationError("Enter either a debit or a credit amount.")

        # Copy company from the parent JournalEntry (admin inline case)
        journal = cleaned.get("journal") or getattr(self.instance, "journal", None)
        if journal is not None:
            self.instance.company_id = journal.company_id
            account = cleaned.get("account")
            if account and account.company_id != journal.company_id:
                raise ValidationError(
                    {"account": "Selected account does not belong to the same company."})
        return cleaned


class InvoiceItemForm(forms.ModelForm):
    class Meta:
        model = InvoiceItem
        exclude = ("company", "line_total", "tax_amount")  # derived on save

    def clean(self):
        # the item belongs to its invoice's company
        if getattr(self.instance, "invoice_id", None) and not self.instance.company_id:
            self.instance.company_id = (
                Invoice.objects.only("company_id")
                .get(pk=self.instance.invoice_id)
                .company_id
            )
        return super().clean()
