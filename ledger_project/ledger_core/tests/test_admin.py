import datetime
from decimal import Decimal

import pytest
from django.contrib import admin
from django.test import RequestFactory
from django.urls import reverse

from ledger_core.admin import InvoiceAdmin
from ledger_core.models import Invoice, JournalEntry, JournalLine, RecurringProfile
from ledger_core.services import chart, recurring
from ledger_core.tests.factories import make_client, make_company, make_invoice, make_member

MODELS = [
    "account", "journalentry", "journalline", "invoice", "invoiceitem", "client",
    "expense", "bankaccount", "banktransaction", "company", "user",
    "entitymembership", "recurringprofile", "auditlog",
]


@pytest.mark.django_db
@pytest.mark.parametrize("model", MODELS)
def test_changelist_renders(admin_client, model):
    company = make_company()
    make_invoice(company, make_client(company), "100.00")
    response = admin_client.get(reverse(f"admin:ledger_core_{model}_changelist"))
    assert response.status_code == 200


@pytest.mark.django_db
def test_post_journal_action(admin_client):
    company = make_company()
    je = JournalEntry.objects.create(company=company, date=datetime.date(2025, 10, 15))
    for code, side in (("1110", "debit"), ("4100", "credit")):
        JournalLine.objects.create(
            company=company, journal=je,
            account=chart.resolve_account(company, code), **{side: Decimal("75.00")},
        )

    response = admin_client.post(
        reverse("admin:ledger_core_journalentry_changelist"),
        {"action": "post_journal_entries", "_selected_action": [je.pk]},
    )

    assert response.status_code == 302
    je.refresh_from_db()
    assert je.status == "posted"


@pytest.mark.django_db
def test_issue_invoices_action(admin_client):
    company = make_company()
    draft = make_invoice(company, make_client(company), "100.00", status="draft")

    admin_client.post(
        reverse("admin:ledger_core_invoice_changelist"),
        {"action": "issue_invoices", "_selected_action": [draft.pk]},
    )

    draft.refresh_from_db()
    assert draft.status == "sent"
    assert JournalEntry.objects.filter(source="invoice", source_id=draft.pk).exists()


@pytest.mark.django_db
def test_pause_profiles_action(admin_client):
    company = make_company()
    profile = recurring.create_recurring_profile(
        company, client=make_client(company), interval="monthly",
        start_date=datetime.date(2025, 10, 1), line_items=[{"unit_price": "10"}],
    )

    admin_client.post(
        reverse("admin:ledger_core_recurringprofile_changelist"),
        {"action": "pause_profiles", "_selected_action": [profile.pk]},
    )

    assert RecurringProfile.objects.get(pk=profile.pk).is_active is False


@pytest.mark.django_db
def test_admin_queryset_scoped_to_company():
    c1 = make_company("Company A")
    c2 = make_company("Company B")
    mine = make_invoice(c1, make_client(c1), "100.00")
    make_invoice(c2, make_client(c2), "100.00")

    request = RequestFactory().get("/admin/")
    request.user = make_member(c1)
    request.company = c1

    qs = InvoiceAdmin(Invoice, admin.site).get_queryset(request)
    assert list(qs.values_list("pk", flat=True)) == [mine.pk]
