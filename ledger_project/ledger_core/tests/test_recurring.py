import datetime
from decimal import Decimal
from unittest import mock

from dateutil.relativedelta import relativedelta
from django.core.exceptions import ValidationError
from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone

from ledger_core.models import AuditLog, Invoice, JournalEntry, RecurringProfile
from ledger_core.services import recurring
from ledger_core.services.documents import create_invoice
from ledger_core.tests.factories import make_client, make_company

ITEMS = [{"description": "Retainer", "quantity": "1", "unit_price": "2000.00", "tax_rate": "15"}]


class AdvanceDateTests(SimpleTestCase):
    def test_intervals(self):
        day = datetime.date(2025, 1, 15)
        self.assertEqual(recurring.advance_date(day, "weekly"), datetime.date(2025, 1, 22))
        self.assertEqual(recurring.advance_date(day, "monthly"), datetime.date(2025, 2, 15))
        self.assertEqual(recurring.advance_date(day, "quarterly"), datetime.date(2025, 4, 15))
        self.assertEqual(recurring.advance_date(day, "yearly"), datetime.date(2026, 1, 15))

    def test_month_end_keeps_anchor(self):
        """ Test Jan 31 runs on Feb 28 then back on Mar 31 """
        anchor = datetime.date(2025, 1, 31)
        feb = recurring.advance_date(anchor, "monthly", anchor=anchor)
        self.assertEqual(feb, datetime.date(2025, 2, 28))
        self.assertEqual(
            recurring.advance_date(feb, "monthly", anchor=anchor), datetime.date(2025, 3, 31)
        )

    def test_unknown_interval(self):
        with self.assertRaises(ValidationError):
            recurring.advance_date(datetime.date(2025, 1, 1), "daily")


class RecurringProfileTests(TestCase):
    def setUp(self):
        self.company = make_company()
        self.client_obj = make_client(self.company)
        self.today = datetime.date(2025, 10, 15)

    def _profile(self, start_date, interval="monthly", **kwargs):
        return recurring.create_recurring_profile(
            self.company,
            client=self.client_obj,
            interval=interval,
            start_date=start_date,
            line_items=ITEMS,
            **kwargs,
        )

    def test_profile_due_since_yesterday_issues_one_invoice(self):
        """ Test a monthly profile started yesterday issues exactly one invoice """
        start = timezone.localdate() - datetime.timedelta(days=1)
        profile = self._profile(start)

        results = recurring.process_due_profiles()

        self.assertEqual(results["processed"], 1)
        self.assertEqual(results["errors"], 0)
        self.assertEqual(len(results["invoices_created"]), 1)
        profile.refresh_from_db()
        self.assertEqual(profile.next_run_date, start + relativedelta(months=1))
        self.assertIsNotNone(profile.last_run_at)

        invoice = Invoice.objects.get(pk=results["invoices_created"][0])
        self.assertEqual(invoice.recurring_profile, profile)
        self.assertEqual(invoice.issue_date, start)
        self.assertEqual(invoice.due_date, start + datetime.timedelta(days=7))
        self.assertEqual(invoice.total, Decimal("2300.00"))
        self.assertTrue(
            JournalEntry.objects.filter(source="invoice", source_id=invoice.pk).exists()
        )

        # same day again: nothing due
        self.assertEqual(recurring.process_due_profiles()["invoices_created"], [])

    def test_missed_intervals_are_caught_up(self):
        profile = self._profile(datetime.date(2025, 7, 15))

        results = recurring.process_due_profiles(today=self.today)

        issued = Invoice.objects.filter(pk__in=results["invoices_created"]).order_by("issue_date")
        self.assertEqual(
            [i.issue_date for i in issued],
            [datetime.date(2025, 7, 15), datetime.date(2025, 8, 15),
             datetime.date(2025, 9, 15), datetime.date(2025, 10, 15)],
        )
        profile.refresh_from_db()
        self.assertEqual(profile.next_run_date, datetime.date(2025, 11, 15))

    @override_settings(LEDGER_RECURRING_MAX_CATCHUP=2)
    def test_catch_up_is_capped_per_run(self):
        profile = self._profile(datetime.date(2025, 7, 15))

        first = recurring.process_due_profiles(today=self.today)
        profile.refresh_from_db()
        self.assertEqual(len(first["invoices_created"]), 2)
        self.assertEqual(profile.next_run_date, datetime.date(2025, 9, 15))

        second = recurring.process_due_profiles(today=self.today)
        self.assertEqual(len(second["invoices_created"]), 2)

    def test_future_and_inactive_profiles_skipped(self):
        self._profile(self.today + datetime.timedelta(days=1))
        paused = self._profile(datetime.date(2025, 10, 1))
        recurring.pause_profile(paused)

        results = recurring.process_due_profiles(today=self.today)

        self.assertEqual(results, {"processed": 0, "errors": 0, "invoices_created": []})
        self.assertEqual(
            AuditLog.objects.filter(object_type="RecurringProfile", action="pause").count(), 1
        )

        recurring.resume_profile(paused)
        self.assertEqual(recurring.process_due_profiles(today=self.today)["processed"], 1)

    def test_company_filter(self):
        other = make_company("Other Co")
        recurring.create_recurring_profile(
            other, client=make_client(other), interval="weekly",
            start_date=self.today, line_items=ITEMS,
        )
        self._profile(self.today)

        results = recurring.process_due_profiles(today=self.today, company=self.company)

        self.assertEqual(results["processed"], 1)
        self.assertEqual(
            Invoice.objects.filter(pk__in=results["invoices_created"], company=self.company).count(), 1
        )

    def test_failing_profile_does_not_stop_others(self):
        """ Test one broken profile is counted and the rest still run """
        broken = self._profile(datetime.date(2025, 10, 1))
        healthy = self._profile(datetime.date(2025, 10, 2))

        def flaky_create(company, **kwargs):
            if kwargs["recurring_profile"].pk == broken.pk:
                raise ValidationError("bad line item")
            return create_invoice(company, **kwargs)

        with mock.patch("ledger_core.services.recurring.create_invoice", side_effect=flaky_create):
            results = recurring.process_due_profiles(today=self.today)

        self.assertEqual(results["errors"], 1)
        self.assertEqual(results["processed"], 1)
        broken.refresh_from_db()
        healthy.refresh_from_db()
        self.assertEqual(broken.next_run_date, datetime.date(2025, 10, 1))
        self.assertEqual(healthy.next_run_date, datetime.date(2025, 11, 2))

    def test_malformed_stored_profile_does_not_stop_others(self):
        """ Test a profile with an unparseable price is skipped and counted """
        broken = self._profile(datetime.date(2025, 10, 1))
        healthy = self._profile(datetime.date(2025, 10, 2))
        # written behind the model's back, as an old row or a manual fix would be
        RecurringProfile.objects.filter(pk=broken.pk).update(line_items=[{"unit_price": "abc"}])

        results = recurring.process_due_profiles(today=self.today)

        self.assertEqual(results["errors"], 1)
        self.assertEqual(results["processed"], 1)
        self.assertEqual(Invoice.objects.filter(recurring_profile=broken).count(), 0)
        self.assertEqual(Invoice.objects.filter(recurring_profile=healthy).count(), 1)
        broken.refresh_from_db()
        self.assertEqual(broken.next_run_date, datetime.date(2025, 10, 1))

    def test_line_item_amounts_must_be_numeric(self):
        for bad in ({"unit_price": "abc"}, {"unit_price": "10", "quantity": "two"},
                    {"unit_price": "-5"}, {"unit_price": "NaN"}):
            with self.assertRaises(ValidationError):
                recurring.create_recurring_profile(
                    self.company, client=self.client_obj, interval="monthly",
                    start_date=self.today, line_items=[bad],
                )

    def test_schedule_never_moves_backwards(self):
        profile = self._profile(datetime.date(2025, 7, 15))
        recurring.process_due_profiles(today=self.today)
        profile.refresh_from_db()

        profile.next_run_date = datetime.date(2025, 8, 15)
        with self.assertRaises(ValidationError):
            profile.save()

    def test_profile_needs_line_items(self):
        with self.assertRaises(ValidationError):
            recurring.create_recurring_profile(
                self.company, client=self.client_obj, interval="monthly",
                start_date=self.today, line_items=[],
            )
        with self.assertRaises(ValidationError):
            recurring.create_recurring_profile(
                self.company, client=self.client_obj, interval="monthly",
                start_date=self.today, line_items=[{"description": "no price"}],
            )
