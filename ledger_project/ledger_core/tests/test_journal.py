import datetime
from decimal import Decimal
from unittest import mock

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.db.models import ProtectedError
from django.test import TestCase

from ledger_core.exceptions import AlreadyPostedDifferentPayload, UnbalancedJournalError
from ledger_core.models import JournalEntry, JournalLine
from ledger_core.services import chart
from ledger_core.services.posting import post_journal, reverse_journal
from ledger_core.tests.factories import make_client, make_company, make_invoice


class JournalPostingTests(TestCase):
    def setUp(self):
        self.company = make_company()
        self.cash = chart.resolve_account(self.company, "1110")
        self.revenue = chart.resolve_account(self.company, "4100")
        self.date = datetime.date(2025, 10, 15)

    def _lines(self, debit="100.00", credit="100.00"):
        return [
            {"account": self.cash, "debit": Decimal(debit)},
            {"account": self.revenue, "credit": Decimal(credit)},
        ]

    def test_invoice_posts_revenue_recognition(self):
        """ Test an invoice of 1150 incl. 150 VAT posts AR / Revenue / VAT Output """
        invoice = make_invoice(self.company, make_client(self.company), "1000.00")
        self.assertEqual(invoice.total, Decimal("1150.00"))
        self.assertEqual(invoice.tax_amount, Decimal("150.00"))

        je = JournalEntry.objects.get(company=self.company, source="invoice", source_id=invoice.pk)
        self.assertEqual(je.status, "posted")
        self.assertTrue(je.is_balanced())
        lines = {
            line.account.code: (line.debit, line.credit)
            for line in je.lines.select_related("account")
        }
        self.assertEqual(lines, {
            "1120": (Decimal("1150.00"), Decimal("0.00")),
            "4100": (Decimal("0.00"), Decimal("1000.00")),
            "2130": (Decimal("0.00"), Decimal("150.00")),
        })

    def test_unbalanced_journal_rejected(self):
        """ Test nothing is written when debits and credits differ """
        with self.assertRaises(UnbalancedJournalError):
            post_journal(self.company, self.date, "manual", None, self._lines("100.00", "90.00"))
        self.assertFalse(JournalEntry.objects.for_company(self.company).exists())
        self.assertFalse(JournalLine.objects.for_company(self.company).exists())

    def test_difference_within_tolerance_accepted(self):
        je = post_journal(self.company, self.date, "manual", None, self._lines("100.00", "99.99"))
        self.assertEqual(je.status, "posted")

    def test_single_line_rejected(self):
        with self.assertRaises(ValidationError):
            post_journal(self.company, self.date, "manual", None, self._lines()[:1])

    def test_line_needs_exactly_one_side(self):
        lines = [
            {"account": self.cash, "debit": "50.00", "credit": "50.00"},
            {"account": self.revenue, "credit": "0.00"},
        ]
        with self.assertRaises(ValidationError):
            post_journal(self.company, self.date, "manual", None, lines)

    def test_negative_amount_rejected(self):
        lines = [
            {"account": self.cash, "debit": "-10.00"},
            {"account": self.revenue, "credit": "-10.00"},
        ]
        with self.assertRaises(ValidationError):
            post_journal(self.company, self.date, "manual", None, lines)

    def test_foreign_account_rejected(self):
        """ Test a line pointing at another company's account is refused """
        other = make_company("Other Co")
        lines = [
            {"account": chart.resolve_account(other, "1110"), "debit": "10.00"},
            {"account": self.revenue, "credit": "10.00"},
        ]
        with self.assertRaises(ValidationError):
            post_journal(self.company, self.date, "manual", None, lines)
        self.assertFalse(JournalEntry.objects.for_company(self.company).exists())

    def test_lines_by_code(self):
        lines = [{"code": "1110", "debit": "25"}, {"code": "4100", "credit": "25"}]
        je = post_journal(self.company, self.date, "manual", None, lines)
        self.assertEqual(je.lines.count(), 2)

    def test_failure_mid_write_rolls_back(self):
        """ Test a crash on the second line leaves no header and no lines """
        real_create = JournalLine.objects.create
        calls = []

        def flaky_create(**kwargs):
            calls.append(kwargs)
            if len(calls) == 2:
                raise DatabaseError("disk full")
            return real_create(**kwargs)

        with mock.patch.object(JournalLine.objects, "create", side_effect=flaky_create):
            with self.assertRaises(DatabaseError):
                post_journal(self.company, self.date, "manual", None, self._lines())

        self.assertFalse(JournalEntry.objects.for_company(self.company).exists())
        self.assertFalse(JournalLine.objects.for_company(self.company).exists())

    def test_reposting_same_event_is_noop(self):
        """ Test the same (source, source_id, payload) returns the first journal """
        first = post_journal(self.company, self.date, "manual", 42, self._lines())
        second = post_journal(self.company, self.date, "manual", 42, self._lines())
        self.assertEqual(first.pk, second.pk)
        self.assertEqual(
            JournalEntry.objects.for_company(self.company).filter(source_id=42).count(), 1
        )
        self.assertEqual(len(first.posting_fingerprint), 64)

    def test_reposting_with_different_payload_raises(self):
        post_journal(self.company, self.date, "manual", 42, self._lines())
        with self.assertRaises(AlreadyPostedDifferentPayload):
            post_journal(self.company, self.date, "manual", 42, self._lines("200.00", "200.00"))

    def test_same_source_id_in_other_company_is_independent(self):
        other = make_company("Other Co")
        post_journal(self.company, self.date, "manual", 7, self._lines())
        lines = [{"code": "1110", "debit": "5"}, {"code": "4100", "credit": "5"}]
        je = post_journal(other, self.date, "manual", 7, lines)
        self.assertEqual(je.company, other)

    def test_reverse_journal_mirrors_lines(self):
        je = post_journal(self.company, self.date, "manual", None, self._lines())
        reversal = reverse_journal(je)

        self.assertEqual(reversal.reverses, je)
        self.assertEqual(reversal.source, "reversal")
        self.assertEqual(reversal.source_id, je.pk)
        mirrored = {
            line.account.code: (line.debit, line.credit)
            for line in reversal.lines.select_related("account")
        }
        self.assertEqual(mirrored, {
            "1110": (Decimal("0.00"), Decimal("100.00")),
            "4100": (Decimal("100.00"), Decimal("0.00")),
        })
        # reversing twice hits the idempotency check
        self.assertEqual(reverse_journal(je).pk, reversal.pk)

    def test_draft_cannot_be_reversed(self):
        je = JournalEntry.objects.create(company=self.company, date=self.date)
        with self.assertRaises(ValidationError):
            reverse_journal(je)


class JournalImmutabilityTests(TestCase):
    def setUp(self):
        self.company = make_company()
        self.cash = chart.resolve_account(self.company, "1110")
        self.revenue = chart.resolve_account(self.company, "4100")
        self.je = JournalEntry.objects.create(
            company=self.company, date=datetime.date(2025, 10, 15)
        )
        JournalLine.objects.create(
            company=self.company, journal=self.je, account=self.cash, debit=Decimal("50.00")
        )
        JournalLine.objects.create(
            company=self.company, journal=self.je, account=self.revenue, credit=Decimal("50.00")
        )

    def test_post_draft_then_post_again(self):
        """ Test posting twice is a no-op the second time """
        self.je.post()
        self.je.refresh_from_db()
        self.assertEqual(self.je.status, "posted")
        self.assertIsNotNone(self.je.posted_at)
        fingerprint = self.je.posting_fingerprint

        self.je.post()
        self.je.refresh_from_db()
        self.assertEqual(self.je.posting_fingerprint, fingerprint)
        self.assertTrue(all(line.is_posted for line in self.je.lines.all()))

    def test_post_unbalanced_draft_raises(self):
        JournalLine.objects.create(
            company=self.company, journal=self.je, account=self.cash, debit=Decimal("5.00")
        )
        with self.assertRaises(UnbalancedJournalError):
            self.je.post()
        self.je.refresh_from_db()
        self.assertEqual(self.je.status, "draft")

    def test_posted_journal_cannot_be_edited(self):
        self.je.post()
        self.je.memo = "changed"
        with self.assertRaises(ValidationError):
            self.je.save()

    def test_posted_journal_cannot_be_unposted(self):
        self.je.post()
        self.je.status = "draft"
        with self.assertRaises(ValidationError):
            self.je.save()

    def test_posted_journal_takes_no_new_lines(self):
        self.je.post()
        with self.assertRaises(ValidationError):
            JournalLine.objects.create(
                company=self.company, journal=self.je, account=self.cash, debit=Decimal("1.00")
            )

    def test_posted_journal_cannot_be_deleted(self):
        self.je.post()
        with self.assertRaises(ValidationError), transaction.atomic():
            self.je.delete()
        self.assertTrue(JournalEntry.objects.filter(pk=self.je.pk).exists())

    def test_posted_line_cannot_be_deleted(self):
        self.je.post()
        line = self.je.lines.first()
        with self.assertRaises(ValidationError), transaction.atomic():
            line.delete()
        self.assertTrue(JournalLine.objects.filter(pk=line.pk).exists())

    def test_account_with_lines_cannot_be_deleted_or_disabled(self):
        with self.assertRaises(ProtectedError), transaction.atomic():
            self.cash.delete()
        self.cash.is_active = False
        with self.assertRaises(ValidationError):
            self.cash.save()

    def test_draft_journal_can_be_deleted(self):
        self.je.delete()
        self.assertFalse(JournalLine.objects.for_company(self.company).exists())
