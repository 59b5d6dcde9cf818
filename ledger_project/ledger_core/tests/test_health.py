import datetime
from decimal import Decimal

from django.test import SimpleTestCase, TestCase

from ledger_core.services import health
from ledger_core.tests.factories import WEEKDAY, make_client, make_company, make_expense, make_invoice


class SubScoreTests(SimpleTestCase):
    def test_missing_metric_is_neutral(self):
        self.assertEqual(health.sub_score([(None, 10, 1.0)]), 50)

    def test_performance_is_capped(self):
        self.assertEqual(health.sub_score([(50, 10, 1.0)]), 100)
        self.assertEqual(health.sub_score([(-5, 10, 1.0)]), 0)
        self.assertEqual(health.sub_score([(5, 10, 0.5), (None, 1, 0.5)]), 50)


class HealthScoreTests(TestCase):
    def setUp(self):
        self.company = make_company()
        self.today = WEEKDAY

    def _assert_bounded(self, score):
        self.assertGreaterEqual(score.total_score, 0)
        self.assertLessEqual(score.total_score, 100)
        for pillar in score.pillars.values():
            self.assertGreaterEqual(pillar["score"], 0)
            self.assertLessEqual(pillar["score"], 100)

    def test_empty_company_scores_within_bounds(self):
        """ Test a company with no activity still gets a 0-100 score """
        score = health.calculate_health_score(self.company, today=self.today)
        self._assert_bounded(score)
        self.assertEqual(set(score.pillars), set(health.PILLAR_WEIGHTS))
        self.assertEqual(score.pillars["growth"]["score"], health.NEUTRAL)
        self.assertTrue(score.recommendations)

    def test_score_with_activity(self):
        client = make_client(self.company)
        make_invoice(self.company, client, "1000.00", issue_date=self.today)
        # due 2025-07-02, 105 days overdue
        make_invoice(self.company, client, "1000.00", issue_date=datetime.date(2025, 6, 2))
        make_expense(self.company, "Office Mart", "400.00", date=self.today)
        make_expense(self.company, "Landlord", "900.00", date=self.today, is_paid=False)

        score = health.calculate_health_score(self.company, today=self.today)

        self._assert_bounded(score)
        self.assertEqual(score.ar_aging["current"], Decimal("1150.00"))
        self.assertEqual(score.ar_aging["90_plus"], Decimal("1150.00"))
        self.assertTrue(
            any(r["category"] == "Efficiency" and r["priority"] == "high"
                for r in score.recommendations)
        )
        ranks = [health.PRIORITY_ORDER[r["priority"]] for r in score.recommendations]
        self.assertEqual(ranks, sorted(ranks))

        data = score.to_dict()
        self.assertEqual(data["totalScore"], score.total_score)
        self.assertEqual(data["arAging"]["90_plus"], "1150.00")

    def test_revenue_growth(self):
        client = make_client(self.company)
        make_invoice(self.company, client, "1000.00", issue_date=self.today - datetime.timedelta(days=40))
        make_invoice(self.company, client, "2000.00", issue_date=self.today - datetime.timedelta(days=5))

        score = health.calculate_health_score(self.company, today=self.today)

        self.assertEqual(score.pillars["growth"]["metrics"]["revenueGrowth"], 100.0)
        self.assertEqual(score.pillars["growth"]["score"], 100)

    def test_other_company_does_not_leak(self):
        other = make_company("Other Co")
        make_invoice(other, make_client(other), "1000.00", issue_date=datetime.date(2025, 6, 2))
        score = health.calculate_health_score(self.company, today=self.today)
        self.assertEqual(score.ar_aging["90_plus"], Decimal("0.00"))
