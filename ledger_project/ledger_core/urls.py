from django.urls import path

from . import views

urlpatterns = [
    path("vat/summary", views.vat_summary_view, name="vat-summary"),
    path("vat/vat201", views.vat201_view, name="vat-vat201"),
    path("reconcile/auto", views.auto_reconcile_view, name="reconcile-auto"),
    path("recurring/process", views.process_recurring_view, name="recurring-process"),
    path("analytics/health", views.health_score_view, name="analytics-health"),
    path("analytics/fraud", views.fraud_alerts_view, name="analytics-fraud"),
    path("reports/trial-balance", views.trial_balance_view, name="reports-trial-balance"),
]
