from __future__ import annotations
import os
from celery import Celery

# ensure Django settings are set for Celery
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "ledger_project.settings")

# name matches the project package
celery_app = Celery("ledger_project")

# read config from Django settings, using CELERY_ prefix
# (broker, result backend and the beat schedule for recurring billing)
celery_app.config_from_object("django.conf:settings", namespace="CELERY")

# pick up ledger_core/tasks.py
celery_app.autodiscover_tasks()
