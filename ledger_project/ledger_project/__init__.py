# Celery instance is defined in ledger_project/celery.py
# Importing it here makes sure shared_task decorators bind to it
from .celery import celery_app

__all__ = ("celery_app",)

""" Workers start with "celery -A ledger_project worker -l info",
    beat with "celery -A ledger_project beat -l info". """
