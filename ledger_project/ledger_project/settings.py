import os
from decimal import Decimal
from pathlib import Path

import dj_database_url
from celery.schedules import crontab
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")  # explicit .env location

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-key")


def _get_bool_env(name: str, default: bool) -> bool:
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.lower() in {"1", "true", "yes", "on"}


def _get_list_env(name: str) -> list[str]:
    raw_value = os.getenv(name, "")
    if not raw_value:
        return []
    parts = raw_value.replace(";", ",").split(",")
    return [p.strip() for p in parts if p.strip()]


DEBUG = _get_bool_env("DJANGO_DEBUG", True)
ALLOWED_HOSTS = _get_list_env("DJANGO_ALLOWED_HOSTS") or ["localhost", "127.0.0.1", "testserver"]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "ledger_core",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    # must run after authentication so request.user is populated
    "ledger_core.middleware.CurrentCompanyMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "ledger_project.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]

WSGI_APPLICATION = "ledger_project.wsgi.application"

default_db = "sqlite:///" + str((BASE_DIR / "db.sqlite3").resolve())
database_url = os.getenv("DATABASE_URL", default_db)
DATABASES = {"default": dj_database_url.parse(database_url)}

# Custom user lives in the ledger app (set before the first migrate)
AUTH_USER_MODEL = "ledger_core.User"

LANGUAGE_CODE = "en-us"
TIME_ZONE = "Africa/Johannesburg"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ---------- Ledger tunables ----------
# Debits and credits may differ by at most this much (rounding slack)
LEDGER_BALANCE_TOLERANCE = Decimal(os.getenv("LEDGER_BALANCE_TOLERANCE", "0.01"))
LEDGER_RECONCILE_THRESHOLD = float(os.getenv("LEDGER_RECONCILE_THRESHOLD", "0.85"))
LEDGER_RECONCILE_SUGGEST_FLOOR = float(os.getenv("LEDGER_RECONCILE_SUGGEST_FLOOR", "0.4"))
LEDGER_FRAUD_OUTLIER_K = float(os.getenv("LEDGER_FRAUD_OUTLIER_K", "3"))
LEDGER_FRAUD_MIN_SAMPLE = int(os.getenv("LEDGER_FRAUD_MIN_SAMPLE", "5"))
LEDGER_FRAUD_OUTLIER_WINDOW_DAYS = int(os.getenv("LEDGER_FRAUD_OUTLIER_WINDOW_DAYS", "365"))
LEDGER_RECURRING_MAX_CATCHUP = int(os.getenv("LEDGER_RECURRING_MAX_CATCHUP", "12"))
LEDGER_DEFAULT_VAT_RATE = Decimal(os.getenv("LEDGER_DEFAULT_VAT_RATE", "15"))
LEDGER_VAT_FREQUENCY = os.getenv("LEDGER_VAT_FREQUENCY", "bimonthly")

# ---------- Celery ----------
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)
CELERY_TASK_ALWAYS_EAGER = _get_bool_env("CELERY_TASK_ALWAYS_EAGER", False)
CELERY_TIMEZONE = TIME_ZONE
CELERY_BEAT_SCHEDULE = {
    "process-recurring-profiles": {
        "task": "ledger_core.tasks.process_recurring_profiles",
        "schedule": crontab(hour=2, minute=0),
    },
}

# ---------- Logging ----------
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "loggers": {
        "ledger_core": {
            "handlers": ["console"],
            "level": os.getenv("LEDGER_LOG_LEVEL", "INFO"),
        },
    },
}
