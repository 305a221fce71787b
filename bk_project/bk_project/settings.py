import os
import sys
from decimal import Decimal
from pathlib import Path

import dj_database_url
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

SECRET_KEY = os.environ.get("SECRET_KEY", os.environ.get("DJANGO_SECRET_KEY", "changeme"))
DEBUG = os.getenv("DEBUG", os.getenv("DJANGO_DEBUG", "True")) == "True"
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "127.0.0.1,localhost").split(",")

# pytest and "manage.py test" both count as test runs
TESTING = (
    "PYTEST_CURRENT_TEST" in os.environ
    or "pytest" in (sys.argv[0] if sys.argv else "")
    or "test" in sys.argv
)

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "ledger_core.apps.LedgerCoreConfig",
]

MIDDLEWARE = []

# =============================================================================
# Database Configuration
# =============================================================================
DATABASES = {
    "default": dj_database_url.config(
        env="DATABASE_URL",
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        conn_max_age=600,
    )
}

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.getenv("TIME_ZONE", "UTC")
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# =============================================================================
# Ledger Configuration
# =============================================================================
# Largest accepted |debits - credits| difference on an entry
LEDGER_BALANCE_TOLERANCE = Decimal(os.getenv("LEDGER_BALANCE_TOLERANCE", "0.01"))
# Attempts at issuing a document number before giving up with ConflictError
LEDGER_NUMBER_RETRIES = int(os.getenv("LEDGER_NUMBER_RETRIES", "3"))
# Notification windows (days)
LEDGER_LC_EXPIRY_DAYS = int(os.getenv("LEDGER_LC_EXPIRY_DAYS", "7"))
LEDGER_LOAN_DUE_DAYS = int(os.getenv("LEDGER_LOAN_DUE_DAYS", "30"))

# =============================================================================
# Celery Configuration (Async Task Processing)
# =============================================================================
REDIS_URL = os.getenv("REDIS_URL", "redis://127.0.0.1:6379/0")

CELERY_BROKER_URL = REDIS_URL
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = 30 * 60  # 30 minutes
CELERY_WORKER_PREFETCH_MULTIPLIER = 1
# Tests run tasks inline, no broker needed
CELERY_TASK_ALWAYS_EAGER = TESTING

# =============================================================================
# Structured Logging Configuration
# =============================================================================
from bk_project.logging_config import get_logging_config  # noqa: E402

LOGGING = get_logging_config(DEBUG)
