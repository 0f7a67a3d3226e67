import os
from datetime import timedelta
from decimal import Decimal
from pathlib import Path

from celery.schedules import crontab


def env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


BASE_DIR = Path(__file__).resolve().parent.parent

# ---------- Core ----------
SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dev-only-insecure-key")
DEBUG = env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS = [
    h.strip()
    for h in os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")
    if h.strip()
]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "rest_framework_simplejwt",
    "erp_core",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    # sets request.organization for admin screens
    "erp_core.middleware.CurrentOrganizationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "erp_project.urls"
WSGI_APPLICATION = "erp_project.wsgi.application"

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
    },
]

# ---------- Database ----------
# PostgreSQL when POSTGRES_DB is set, sqlite otherwise (local dev, tests)
if os.environ.get("POSTGRES_DB"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.environ["POSTGRES_DB"],
            "USER": os.environ.get("POSTGRES_USER", "postgres"),
            "PASSWORD": os.environ.get("POSTGRES_PASSWORD", ""),
            "HOST": os.environ.get("POSTGRES_HOST", "localhost"),
            "PORT": os.environ.get("POSTGRES_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
AUTH_USER_MODEL = "erp_core.User"

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.environ.get("DJANGO_TIME_ZONE", "UTC")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# ---------- REST API ----------
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
    "DEFAULT_RENDERER_CLASSES": (
        "rest_framework.renderers.JSONRenderer",
    ),
    # every error leaves the API as {"success": false, "error": ...}
    "EXCEPTION_HANDLER": "erp_core.api.envelope.envelope_exception_handler",
    "COERCE_DECIMAL_TO_STRING": False,
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(
        minutes=int(os.environ.get("ERP_ACCESS_TOKEN_MINUTES", "60"))),
    "REFRESH_TOKEN_LIFETIME": timedelta(
        days=int(os.environ.get("ERP_REFRESH_TOKEN_DAYS", "7"))),
    "AUTH_HEADER_TYPES": ("Bearer",),
}

# ---------- Celery ----------
CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.environ.get(
    "CELERY_RESULT_BACKEND", "redis://localhost:6379/0")
CELERY_TASK_ALWAYS_EAGER = env_bool("CELERY_TASK_ALWAYS_EAGER", False)
CELERY_TIMEZONE = TIME_ZONE
CELERY_BEAT_SCHEDULE = {
    "mark-overdue-bills": {
        "task": "erp_core.tasks.mark_overdue_bills",
        "schedule": crontab(hour=1, minute=0),
    },
    "expire-discounts": {
        "task": "erp_core.tasks.expire_discounts",
        "schedule": crontab(hour=1, minute=15),
    },
}

# ---------- Business settings ----------
# Code prefixes of the accounts used by automatic postings
ERP_GL_ACCOUNTS = {
    "accounts_payable": os.environ.get("ERP_AP_ACCOUNT_CODE", "2000"),
    "withholding_tax_payable": os.environ.get("ERP_WHT_ACCOUNT_CODE", "2150"),
    "inventory": os.environ.get("ERP_INVENTORY_ACCOUNT_CODE", "1300"),
    "landed_cost_clearing": os.environ.get("ERP_LANDED_COST_ACCOUNT_CODE", "2300"),
    "revaluation_gain": os.environ.get("ERP_REVALUATION_GAIN_ACCOUNT_CODE", "4900"),
    "revaluation_loss": os.environ.get("ERP_REVALUATION_LOSS_ACCOUNT_CODE", "6900"),
    # absorbs the cent a payment may differ from its allocations
    "payment_rounding": os.environ.get("ERP_PAYMENT_ROUNDING_ACCOUNT_CODE", "6000"),
}
ERP_REVALUATION_AUTO_APPROVE_LIMIT = Decimal(
    os.environ.get("ERP_REVALUATION_AUTO_APPROVE_LIMIT", "1000.00"))
ERP_REVALUATION_WARNING_PERCENT = Decimal(
    os.environ.get("ERP_REVALUATION_WARNING_PERCENT", "25"))
ERP_DEFAULT_PAGE_SIZE = int(os.environ.get("ERP_DEFAULT_PAGE_SIZE", "50"))
ERP_MAX_PAGE_SIZE = int(os.environ.get("ERP_MAX_PAGE_SIZE", "200"))

# ---------- Logging ----------
ERP_LOG_LEVEL = os.environ.get("ERP_LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": os.environ.get("DJANGO_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
        "erp_core": {
            "handlers": ["console"],
            "level": ERP_LOG_LEVEL,
            "propagate": False,
        },
    },
}
