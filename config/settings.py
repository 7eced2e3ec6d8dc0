"""
POS - Django Settings (Infrastructure Only)
===========================================
Django hosts the relational store behind the DataStore protocol.
POS engines do not import Django; only adapters.django_store does.

Every value that differs between environments is read from a
POS_* environment variable. Defaults are for local development
and tests.
"""

import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get("POS_SECRET_KEY", "pos-dev-key-replace-before-deployment")

DEBUG = _env_bool("POS_DEBUG", default=True)

ALLOWED_HOSTS = []

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "adapters.django_store",
]

MIDDLEWARE = []

# ── Database ──────────────────────────────────────────────────
# SQLite unless POS_DB_ENGINE points elsewhere.
_DB_ENGINE = os.environ.get("POS_DB_ENGINE", "django.db.backends.sqlite3")

if _DB_ENGINE.endswith("sqlite3"):
    DATABASES = {
        "default": {
            "ENGINE": _DB_ENGINE,
            "NAME": os.environ.get("POS_DB_NAME", str(BASE_DIR / "db.sqlite3")),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": _DB_ENGINE,
            "NAME": os.environ.get("POS_DB_NAME", "pos"),
            "USER": os.environ.get("POS_DB_USER", ""),
            "PASSWORD": os.environ.get("POS_DB_PASSWORD", ""),
            "HOST": os.environ.get("POS_DB_HOST", ""),
            "PORT": os.environ.get("POS_DB_PORT", ""),
        }
    }

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = False
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── Logging ───────────────────────────────────────────────────
# Every POS logger lives under "pos" (pos.orders, pos.payments...).
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "pos": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "pos",
        },
    },
    "loggers": {
        "pos": {
            "handlers": ["console"],
            "level": os.environ.get("POS_LOG_LEVEL", "INFO"),
            "propagate": True,
        },
    },
}
