"""Django settings for the example development server.

Extends the test settings pattern with a persistent SQLite database,
static file serving, and DEBUG mode for local development.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent
load_dotenv(BASE_DIR / ".env")

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "example-dev-key-not-for-production")
SALT_KEY = os.environ.get("DJANGO_SALT_KEY", "example-salt-key-not-for-production")
DEBUG = True
ALLOWED_HOSTS = ["*"]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.messages",
    "django.contrib.sessions",
    "django.contrib.staticfiles",
    "django_confreg.conference",
    "django_confreg.registration",
    "django_confreg.notifications",
    "django_confreg.abstracts",
    "django_confreg.accounts",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
]

ROOT_URLCONF = "urls"

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

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
USE_TZ = True
TIME_ZONE = "Asia/Bangkok"

STATIC_URL = "static/"

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {"console": {"class": "logging.StreamHandler"}},
    "loggers": {"django_confreg": {"handlers": ["console"], "level": "INFO"}},
}

DJANGO_CONFREG = {
    "api_base_url": os.environ.get("CONFREG_API_BASE_URL", "http://localhost:8000"),
    "email": {
        "base_url": os.environ.get("CONFREG_EMAIL_BASE_URL", "https://api.email.example.com/v1"),
        "token_url": os.environ.get("CONFREG_EMAIL_TOKEN_URL", "https://api.email.example.com/oauth/token"),
        "client_id": os.environ.get("CONFREG_EMAIL_CLIENT_ID", ""),
        "client_secret": os.environ.get("CONFREG_EMAIL_CLIENT_SECRET", ""),
        "from_address": os.environ.get("CONFREG_EMAIL_FROM", "noreply@example.com"),
        "templates": {
            "payment_receipt": os.environ.get("CONFREG_TEMPLATE_RECEIPT", "payment_receipt"),
            "abstract_submitted": os.environ.get("CONFREG_TEMPLATE_ABSTRACT_SUBMITTED", "abstract_submitted"),
        },
    },
    "receipts": {
        "secret": os.environ.get("CONFREG_RECEIPT_SECRET", ""),
        "issuer_name": "ACCP 2026 Secretariat",
    },
}
