"""
Django settings for the HTTP trigger.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dev-secret-key-change-in-production")
DEBUG = os.environ.get("DJANGO_DEBUG", "False").lower() == "true"
ALLOWED_HOSTS = os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,*").split(",")

SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
USE_X_FORWARDED_HOST = True

# No models, sessions or auth: the endpoint is machine-to-machine
INSTALLED_APPS = [
    "bunq_sync.web",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "bunq_sync.web.urls"
WSGI_APPLICATION = None

DATABASES = {}

APPEND_SLASH = False
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {
            "format": "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "plain",
        },
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "WARNING",
        },
        "bunq_sync": {
            "handlers": ["console"],
            "level": os.environ.get("BUNQ_SYNC_LOG_LEVEL", "INFO"),
        },
    },
}

# Path of the worker's config.yaml; environment variables override its values
BUNQ_SYNC_CONFIG = os.environ.get("BUNQ_SYNC_CONFIG", "config.yaml")
