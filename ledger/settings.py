import os
from pathlib import Path

from django.core.exceptions import ImproperlyConfigured

from ledger.config import (
    STATE_STORE_BACKENDS,
    build_databases,
    env_bool,
    env_choice,
    env_float,
    env_int,
    env_list,
    load_environment,
)

BASE_DIR = Path(__file__).resolve().parent.parent
load_environment(BASE_DIR)

DEBUG = env_bool("DEBUG", default=True)

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "")
if not SECRET_KEY:
    if DEBUG:
        SECRET_KEY = "dev-only-secret-key"
    else:
        raise ImproperlyConfigured("DJANGO_SECRET_KEY must be set when DEBUG=False")

ALLOWED_HOSTS = env_list("ALLOWED_HOSTS", ["127.0.0.1", "localhost"])
if not DEBUG and not ALLOWED_HOSTS:
    raise ImproperlyConfigured("ALLOWED_HOSTS must be set when DEBUG=False")

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "accounts",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

# Pub/sub sidecars post to /deposit and /events/<topic> without a trailing slash.
APPEND_SLASH = False

ROOT_URLCONF = "ledger.urls"

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

WSGI_APPLICATION = "ledger.wsgi.application"

DATABASE_URL, DATABASES = build_databases(BASE_DIR)

if not DEBUG and not DATABASE_URL and not os.getenv("DB_NAME"):
    raise ImproperlyConfigured("Set DATABASE_URL or DB_NAME when DEBUG=False")

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

REST_FRAMEWORK = {
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
    ],
    "DEFAULT_PARSER_CLASSES": [
        "rest_framework.parsers.JSONParser",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.AllowAny",
    ],
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "EXCEPTION_HANDLER": "accounts.api.exceptions.custom_exception_handler",
}

STATE_STORE_BACKEND = env_choice(
    "STATE_STORE_BACKEND", "database", STATE_STORE_BACKENDS
)
STATE_STORE_NAME = os.getenv("STATE_STORE_NAME", "statestore")
if not STATE_STORE_NAME.strip():
    raise ImproperlyConfigured("STATE_STORE_NAME cannot be empty")

PUBSUB_NAME = os.getenv("PUBSUB_NAME", "pubsub")

LEDGER_MAX_ATTEMPTS = env_int("LEDGER_MAX_ATTEMPTS", default=5)
if LEDGER_MAX_ATTEMPTS < 1:
    raise ImproperlyConfigured("LEDGER_MAX_ATTEMPTS must be >= 1")

LEDGER_RETRY_BASE_DELAY = env_float("LEDGER_RETRY_BASE_DELAY", default=0.0)
LEDGER_RETRY_MAX_DELAY = env_float("LEDGER_RETRY_MAX_DELAY", default=0.0)
if LEDGER_RETRY_BASE_DELAY < 0 or LEDGER_RETRY_MAX_DELAY < 0:
    raise ImproperlyConfigured(
        "LEDGER_RETRY_BASE_DELAY and LEDGER_RETRY_MAX_DELAY must be >= 0"
    )

LEDGER_ALLOW_NEGATIVE_BALANCE = env_bool("LEDGER_ALLOW_NEGATIVE_BALANCE", default=True)

DAPR_HTTP_ENDPOINT = os.getenv("DAPR_HTTP_ENDPOINT", "")
if not DAPR_HTTP_ENDPOINT:
    DAPR_HTTP_ENDPOINT = f"http://127.0.0.1:{os.getenv('DAPR_HTTP_PORT', '3500')}"
DAPR_API_TOKEN = os.getenv("DAPR_API_TOKEN", "")
DAPR_TIMEOUT = env_float("DAPR_TIMEOUT", default=3.0)
if DAPR_TIMEOUT <= 0:
    raise ImproperlyConfigured("DAPR_TIMEOUT must be greater than zero")

STATE_HTTP_MAX_CONNECTIONS = env_int("STATE_HTTP_MAX_CONNECTIONS", default=10)
STATE_HTTP_MAX_KEEPALIVE = env_int("STATE_HTTP_MAX_KEEPALIVE", default=10)
if STATE_HTTP_MAX_CONNECTIONS < 1 or STATE_HTTP_MAX_KEEPALIVE < 1:
    raise ImproperlyConfigured(
        "STATE_HTTP_MAX_CONNECTIONS and STATE_HTTP_MAX_KEEPALIVE must be >= 1"
    )

STATE_REDIS_URL = os.getenv("STATE_REDIS_URL", "redis://127.0.0.1:6379/0")
STATE_REDIS_SOCKET_CONNECT_TIMEOUT = env_float(
    "STATE_REDIS_SOCKET_CONNECT_TIMEOUT", default=1.0
)
STATE_REDIS_SOCKET_TIMEOUT = env_float("STATE_REDIS_SOCKET_TIMEOUT", default=1.0)

LOG_LEVEL = os.getenv("LEDGER_LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "structured": {
            "format": (
                '{"ts":"%(asctime)s","level":"%(levelname)s",'
                '"logger":"%(name)s","message":"%(message)s"}'
            ),
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "structured",
        },
    },
    "loggers": {
        "accounts": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
    },
}
