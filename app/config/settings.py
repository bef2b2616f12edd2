"""
Django settings for the DeltaPay backend.

One settings module for every environment (web, celery worker, celery
beat). Values come from environment variables through django-environ; an
env file named by ENV_FILE (default .env.development) is read when present.

Payment-specific sections:
    - Payment Gateway: gateway API, credentials, callback secret
    - Platform: public URLs, settlement currency and precision, expiry
    - FX Rate: rate source and failure policy
    - Merchant Webhook: signing header, timeouts, retry schedule
    - Sweeper: celery-beat intervals

Reference:
https://docs.djangoproject.com/en/5.2/ref/settings/
"""

import os
from decimal import Decimal
from pathlib import Path

import environ

# =============================================================================
# Path Configuration
# =============================================================================
# Build paths inside the project: BASE_DIR / 'subdir'
BASE_DIR = Path(__file__).resolve().parent.parent

# =============================================================================
# Environment Configuration
# =============================================================================
# Initialize django-environ
env = environ.Env(
    # Set default values and casting for common settings
    DEBUG=(bool, False),  # Default to False for safety
    ALLOWED_HOSTS=(list, []),
    CORS_ALLOWED_ORIGINS=(list, []),
    LOG_LEVEL=(str, "INFO"),
)

# Read environment file based on DJANGO_ENV or default to development
# Note: In Docker, env vars are passed directly; .env files are for local dev
env_file = os.environ.get("ENV_FILE", BASE_DIR.parent / ".env.development")
if Path(env_file).exists():
    environ.Env.read_env(env_file)

# =============================================================================
# Core Settings
# =============================================================================
# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = env("SECRET_KEY", default="django-insecure-local-development-key")

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = env("DEBUG")

ALLOWED_HOSTS = env("ALLOWED_HOSTS")

# =============================================================================
# Application Definition
# =============================================================================
INSTALLED_APPS = [
    # Django core apps
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Third-party apps
    "rest_framework",
    "corsheaders",
    "django_celery_beat",
    "drf_spectacular",
    # Local apps
    "core",
    "payments",
]

MIDDLEWARE = [
    # Security middleware (should be first)
    "django.middleware.security.SecurityMiddleware",
    # WhiteNoise for static files (after security, before all else)
    "whitenoise.middleware.WhiteNoiseMiddleware",
    # CORS headers (must be before CommonMiddleware)
    "corsheaders.middleware.CorsMiddleware",
    # Django default middleware
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
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

WSGI_APPLICATION = "config.wsgi.application"
ASGI_APPLICATION = "config.asgi.application"

# =============================================================================
# Database Configuration
# =============================================================================
# https://docs.djangoproject.com/en/5.2/ref/settings/#databases
# Postgres (psycopg3) in deployment; SQLite when DATABASE_URL is not set
DATABASES = {
    "default": env.db(
        "DATABASE_URL",
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
    ),
}

if DATABASES["default"]["ENGINE"] == "django.db.backends.postgresql":
    DATABASES["default"]["OPTIONS"] = {
        "connect_timeout": 10,
    }

# =============================================================================
# Cache Configuration
# =============================================================================
# https://docs.djangoproject.com/en/5.2/topics/cache/
# Redis also backs payments.locks.DistributedLock (sweep overlap protection)
CACHES = {
    "default": {
        "BACKEND": "django_redis.cache.RedisCache",
        "LOCATION": env("REDIS_URL", default="redis://redis:6379/0"),
        "OPTIONS": {
            "CLIENT_CLASS": "django_redis.client.DefaultClient",
            # Gracefully handle Redis connection failures
            "IGNORE_EXCEPTIONS": True,
        },
    }
}

# =============================================================================
# Authentication Configuration
# =============================================================================
# Password validation
# https://docs.djangoproject.com/en/5.2/ref/settings/#auth-password-validators
AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"
    },
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

# =============================================================================
# Django REST Framework Configuration
# =============================================================================
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        # Session authentication (for browsable API and admin)
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
    ],
    # OpenAPI schema generation
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    # Throttling (rate limiting); checkout endpoints are anonymous
    "DEFAULT_THROTTLE_CLASSES": [
        "rest_framework.throttling.AnonRateThrottle",
    ],
    "DEFAULT_THROTTLE_RATES": {
        "anon": env("API_ANON_THROTTLE_RATE", default="120/minute"),
    },
}

# Add browsable API in debug mode
if DEBUG:
    REST_FRAMEWORK["DEFAULT_RENDERER_CLASSES"].append(
        "rest_framework.renderers.BrowsableAPIRenderer"
    )

# =============================================================================
# drf-spectacular (OpenAPI) Configuration
# =============================================================================
SPECTACULAR_SETTINGS = {
    "TITLE": "DeltaPay API",
    "DESCRIPTION": "Checkout, direct charge and gateway callback endpoints",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
    # Strip /api/v1 prefix from operation IDs
    "SCHEMA_PATH_PREFIX": r"/api/v[0-9]+",
    # Schema customization
    "COMPONENT_SPLIT_REQUEST": True,
    "SORT_OPERATIONS": False,
}

# =============================================================================
# CORS Configuration
# =============================================================================
CORS_ALLOWED_ORIGINS = env("CORS_ALLOWED_ORIGINS")
CORS_ALLOW_CREDENTIALS = True

# =============================================================================
# Celery Configuration
# =============================================================================
CELERY_BROKER_URL = env("CELERY_BROKER_URL", default="redis://redis:6379/1")
CELERY_RESULT_BACKEND = env("CELERY_RESULT_BACKEND", default="redis://redis:6379/1")
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = "UTC"
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = 30 * 60  # 30 minutes
CELERY_TASK_ALWAYS_EAGER = env.bool("CELERY_TASK_ALWAYS_EAGER", default=False)
CELERY_BEAT_SCHEDULER = "django_celery_beat.schedulers:DatabaseScheduler"

# =============================================================================
# Payment Gateway Configuration
# =============================================================================
# Access token from the gateway developer dashboard (TEST- prefix for sandbox)
GATEWAY_API_BASE_URL = env("GATEWAY_API_BASE_URL", default="https://api.mercadopago.com")
GATEWAY_ACCESS_TOKEN = env("GATEWAY_ACCESS_TOKEN", default="")

# Secret used to verify the x-signature header of gateway callbacks
GATEWAY_WEBHOOK_SECRET = env("GATEWAY_WEBHOOK_SECRET", default="")

# Accept callbacks without verification when no secret is configured.
# Only ever true for local development.
GATEWAY_WEBHOOK_ALLOW_UNSIGNED = env.bool("GATEWAY_WEBHOOK_ALLOW_UNSIGNED", default=DEBUG)

# API timeout in seconds (default: 10)
GATEWAY_API_TIMEOUT_SECONDS = env.float("GATEWAY_API_TIMEOUT_SECONDS", default=10.0)

# Text shown on the payer's card statement
GATEWAY_STATEMENT_DESCRIPTOR = env("GATEWAY_STATEMENT_DESCRIPTOR", default="DELTAPAY")

# =============================================================================
# Platform Configuration
# =============================================================================
# Public base URL of this API, used to build the gateway notification_url
PLATFORM_BASE_URL = env("PLATFORM_BASE_URL", default="http://localhost:8000")

# Base URL of the checkout frontend, used for payer return URLs
CHECKOUT_BASE_URL = env("CHECKOUT_BASE_URL", default="http://localhost:3000")

# Merchant balances are kept in this currency
SETTLEMENT_CURRENCY = env("SETTLEMENT_CURRENCY", default="USDT")
SETTLEMENT_DECIMAL_PLACES = env.int("SETTLEMENT_DECIMAL_PLACES", default=2)

# Largest accepted difference between charged and expected amounts
PAYMENT_AMOUNT_TOLERANCE = Decimal(env("PAYMENT_AMOUNT_TOLERANCE", default="0.01"))

# Minutes a new payment stays collectable before the sweeper expires it
PAYMENT_EXPIRATION_MINUTES = env.int("PAYMENT_EXPIRATION_MINUTES", default=30)

# =============================================================================
# FX Rate Configuration
# =============================================================================
# CoinGecko-style simple price endpoint; FX_RATE_ASSET_ID is priced in the
# local currency and the settlement rate is its inverse
FX_RATE_API_URL = env("FX_RATE_API_URL", default="https://api.coingecko.com/api/v3/simple/price")
FX_RATE_ASSET_ID = env("FX_RATE_ASSET_ID", default="tether")
FX_RATE_SOURCE_NAME = env("FX_RATE_SOURCE_NAME", default="coingecko")
FX_RATE_TIMEOUT_SECONDS = env.float("FX_RATE_TIMEOUT_SECONDS", default=5.0)

# Pairs with a fixed rate, e.g. FX_FIXED_RATES=USD:USDT=1
FX_FIXED_RATES = env.dict("FX_FIXED_RATES", default={"USD:USDT": "1"})

# What to do when the rate lookup fails: "reject" raises RateUnavailable and
# the confirmation is retried later; "fallback" uses FX_FALLBACK_RATES
FX_FALLBACK_POLICY = env("FX_FALLBACK_POLICY", default="reject")
FX_FALLBACK_RATES = env.dict("FX_FALLBACK_RATES", default={})

# =============================================================================
# Merchant Webhook Configuration
# =============================================================================
MERCHANT_WEBHOOK_SIGNATURE_HEADER = env(
    "MERCHANT_WEBHOOK_SIGNATURE_HEADER", default="X-DeltaPay-Signature"
)
MERCHANT_WEBHOOK_TIMEOUT_SECONDS = env.float("MERCHANT_WEBHOOK_TIMEOUT_SECONDS", default=5.0)

# Response bodies are stored truncated to this many characters
MERCHANT_WEBHOOK_RESPONSE_BODY_LIMIT = env.int("MERCHANT_WEBHOOK_RESPONSE_BODY_LIMIT", default=2000)

# Redelivery backoff: base * 2^(attempt - 1), capped at max
MERCHANT_WEBHOOK_RETRY_BASE_SECONDS = env.int("MERCHANT_WEBHOOK_RETRY_BASE_SECONDS", default=60)
MERCHANT_WEBHOOK_RETRY_MAX_SECONDS = env.int("MERCHANT_WEBHOOK_RETRY_MAX_SECONDS", default=6 * 60 * 60)
MERCHANT_WEBHOOK_MAX_ATTEMPTS = env.int("MERCHANT_WEBHOOK_MAX_ATTEMPTS", default=8)

# =============================================================================
# Sweeper Configuration
# =============================================================================
# Intervals used by the celery-beat schedules created in payments migrations
PAYMENT_EXPIRATION_SWEEP_INTERVAL_SECONDS = env.int(
    "PAYMENT_EXPIRATION_SWEEP_INTERVAL_SECONDS", default=60
)
WEBHOOK_REDELIVERY_SWEEP_INTERVAL_SECONDS = env.int(
    "WEBHOOK_REDELIVERY_SWEEP_INTERVAL_SECONDS", default=60
)

# =============================================================================
# Internationalization
# =============================================================================
# https://docs.djangoproject.com/en/5.2/topics/i18n/
LANGUAGE_CODE = env("LANGUAGE_CODE", default="en-us")
LANGUAGES = [
    ("en", "English"),
    ("es", "Spanish"),
    ("pt-br", "Brazilian Portuguese"),
]
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# =============================================================================
# Static Files (CSS, JavaScript, Images)
# =============================================================================
# https://docs.djangoproject.com/en/5.2/howto/static-files/
STATIC_URL = env("STATIC_URL", default="/static/")
STATIC_ROOT = BASE_DIR / "staticfiles"
STATICFILES_DIRS = [BASE_DIR / "static"] if (BASE_DIR / "static").exists() else []

# WhiteNoise configuration for static file serving
STORAGES = {
    "default": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
    },
    "staticfiles": {
        "BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage",
    },
}

# =============================================================================
# Default Primary Key Field Type
# =============================================================================
# https://docs.djangoproject.com/en/5.2/ref/settings/#default-auto-field
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# =============================================================================
# Logging Configuration
# =============================================================================
LOG_LEVEL = env("LOG_LEVEL")

# Log file name determined by service (web, celery-worker, celery-beat)
# Set via LOG_FILE_NAME environment variable in docker-compose.yaml
LOG_FILE_NAME = env("LOG_FILE_NAME", default="django.log")
LOG_DIR = BASE_DIR / "logs"

# Ensure log directory exists (handles local development without Docker)
LOG_DIR.mkdir(parents=True, exist_ok=True)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {process:d} {thread:d} {message}",
            "style": "{",
        },
        "simple": {
            "format": "{levelname} {message}",
            "style": "{",
        },
        "file": {
            # Detailed format for persistent logs with timestamp, level, logger name, and location
            "format": "[{asctime}] {levelname} {name} {module}:{lineno} - {message}",
            "style": "{",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
        "file": {
            # Rotating file handler prevents unbounded disk usage
            # Max 10MB per file, keeps 5 backups (60MB total per log type)
            "level": "DEBUG",
            "class": "logging.handlers.RotatingFileHandler",
            "filename": LOG_DIR / LOG_FILE_NAME,
            "maxBytes": 10 * 1024 * 1024,  # 10MB
            "backupCount": 5,
            "formatter": "file",
            "encoding": "utf-8",
        },
    },
    "root": {
        "handlers": ["console", "file"],
        "level": LOG_LEVEL,
    },
    "loggers": {
        "django": {
            "handlers": ["console", "file"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
        "django.request": {
            "handlers": ["console", "file"],
            "level": "ERROR",
            "propagate": False,
        },
        "celery": {
            "handlers": ["console", "file"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
        "payments": {
            "handlers": ["console", "file"],
            "level": env("PAYMENTS_LOG_LEVEL", default=LOG_LEVEL),
            "propagate": False,
        },
    },
}

# =============================================================================
# Security Settings (Production Only)
# =============================================================================
# These settings are enforced only when DEBUG=False
if not DEBUG:
    # HTTPS/SSL settings
    SECURE_SSL_REDIRECT = env.bool("SECURE_SSL_REDIRECT", default=True)
    SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")

    # Cookie security
    SESSION_COOKIE_SECURE = env.bool("SESSION_COOKIE_SECURE", default=True)
    CSRF_COOKIE_SECURE = env.bool("CSRF_COOKIE_SECURE", default=True)

    # HSTS (HTTP Strict Transport Security)
    SECURE_HSTS_SECONDS = env.int("SECURE_HSTS_SECONDS", default=31536000)  # 1 year
    SECURE_HSTS_INCLUDE_SUBDOMAINS = env.bool(
        "SECURE_HSTS_INCLUDE_SUBDOMAINS", default=True
    )
    SECURE_HSTS_PRELOAD = env.bool("SECURE_HSTS_PRELOAD", default=True)

    # Additional security headers
    SECURE_CONTENT_TYPE_NOSNIFF = True
    X_FRAME_OPTIONS = "DENY"

