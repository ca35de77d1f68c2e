"""
Django settings for the RAM storefront backend.

Secrets are injected through the environment - never hardcode credentials.
Run with: python apps/web/manage.py runserver
"""

from pathlib import Path

import environ  # type: ignore[import-untyped]

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# Initialize environ
env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, []),
    ERP_MODE=(str, "json2"),
    ERP_ALLOW_INSECURE=(bool, False),
    ERP_TIMEOUT_SECONDS=(float, 10.0),
    ERP_MAX_ATTEMPTS=(int, 3),
    ERP_RETRY_BASE_DELAY=(float, 0.5),
    ERP_RETRY_MAX_DELAY=(float, 4.0),
    BOOKING_HOLD_SECONDS=(int, 120),
    BOOKING_SLOT_MINUTES=(int, 90),
    CART_MAX_QUANTITY=(int, 99),
    LOG_LEVEL=(str, "INFO"),
)

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = env("SECRET_KEY")

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = env("DEBUG")

ALLOWED_HOSTS = env("ALLOWED_HOSTS")

# Application definition
INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    # Local apps
    "apps.web.core",
    "apps.web.erp",
    "apps.web.catalog",
    "apps.web.payments",
    "apps.web.orders",
    "apps.web.booking",
]

MIDDLEWARE = [
    "apps.web.core.middleware.CorrelationIdMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "apps.web.config.urls"

WSGI_APPLICATION = "apps.web.config.wsgi.application"

# Database - only auth (staff endpoints) lives here; the ERP owns business data
DATABASES = {
    "default": env.db("DATABASE_URL", default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
}

# Cache - backs Idempotency-Key replay
CACHES = {
    "default": env.cache("CACHE_URL", default="locmemcache://"),
}

# Cart lives in the client's signed session cookie, not on the server
SESSION_ENGINE = "django.contrib.sessions.backends.signed_cookies"
SESSION_COOKIE_HTTPONLY = True
SESSION_COOKIE_SECURE = not DEBUG
SESSION_COOKIE_SAMESITE = "Lax"

# Password validation
_V = "django.contrib.auth.password_validation"
AUTH_PASSWORD_VALIDATORS = [
    {"NAME": f"{_V}.UserAttributeSimilarityValidator"},
    {"NAME": f"{_V}.MinimumLengthValidator"},
    {"NAME": f"{_V}.CommonPasswordValidator"},
    {"NAME": f"{_V}.NumericPasswordValidator"},
]

# Internationalization
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# Default primary key field type
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ERP connection
# ERP_MODE: "json2" talks to the real ERP, "mock" uses the in-memory backend
ERP_MODE = env("ERP_MODE")
ERP_BASE_URL = env("ERP_BASE_URL", default="")
ERP_API_KEY = env("ERP_API_KEY", default="")
ERP_DATABASE = env("ERP_DATABASE", default="")
ERP_ALLOW_INSECURE = env("ERP_ALLOW_INSECURE")
ERP_TIMEOUT_SECONDS = env("ERP_TIMEOUT_SECONDS")
ERP_MAX_ATTEMPTS = env("ERP_MAX_ATTEMPTS")
ERP_RETRY_BASE_DELAY = env("ERP_RETRY_BASE_DELAY")
ERP_RETRY_MAX_DELAY = env("ERP_RETRY_MAX_DELAY")

# Payments - test-mode providers are accepted outside production
PAYMENT_ALLOW_TEST_PROVIDERS = env.bool("PAYMENT_ALLOW_TEST_PROVIDERS", default=DEBUG)

# Booking and cart
BOOKING_HOLD_SECONDS = env("BOOKING_HOLD_SECONDS")
BOOKING_SLOT_MINUTES = env("BOOKING_SLOT_MINUTES")
CART_MAX_QUANTITY = env("CART_MAX_QUANTITY")

# Logging - every line carries the request's correlation id
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "correlation_id": {"()": "apps.web.core.correlation.CorrelationIdFilter"},
    },
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "filters": ["correlation_id"],
            "formatter": "standard",
        },
    },
    "root": {"handlers": ["console"], "level": env("LOG_LEVEL")},
    "loggers": {
        "apps.web": {"level": env("LOG_LEVEL"), "propagate": True},
    },
}
