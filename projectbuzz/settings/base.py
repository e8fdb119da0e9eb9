"""Django settings for the ProjectBuzz marketplace backend.

Values come from the environment (optionally a local .env file). Money is
always stored in paise, so every amount below is an integer number of paise.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent.parent
load_dotenv(BASE_DIR / ".env")


def env_bool(name, default=""):
    v = os.getenv(name, default)
    return v.lower() in ("1", "true", "yes", "on")


def env_int(name, default):
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return int(default)


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-only-insecure-key")
DEBUG = env_bool("DEBUG", "1")
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "*").split(",")
CSRF_TRUSTED_ORIGINS = os.getenv("CSRF_TRUSTED_ORIGINS", "").split(",") if os.getenv("CSRF_TRUSTED_ORIGINS") else []


INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # local apps
    "accounts",
    "catalog",
    "payments",
    "negotiations",
    "wallets",
    "notifications",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "projectbuzz.middleware.ApiErrorMiddleware",
]

ROOT_URLCONF = "projectbuzz.urls"
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

WSGI_APPLICATION = "projectbuzz.wsgi.application"


DB_ENGINE = os.getenv("DB_ENGINE", "sqlite")
if DB_ENGINE == "postgres":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.getenv("POSTGRES_DB", "projectbuzz"),
            "USER": os.getenv("POSTGRES_USER", "projectbuzz"),
            "PASSWORD": os.getenv("POSTGRES_PASSWORD", "projectbuzz"),
            "HOST": os.getenv("POSTGRES_HOST", "localhost"),
            "PORT": os.getenv("POSTGRES_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

# Shared between processes so OTP state survives restarts (run `createcachetable`).
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.db.DatabaseCache",
        "LOCATION": "projectbuzz_cache",
    }
}


AUTH_PASSWORD_VALIDATORS = []

LANGUAGE_CODE = "en-us"
TIME_ZONE = "Asia/Kolkata"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# Email
EMAIL_BACKEND = os.getenv("EMAIL_BACKEND", "django.core.mail.backends.console.EmailBackend")
EMAIL_HOST = os.getenv("EMAIL_HOST", "")
EMAIL_PORT = env_int("EMAIL_PORT", "587")
EMAIL_HOST_USER = os.getenv("EMAIL_HOST_USER", "")
EMAIL_HOST_PASSWORD = os.getenv("EMAIL_HOST_PASSWORD", "")
EMAIL_USE_TLS = env_bool("EMAIL_USE_TLS", "1")
DEFAULT_FROM_EMAIL = os.getenv("DEFAULT_FROM_EMAIL", "ProjectBuzz <noreply@projectbuzz.tech>")
EMAIL_FAIL_SILENTLY = env_bool("EMAIL_FAIL_SILENTLY", "1")


#######################
# Card payment gateway. MOCK short-circuits network calls (local development).
RAZORPAY = {
    "BASE_URL": os.getenv("RAZORPAY_BASE_URL", "https://api.razorpay.com/v1"),
    "KEY_ID": os.getenv("RAZORPAY_KEY_ID", ""),
    "KEY_SECRET": os.getenv("RAZORPAY_KEY_SECRET", ""),
    "WEBHOOK_SECRET": os.getenv("RAZORPAY_WEBHOOK_SECRET", ""),
    "TIMEOUT": env_int("RAZORPAY_TIMEOUT", "20"),
    "MOCK": env_bool("RAZORPAY_MOCK", "0"),
}

# Marketplace rules. Amounts in paise, rates as decimal strings.
MARKETPLACE = {
    "CURRENCY": "INR",
    "SELLER_COMMISSION_RATE": os.getenv("SELLER_COMMISSION_RATE", "0.85"),
    "PAYMENT_TTL_MINUTES": env_int("PAYMENT_TTL_MINUTES", "30"),
    "MIN_ORDER_AMOUNT": 100,  # Rs 1
    "MAX_ORDER_AMOUNT": 50_000_000,  # Rs 5,00,000
    "MIN_PAYOUT_AMOUNT": 25_000,  # Rs 250
    "NEGOTIATION_FLOOR_RATE": "0.70",
    "NEGOTIATION_TTL_DAYS": 7,
    "DISCOUNT_CODE_TTL_HOURS": 48,
    "WELCOME_DISCOUNT_PERCENT": 20,
    "WELCOME_MAX_DISCOUNT": 50_000,  # Rs 500
    "WELCOME_MIN_PURCHASE": 10_000,  # Rs 100
    "WELCOME_TTL_DAYS": 30,
    "OTP_TTL_SECONDS": env_int("OTP_TTL_SECONDS", "600"),
    "OTP_MAX_ATTEMPTS": 3,
    "OTP_RESEND_COOLDOWN_SECONDS": 60,
}
#######################


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "verbose"},
    },
    "root": {"handlers": ["console"], "level": LOG_LEVEL},
    "loggers": {
        "django": {"handlers": ["console"], "level": "WARNING", "propagate": False},
        # signature failures and other suspicious traffic
        "projectbuzz.security": {"handlers": ["console"], "level": "WARNING", "propagate": False},
    },
}
