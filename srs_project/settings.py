import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "insecure-dev-key-change-me")
DEBUG = os.environ.get("DJANGO_DEBUG", "0") == "1"
ALLOWED_HOSTS = os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",")

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "rest_framework",
    "srs",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "srs_project.urls"
WSGI_APPLICATION = "srs_project.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("SRS_DB_PATH", str(BASE_DIR / "db.sqlite3")),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = False
USE_TZ = True

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.AllowAny"],
    "UNAUTHENTICATED_USER": None,
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
}

# Scheduler configuration; intervals are given in seconds
SRS = {
    "SRS_ENABLED": os.environ.get("SRS_ENABLED", "1") == "1",
    "NOTIFICATIONS_ENABLED": os.environ.get("SRS_NOTIFICATIONS_ENABLED", "1") == "1",
    "DUE_HORIZON": int(os.environ.get("SRS_DUE_HORIZON_SECONDS", 24 * 3600)),
    # unset means intervals grow without a ceiling
    "MAX_INTERVAL": int(os.environ["SRS_MAX_INTERVAL_SECONDS"]) if os.environ.get("SRS_MAX_INTERVAL_SECONDS") else None,
    "SWEEP_INTERVAL_SECONDS": int(os.environ.get("SRS_SWEEP_INTERVAL_SECONDS", 60)),
    "SHARD_TIMEOUT_SECONDS": float(os.environ.get("SRS_SHARD_TIMEOUT_SECONDS", 30)),
    "DISPATCHER": os.environ.get("SRS_DISPATCHER", "srs.services.dispatch.log_dispatcher"),
}
