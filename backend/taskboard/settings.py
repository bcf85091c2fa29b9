"""Django settings for the taskboard project.

Every deployment-specific value comes from a TASKBOARD_* environment
variable; the defaults are suitable for local development and the test
suite.
"""

import os
from pathlib import Path

from .logging_config import setup_logging

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


SECRET_KEY = os.environ.get("TASKBOARD_SECRET_KEY", "dev-only-insecure-secret-key")
DEBUG = _env_flag("TASKBOARD_DEBUG", default=False)
ALLOWED_HOSTS = [
    h.strip()
    for h in os.environ.get("TASKBOARD_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",")
    if h.strip()
]

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "rest_framework",
    "tasks",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
]

ROOT_URLCONF = "taskboard.urls"
WSGI_APPLICATION = "taskboard.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("TASKBOARD_DB_PATH", str(BASE_DIR / "db.sqlite3")),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = False
USE_TZ = True

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
        "rest_framework.authentication.BasicAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
    ],
    "EXCEPTION_HANDLER": "tasks.errors.exception_handler",
}

# Task engine behaviour
TASKS_RECURSIVE_ROLLUP = _env_flag("TASKBOARD_RECURSIVE_ROLLUP", default=False)
TASKS_SUBTASK_DELETE_POLICY = os.environ.get("TASKBOARD_SUBTASK_DELETE_POLICY", "cascade")

# structlog owns logging configuration
LOGGING_CONFIG = None
setup_logging(
    level=os.environ.get("TASKBOARD_LOG_LEVEL", "INFO"),
    json_output=os.environ.get("TASKBOARD_LOG_FORMAT", "").lower() == "json",
)
