"""
Settings for the test suite.

Supplies the environment the base settings require, then defers to them.
Per-session tweaks (password hashers, throttling) live in app/conftest.py.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("SECURE_SSL_REDIRECT", "False")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")

from config.settings import *  # noqa: E402,F401,F403

# Rate limiters and carrier token caching run on locmem; payments tests mock
# the Redis connection behind the distributed lock
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "tests",
    }
}
SESSION_ENGINE = "django.contrib.sessions.backends.db"

# Tasks run inline when dispatched with .delay() from a view
CELERY_TASK_ALWAYS_EAGER = True

# No pauses between carrier lookups
CARRIER_POLL_DELAY_SECONDS = 0

# Let pytest's caplog see money-movement logs
LOGGING["loggers"]["payments"]["propagate"] = True  # noqa: F405
