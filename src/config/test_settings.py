"""Settings for the test suite: file-backed SQLite, fast hashing."""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite://:memory:")

from config.settings import *  # noqa: E402,F401,F403

# Threads in the concurrency tests open their own connections; they only
# see the test data (and contend for the write lock) on a file database.
DATABASES["default"]["TEST"] = {  # noqa: F405
    "NAME": str(BASE_DIR.parent / ".pytest_orders.sqlite3"),  # noqa: F405
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

LOG_LEVEL = "WARNING"
LOGGING["root"]["level"] = LOG_LEVEL  # noqa: F405
