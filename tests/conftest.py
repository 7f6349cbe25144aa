"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before any import of quota_gate so the global
settings object is built from them.
"""

import os

os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("QUOTA_ENABLED", "true")
os.environ.setdefault("QUOTA_STORE_BACKEND", "memory")
os.environ.setdefault("QUOTA_RESTRICTION_COUNT", "5")
os.environ.setdefault("QUOTA_RESTRICTION_TIME_SECONDS", "60")
os.environ.setdefault("QUOTA_KEY_PREFIX", "quota:")
