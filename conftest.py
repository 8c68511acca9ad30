"""
Root pytest configuration for the Django project.

Sets test-safe environment defaults before settings are imported, then
configures Django. App-specific fixtures are defined in each app's
tests/conftest.py; shared ones in app/conftest.py.
"""

import os

import django

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

# Tests run against SQLite unless DATABASE_URL points elsewhere
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite:///uploads-test.sqlite3")
os.environ.setdefault("SECURE_SSL_REDIRECT", "False")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "True")


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()
