"""
Root pytest configuration for the Django project.

config.settings switches to sqlite and the in-memory channel layer when it
is imported under pytest, so a test run needs neither Postgres nor Redis.
App-specific fixtures are defined in each app's tests/conftest.py;
project-wide ones in app/conftest.py.
"""

import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")
