"""
Tests for the test-run defaults in config.settings.
"""

import os

import pytest
from django.conf import settings


def test_pytest_run_is_detected():
    assert settings.TESTING is True


@pytest.mark.skipif("DATABASE_URL" in os.environ, reason="database chosen by environment")
def test_database_defaults_to_sqlite():
    assert settings.DATABASES["default"]["ENGINE"] == "django.db.backends.sqlite3"


@pytest.mark.skipif(
    "CHANNEL_LAYER_BACKEND" in os.environ, reason="layer chosen by environment"
)
def test_channel_layer_defaults_to_in_memory():
    assert (
        settings.CHANNEL_LAYERS["default"]["BACKEND"]
        == "channels.layers.InMemoryChannelLayer"
    )
