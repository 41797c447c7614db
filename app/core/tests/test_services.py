"""
Tests for the base service helpers.
"""

import logging

import pytest
from django.db import IntegrityError, OperationalError

from core.exceptions import StoreError, ValidationError
from core.services import BaseService, store_errors


class ExampleService(BaseService):
    @classmethod
    @store_errors
    def timeout(cls):
        raise OperationalError("canceling statement due to statement timeout")

    @classmethod
    @store_errors
    def duplicate(cls):
        raise IntegrityError("duplicate key")

    @classmethod
    @store_errors
    def invalid(cls):
        raise ValidationError("bad")


class TestStoreErrors:
    def test_database_error_becomes_store_error(self):
        with pytest.raises(StoreError) as exc_info:
            ExampleService.timeout()

        assert exc_info.value.retryable
        assert isinstance(exc_info.value.__cause__, OperationalError)

    def test_integrity_error_passes_through(self):
        with pytest.raises(IntegrityError):
            ExampleService.duplicate()

    def test_application_errors_pass_through(self):
        with pytest.raises(ValidationError):
            ExampleService.invalid()

    def test_context_manager_form(self):
        with pytest.raises(StoreError):
            with store_errors():
                raise OperationalError("connection lost")

    def test_original_error_is_logged_not_exposed(self, caplog):
        with caplog.at_level(logging.ERROR, logger="core.services"):
            with pytest.raises(StoreError) as exc_info:
                ExampleService.timeout()

        assert "statement timeout" not in exc_info.value.message
        assert "statement timeout" in caplog.text


def test_get_logger_is_named_after_service():
    assert ExampleService.get_logger().name == f"{__name__}.ExampleService"
