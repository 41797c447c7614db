"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- BaseService: Base class with logging and transaction helpers
- store_errors: Translate persistence failures into StoreError

Service Layer Philosophy:
    Services encapsulate business logic separate from views and models.
    Views and consumers handle transport concerns, models handle data,
    services handle logic and raise core.exceptions on failure.

Usage:
    from core.services import BaseService, store_errors

    class ConversationService(BaseService):
        @classmethod
        @store_errors
        def create_group(cls, actor, name):
            if not name:
                raise ValidationError("Group conversations require a name")

            with cls.atomic():
                conversation = Conversation.objects.create(...)
                Participant.objects.create(...)

            cls.get_logger().info(f"Created group {conversation.id}")
            return conversation

Related:
    - core.exceptions: Error taxonomy raised by services
"""

from __future__ import annotations

import functools
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, TypeVar

from django.db import DatabaseError, IntegrityError, transaction

from core.exceptions import StoreError

if TYPE_CHECKING:
    from collections.abc import Callable, Generator

T = TypeVar("T")

logger = logging.getLogger(__name__)


class _StoreErrorGuard:
    """
    Context manager and decorator converting DatabaseError into StoreError.

    IntegrityError is left alone: uniqueness races are expected in some
    flows and handled by the caller.
    """

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc is None or isinstance(exc, IntegrityError):
            return False
        if isinstance(exc, DatabaseError):
            logger.error(f"Store operation failed: {exc}", exc_info=(exc_type, exc, tb))
            raise StoreError(
                "The data store is temporarily unavailable. Please retry.",
            ) from exc
        return False

    def __call__(self, func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with _StoreErrorGuard():
                return func(*args, **kwargs)

        return wrapper


def store_errors(func: Callable[..., T] | None = None):
    """
    Convert persistence failures into StoreError.

    Usable as a decorator (with or without parentheses) or as a context
    manager. Statement timeouts and lost connections surface as
    django.db.OperationalError, a DatabaseError subclass.

    Example:
        @store_errors
        def load(conversation_id):
            ...

        with store_errors():
            Message.objects.create(...)
    """
    guard = _StoreErrorGuard()
    if func is not None:
        return guard(func)
    return guard


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management

    Design Notes:
        - Use @classmethod (no instance state)
        - Services should be stateless
        - Raise core.exceptions for expected failures
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.

        Returns:
            Logger instance for this service
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        All database operations within this context manager are
        wrapped in a transaction. If any operation fails, all
        changes are rolled back.

        Note:
            Only use this for writes on a single aggregate. Sequences that
            span aggregates (message + conversation summary) are ordered
            instead, so the authoritative write never waits on the derived one.
        """
        with transaction.atomic():
            yield
