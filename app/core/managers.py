"""
Custom QuerySet and Manager classes for soft-deletable models.

Manager vs QuerySet:
    - QuerySet: Defines chainable methods (active, deleted, hard_delete)
    - Manager: Attaches QuerySet to model, decides default filtering

Usage:
    class Message(SoftDeleteMixin, BaseModel):
        objects = SoftDeleteManager()                  # Default: excludes deleted
        all_objects = SoftDeleteQuerySet.as_manager()  # Includes deleted

    Message.objects.filter(conversation=c)      # Only visible messages
    Message.all_objects.get(id=message_id)      # Deleted ones too
    Message.all_objects.filter(conversation=c).hard_delete()
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone


class SoftDeleteQuerySet(models.QuerySet):
    """
    QuerySet that provides soft delete operations.

    delete() marks rows as deleted; hard_delete() removes them.
    """

    def delete(self) -> tuple[int, dict[str, int]]:
        """
        Soft delete all objects in queryset.

        Returns:
            Tuple of (count, {model_label: count}) matching Django's delete()
        """
        count = self.filter(is_deleted=False).update(
            is_deleted=True,
            deleted_at=timezone.now(),
            updated_at=timezone.now(),
        )
        return count, {self.model._meta.label: count}

    def hard_delete(self) -> tuple[int, dict[str, int]]:
        """
        Permanently delete all objects in queryset.

        Warning:
            This cannot be undone.
        """
        return super().delete()

    def deleted(self) -> SoftDeleteQuerySet:
        """Filter to only soft-deleted records."""
        return self.filter(is_deleted=True)

    def active(self) -> SoftDeleteQuerySet:
        """Filter to only active (non-deleted) records."""
        return self.filter(is_deleted=False)


class SoftDeleteManager(models.Manager.from_queryset(SoftDeleteQuerySet)):
    """
    Manager that filters out soft-deleted records by default.

    Always pair with an unfiltered manager for accessing deleted records.
    """

    def get_queryset(self) -> SoftDeleteQuerySet:
        """Return queryset excluding soft-deleted records."""
        return super().get_queryset().filter(is_deleted=False)
