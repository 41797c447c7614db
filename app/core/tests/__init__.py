"""Tests for core infrastructure: exceptions, services, helpers, soft delete."""
