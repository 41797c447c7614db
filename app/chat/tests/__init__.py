"""
Tests for chat app.

This package contains test modules for:
- test_models.py: Model constraints and properties
- test_authorization.py: Participant/admin/author predicates
- test_metadata.py: Content-type metadata validation
- test_services.py: ConversationService and MessageService
- test_delivery.py: Delivery registry registration and fan-out
- test_middleware.py: WebSocket credential extraction
- test_consumers.py: WebSocket consumer tests
- test_serializers.py: API representations
- test_tasks.py: Summary reconciliation tasks
- test_views.py: REST API endpoint tests

Usage:
    pytest chat/tests/
    pytest chat/tests/test_consumers.py
"""
