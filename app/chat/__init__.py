"""
Chat app for real-time messaging.

This app handles:
- Conversations (direct and group) and their participants
- Message sending, history, edits, soft deletion and reactions
- Read receipts
- Live delivery of events over WebSockets

Related apps:
    - authentication: User model and credential verification
    - core: Base models, exceptions, service helpers

WebSocket Support:
    Uses Django Channels for real-time communication.
    See consumers.py for WebSocket handlers.
    See routing.py for WebSocket URL patterns.
    See delivery.py for the per-user fan-out registry.

Usage:
    from chat.services import ConversationService, MessageService

    # Create conversation
    conversation, created = ConversationService.create_conversation(
        actor=user,
        kind="direct",
        participant_ids=[other_user.id],
    )

    # Send message
    message = MessageService.send_message(user, conversation.id, "Hello!")
"""
