"""
Celery tasks for chat app.

This module defines async tasks for:
- Reconciling a conversation's last message summary after a failed inline update
- Sweeping summaries that still point at deleted messages

Related files:
    - services.py: ConversationService.refresh_last_message_summary
    - models.py: Conversation, Message

Usage:
    from chat.tasks import refresh_last_message_summary

    refresh_last_message_summary.delay(conversation_id)
"""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 5},
)
def refresh_last_message_summary(self, conversation_id: int) -> int | None:
    """
    Recompute a conversation's last message summary.

    Queued when the summary update that follows a send or delete fails.
    Safe to run any number of times.

    Args:
        conversation_id: ID of the conversation

    Returns:
        ID of the message now summarized, or None
    """
    from .services import ConversationService

    message = ConversationService.refresh_last_message_summary(conversation_id)
    logger.info(
        f"Refreshed summary for conversation {conversation_id} "
        f"-> message {message.id if message else None}"
    )
    return message.id if message else None


@shared_task
def reconcile_stale_summaries(batch_size: int = 500) -> int:
    """
    Refresh summaries that reference a soft-deleted message.

    Returns:
        Number of conversations refreshed
    """
    from .models import Conversation
    from .services import ConversationService

    stale_ids = list(
        Conversation.objects.filter(last_message__is_deleted=True).values_list(
            "id", flat=True
        )[:batch_size]
    )
    for conversation_id in stale_ids:
        ConversationService.refresh_last_message_summary(conversation_id)

    if stale_ids:
        logger.info(f"Reconciled {len(stale_ids)} stale conversation summaries")
    return len(stale_ids)
