"""
Celery configuration for the chat backend.

Celery runs the background work that must not block a request:
- Reconciling a conversation's last message summary when the inline
  update after a send or delete fails
- Periodic sweep of summaries that still reference deleted messages
  (CELERY_BEAT_SCHEDULE in settings)

Redis is both the message broker and result backend. Tasks are
auto-discovered from every installed app's tasks.py.

Usage:
    from chat.tasks import refresh_last_message_summary

    refresh_last_message_summary.delay(conversation.id)

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
