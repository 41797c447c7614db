"""
URL configuration for chat API.

URL Structure:
    Conversations:
        /conversations/                              GET, POST
        /conversations/{id}/                         GET, PUT, PATCH, DELETE

    Participants:
        /conversations/{id}/participants/            POST
        /conversations/{id}/participants/{user_id}/  DELETE

    Messages:
        /conversations/{id}/messages/                GET, POST
        /messages/{id}/                              GET, PUT, PATCH, DELETE

    Reactions:
        /messages/{id}/reactions/                    POST, DELETE

All URLs are prefixed with /api/v1/chat/ in the main URL configuration.
Path ids are matched as strings; services reject malformed ids with 400.
"""

from django.urls import path

from chat.views import ConversationMessageViewSet, ConversationViewSet, MessageViewSet

app_name = "chat"

urlpatterns = [
    path(
        "conversations/",
        ConversationViewSet.as_view({"get": "list", "post": "create"}),
        name="conversation-list",
    ),
    path(
        "conversations/<str:pk>/",
        ConversationViewSet.as_view(
            {
                "get": "retrieve",
                "put": "partial_update",
                "patch": "partial_update",
                "delete": "destroy",
            }
        ),
        name="conversation-detail",
    ),
    path(
        "conversations/<str:pk>/participants/",
        ConversationViewSet.as_view({"post": "add_participant"}),
        name="conversation-participant-list",
    ),
    path(
        "conversations/<str:pk>/participants/<str:user_id>/",
        ConversationViewSet.as_view({"delete": "remove_participant"}),
        name="conversation-participant-detail",
    ),
    path(
        "conversations/<str:conversation_pk>/messages/",
        ConversationMessageViewSet.as_view({"get": "list", "post": "create"}),
        name="conversation-message-list",
    ),
    path(
        "messages/<str:pk>/",
        MessageViewSet.as_view(
            {
                "get": "retrieve",
                "put": "partial_update",
                "patch": "partial_update",
                "delete": "destroy",
            }
        ),
        name="message-detail",
    ),
    path(
        "messages/<str:pk>/reactions/",
        MessageViewSet.as_view({"post": "add_reaction", "delete": "remove_reaction"}),
        name="message-reactions",
    ),
]
