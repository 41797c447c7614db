"""
ViewSets for chat API.

This module provides REST API endpoints for the chat system:
- ConversationViewSet: Conversation CRUD and participant management
- ConversationMessageViewSet: Messages of a conversation (list, send)
- MessageViewSet: Single-message operations and reactions

URL Structure:
    /api/v1/chat/conversations/                              GET, POST
    /api/v1/chat/conversations/{id}/                         GET, PUT, PATCH, DELETE
    /api/v1/chat/conversations/{id}/participants/            POST
    /api/v1/chat/conversations/{id}/participants/{user_id}/  DELETE
    /api/v1/chat/conversations/{id}/messages/                GET, POST
    /api/v1/chat/messages/{id}/                              GET, PUT, PATCH, DELETE
    /api/v1/chat/messages/{id}/reactions/                    POST, DELETE

Design Decisions:
    - Views only parse input and render output; services own every rule
    - Service exceptions propagate to core.exceptions.api_exception_handler,
      which renders the failure envelope
    - Successful responses use {success, message, data[, pagination]}
"""

from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from chat.constants import PAGINATION_CONFIG
from chat.pagination import get_page_params, paginated_response
from chat.serializers import (
    ConversationCreateSerializer,
    ConversationSerializer,
    ConversationUpdateSerializer,
    MessageCreateSerializer,
    MessageSerializer,
    MessageUpdateSerializer,
    ParticipantCreateSerializer,
    ReactionSerializer,
)
from chat.services import ConversationService, MessageService

PAGE_PARAMETERS = [
    OpenApiParameter("page", OpenApiTypes.INT, description="Page number (1-indexed)"),
    OpenApiParameter("limit", OpenApiTypes.INT, description="Items per page"),
]


def envelope(data=None, message: str = "OK", status_code: int = status.HTTP_200_OK):
    """Render the success envelope."""
    return Response(
        {"success": True, "message": message, "data": data},
        status=status_code,
    )


class ConversationViewSet(viewsets.ViewSet):
    """
    ViewSet for conversation operations.

    list:
        Conversations of the current user, most recent activity first.
        Conversations without messages come last.

    create:
        Create a conversation (direct or group).
        For direct: returns the existing one (200) if found, creates (201) if not.

    retrieve:
        Conversation details including all participants.

    partial_update:
        Change name, description, picture or settings. Admins only.

    destroy:
        Delete the conversation and all of its messages. Admins only.

    add_participant / remove_participant:
        Membership management. Admins only.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_conversations",
        summary="List conversations",
        parameters=PAGE_PARAMETERS,
        responses={200: ConversationSerializer(many=True)},
        tags=["Chat - Conversations"],
    )
    def list(self, request):
        page, limit = get_page_params(
            request, PAGINATION_CONFIG.CONVERSATIONS_DEFAULT_LIMIT
        )
        conversations, total = ConversationService.get_conversations_for_user(
            request.user, page=page, limit=limit
        )
        return paginated_response(
            ConversationSerializer(conversations, many=True).data,
            total,
            page,
            limit,
            message="Conversations retrieved",
        )

    @extend_schema(
        operation_id="create_conversation",
        summary="Create conversation",
        request=ConversationCreateSerializer,
        responses={200: ConversationSerializer, 201: ConversationSerializer},
        tags=["Chat - Conversations"],
    )
    def create(self, request):
        serializer = ConversationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        conversation, created = ConversationService.create_conversation(
            actor=request.user,
            kind=data["conversation_type"],
            participant_ids=data["participant_ids"],
            name=data.get("name"),
            description=data.get("description"),
            picture=data.get("picture"),
            is_encrypted=data.get("is_encrypted", False),
        )
        return envelope(
            ConversationSerializer(conversation).data,
            message="Conversation created" if created else "Conversation already exists",
            status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    @extend_schema(
        operation_id="get_conversation",
        summary="Get conversation",
        responses={200: ConversationSerializer},
        tags=["Chat - Conversations"],
    )
    def retrieve(self, request, pk=None):
        conversation = ConversationService.get_conversation(request.user, pk)
        return envelope(ConversationSerializer(conversation).data)

    @extend_schema(
        operation_id="update_conversation",
        summary="Update conversation",
        request=ConversationUpdateSerializer,
        responses={200: ConversationSerializer},
        tags=["Chat - Conversations"],
    )
    def partial_update(self, request, pk=None):
        serializer = ConversationUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        conversation = ConversationService.update_conversation(
            request.user, pk, serializer.validated_data
        )
        return envelope(
            ConversationSerializer(conversation).data,
            message="Conversation updated",
        )

    @extend_schema(
        operation_id="delete_conversation",
        summary="Delete conversation",
        responses={200: None},
        tags=["Chat - Conversations"],
    )
    def destroy(self, request, pk=None):
        ConversationService.delete_conversation(request.user, pk)
        return envelope(message="Conversation deleted")

    @extend_schema(
        operation_id="add_participant",
        summary="Add participant",
        request=ParticipantCreateSerializer,
        responses={200: ConversationSerializer, 201: ConversationSerializer},
        tags=["Chat - Participants"],
    )
    def add_participant(self, request, pk=None):
        serializer = ParticipantCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        conversation, added = ConversationService.add_participant(
            request.user,
            pk,
            serializer.validated_data["user_id"],
            role=serializer.validated_data["role"],
        )
        return envelope(
            ConversationSerializer(conversation).data,
            message="Participant added" if added else "User is already a participant",
            status_code=status.HTTP_201_CREATED if added else status.HTTP_200_OK,
        )

    @extend_schema(
        operation_id="remove_participant",
        summary="Remove participant",
        responses={200: ConversationSerializer},
        tags=["Chat - Participants"],
    )
    def remove_participant(self, request, pk=None, user_id=None):
        conversation = ConversationService.remove_participant(request.user, pk, user_id)
        return envelope(
            ConversationSerializer(conversation).data,
            message="Participant removed",
        )


class ConversationMessageViewSet(viewsets.ViewSet):
    """
    Messages of one conversation.

    list:
        Page 1 holds the newest messages; each page is ordered oldest first.
        Returned messages are marked read by the caller.

    create:
        Send a message.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_messages",
        summary="List messages",
        parameters=PAGE_PARAMETERS,
        responses={200: MessageSerializer(many=True)},
        tags=["Chat - Messages"],
    )
    def list(self, request, conversation_pk=None):
        page, limit = get_page_params(request, PAGINATION_CONFIG.MESSAGES_DEFAULT_LIMIT)
        messages, total = MessageService.get_messages(
            request.user, conversation_pk, page=page, limit=limit
        )
        return paginated_response(
            MessageSerializer(messages, many=True).data,
            total,
            page,
            limit,
            message="Messages retrieved",
        )

    @extend_schema(
        operation_id="send_message",
        summary="Send message",
        request=MessageCreateSerializer,
        responses={201: MessageSerializer},
        tags=["Chat - Messages"],
    )
    def create(self, request, conversation_pk=None):
        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        message = MessageService.send_message(
            request.user,
            conversation_pk,
            content=data.get("content"),
            content_type=data["content_type"],
            metadata=data.get("metadata"),
            reply_to=data.get("reply_to"),
            encryption_key=data.get("encryption_key", ""),
        )
        return envelope(
            MessageSerializer(message).data,
            message="Message sent",
            status_code=status.HTTP_201_CREATED,
        )


class MessageViewSet(viewsets.ViewSet):
    """
    Single-message operations.

    retrieve:
        Direct lookup. Deleted messages are returned with is_deleted set.

    partial_update:
        Edit content. Sender only.

    destroy:
        Soft delete. Sender only.

    reactions (POST / DELETE):
        Add or replace, or remove, the caller's reaction.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_message",
        summary="Get message",
        responses={200: MessageSerializer},
        tags=["Chat - Messages"],
    )
    def retrieve(self, request, pk=None):
        message = MessageService.get_message(request.user, pk)
        return envelope(MessageSerializer(message).data)

    @extend_schema(
        operation_id="edit_message",
        summary="Edit message",
        request=MessageUpdateSerializer,
        responses={200: MessageSerializer},
        tags=["Chat - Messages"],
    )
    def partial_update(self, request, pk=None):
        serializer = MessageUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        message = MessageService.edit_message(
            request.user, pk, serializer.validated_data["content"]
        )
        return envelope(MessageSerializer(message).data, message="Message edited")

    @extend_schema(
        operation_id="delete_message",
        summary="Delete message",
        responses={200: None},
        tags=["Chat - Messages"],
    )
    def destroy(self, request, pk=None):
        MessageService.delete_message(request.user, pk)
        return envelope(message="Message deleted")

    @extend_schema(
        operation_id="add_reaction",
        summary="Add or replace reaction",
        request=ReactionSerializer,
        responses={200: MessageSerializer},
        tags=["Chat - Reactions"],
    )
    def add_reaction(self, request, pk=None):
        serializer = ReactionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        message = MessageService.add_reaction(
            request.user, pk, serializer.validated_data["emoji"]
        )
        return envelope(MessageSerializer(message).data, message="Reaction saved")

    @extend_schema(
        operation_id="remove_reaction",
        summary="Remove reaction",
        responses={200: MessageSerializer},
        tags=["Chat - Reactions"],
    )
    def remove_reaction(self, request, pk=None):
        message = MessageService.remove_reaction(request.user, pk)
        return envelope(MessageSerializer(message).data, message="Reaction removed")
