"""
Pagination helpers for chat API.

Chat lists use page/limit pagination rather than cursors: clients jump to
"page N" of a conversation's history, and the list envelope reports
{page, limit, total, totalPages}.

Query parameters:
    page: 1-indexed page number (default 1)
    limit: Items per page (default per list, capped at MAX_LIMIT)

Usage:
    page, limit = get_page_params(request, PAGINATION_CONFIG.MESSAGES_DEFAULT_LIMIT)
    messages, total = MessageService.get_messages(user, conversation_id, page, limit)
    return paginated_response(MessageSerializer(messages, many=True).data, total, page, limit)
"""

from __future__ import annotations

from rest_framework.response import Response

from chat.constants import PAGINATION_CONFIG
from core.helpers import calculate_pagination, parse_page_params


def get_page_params(request, default_limit: int) -> tuple[int, int]:
    """Read page and limit from the query string."""
    return parse_page_params(
        request.query_params.get("page"),
        request.query_params.get("limit"),
        default_limit=default_limit,
        max_limit=PAGINATION_CONFIG.MAX_LIMIT,
    )


def paginated_response(
    data,
    total: int,
    page: int,
    limit: int,
    message: str = "OK",
) -> Response:
    """Wrap a page of serialized items in the list envelope."""
    return Response(
        {
            "success": True,
            "message": message,
            "data": data,
            "pagination": calculate_pagination(total, page, limit),
        }
    )
