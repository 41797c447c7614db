"""
Helper functions for common infrastructure operations.

This module provides domain-agnostic utility functions for:
- Token generation (cryptographic)
- Page/limit parsing and pagination metadata

Usage:
    from core.helpers import generate_token, calculate_pagination

    token = generate_token(16)
    meta = calculate_pagination(total=45, page=2, limit=20)
"""

from __future__ import annotations

import math
import secrets


def generate_token(length: int = 32) -> str:
    """
    Generate a cryptographically secure random token.

    Args:
        length: Number of bytes (resulting string is 2x length in hex)

    Returns:
        Hexadecimal token string

    Example:
        token = generate_token(16)  # Returns 32-character hex string
    """
    return secrets.token_hex(length)


def parse_page_params(
    page: object,
    limit: object,
    default_limit: int,
    max_limit: int,
) -> tuple[int, int]:
    """
    Coerce raw page/limit values into a usable pair.

    Non-numeric or non-positive values fall back to page 1 and the default
    limit; limit is capped at max_limit.

    Args:
        page: Raw page value (query string, JSON, or int)
        limit: Raw limit value
        default_limit: Limit used when none (or an invalid one) is given
        max_limit: Upper bound for limit

    Returns:
        Tuple of (page, limit), both >= 1
    """
    try:
        page_number = int(page)
    except (TypeError, ValueError):
        page_number = 1
    try:
        page_size = int(limit)
    except (TypeError, ValueError):
        page_size = default_limit

    if page_number < 1:
        page_number = 1
    if page_size < 1:
        page_size = default_limit
    return page_number, min(page_size, max_limit)


def calculate_pagination(total: int, page: int, limit: int) -> dict:
    """
    Calculate pagination metadata for list responses.

    Args:
        total: Total number of items matching the query
        page: Current page number (1-indexed)
        limit: Items per page

    Returns:
        Dict with page, limit, total and totalPages

    Example:
        calculate_pagination(total=45, page=2, limit=20)
        # {"page": 2, "limit": 20, "total": 45, "totalPages": 3}
    """
    total_pages = math.ceil(total / limit) if limit > 0 else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": total_pages,
    }
