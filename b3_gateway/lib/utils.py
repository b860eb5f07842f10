"""Utility functions shared by the token manager and forwarder."""

from collections.abc import Mapping
from typing import Any

import httpx


def decode_payload(response: httpx.Response) -> Any:
    """Decode a response body as JSON, falling back to text.

    Args:
        response: httpx response

    Returns:
        Parsed JSON, the raw text if it is not JSON, or None for an empty body
    """
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def compact_query(query: Mapping[str, str | None]) -> dict[str, str]:
    """Drop query entries whose value is None or empty.

    Args:
        query: Candidate query parameters

    Returns:
        Only the parameters that carry a value
    """
    return {key: value for key, value in query.items() if value is not None and value != ""}


def join_url(base_url: str, path: str) -> str:
    """Join base URL and path with exactly one slash between them."""
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"
