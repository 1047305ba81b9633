"""Response error extraction for load test observability.

Parses Orders API error bodies into human-readable messages. Every error
the API returns has the shape::

    {"error": "<code>", "messages": {"<field>": ["..."]}, "retryable": bool}
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from requests import Response


def extract_error_detail(response: Response) -> str:
    """Extract a compact error message suitable for Locust failure messages and log lines."""
    try:
        body = response.json()
    except ValueError:
        text = getattr(response, "text", "") or ""
        return text[:300] or "(empty response body)"

    if not isinstance(body, dict) or "error" not in body:
        return str(body)[:300]

    messages = body.get("messages") or {}
    parts = [f"{field}: {'; '.join(map(str, errors))}" for field, errors in messages.items()]
    detail = " | ".join(parts)
    return f"{body['error']} ({detail})" if detail else str(body["error"])


def is_retryable(response: Response) -> bool:
    """Whether the API marked the failure as safe to retry (stock or coupon contention)."""
    try:
        return bool(response.json().get("retryable"))
    except (ValueError, AttributeError):
        return False
