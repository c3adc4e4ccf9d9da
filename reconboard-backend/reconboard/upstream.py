# reconboard/upstream.py
"""
Small helpers shared by the source clients for talking to provider APIs
over httpx: error message extraction, rate-limit detection and JSON decoding.
"""
import json
import logging
from typing import Any, Optional

import httpx

from .config import settings
from .errors import RateLimitedError, UpstreamError

logger = logging.getLogger(__name__)


def new_client(timeout: Optional[float] = None, **kwargs) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=httpx.Timeout(timeout or settings.http_timeout), **kwargs)


def api_error_message(resp: httpx.Response) -> str:
    """Best description of a failed provider response.

    Prefers a JSON ``error``/``message`` field, then the JSON body itself,
    then the raw text appended to the status line.
    """
    msg = f"API request failed with status {resp.status_code} {resp.reason_phrase}".rstrip()
    try:
        data = resp.json()
    except (json.JSONDecodeError, ValueError):
        text = resp.text.strip()
        if text:
            msg = f"{msg}: {text}"
        return msg
    if isinstance(data, dict):
        detail = data.get("error") or data.get("message")
        if detail:
            return str(detail)
        return json.dumps(data)
    if data:
        return str(data) if isinstance(data, str) else json.dumps(data)
    return msg


def raise_for_rate_limit(resp: httpx.Response) -> None:
    if resp.status_code == 429:
        wait = resp.headers.get("x-limited-for")
        logger.warning("Upstream rate limit hit (x-limited-for=%s)", wait)
        raise RateLimitedError(wait)


def check_response(resp: httpx.Response, not_found: Optional[str] = None) -> None:
    """Raise the matching ``SourceError`` for a non-2xx provider response."""
    raise_for_rate_limit(resp)
    if resp.is_success:
        return
    if resp.status_code == 404 and not_found:
        raise UpstreamError(not_found, 404)
    raise UpstreamError(api_error_message(resp), resp.status_code)


def json_body(resp: httpx.Response, what: str = "response") -> Any:
    try:
        return resp.json()
    except (json.JSONDecodeError, ValueError) as e:
        raise UpstreamError(f"Failed to parse {what} JSON: {e}") from e
