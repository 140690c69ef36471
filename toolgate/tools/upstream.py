"""Outbound HTTP helper shared by the API-wrapping tool modules."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from toolgate.core.errors import UpstreamError

logger = logging.getLogger(__name__)

MAX_ERROR_BODY = 300


async def request_json(
    client: httpx.AsyncClient,
    service: str,
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
    json: Any = None,
) -> Any:
    """Send one request and decode the JSON body. Non-2xx responses raise UpstreamError."""
    resp = await client.request(method, url, headers=headers, params=params, json=json)
    try:
        resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        detail = e.response.text[:MAX_ERROR_BODY] or e.response.reason_phrase
        logger.error("%s API error %d: %s", service, e.response.status_code, detail)
        raise UpstreamError(service, e.response.status_code, e.response.reason_phrase or detail) from e
    if not resp.content:
        return None
    return resp.json()
