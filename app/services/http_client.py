"""Single GET-and-parse helper shared by every provider adapter."""

from __future__ import annotations

from typing import Any, Optional

import httpx

from app.config.settings import get_settings
from app.services.errors import BadStatus, DecodeFailure, MalformedEndpoint, TransportFailure


async def fetch_json(
    url: str,
    *,
    source: str,
    params: Optional[dict[str, Any]] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Any:
    """
    GET ``url`` and return the decoded JSON body.

    Raises MalformedEndpoint, TransportFailure, BadStatus or DecodeFailure.
    A caller-supplied ``client`` is used as-is (tests inject MockTransport);
    otherwise a short-lived client is opened for the single request.
    """
    if not url.startswith(("https://", "http://")):
        raise MalformedEndpoint(f"not an http(s) url: {url!r}", source=source)

    try:
        if client is None:
            async with httpx.AsyncClient(timeout=get_settings().HTTP_TIMEOUT_SECONDS) as own:
                response = await own.get(url, params=params)
        else:
            response = await client.get(url, params=params)
    except httpx.InvalidURL as exc:
        raise MalformedEndpoint(str(exc), source=source) from exc
    except httpx.HTTPError as exc:
        raise TransportFailure(f"{type(exc).__name__}: {exc}", source=source) from exc

    if not response.is_success:
        raise BadStatus(response.status_code, source=source)

    try:
        return response.json()
    except ValueError as exc:
        raise DecodeFailure(f"invalid JSON body: {exc}", source=source) from exc
