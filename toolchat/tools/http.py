"""Upstream HTTP helper shared by the built-in tools."""
import logging
from typing import Any, Dict, Optional

import httpx

from ..config import Settings
from ..errors import UpstreamHTTPError

logger = logging.getLogger(__name__)


def _client(settings: Settings) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.http_timeout)


def _error_detail(resp: httpx.Response) -> str:
    """Best-effort human-readable message from an error response body."""
    try:
        data = resp.json()
    except ValueError:
        return resp.text[:500] or resp.reason_phrase
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict):
            return err.get("message") or err.get("name") or str(err)
        if isinstance(err, str):
            return err
        for key in ("detail", "message", "title"):
            if data.get(key):
                return str(data[key])
    return str(data)[:500]


async def request_json(
    service: str,
    method: str,
    url: str,
    settings: Settings,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, Any]] = None,
    json_body: Any = None,
    auth: Optional[httpx.Auth] = None,
) -> Any:
    """Send one request and return the decoded JSON body.

    Raises UpstreamHTTPError on transport failure, non-2xx status or a body
    that is not JSON. None-valued query params are dropped.
    """
    if params:
        params = {k: v for k, v in params.items() if v is not None}
    try:
        async with _client(settings) as client:
            resp = await client.request(method, url, headers=headers, params=params,
                                        json=json_body, auth=auth)
    except httpx.HTTPError as e:
        logger.error(f"{service} request failed: {e}")
        raise UpstreamHTTPError(service, f"request failed: {e}") from e

    if resp.is_error:
        detail = _error_detail(resp)
        logger.error(f"{service} API error {resp.status_code}: {detail}")
        raise UpstreamHTTPError(service, detail, status_code=resp.status_code)

    try:
        return resp.json()
    except ValueError as e:
        raise UpstreamHTTPError(service, "response was not valid JSON", status_code=resp.status_code) from e
