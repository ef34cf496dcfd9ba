# Ariwa - HTTP Fetcher
"""
Fetch-and-decode-JSON primitive used by both API wrappers.

Every outcome is expressed as a result: decoded body on success, a status-coded
message on failure. Transport exceptions are converted, never raised.
"""

import json
from typing import Any, Dict, Mapping, Optional

import httpx
import structlog

from .result import Err, Ok, Result

logger = structlog.get_logger(__name__)


def _is_json(content_type: Optional[str]) -> bool:
    return bool(content_type) and "application/json" in content_type


def _error_body(response: httpx.Response) -> str:
    """Render a failed response body for the error message."""
    try:
        if _is_json(response.headers.get("content-type")):
            return json.dumps(response.json())
        return response.text or "Empty response body"
    except (ValueError, UnicodeDecodeError):
        return "Failed to read response body"


async def fetch_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    headers: Optional[Mapping[str, str]] = None,
    params: Optional[Mapping[str, Any]] = None,
    body: Optional[Dict[str, Any]] = None,
) -> Result[Any]:
    """Perform a request and decode its JSON body.

    Args:
        client: HTTP client used for the request
        method: HTTP method
        url: Absolute request URL
        headers: Request headers
        params: Query parameters, ``None`` values are dropped
        body: JSON request body

    Returns:
        ``Ok(decoded)`` or ``Err(message, status)``. A 204 response, or a 200
        response with an empty body, decodes to ``{}``.
    """
    try:
        query = {k: _param(v) for k, v in (params or {}).items() if v is not None}
        url = str(httpx.URL(url, params=query)) if query else url
        response = await client.request(
            method,
            url,
            headers=dict(headers or {}),
            json=body,
        )
    except httpx.HTTPError as e:
        logger.error("http_fetch_error", url=url, method=method, error=str(e), error_type=type(e).__name__)
        return Err(f"Fetch error for '{url}': {str(e) or 'Unknown error'}")
    except Exception as e:
        # httpx.InvalidURL and body encoding errors are not HTTPErrors
        logger.error("http_request_build_error", url=url, method=method, error=str(e), error_type=type(e).__name__)
        return Err(f"Fetch error for '{url}': {str(e) or 'Unknown error'}")

    if not response.is_success:
        message = (
            f"Failed to fetch '{url}' with code {response.status_code} "
            f"{response.reason_phrase}: {_error_body(response)}"
        )
        logger.warning("api_error_response", url=url, status=response.status_code)
        return Err(message, status=response.status_code)

    if response.status_code == 204:
        return Ok({})

    text = response.text
    if response.status_code == 200 and not text.strip():
        return Ok({})

    content_type = response.headers.get("content-type")
    if not _is_json(content_type):
        return Err(
            f"Expected JSON response from '{url}', got {content_type or 'no content-type'} "
            f"with code {response.status_code} {response.reason_phrase}: {text or 'Empty response body'}",
            status=response.status_code,
        )

    try:
        return Ok(json.loads(text))
    except ValueError as e:
        logger.error("api_json_parse_error", url=url, error=str(e), response_preview=text[:200])
        return Err(f"Fetch error for '{url}': {e}", status=response.status_code)


def _param(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)
