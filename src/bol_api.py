"""
Authenticated request dispatcher for the bol.com Retailer API.

Every business tool goes through BolApiClient.call(), which:
1. Gets a bearer token from the TokenManager
2. Builds the URL (base + endpoint + query string)
3. Sets Authorization and the versioned Accept header, merging caller headers
4. Serializes JSON bodies for methods that carry one
5. Classifies the response: error, empty (204), JSON, PDF, or text
"""

import json
import logging
from collections.abc import Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import httpx

from src.auth import TokenManager
from src.errors import ApiError, ApiUnreachableError

logger = logging.getLogger("bol-mcp.api")

RETAILER_JSON = "application/vnd.retailer.v10+json"
RETAILER_PDF = "application/vnd.retailer.v10+pdf"

_METHODS_WITHOUT_BODY = {"GET", "HEAD"}


@dataclass(frozen=True)
class BinaryPayload:
    """Raw bytes returned for PDF responses."""

    content: bytes
    content_type: str


def _media_type(content_type: str | None) -> str:
    return (content_type or "").split(";", 1)[0].strip().lower()


def is_json_type(content_type: str | None) -> bool:
    media_type = _media_type(content_type)
    return media_type == "application/json" or media_type.endswith("+json")


def is_pdf_type(content_type: str | None) -> bool:
    media_type = _media_type(content_type)
    return media_type == "application/pdf" or media_type.endswith("+pdf")


def encode_query(query: Mapping[str, Any] | None) -> list[tuple[str, str]]:
    """Turn query values into strings, keeping insertion order and dropping None."""
    if not query:
        return []
    params = []
    for key, value in query.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        params.append((key, str(value)))
    return params


class BolApiClient:
    """
    The single code path that calls the Retailer API for every tool.

    Args:
        token_manager: Source of bearer tokens
        base_url: Retailer API base, endpoints are appended verbatim
        timeout: Default per-call timeout in seconds
        http_client: Shared client; a short-lived one is used per call if None
    """

    def __init__(
        self,
        token_manager: TokenManager,
        base_url: str = "https://api.bol.com/retailer",
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._token_manager = token_manager
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._http_client = http_client

    @asynccontextmanager
    async def _client(self):
        if self._http_client is not None:
            yield self._http_client
        else:
            async with httpx.AsyncClient() as client:
                yield client

    async def call(
        self,
        endpoint: str,
        method: str = "GET",
        *,
        headers: Mapping[str, str] | None = None,
        query: Mapping[str, Any] | None = None,
        body: Any = None,
        content_type: str | None = None,
        timeout: float | None = None,
    ) -> Any:
        """
        Perform one authenticated call and return the decoded response.

        Returns:
            None for 204, parsed data for JSON, BinaryPayload for PDF,
            and the body text for anything else

        Raises:
            AuthError: If no token could be obtained
            ApiError: If the API answers with a non-2xx status
            ApiUnreachableError: On timeout or connection failure
        """
        method = method.upper()
        access_token = await self._token_manager.get_access_token()

        url = f"{self._base_url}{endpoint}"
        # Case-insensitive: a caller "accept" replaces the default Accept.
        request_headers = httpx.Headers(
            {
                "Authorization": f"Bearer {access_token}",
                "Accept": RETAILER_JSON,
            }
        )
        if headers:
            request_headers.update(headers)

        content = None
        if body is not None and method not in _METHODS_WITHOUT_BODY:
            request_headers["Content-Type"] = content_type or RETAILER_JSON
            content = json.dumps(body)

        call_timeout = timeout if timeout is not None else self._timeout
        logger.info("Calling Retailer API: %s %s", method, url)

        try:
            async with self._client() as client:
                response = await client.request(
                    method,
                    url,
                    params=encode_query(query),
                    headers=request_headers,
                    content=content,
                    timeout=call_timeout,
                )
        except httpx.TimeoutException:
            raise ApiUnreachableError(f"{method} {endpoint} timed out after {call_timeout}s")
        except httpx.RequestError as e:
            raise ApiUnreachableError(f"{method} {endpoint} failed: {e}")

        if not response.is_success:
            error_text = response.text
            logger.error(
                "Retailer API error",
                extra={
                    "log_data": {
                        "method": method,
                        "endpoint": endpoint,
                        "status_code": response.status_code,
                        "body": error_text[:200],
                    }
                },
            )
            raise ApiError(
                f"Retailer API error: {response.status_code} - {error_text}",
                status_code=response.status_code,
                body=error_text,
            )

        if response.status_code == 204:
            return None

        response_type = response.headers.get("Content-Type")
        if is_json_type(response_type):
            try:
                return response.json()
            except ValueError as e:
                raise ApiError(
                    f"Malformed JSON from {method} {endpoint}",
                    status_code=response.status_code,
                    body=response.text,
                ) from e
        if is_pdf_type(response_type):
            return BinaryPayload(content=response.content, content_type=_media_type(response_type))

        logger.warning("Unexpected content type received: %s", response_type)
        return response.text
