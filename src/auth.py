"""
Access token lifecycle for the bol.com client-credentials flow.

This module keeps one partner access token valid across many tool calls:
- Reads the cached token from the credential store
- Reuses it while it stays valid beyond a safety buffer (120s by default)
- Otherwise requests a new one from the token endpoint and persists it

Token request (OAuth2 client-credentials grant):

    POST https://login.bol.com/token?grant_type=client_credentials
    Authorization: Basic base64(client_id:client_secret)
    Content-Type: application/x-www-form-urlencoded

    200 -> {"access_token": "...", "expires_in": 299, "token_type": "Bearer", "scope": "..."}

Refreshes are single-flight: concurrent callers that all find the cached
token stale queue on one lock, and everyone after the first picks up the
token the first caller just stored.
"""

import asyncio
import base64
import logging
import time
from collections.abc import Callable
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from typing import Any

import httpx

from src.errors import AuthError, TokenEndpointUnreachableError
from src.token_store import TokenStore

logger = logging.getLogger("bol-mcp.auth")

TOKEN_STORE_KEY = "bolcom_token"
DEFAULT_VALIDITY_BUFFER_MS = 120_000


def _epoch_millis() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class AccessToken:
    """
    A partner access token as issued by the token endpoint.

    Attributes:
        token: The bearer token string
        token_type: Usually "Bearer"
        scope: Scopes granted to the client, if the endpoint reported them
        expires_at_epoch_millis: Absolute expiry, computed at issue time
    """

    token: str
    token_type: str
    scope: str | None
    expires_at_epoch_millis: int

    def is_valid(self, now_millis: int, buffer_millis: int) -> bool:
        return self.expires_at_epoch_millis > now_millis + buffer_millis

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AccessToken":
        return cls(
            token=str(data["token"]),
            token_type=str(data["token_type"]),
            scope=data.get("scope"),
            expires_at_epoch_millis=int(data["expires_at_epoch_millis"]),
        )


def encode_credentials(client_id: str, client_secret: str) -> str:
    """
    Build the value for an HTTP Basic Authorization header.

    The id and secret are joined with a colon and base64-encoded over their
    UTF-8 bytes, so non-ASCII credentials encode correctly.
    """
    credentials = f"{client_id}:{client_secret}"
    return base64.b64encode(credentials.encode("utf-8")).decode("ascii")


class TokenManager:
    """
    Hands out a valid bearer token, refreshing it only when needed.

    Args:
        client_id: Partner client id
        client_secret: Partner client secret
        store: Credential store holding the cached token
        token_url: Token endpoint (without query string)
        validity_buffer_millis: Minimum remaining lifetime for reuse
        timeout: Seconds before a token request is abandoned
        http_client: Shared client; a short-lived one is used per request if None
        clock: Returns the current time in epoch milliseconds
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        store: TokenStore,
        token_url: str = "https://login.bol.com/token",
        validity_buffer_millis: int = DEFAULT_VALIDITY_BUFFER_MS,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], int] = _epoch_millis,
    ):
        self._client_id = client_id
        self._client_secret = client_secret
        self._store = store
        self._token_url = token_url
        self._buffer_millis = validity_buffer_millis
        self._timeout = timeout
        self._http_client = http_client
        self._clock = clock
        self._refresh_lock = asyncio.Lock()

    async def current_token(self) -> AccessToken | None:
        """Return the stored token, valid or not, or None if there is none."""
        raw = await self._store.get(TOKEN_STORE_KEY)
        if raw is None:
            return None
        try:
            return AccessToken.from_dict(raw)
        except (KeyError, TypeError, ValueError):
            logger.warning("Ignoring malformed token in credential store")
            return None

    async def get_access_token(self) -> str:
        """
        Return a bearer token that stays valid beyond the safety buffer.

        Raises:
            AuthError: If credentials are missing or the token request fails
        """
        # Fast path: no lock needed to reuse a fresh token.
        cached = await self._fresh_cached_token()
        if cached is not None:
            return cached.token

        async with self._refresh_lock:
            # Another caller may have refreshed while we waited for the lock.
            cached = await self._fresh_cached_token()
            if cached is not None:
                return cached.token

            logger.info("Cached token missing or expiring, requesting a new one")
            token = await self._request_token()
            await self._store.put(TOKEN_STORE_KEY, token.to_dict())
            logger.info(
                "Obtained new access token",
                extra={
                    "log_data": {
                        "token_type": token.token_type,
                        "expires_at_epoch_millis": token.expires_at_epoch_millis,
                    }
                },
            )
            return token.token

    async def _fresh_cached_token(self) -> AccessToken | None:
        token = await self.current_token()
        if token is not None and token.is_valid(self._clock(), self._buffer_millis):
            logger.debug("Using valid cached token")
            return token
        return None

    @asynccontextmanager
    async def _client(self):
        if self._http_client is not None:
            yield self._http_client
        else:
            async with httpx.AsyncClient() as client:
                yield client

    async def _request_token(self) -> AccessToken:
        if not self._client_id or not self._client_secret:
            raise AuthError("Partner client credentials are not configured")

        headers = {
            "Authorization": f"Basic {encode_credentials(self._client_id, self._client_secret)}",
            "Content-Type": "application/x-www-form-urlencoded",
        }
        now = self._clock()

        try:
            async with self._client() as client:
                response = await client.post(
                    self._token_url,
                    params={"grant_type": "client_credentials"},
                    headers=headers,
                    timeout=self._timeout,
                )
        except httpx.TimeoutException:
            raise TokenEndpointUnreachableError(
                f"Token endpoint timed out after {self._timeout}s"
            )
        except httpx.RequestError as e:
            raise TokenEndpointUnreachableError(f"Token endpoint unreachable: {e}")

        if not response.is_success:
            body = response.text
            logger.error(
                "Token request rejected",
                extra={"log_data": {"status_code": response.status_code, "body": body[:200]}},
            )
            raise AuthError(
                f"Failed to get access token: HTTP {response.status_code}",
                status_code=response.status_code,
                body=body,
            )

        try:
            data = response.json()
            return AccessToken(
                token=data["access_token"],
                token_type=data.get("token_type", "Bearer"),
                scope=data.get("scope"),
                expires_at_epoch_millis=now + int(data["expires_in"]) * 1000,
            )
        except (ValueError, KeyError, TypeError) as e:
            raise AuthError(
                f"Malformed token response: {e}",
                status_code=response.status_code,
                body=response.text,
            )
