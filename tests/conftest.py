"""
Shared test fixtures for the bol.com Retailer MCP test suite.

No test talks to the real bol.com endpoints. HTTP traffic is answered by
httpx.MockTransport handlers, so every request the code makes can be
inspected and every response (status, headers, body, timeout) is scripted.

Key fixtures:
- clock: A fixed epoch-millisecond clock (NOW) for deterministic expiry maths
- store: An empty in-memory credential store
- make_http_client: Factory for an httpx.AsyncClient backed by a handler
- make_token_manager: Factory for a TokenManager wired to the fixtures above
- make_api_client: Factory for a BolApiClient whose tokens are already cached
"""

import httpx
import pytest

from src.auth import TOKEN_STORE_KEY, AccessToken, TokenManager
from src.bol_api import BolApiClient
from src.token_store import MemoryTokenStore

NOW = 1_700_000_000_000
TOKEN_URL = "https://login.bol.com/token"
API_BASE_URL = "https://api.bol.com/retailer"


def token_response(access_token: str = "fresh-token", expires_in: int = 299) -> httpx.Response:
    """A successful token endpoint response."""
    return httpx.Response(
        200,
        json={
            "access_token": access_token,
            "expires_in": expires_in,
            "token_type": "Bearer",
            "scope": "RETAILER",
        },
    )


async def cache_token(store, token: str = "cached-token", expires_in_millis: int = 300_000) -> None:
    """Put a token in the store that expires the given number of ms after NOW."""
    await store.put(
        TOKEN_STORE_KEY,
        AccessToken(
            token=token,
            token_type="Bearer",
            scope="RETAILER",
            expires_at_epoch_millis=NOW + expires_in_millis,
        ).to_dict(),
    )


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def store():
    return MemoryTokenStore()


@pytest.fixture
async def make_http_client():
    """
    Factory fixture returning httpx.AsyncClients answered by a handler.

    The handler receives each httpx.Request and returns an httpx.Response
    (or raises an httpx exception to simulate network failures). Handlers
    may be async, which lets tests hold a request open.
    """
    clients = []

    def _make_http_client(handler) -> httpx.AsyncClient:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield _make_http_client

    for client in clients:
        await client.aclose()


@pytest.fixture
def make_token_manager(store, clock, make_http_client):
    def _make_token_manager(
        handler,
        client_id: str = "client-id",
        client_secret: str = "client-secret",
        timeout: float = 30.0,
    ) -> TokenManager:
        return TokenManager(
            client_id=client_id,
            client_secret=client_secret,
            store=store,
            token_url=TOKEN_URL,
            timeout=timeout,
            http_client=make_http_client(handler),
            clock=clock,
        )

    return _make_token_manager


@pytest.fixture
def make_api_client(store, clock, make_http_client):
    """
    Factory for a BolApiClient with a valid token already cached.

    Requests to the token endpoint fail the test, so any API test that
    accidentally triggers a refresh is caught.
    """

    async def _make_api_client(handler, timeout: float = 30.0) -> BolApiClient:
        def routed(request: httpx.Request):
            if request.url.host == "login.bol.com":
                pytest.fail("unexpected token request")
            return handler(request)

        await cache_token(store)
        http_client = make_http_client(routed)
        token_manager = TokenManager(
            client_id="client-id",
            client_secret="client-secret",
            store=store,
            token_url=TOKEN_URL,
            http_client=http_client,
            clock=clock,
        )
        return BolApiClient(
            token_manager, base_url=API_BASE_URL, timeout=timeout, http_client=http_client
        )

    return _make_api_client
