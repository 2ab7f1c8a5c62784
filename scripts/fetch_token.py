"""
CLI utility to check the partner credentials by fetching a bol.com token.

Requests an access token with the configured client credentials (BOL_CLIENT_ID,
BOL_CLIENT_SECRET, or the flags below) and prints its metadata. The token value
itself is masked unless --show-token is given, so the output is safe to paste
into a ticket.

Usage examples:

    # Use the credentials from the environment / .env file
    uv run python -m scripts.fetch_token

    # Override the credentials on the command line
    uv run python -m scripts.fetch_token --client-id my-id --client-secret my-secret

    # Persist the token where the server will pick it up
    uv run python -m scripts.fetch_token --store .bol_token.json
"""

import argparse
import asyncio
import datetime
from pathlib import Path

from src.auth import AccessToken, TokenManager
from src.config import settings
from src.errors import AuthError
from src.token_store import create_token_store


def mask_token(token: str, visible: int = 6) -> str:
    """Keep the first and last few characters, star out the rest."""
    if len(token) <= visible * 2:
        return "*" * len(token)
    return f"{token[:visible]}{'*' * (len(token) - visible * 2)}{token[-visible:]}"


def describe_token(token: AccessToken, show_token: bool = False) -> list[str]:
    expires = datetime.datetime.fromtimestamp(
        token.expires_at_epoch_millis / 1000, tz=datetime.timezone.utc
    )
    value = token.token if show_token else mask_token(token.token)
    return [
        f"Token type: {token.token_type}",
        f"Scope:      {token.scope or '-'}",
        f"Expires:    {expires.isoformat()}",
        f"Token:      {value}",
    ]


async def fetch_token(client_id: str, client_secret: str, store_path: Path | None) -> AccessToken:
    manager = TokenManager(
        client_id=client_id,
        client_secret=client_secret,
        store=create_token_store(store_path),
        token_url=settings.token_url,
        validity_buffer_millis=settings.token_validity_buffer_seconds * 1000,
        timeout=settings.request_timeout_seconds,
    )
    await manager.get_access_token()
    return await manager.current_token()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Fetch a bol.com Retailer API access token with client credentials.",
    )
    parser.add_argument(
        "--client-id",
        default=settings.client_id,
        help="Partner client id (default: BOL_CLIENT_ID)",
    )
    parser.add_argument(
        "--client-secret",
        default=settings.client_secret.get_secret_value(),
        help="Partner client secret (default: BOL_CLIENT_SECRET)",
    )
    parser.add_argument(
        "--store",
        type=Path,
        default=settings.token_store_path,
        help="JSON token store to read from and write to (default: BOL_TOKEN_STORE_PATH)",
    )
    parser.add_argument(
        "--show-token",
        action="store_true",
        help="Print the full token instead of a masked one",
    )

    args = parser.parse_args(argv)

    try:
        token = asyncio.run(fetch_token(args.client_id, args.client_secret, args.store))
    except AuthError as e:
        print(f"Failed: {e.message}")
        if e.body:
            print(e.body)
        return 1

    for line in describe_token(token, show_token=args.show_token):
        print(line)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
