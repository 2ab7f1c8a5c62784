"""
Application configuration loaded from environment variables.

Uses pydantic-settings to define typed configuration that automatically reads
from environment variables (prefixed with BOL_) or a local .env file.

The partner credentials are the only secrets:
- BOL_CLIENT_ID identifies the retailer's API client
- BOL_CLIENT_SECRET is stored as a SecretStr so it never shows up in reprs
  or log lines

Everything else has a working default for the production bol.com endpoints.
"""

from pathlib import Path

from pydantic import SecretStr
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Server configuration with environment variable bindings.

    Each field maps to an environment variable with the BOL_ prefix.
    For example, `client_id` reads from BOL_CLIENT_ID and `port` from BOL_PORT.
    """

    # --- Server settings ---

    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "info"

    # --- Partner credentials (client-credentials grant) ---

    client_id: str = ""
    client_secret: SecretStr = SecretStr("")

    # --- Partner endpoints ---

    token_url: str = "https://login.bol.com/token"
    api_base_url: str = "https://api.bol.com/retailer"

    # A cached token is only reused while it stays valid for at least this
    # long, so it never expires mid-flight.
    token_validity_buffer_seconds: int = 120

    # Applied to every call to the token endpoint and the Retailer API.
    request_timeout_seconds: float = 30.0

    # --- Token storage ---

    # When set, the access token is persisted to this JSON file and survives
    # restarts. When unset, it lives in process memory only.
    token_store_path: Path | None = None

    model_config = {
        "env_prefix": "BOL_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret.get_secret_value())


# Singleton instance: import this from other modules.
settings = Settings()
