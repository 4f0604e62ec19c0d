"""
core/config.py
----------------

Package configuration module.

Defines strongly‑typed settings loaded from the environment using
``pydantic-settings``.  These settings control the httpx transport
(timeouts, pool limits, HTTP/2, worker threads), the defaults used by
the bundled token authorization provider and analytics metadata, and
the log level.  All values can be overridden via environment variables
at deployment time.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables.

    The structure is flat and uses environment variables prefixed with
    ``SECURE_SESSION_``.  For example, to override the default request
    timeout set ``SECURE_SESSION_HTTP_TIMEOUT=15``.
    """

    # Transport settings
    http_timeout: float = Field(30.0, gt=0, description="Read/write/pool timeout for HTTP requests in seconds.")
    connect_timeout: float = Field(10.0, gt=0, description="Connection timeout in seconds.")
    max_connections: int = Field(100, ge=1, description="Maximum number of concurrent connections.")
    max_keepalive_connections: int = Field(20, ge=0, description="Maximum number of idle keep-alive connections.")
    http2: bool = Field(False, description="Negotiate HTTP/2 where the server supports it.")
    verify_tls: bool = Field(True, description="Verify TLS certificates.")
    max_workers: int = Field(8, ge=1, description="Threads used to run transfer tasks.")

    # Token authorization defaults
    token_url: Optional[str] = Field(None, description="Token endpoint used to obtain authorization.")
    client_id: Optional[str] = Field(None, description="Client identifier sent to the token endpoint.")
    client_secret: Optional[str] = Field(None, description="Client secret sent to the token endpoint.")
    auth_realm: Optional[str] = Field(None, description="Realm a WWW-Authenticate challenge must name to be handled.")

    # Analytics defaults
    app_name: str = Field("secure-session", description="Application name reported in analytics metadata.")
    app_version: str = Field("0.0.0", description="Application version reported in analytics metadata.")

    log_level: str = Field("INFO", description="Level used by configure_logging().")

    model_config = SettingsConfigDict(env_prefix="SECURE_SESSION_", env_file=None, case_sensitive=False)


@lru_cache()
def get_settings() -> Settings:
    """Return a cached instance of the settings.

    Using a cache prevents parsing the environment on every call.
    """
    return Settings()
