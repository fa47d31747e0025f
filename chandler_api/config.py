"""Chandler API service configuration using Pydantic Settings.

Provides centralized configuration for the bridge service including:
- Upstream settings (domain, web URL, user agent, proxy)
- Conversation resolution policy (page size, selection, deadline)
- Chat turn knobs forwarded to the upstream (timeouts, retries)
- Connection pool and timeout settings for the shared HTTP client
- Listen address, logging and CORS

Configuration is loaded from environment variables and .env files using
Pydantic Settings. The @lru_cache decorator ensures a single settings
instance is shared across the application.

Last Grunted: 10/19/2026 03:30:00 PM UTC
"""
from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_UPSTREAM_DOMAIN = "https://api.chandler.bet"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36 Edg/124.0.0.0"
)


class ServiceSettings(BaseSettings):
    """Core service configuration for chandler-api.

    Settings are grouped by category:
    - Upstream: where and how to reach the Chandler AI service
    - Resolver: how a conversation to continue is picked
    - Chat: knobs forwarded verbatim on each chat turn
    - HTTP: pool limits and timeouts of the shared client
    - Server: listen address, logging, CORS

    Example:
        >>> settings = get_settings()
        >>> settings.upstream_domain
        'https://api.chandler.bet'
        >>> settings.get_web_url()
        'https://api.chandler.bet'

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        case_sensitive=False,
        extra="ignore"
    )

    # Upstream settings
    upstream_domain: str = Field(default=DEFAULT_UPSTREAM_DOMAIN, description="Chandler AI base URL")
    upstream_web_url: str = Field(default="", description="web_url sent upstream (defaults to the domain)")
    upstream_user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent for upstream calls")
    upstream_proxy: Optional[str] = Field(default=None, description="Outbound proxy URL for upstream calls")

    # Conversation resolution
    conversation_page_size: int = Field(default=10, ge=1, description="Conversations listed per resolution")
    conversation_selection: Literal["random", "first"] = Field(
        default="random",
        description="How a conversation is picked from the listed page",
    )
    resolve_timeout: float = Field(default=30.0, gt=0, description="Deadline for conversation/user resolution")

    # Chat turn knobs (forwarded, honoured by the upstream)
    chat_global_timeout: int = Field(default=100, description="global_timeout forwarded on chat turns")
    chat_request_timeout: int = Field(default=30, description="request_timeout forwarded on chat turns")
    chat_max_retries: int = Field(default=1, description="max_retries forwarded on chat turns")

    # Shared HTTP client
    http_max_connections: int = Field(default=100, description="Maximum total connections in pool")
    http_max_keepalive: int = Field(default=20, description="Maximum keep-alive connections")
    http_timeout_connect: float = Field(default=5.0, description="Connection timeout in seconds")
    http_timeout_read: float = Field(default=120.0, description="Read timeout in seconds")
    http_timeout_write: float = Field(default=30.0, description="Write timeout in seconds")
    http_timeout_pool: float = Field(default=10.0, description="Pool timeout in seconds")
    http2: bool = Field(default=True, description="Enable HTTP/2 for upstream calls")

    # Server
    host: str = Field(default="0.0.0.0", description="Listen host")
    port: int = Field(default=80, description="Listen port")
    log_level: str = Field(default="INFO", description="Log level")
    log_format: Literal["json", "console"] = Field(default="json", description="Log renderer")
    cors_origins: str = Field(default="*", description="Comma-separated CORS origins")

    def get_web_url(self) -> str:
        """Return the ``web_url`` value the upstream expects on its payloads."""
        return self.upstream_web_url or self.upstream_domain

    def get_cors_origins(self) -> List[str]:
        """Split ``cors_origins`` into a list, dropping blanks."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache()
def get_settings() -> ServiceSettings:
    """Get cached singleton settings instance.

    Returns:
        ServiceSettings: Cached configuration instance.

    Note:
        To reload settings (e.g., after env changes), call get_settings.cache_clear()
        before calling get_settings() again.

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """
    return ServiceSettings()
