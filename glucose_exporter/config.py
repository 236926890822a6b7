"""
Application configuration with Pydantic validation.

All settings are loaded from environment variables with sensible defaults.
"""

from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional, Tuple

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DEFAULT_BIND,
    DEFAULT_HOST,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_LOG_LEVEL,
    DEFAULT_SCRAPE_TIMEOUT,
    LOG_FORMATS,
)
from .models import SessionCredentials


def parse_bind(bind: str) -> Tuple[str, int]:
    """
    Split a ``[host]:port`` listen address.

    An empty host means all interfaces.

    Raises:
        ValueError: If the port is missing or not a valid port number
    """
    host, sep, port = bind.rpartition(":")
    if not sep:
        raise ValueError(f"Invalid bind address '{bind}'. Expected '[host]:port'")
    try:
        port_number = int(port)
    except ValueError:
        raise ValueError(f"Invalid port in bind address '{bind}'")
    if not 0 < port_number < 65536:
        raise ValueError(f"Port must be 1-65535, got {port_number}")
    return host.strip("[]") or DEFAULT_HOST, port_number


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The LibreLinkUp username and password are always required. A pre-issued
    user id and token can be supplied to skip the first login.
    """

    # =========================================================================
    # LibreLinkUp Account
    # =========================================================================
    librelink_username: str
    librelink_password: str

    # =========================================================================
    # Pre-issued Credentials (optional)
    # =========================================================================
    librelink_userid: Optional[str] = None
    librelink_token: Optional[str] = None
    librelink_token_expiry: Optional[datetime] = None

    # =========================================================================
    # Timeouts
    # =========================================================================
    http_timeout_seconds: float = DEFAULT_HTTP_TIMEOUT
    scrape_timeout_seconds: float = DEFAULT_SCRAPE_TIMEOUT  # 0 disables

    # =========================================================================
    # Server Settings
    # =========================================================================
    bind: str = DEFAULT_BIND
    log_level: str = DEFAULT_LOG_LEVEL
    log_format: str = "console"

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator('bind')
    @classmethod
    def validate_bind(cls, v: str) -> str:
        """Validate the listen address can be parsed."""
        parse_bind(v)
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level '{v}'. Must be one of: {', '.join(sorted(valid_levels))}")
        return v_upper

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format is console or json."""
        v_lower = v.lower()
        if v_lower not in LOG_FORMATS:
            raise ValueError(f"Invalid log format '{v}'. Must be one of: {', '.join(LOG_FORMATS)}")
        return v_lower

    @field_validator('http_timeout_seconds')
    @classmethod
    def validate_http_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"http_timeout_seconds must be positive, got {v}")
        return v

    @field_validator('scrape_timeout_seconds')
    @classmethod
    def validate_scrape_timeout(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"scrape_timeout_seconds must not be negative, got {v}")
        return v

    @model_validator(mode='after')
    def validate_credentials(self) -> 'Settings':
        """Validate that pre-issued credentials are complete and not expired."""
        if bool(self.librelink_userid) != bool(self.librelink_token):
            raise ValueError(
                "Both librelink_userid and librelink_token must be provided together"
            )

        expiry = self.librelink_token_expiry
        if expiry is not None:
            if expiry.tzinfo is None:
                expiry = expiry.replace(tzinfo=timezone.utc)
                self.librelink_token_expiry = expiry
            if expiry <= datetime.now(timezone.utc):
                raise ValueError(
                    f"librelink_token_expiry ({expiry.isoformat()}) must be in the future"
                )

        return self

    # =========================================================================
    # Helper Methods
    # =========================================================================

    def has_credentials(self) -> bool:
        """Whether a pre-issued user id and token were configured."""
        return bool(self.librelink_userid and self.librelink_token)

    def session_credentials(self) -> Optional[SessionCredentials]:
        """Build session credentials from the pre-issued values, if any."""
        if not self.has_credentials():
            return None
        return SessionCredentials.from_user(
            self.librelink_userid,
            self.librelink_token,
            self.librelink_token_expiry,
        )

    def bind_address(self) -> Tuple[str, int]:
        """Return the (host, port) pair to listen on."""
        return parse_bind(self.bind)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
