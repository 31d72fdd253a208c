# === NAVMAP v1 ===
# {
#   "module": "HttpGet.settings",
#   "purpose": "Pydantic models for client settings, TLS policy and request options",
#   "sections": [
#     {
#       "id": "loggingconfiguration",
#       "name": "LoggingConfiguration",
#       "anchor": "class-loggingconfiguration",
#       "kind": "class"
#     },
#     {
#       "id": "tlspolicy",
#       "name": "TLSPolicy",
#       "anchor": "class-tlspolicy",
#       "kind": "class"
#     },
#     {
#       "id": "requestoptions",
#       "name": "RequestOptions",
#       "anchor": "class-requestoptions",
#       "kind": "class"
#     },
#     {
#       "id": "clientsettings",
#       "name": "ClientSettings",
#       "anchor": "class-clientsettings",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Configuration models for the request orchestrator.

Settings are explicit values threaded into :class:`HttpGet.orchestrator.RequestOrchestrator`
at construction time. :class:`ClientSettings` reads ``HTTPGET_*`` environment
variables through ``pydantic-settings``; nothing here is cached process-wide.

:class:`RequestOptions` models the loosely-typed caller input (accepting the
camelCase field names of the original options structure) and :class:`TLSPolicy`
captures the trust configuration derived from it.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from HttpGet.network.policy import (
    DEFAULT_ACCEPT_ENCODING,
    HTTP2_ENABLED,
    HTTP_CONNECT_TIMEOUT,
    HTTP_POOL_TIMEOUT,
    HTTP_READ_TIMEOUT,
    HTTP_WRITE_TIMEOUT,
    KEEPALIVE_EXPIRY,
    MAX_CONNECTIONS,
    MAX_KEEPALIVE_CONNECTIONS,
    MAX_REDIRECT_HOPS,
    PROJECT_URL,
    USER_AGENT_TEMPLATE,
)
from HttpGet.version import __version__

__all__ = [
    "LoggingConfiguration",
    "TLSPolicy",
    "RequestOptions",
    "ClientSettings",
    "default_user_agent",
]


def default_user_agent() -> str:
    """Return the User-Agent sent when the caller does not provide one."""

    return USER_AGENT_TEMPLATE.format(version=__version__, project_url=PROJECT_URL)


class LoggingConfiguration(BaseModel):
    """Logging-related configuration."""

    level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    max_log_size_mb: int = Field(default=10, gt=0, description="Maximum size of rotated log files")
    backup_count: int = Field(default=5, ge=0, description="Rotated files kept next to the active log")
    log_dir: Optional[Path] = Field(default=None, description="Override for the log directory")

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        """Normalise logging levels and ensure they match the supported set."""

        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
        upper = value.upper()
        if upper not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}")
        return upper

    model_config = {"validate_assignment": True}


class TLSPolicy(BaseModel):
    """Trust configuration applied to one transport client.

    ``ca`` entries are PEM-encoded certificates or paths to PEM files. When
    ``verify`` is false no certificate validation happens and ``ca`` is ignored.
    """

    model_config = ConfigDict(frozen=True)

    ca: Optional[Tuple[str, ...]] = None
    verify: bool = True

    @property
    def bypass(self) -> bool:
        return not self.verify

    def fingerprint(self) -> str:
        """Stable key used to share transport clients between equal policies."""

        if self.bypass:
            return "insecure"
        if not self.ca:
            return "default"
        digest = hashlib.sha256("\n".join(self.ca).encode("utf-8")).hexdigest()
        return f"ca:{digest[:16]}"


class RequestOptions(BaseModel):
    """Caller-supplied request description.

    Mirrors the options structure accepted by the public entry points. Both the
    camelCase names (``noSslVerifier``) and the snake_case names
    (``no_ssl_verifier``) are accepted. ``url`` is optional here so that its
    absence can be reported as an input error by the normaliser.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    url: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    ca: Optional[List[str]] = None
    no_ssl_verifier: bool = Field(
        default=False, validation_alias=AliasChoices("noSslVerifier", "no_ssl_verifier")
    )
    no_compress: bool = Field(
        default=False, validation_alias=AliasChoices("noCompress", "no_compress")
    )
    no_user_agent: bool = Field(
        default=False, validation_alias=AliasChoices("noUserAgent", "no_user_agent")
    )
    timeout: Optional[float] = Field(default=None, gt=0)
    max_body: Optional[int] = Field(
        default=None, ge=0, validation_alias=AliasChoices("maxBody", "max_body")
    )
    max_redirects: Optional[int] = Field(
        default=None, ge=0, validation_alias=AliasChoices("maxRedirects", "max_redirects")
    )
    auth: Optional[str] = None
    proxy: Optional[str] = None
    body: Optional[Union[bytes, str]] = None
    file: Optional[Path] = None

    @field_validator("headers", mode="before")
    @classmethod
    def validate_headers(cls, value: Any) -> Dict[str, str]:
        """Coerce header values to strings; ``None`` means no headers."""

        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("headers must be a mapping of header names to values")
        return {str(name): str(item) for name, item in value.items()}

    @field_validator("ca", mode="before")
    @classmethod
    def validate_ca(cls, value: Any) -> Optional[List[str]]:
        """Accept a single certificate as well as a list of them."""

        if value is None:
            return None
        if isinstance(value, (str, bytes)):
            value = [value]
        return [item.decode("ascii") if isinstance(item, bytes) else str(item) for item in value]

    @field_validator("auth")
    @classmethod
    def validate_auth(cls, value: Optional[str]) -> Optional[str]:
        """Basic credentials must be ``user:password``."""

        if value is not None and ":" not in value:
            raise ValueError("auth must be formatted as 'user:password'")
        return value


class ClientSettings(BaseSettings):
    """Process configuration for the orchestrator and its transport.

    Values default to :mod:`HttpGet.network.policy` and may be overridden with
    ``HTTPGET_``-prefixed environment variables (``HTTPGET_MAX_REDIRECTS=5``,
    ``HTTPGET_LOGGING__LEVEL=DEBUG``).
    """

    connect_timeout: float = Field(default=HTTP_CONNECT_TIMEOUT, gt=0.0, le=600.0)
    read_timeout: float = Field(default=HTTP_READ_TIMEOUT, gt=0.0, le=3600.0)
    write_timeout: float = Field(default=HTTP_WRITE_TIMEOUT, gt=0.0, le=3600.0)
    pool_timeout: float = Field(default=HTTP_POOL_TIMEOUT, gt=0.0, le=600.0)
    max_redirects: int = Field(default=MAX_REDIRECT_HOPS, ge=0, le=100)
    max_connections: int = Field(default=MAX_CONNECTIONS, ge=1, le=4096)
    max_keepalive_connections: int = Field(default=MAX_KEEPALIVE_CONNECTIONS, ge=0, le=4096)
    keepalive_expiry: float = Field(default=KEEPALIVE_EXPIRY, gt=0.0, le=600.0)
    http2: bool = Field(default=HTTP2_ENABLED)
    user_agent: str = Field(default_factory=default_user_agent)
    accept_encoding: str = Field(default=DEFAULT_ACCEPT_ENCODING)
    default_ca_bundle: Optional[Path] = Field(
        default=None, description="CA bundle used when a request names no CA (certifi when unset)"
    )
    max_body_bytes: Optional[int] = Field(default=None, ge=0)
    logging: LoggingConfiguration = Field(default_factory=LoggingConfiguration)

    model_config = SettingsConfigDict(
        env_prefix="HTTPGET_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    def config_hash(self) -> str:
        """Compute a deterministic hash of all settings for log correlation."""

        config_str = json.dumps(self.model_dump(mode="json"), sort_keys=True, default=str)
        return hashlib.sha256(config_str.encode("utf-8")).hexdigest()[:16]
