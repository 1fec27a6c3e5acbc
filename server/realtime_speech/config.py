"""Configuration helpers for the realtime speech gateway."""
from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Optional

from .errors import ConfigurationError


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class ProtocolFamily(str, Enum):
    """How the realtime endpoint is addressed for a deployment."""

    GA = "ga"
    PREVIEW = "preview"

    @classmethod
    def for_deployment(cls, deployment: str) -> "ProtocolFamily":
        # GA models (gpt-realtime, gpt-realtime-mini) take the plain /v1/realtime URL.
        if deployment.startswith("gpt-realtime") and "preview" not in deployment:
            return cls.GA
        return cls.PREVIEW


@dataclass(frozen=True)
class RealtimeConfig:
    """Validated connection parameters for one realtime session."""

    endpoint: str
    api_key: str
    deployment: str
    protocol: ProtocolFamily
    api_version: str = "2025-04-01-preview"


@dataclass
class Settings:
    """Centralized environment-driven configuration.

    Provider credentials stay optional here so the service can boot and answer
    ``/info`` without them; :meth:`realtime_config` enforces them right before a
    session is opened.
    """

    azure_openai_realtime_endpoint: Optional[str] = os.getenv("AZURE_OPENAI_REALTIME_ENDPOINT")
    azure_openai_realtime_key: Optional[str] = os.getenv("AZURE_OPENAI_REALTIME_KEY")
    azure_openai_realtime_deployment: str = os.getenv("AZURE_OPENAI_REALTIME_DEPLOYMENT", "gpt-realtime")
    # "ga" or "preview"; inferred from the deployment name when unset.
    azure_openai_realtime_protocol: Optional[str] = os.getenv("AZURE_OPENAI_REALTIME_PROTOCOL")
    azure_openai_realtime_api_version: str = os.getenv(
        "AZURE_OPENAI_REALTIME_API_VERSION", "2025-04-01-preview"
    )
    connect_timeout_s: float = float(os.getenv("REALTIME_CONNECT_TIMEOUT_S", "10"))
    synthesis_timeout_s: float = float(os.getenv("REALTIME_SYNTHESIS_TIMEOUT_S", "30"))
    recognition_timeout_s: float = float(os.getenv("REALTIME_RECOGNITION_TIMEOUT_S", "10"))
    poll_interval_s: float = float(os.getenv("REALTIME_POLL_INTERVAL_S", "0.1"))
    # Azure Global Standard deployments have rejected session.update, so voice
    # selection is opt-in.
    configure_voice: bool = _env_bool("REALTIME_CONFIGURE_VOICE")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    def realtime_config(self) -> RealtimeConfig:
        """Return validated connection parameters or raise :class:`ConfigurationError`."""

        endpoint = (self.azure_openai_realtime_endpoint or "").strip()
        api_key = (self.azure_openai_realtime_key or "").strip()
        deployment = (self.azure_openai_realtime_deployment or "").strip()
        if not endpoint or not api_key:
            raise ConfigurationError(
                "Azure OpenAI Realtime endpoint and API key are required for Realtime API"
            )
        if not deployment:
            raise ConfigurationError("AZURE_OPENAI_REALTIME_DEPLOYMENT must not be empty")

        if self.azure_openai_realtime_protocol:
            try:
                protocol = ProtocolFamily(self.azure_openai_realtime_protocol.strip().lower())
            except ValueError as exc:
                raise ConfigurationError(
                    f"Unknown realtime protocol {self.azure_openai_realtime_protocol!r}; use 'ga' or 'preview'"
                ) from exc
        else:
            protocol = ProtocolFamily.for_deployment(deployment)

        return RealtimeConfig(
            endpoint=endpoint,
            api_key=api_key,
            deployment=deployment,
            protocol=protocol,
            api_version=self.azure_openai_realtime_api_version,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance to avoid repeated environment reads."""

    return Settings()


settings = get_settings()
