"""Profile service configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import float_env_var, require_env_vars
from .http_resilience import ResilienceConfig

PROFILE_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class ProfileServiceConfig:
    """Holds the downstream profile service endpoint."""

    base_url: str
    resilience: ResilienceConfig


def get_profile_service_config(
    *,
    resilience: ResilienceConfig | None = None,
) -> ProfileServiceConfig:
    values = require_env_vars(("PROFILE_SERVICE_URL",))
    base_url = values["PROFILE_SERVICE_URL"].rstrip("/")
    return ProfileServiceConfig(
        base_url=base_url,
        resilience=resilience
        or ResilienceConfig(
            name="profile",
            base_url=base_url,
            timeout_seconds=float_env_var(
                "PROFILE_SERVICE_TIMEOUT_SECONDS", PROFILE_TIMEOUT_SECONDS
            ),
        ),
    )
