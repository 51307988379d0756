"""Timing and projection settings for the contact monitor, read from the environment."""

import os
from collections.abc import Mapping
from dataclasses import dataclass

ENV_PREFIX = "CONTEXT_CRM_"


def _float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = (environ.get(ENV_PREFIX + name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{ENV_PREFIX}{name} must be positive, got {raw!r}")
    return value


def _count(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = (environ.get(ENV_PREFIX + name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{ENV_PREFIX}{name} must be a whole number, got {raw!r}") from e
    if value < 1:
        raise ValueError(f"{ENV_PREFIX}{name} must be at least 1, got {raw!r}")
    return value


@dataclass(frozen=True)
class MonitorSettings:
    poll_interval: float = 5.0
    burst_interval: float = 1.0
    burst_iterations: int = 10
    background_interval: float = 15 * 60
    background_timeout: float = 25.0
    phone_region: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "MonitorSettings":
        """Build settings from CONTEXT_CRM_* variables; unset variables keep their defaults."""
        env = os.environ if environ is None else environ
        defaults = cls()
        region = (env.get(ENV_PREFIX + "PHONE_REGION") or "").strip().upper() or None
        return cls(
            poll_interval=_float(env, "POLL_INTERVAL", defaults.poll_interval),
            burst_interval=_float(env, "BURST_INTERVAL", defaults.burst_interval),
            burst_iterations=_count(env, "BURST_ITERATIONS", defaults.burst_iterations),
            background_interval=_float(
                env, "BACKGROUND_INTERVAL", defaults.background_interval
            ),
            background_timeout=_float(
                env, "BACKGROUND_TIMEOUT", defaults.background_timeout
            ),
            phone_region=region,
        )
