"""Engine configuration for openload."""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from openload._internal.errors import ConfigError

if TYPE_CHECKING:
    from openload._internal.types import Headers


@dataclass(frozen=True)
class EngineConfig:
    """Runtime configuration for a ``LoadEngine`` run.

    Attributes:
        max_workers: Maximum number of virtual users running at once.
            Starts beyond this wait for a free worker.
        request_timeout: Default per-request timeout in seconds.
        overall_timeout: Wall-clock limit for the whole run in seconds.
            None means wait for every scheduled user to finish.
        grace_period: Seconds to wait for cancelled virtual users to wind
            down before they are finalized from their partial state.
        default_headers: Headers sent with every request. Request-level
            headers take precedence.
        connection_pool_size: Connection limit of each virtual user's session.
        install_signal_handlers: Whether SIGINT/SIGTERM stop the run.
        log_level: Level passed to ``setup_logging`` by the blocking entry
            points.
    """

    max_workers: int = 100
    request_timeout: float = 30.0
    overall_timeout: float | None = None
    grace_period: float = 5.0
    default_headers: Headers = field(default_factory=dict)
    connection_pool_size: int = 100
    install_signal_handlers: bool = True
    log_level: int = logging.INFO

    def __post_init__(self) -> None:
        for name in ("request_timeout", "overall_timeout", "grace_period"):
            value = getattr(self, name)
            if value is not None and not math.isfinite(value):
                msg = f"{name} must be a finite number, got: {value}"
                raise ConfigError(msg)
        if self.max_workers < 1:
            msg = f"max_workers must be >= 1, got: {self.max_workers}"
            raise ConfigError(msg)
        if self.request_timeout <= 0:
            msg = f"request_timeout must be positive, got: {self.request_timeout}"
            raise ConfigError(msg)
        if self.overall_timeout is not None and self.overall_timeout <= 0:
            msg = f"overall_timeout must be positive, got: {self.overall_timeout}"
            raise ConfigError(msg)
        if self.grace_period < 0:
            msg = f"grace_period must be non-negative, got: {self.grace_period}"
            raise ConfigError(msg)
        if self.connection_pool_size < 1:
            msg = f"connection_pool_size must be >= 1, got: {self.connection_pool_size}"
            raise ConfigError(msg)


def _read_int(name: str, default: str) -> int:
    raw = os.environ.get(name, default)
    try:
        return int(raw)
    except ValueError:
        msg = f"{name} must be an integer, got: {raw!r}"
        raise ConfigError(msg) from None


def _read_float(name: str, default: str) -> float:
    raw = os.environ.get(name, default)
    try:
        return float(raw)
    except ValueError:
        msg = f"{name} must be a number, got: {raw!r}"
        raise ConfigError(msg) from None


def load_config() -> EngineConfig:
    """Load engine configuration from environment variables with defaults.

    Environment variables:
        OPENLOAD_MAX_WORKERS: Concurrent virtual user limit (default: 100).
        OPENLOAD_REQUEST_TIMEOUT: Request timeout in seconds (default: 30.0).
        OPENLOAD_OVERALL_TIMEOUT: Run time limit in seconds (default: unset).
        OPENLOAD_GRACE_PERIOD: Cancellation grace period (default: 5.0).
        OPENLOAD_POOL_SIZE: Connections per virtual user (default: 100).

    Returns:
        Populated EngineConfig instance.

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    overall_raw = os.environ.get("OPENLOAD_OVERALL_TIMEOUT", "")
    overall_timeout = (
        _read_float("OPENLOAD_OVERALL_TIMEOUT", overall_raw) if overall_raw else None
    )

    # Range checks happen in EngineConfig.__post_init__
    return EngineConfig(
        max_workers=_read_int("OPENLOAD_MAX_WORKERS", "100"),
        request_timeout=_read_float("OPENLOAD_REQUEST_TIMEOUT", "30.0"),
        overall_timeout=overall_timeout,
        grace_period=_read_float("OPENLOAD_GRACE_PERIOD", "5.0"),
        connection_pool_size=_read_int("OPENLOAD_POOL_SIZE", "100"),
    )
