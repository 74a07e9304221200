"""Custom exception hierarchy for openload.

Failed checks and transport failures are not exceptions: they are recorded
as ``CheckResult`` and ``TransportError`` values on the run that produced
them. Only configuration problems and fatal engine conditions are raised.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from openload.metrics.models import RunSummary


class OpenLoadError(Exception):
    """Base exception for all openload errors.

    All custom exceptions in openload inherit from this class, making it
    easy to catch any openload-specific error with a single except clause.
    """


class ConfigError(OpenLoadError):
    """Raised when configuration is invalid or missing.

    Examples:
        - An environment variable has an invalid value.
        - A configuration value is out of acceptable range.
    """


class SchedulingError(ConfigError):
    """Raised when an injection step is constructed with invalid values.

    Examples:
        - ``RampUsers(count=-1, duration=10.0)``
        - ``ConstantRate(rate=5.0, duration=-2.0)``
    """


class ScenarioError(OpenLoadError):
    """Raised when a scenario definition is invalid.

    Examples:
        - A scenario has an empty name or no steps.
        - A step is not a Request, Check or Pause.
        - Two populations in one run share a scenario name.
    """


class EngineFatalError(OpenLoadError):
    """Raised when an engine run is interrupted or runs out of resources.

    Remaining scheduled starts are abandoned and in-flight virtual users are
    cancelled. Work that was actually attempted is still reported through
    :attr:`summary`.

    Attributes:
        summary: Partial summary of the runs dispatched before the failure.
    """

    def __init__(self, message: str, summary: RunSummary | None = None) -> None:
        super().__init__(message)
        self.summary = summary
