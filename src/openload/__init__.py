"""openload: open-model HTTP load generation as Python code."""

from __future__ import annotations

from openload._internal.config import EngineConfig, load_config
from openload._internal.errors import (
    ConfigError,
    EngineFatalError,
    OpenLoadError,
    ScenarioError,
    SchedulingError,
)
from openload._internal.logging import setup_logging
from openload.dsl.checks import (
    BodyContains,
    BodyMatches,
    CheckPredicate,
    HeaderEquals,
    ResponseTimeBelow,
    StatusEquals,
    StatusIn,
)
from openload.dsl.requests import delete, get, patch, post, put, request
from openload.dsl.scenario import Check, Pause, Population, Request, Scenario, scenario
from openload.engine.load_engine import LoadEngine
from openload.injection import (
    AtOnce,
    ConstantRate,
    InjectionProfile,
    InjectionStep,
    NothingFor,
    RampUsers,
    inject_open,
)
from openload.metrics.models import CheckResult, RunStatus, RunSummary, VirtualUserResult

__version__ = "0.1.0"

__all__ = [
    "AtOnce",
    "BodyContains",
    "BodyMatches",
    "Check",
    "CheckPredicate",
    "CheckResult",
    "ConfigError",
    "ConstantRate",
    "EngineConfig",
    "EngineFatalError",
    "HeaderEquals",
    "InjectionProfile",
    "InjectionStep",
    "LoadEngine",
    "NothingFor",
    "OpenLoadError",
    "Pause",
    "Population",
    "RampUsers",
    "Request",
    "ResponseTimeBelow",
    "RunStatus",
    "RunSummary",
    "Scenario",
    "ScenarioError",
    "SchedulingError",
    "StatusEquals",
    "StatusIn",
    "VirtualUserResult",
    "delete",
    "get",
    "inject_open",
    "load_config",
    "patch",
    "post",
    "put",
    "request",
    "scenario",
    "setup_logging",
]
