"""Scenario steps, the immutable Scenario value and its builder."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

from openload._internal.errors import ScenarioError
from openload.dsl.checks import CheckPredicate
from openload.injection.profile import InjectionProfile

if TYPE_CHECKING:
    from collections.abc import Mapping

    from openload.injection.base import InjectionStep

_ALLOWED_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"})


@dataclass(frozen=True)
class Request:
    """A single HTTP request a virtual user sends.

    Attributes:
        method: Upper-case HTTP method.
        url: Absolute ``http://`` or ``https://`` URL.
        name: Logical name used to group metrics. Defaults to the URL.
        headers: Request-specific headers, layered over engine defaults.
        body: Optional request body.
        timeout: Per-request timeout in seconds. None uses the engine's
            ``request_timeout``.
    """

    method: str
    url: str
    name: str = ""
    headers: Mapping[str, str] = field(default_factory=dict, hash=False)
    body: str | bytes | None = None
    timeout: float | None = None

    def __post_init__(self) -> None:
        method = self.method.upper()
        if method not in _ALLOWED_METHODS:
            msg = f"Unsupported HTTP method: {self.method!r}"
            raise ScenarioError(msg)
        if self.timeout is not None and not (math.isfinite(self.timeout) and self.timeout > 0):
            msg = f"timeout must be a positive finite number, got {self.timeout}"
            raise ScenarioError(msg)
        object.__setattr__(self, "method", method)
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))
        if not self.name:
            object.__setattr__(self, "name", self.url)


@dataclass(frozen=True)
class Check:
    """Assertion applied to the response of the closest preceding Request."""

    predicate: CheckPredicate


@dataclass(frozen=True)
class Pause:
    """Think time: the virtual user idles for *duration* seconds."""

    duration: float

    def __post_init__(self) -> None:
        if not math.isfinite(self.duration) or self.duration < 0:
            msg = f"pause duration must be a non-negative finite number, got {self.duration}"
            raise ScenarioError(msg)


Step = Request | Check | Pause


def _is_absolute(url: str) -> bool:
    return url.startswith(("http://", "https://"))


@dataclass(frozen=True)
class Scenario:
    """The ordered script one virtual user follows.

    Scenarios are immutable once built. Use :func:`scenario` to build one
    fluently.

    Attributes:
        name: Identifier of the scenario, used to group results.
        steps: Steps executed strictly in order.
    """

    name: str
    steps: tuple[Step, ...]

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            msg = "Scenario name must be a non-empty string"
            raise ScenarioError(msg)
        steps = tuple(self.steps)
        if not steps:
            msg = f"Scenario {self.name!r} has no steps"
            raise ScenarioError(msg)
        for i, step in enumerate(steps):
            if not isinstance(step, (Request, Check, Pause)):
                msg = (
                    f"Scenario {self.name!r} step {i} must be a Request, Check or Pause, "
                    f"got {type(step).__name__}"
                )
                raise ScenarioError(msg)
            if isinstance(step, Request) and not _is_absolute(step.url):
                msg = f"Scenario {self.name!r} step {i} has a relative URL: {step.url!r}"
                raise ScenarioError(msg)
        object.__setattr__(self, "steps", steps)

    @property
    def request_count(self) -> int:
        """Return the number of Request steps."""
        return sum(1 for step in self.steps if isinstance(step, Request))

    @property
    def check_count(self) -> int:
        """Return the number of Check steps."""
        return sum(1 for step in self.steps if isinstance(step, Check))

    def inject(self, profile: InjectionProfile) -> Population:
        """Pair this scenario with an injection profile."""
        return Population(scenario=self, profile=profile)

    def inject_open(self, *steps: InjectionStep, seed: int | None = None) -> Population:
        """Pair this scenario with an open-model profile built from *steps*.

        Example::

            population = readme.inject_open(AtOnce(count=1))
        """
        return Population(scenario=self, profile=InjectionProfile(steps, seed=seed))


@dataclass(frozen=True)
class Population:
    """A scenario together with the profile that injects its users."""

    scenario: Scenario
    profile: InjectionProfile


class ScenarioBuilder:
    """Fluent builder producing an immutable :class:`Scenario`.

    Every method returns the builder so calls can be chained. Relative
    request URLs are resolved against *base_url* when the request is added.

    Example::

        readme = (
            scenario("Basic Example")
            .exec(
                get("https://example.com/README.md", name="Get README.md"),
                StatusEquals(200),
            )
            .build()
        )
    """

    def __init__(self, name: str, *, base_url: str = "") -> None:
        self._name = name
        self._base_url = base_url.rstrip("/")
        self._steps: list[Step] = []

    def exec(self, request: Request, *checks: CheckPredicate) -> ScenarioBuilder:
        """Append a request followed by checks on its response.

        Args:
            request: The request to send.
            *checks: Predicates evaluated against the request's response.

        Returns:
            This builder.

        Raises:
            ScenarioError: If a check is not a CheckPredicate.
        """
        if not isinstance(request, Request):
            msg = f"exec() expects a Request, got {type(request).__name__}"
            raise ScenarioError(msg)
        self._steps.append(self._resolve(request))
        return self.check(*checks)

    def check(self, *checks: CheckPredicate) -> ScenarioBuilder:
        """Append checks against the most recent request's response."""
        for predicate in checks:
            if not isinstance(predicate, CheckPredicate):
                msg = f"check() expects CheckPredicate values, got {type(predicate).__name__}"
                raise ScenarioError(msg)
            self._steps.append(Check(predicate))
        return self

    def pause(self, seconds: float) -> ScenarioBuilder:
        """Append think time between requests."""
        self._steps.append(Pause(seconds))
        return self

    def build(self) -> Scenario:
        """Return the immutable scenario.

        Raises:
            ScenarioError: If the name is empty, no steps were added, or a
                request URL could not be made absolute.
        """
        return Scenario(name=self._name, steps=tuple(self._steps))

    def _resolve(self, request: Request) -> Request:
        if _is_absolute(request.url) or not self._base_url:
            return request
        path = request.url if request.url.startswith("/") else f"/{request.url}"
        url = f"{self._base_url}{path}"
        # Keep an explicit name; otherwise the original path stays the name
        return Request(
            method=request.method,
            url=url,
            name=request.name,
            headers=request.headers,
            body=request.body,
            timeout=request.timeout,
        )


def scenario(name: str, *, base_url: str = "") -> ScenarioBuilder:
    """Start building a scenario called *name*.

    Args:
        name: Scenario identifier.
        base_url: Prefix for relative request URLs.

    Returns:
        A new ScenarioBuilder.
    """
    return ScenarioBuilder(name, base_url=base_url)
