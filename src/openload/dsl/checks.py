"""Check predicates that assert on a single HTTP response."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from openload._internal.errors import ScenarioError

if TYPE_CHECKING:
    from openload.engine.executor import Response


class CheckPredicate(ABC):
    """Abstract base for response assertions.

    A predicate extracts one value from a response, compares it with what
    it expects and explains a mismatch.  Predicates hold no state, so the
    same predicate applied to the same response always gives the same
    verdict.
    """

    @property
    @abstractmethod
    def expected(self) -> object:
        """The value the predicate is looking for."""

    @abstractmethod
    def extract(self, response: Response) -> object:
        """Pull the value under test out of *response*."""

    @abstractmethod
    def matches(self, actual: object) -> bool:
        """Return True when *actual* satisfies the predicate."""

    @abstractmethod
    def describe_mismatch(self, actual: object) -> str:
        """Return a message explaining why *actual* failed."""

    def describe(self) -> str:
        """Return a short description for logs."""
        return f"{type(self).__name__}({self.expected!r})"


@dataclass(frozen=True)
class StatusEquals(CheckPredicate):
    """Assert the response status code equals *code*."""

    code: int

    @property
    def expected(self) -> object:
        return self.code

    def extract(self, response: Response) -> object:
        return response.status

    def matches(self, actual: object) -> bool:
        return actual == self.code

    def describe_mismatch(self, actual: object) -> str:
        return f"expected status {self.code}, got {actual}"


@dataclass(frozen=True)
class StatusIn(CheckPredicate):
    """Assert the response status code is one of *codes*."""

    codes: tuple[int, ...]

    def __post_init__(self) -> None:
        if not self.codes:
            msg = "StatusIn requires at least one status code"
            raise ScenarioError(msg)
        object.__setattr__(self, "codes", tuple(self.codes))

    @property
    def expected(self) -> object:
        return self.codes

    def extract(self, response: Response) -> object:
        return response.status

    def matches(self, actual: object) -> bool:
        return actual in self.codes

    def describe_mismatch(self, actual: object) -> str:
        allowed = ", ".join(str(c) for c in self.codes)
        return f"expected status in [{allowed}], got {actual}"


@dataclass(frozen=True)
class BodyContains(CheckPredicate):
    """Assert the response body contains *substring*."""

    substring: str

    @property
    def expected(self) -> object:
        return self.substring

    def extract(self, response: Response) -> object:
        return response.body

    def matches(self, actual: object) -> bool:
        return isinstance(actual, str) and self.substring in actual

    def describe_mismatch(self, actual: object) -> str:
        return f"expected body to contain {self.substring!r}"


@dataclass(frozen=True)
class BodyMatches(CheckPredicate):
    """Assert a regular expression search finds *pattern* in the body."""

    pattern: str
    _compiled: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        try:
            compiled = re.compile(self.pattern)
        except re.error as exc:
            msg = f"Invalid body pattern {self.pattern!r}: {exc}"
            raise ScenarioError(msg) from exc
        object.__setattr__(self, "_compiled", compiled)

    @property
    def expected(self) -> object:
        return self.pattern

    def extract(self, response: Response) -> object:
        return response.body

    def matches(self, actual: object) -> bool:
        return isinstance(actual, str) and self._compiled.search(actual) is not None

    def describe_mismatch(self, actual: object) -> str:
        return f"expected body to match /{self.pattern}/"


@dataclass(frozen=True)
class HeaderEquals(CheckPredicate):
    """Assert response header *name* equals *value*.

    Header names compare case-insensitively; values compare exactly.
    """

    name: str
    value: str

    @property
    def expected(self) -> object:
        return self.value

    def extract(self, response: Response) -> object:
        return response.headers.get(self.name.lower())

    def matches(self, actual: object) -> bool:
        return actual == self.value

    def describe_mismatch(self, actual: object) -> str:
        if actual is None:
            return f"expected header {self.name!r} = {self.value!r}, header missing"
        return f"expected header {self.name!r} = {self.value!r}, got {actual!r}"


@dataclass(frozen=True)
class ResponseTimeBelow(CheckPredicate):
    """Assert the response arrived in under *max_ms* milliseconds."""

    max_ms: float

    def __post_init__(self) -> None:
        if self.max_ms <= 0:
            msg = f"max_ms must be positive, got {self.max_ms}"
            raise ScenarioError(msg)

    @property
    def expected(self) -> object:
        return self.max_ms

    def extract(self, response: Response) -> object:
        return response.elapsed_ms

    def matches(self, actual: object) -> bool:
        return isinstance(actual, (int, float)) and actual < self.max_ms

    def describe_mismatch(self, actual: object) -> str:
        return f"expected response time below {self.max_ms:.1f}ms, got {actual:.1f}ms"
