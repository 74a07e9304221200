"""Evaluate check predicates against responses without ever raising."""

from __future__ import annotations

from typing import TYPE_CHECKING

from openload.metrics.models import CheckResult

if TYPE_CHECKING:
    from openload.dsl.checks import CheckPredicate
    from openload.engine.executor import Response

NO_RESPONSE = "no response"

# Longest string stored as a check's actual value.
_EXCERPT_CHARS = 200


def _excerpt(value: object) -> object:
    if isinstance(value, str) and len(value) > _EXCERPT_CHARS:
        return value[:_EXCERPT_CHARS] + "..."
    return value


def evaluate(
    predicate: CheckPredicate,
    response: Response | None,
    step_index: int = 0,
) -> CheckResult:
    """Apply *predicate* to *response* and return the verdict.

    A failed assertion is an expected outcome, so it is reported as
    ``passed=False`` rather than raised. The same holds for a missing
    response and for a predicate that raises while inspecting the
    response.

    Args:
        predicate: The check to apply.
        response: The response under test, or None if the request it
            belongs to failed or never ran.
        step_index: Index of the Check step within its scenario.

    Returns:
        The CheckResult for this evaluation.
    """
    if response is None:
        return CheckResult(
            step_index=step_index,
            passed=False,
            actual_value=None,
            expected_value=predicate.expected,
            message=NO_RESPONSE,
        )

    try:
        actual = predicate.extract(response)
        passed = predicate.matches(actual)
        message = "" if passed else predicate.describe_mismatch(actual)
    except Exception as exc:  # noqa: BLE001
        return CheckResult(
            step_index=step_index,
            passed=False,
            actual_value=None,
            expected_value=predicate.expected,
            message=f"{predicate.describe()} raised {type(exc).__name__}: {exc}",
        )

    return CheckResult(
        step_index=step_index,
        passed=passed,
        actual_value=_excerpt(actual),
        expected_value=predicate.expected,
        message=message,
    )
