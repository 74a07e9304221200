"""Tests for scenario steps, the Scenario value and its builder."""

from __future__ import annotations

import math

import pytest

from openload._internal.errors import ScenarioError
from openload.dsl.checks import BodyContains, StatusEquals
from openload.dsl.requests import delete, get, patch, post, put, request
from openload.dsl.scenario import Check, Pause, Population, Request, Scenario, scenario
from openload.injection import AtOnce, InjectionProfile

README_URL = "https://raw.githubusercontent.com/steadybit/gatling-sample/main/README.md"


# =========================================================================
# Request
# =========================================================================


class TestRequest:
    """Tests for the Request step."""

    def test_method_is_upper_cased(self):
        assert Request(method="get", url="http://localhost/").method == "GET"

    def test_name_defaults_to_url(self):
        assert Request(method="GET", url="http://localhost/a").name == "http://localhost/a"

    def test_rejects_unknown_method(self):
        with pytest.raises(ScenarioError, match="method"):
            Request(method="BREW", url="http://localhost/")

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ScenarioError, match="timeout"):
            Request(method="GET", url="http://localhost/", timeout=0)

    def test_headers_are_read_only(self):
        req = Request(method="GET", url="http://localhost/", headers={"X-A": "1"})
        with pytest.raises(TypeError):
            req.headers["X-A"] = "2"  # type: ignore[index]

    def test_headers_are_copied(self):
        source = {"X-A": "1"}
        req = Request(method="GET", url="http://localhost/", headers=source)
        source["X-A"] = "2"
        assert req.headers["X-A"] == "1"

    @pytest.mark.parametrize("timeout", [math.nan, math.inf])
    def test_rejects_non_finite_timeout(self, timeout: float):
        with pytest.raises(ScenarioError, match="timeout"):
            Request(method="GET", url="http://localhost/", timeout=timeout)

    def test_hashable(self):
        a = Request(method="GET", url="http://localhost/", headers={"X-A": "1"})
        b = Request(method="GET", url="http://localhost/", headers={"X-A": "1"})
        assert a == b
        assert hash(a) == hash(b)
        assert len({a, b}) == 1


class TestRequestHelpers:
    """Tests for the request shorthand functions."""

    @pytest.mark.parametrize(
        ("helper", "method"),
        [(get, "GET"), (post, "POST"), (put, "PUT"), (patch, "PATCH"), (delete, "DELETE")],
    )
    def test_method(self, helper, method):
        assert helper("http://localhost/x").method == method

    def test_request_passes_options(self):
        req = request(
            "post",
            "http://localhost/items",
            name="Create",
            headers={"Content-Type": "application/json"},
            body='{"a": 1}',
            timeout=2.5,
        )
        assert req.method == "POST"
        assert req.name == "Create"
        assert req.headers == {"Content-Type": "application/json"}
        assert req.body == '{"a": 1}'
        assert req.timeout == 2.5


class TestPause:
    def test_rejects_negative(self):
        with pytest.raises(ScenarioError):
            Pause(-1.0)

    @pytest.mark.parametrize("duration", [math.nan, math.inf])
    def test_rejects_non_finite(self, duration: float):
        with pytest.raises(ScenarioError, match="finite"):
            Pause(duration)


# =========================================================================
# Scenario
# =========================================================================


class TestScenario:
    """Tests for the Scenario dataclass."""

    def test_counts(self):
        sc = Scenario(
            name="s",
            steps=(
                Request("GET", "http://localhost/"),
                Check(StatusEquals(200)),
                Pause(0.1),
                Request("GET", "http://localhost/b"),
            ),
        )
        assert sc.request_count == 2
        assert sc.check_count == 1

    def test_rejects_empty_name(self):
        with pytest.raises(ScenarioError, match="name"):
            Scenario(name="  ", steps=(Request("GET", "http://localhost/"),))

    def test_rejects_no_steps(self):
        with pytest.raises(ScenarioError, match="no steps"):
            Scenario(name="empty", steps=())

    def test_rejects_foreign_step(self):
        with pytest.raises(ScenarioError, match="step 0"):
            Scenario(name="bad", steps=("GET /",))  # type: ignore[arg-type]

    def test_rejects_relative_url(self):
        with pytest.raises(ScenarioError, match="relative URL"):
            Scenario(name="rel", steps=(Request("GET", "/health"),))

    def test_steps_become_tuple(self):
        sc = Scenario(name="s", steps=[Request("GET", "http://localhost/")])  # type: ignore[arg-type]
        assert isinstance(sc.steps, tuple)

    def test_inject_open(self):
        sc = scenario("s").exec(get("http://localhost/")).build()
        population = sc.inject_open(AtOnce(count=1), seed=5)
        assert isinstance(population, Population)
        assert population.scenario is sc
        assert population.profile.total_users == 1
        assert population.profile.seed == 5

    def test_inject(self):
        sc = scenario("s").exec(get("http://localhost/")).build()
        profile = InjectionProfile([AtOnce(count=2)])
        assert sc.inject(profile).profile is profile


# =========================================================================
# ScenarioBuilder
# =========================================================================


class TestScenarioBuilder:
    """Tests for the fluent builder."""

    def test_basic_example(self):
        """A single GET with a status check, as in the basic simulation."""
        sc = (
            scenario("Basic Example")
            .exec(get(README_URL, name="Get README.md"), StatusEquals(200))
            .build()
        )
        assert sc.name == "Basic Example"
        assert len(sc.steps) == 2
        assert isinstance(sc.steps[0], Request)
        assert sc.steps[0].name == "Get README.md"
        assert sc.steps[1] == Check(StatusEquals(200))

    def test_step_order(self):
        sc = (
            scenario("flow")
            .exec(get("http://localhost/a"), StatusEquals(200), BodyContains("ok"))
            .pause(0.5)
            .exec(post("http://localhost/b"))
            .check(StatusEquals(201))
            .build()
        )
        kinds = [type(step).__name__ for step in sc.steps]
        assert kinds == ["Request", "Check", "Check", "Pause", "Request", "Check"]

    def test_relative_urls_use_base_url(self):
        sc = scenario("rel", base_url="http://localhost:8080/").exec(get("/health")).build()
        req = sc.steps[0]
        assert isinstance(req, Request)
        assert req.url == "http://localhost:8080/health"
        assert req.name == "/health"

    def test_path_without_slash(self):
        sc = scenario("rel", base_url="http://localhost").exec(get("health")).build()
        assert sc.steps[0].url == "http://localhost/health"  # type: ignore[union-attr]

    def test_relative_url_without_base_fails_on_build(self):
        builder = scenario("rel").exec(get("/health"))
        with pytest.raises(ScenarioError, match="relative URL"):
            builder.build()

    def test_exec_rejects_non_request(self):
        with pytest.raises(ScenarioError, match="Request"):
            scenario("s").exec("http://localhost/")  # type: ignore[arg-type]

    def test_check_rejects_non_predicate(self):
        with pytest.raises(ScenarioError, match="CheckPredicate"):
            scenario("s").exec(get("http://localhost/"), 200)  # type: ignore[arg-type]

    def test_empty_builder_fails(self):
        with pytest.raises(ScenarioError):
            scenario("nothing").build()
