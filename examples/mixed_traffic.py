"""Two populations sharing one run: a steady browse load plus a login ramp.

Point BASE_URL at a service that exposes ``/items`` and ``/auth/login``:

    BASE_URL=http://localhost:8080 python examples/mixed_traffic.py
"""

from __future__ import annotations

import os

from openload import (
    ConstantRate,
    EngineConfig,
    LoadEngine,
    NothingFor,
    RampUsers,
    ResponseTimeBelow,
    StatusEquals,
    StatusIn,
    get,
    post,
    scenario,
)

BASE_URL = os.environ.get("BASE_URL", "http://localhost:8080")

browse = (
    scenario("Browse", base_url=BASE_URL)
    .exec(get("/items", name="List Items"), StatusEquals(200), ResponseTimeBelow(500))
    .pause(1.0)
    .exec(get("/items/1", name="Get Item"), StatusIn((200, 404)))
    .build()
)

login = (
    scenario("Login", base_url=BASE_URL)
    .exec(
        post(
            "/auth/login",
            name="Login",
            headers={"Content-Type": "application/json"},
            body='{"username": "demo", "password": "demo"}',
        ),
        StatusEquals(200),
    )
    .build()
)


if __name__ == "__main__":
    engine = LoadEngine(EngineConfig(max_workers=200, overall_timeout=120.0))
    summary = engine.run_populations(
        [
            browse.inject_open(ConstantRate(rate=5.0, duration=60.0, randomized=True)),
            login.inject_open(NothingFor(duration=10.0), RampUsers(count=50, duration=30.0)),
        ]
    )
    for name, breakdown in summary.scenarios.items():
        print(f"{name}: {breakdown.completed_runs}/{breakdown.total_runs} completed")
