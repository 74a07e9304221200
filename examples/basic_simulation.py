"""Basic simulation: one user fetches a README and checks the status.

Run it with:

    python examples/basic_simulation.py
"""

from __future__ import annotations

import sys

from openload import AtOnce, LoadEngine, StatusEquals, get, inject_open, load_config, scenario

README_URL = "https://raw.githubusercontent.com/steadybit/gatling-sample/main/README.md"

basic = (
    scenario("Basic Example")
    .exec(get(README_URL, name="Get README.md"), StatusEquals(200))
    .build()
)


def main() -> int:
    summary = LoadEngine(load_config()).run(basic, inject_open(AtOnce(count=1)))
    for message in summary.failure_messages():
        print(f"check failed: {message}")
    print(
        f"{summary.total_runs} users, {summary.passed_checks} checks passed, "
        f"{summary.failed_checks} failed, p95 {summary.response_times.p95:.1f}ms"
    )
    return 0 if summary.failed_checks == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
