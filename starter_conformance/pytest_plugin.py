# SPDX-License-Identifier: Apache-2.0
"""
Pytest plugin: session fixtures and a per-interface conformance summary.

Enable it from a conftest with::

    pytest_plugins = ["starter_conformance.pytest_plugin"]

Options:
  --live                      run tests marked ``live`` against BASE_URL
                              (skipped otherwise)
  --conformance-report PATH   write the JSON conformance report to PATH

Scenario tests are recognized by an interface marker (``stt``,
``live_tts``, ...). Their outcomes, with structured diagnostics, travel in
``report.user_properties`` so the summary is also correct under
pytest-xdist, where reports are produced on workers and logged on the
controller.
"""

from __future__ import annotations

import json
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import pytest

from .auth import AuthContext, fetch_auth_context
from .config import BUNDLED_FIXTURES_ROOT, HarnessConfig
from .errors import ConfigError, SchemaError, TransportError
from .fixtures import FixtureProvider
from .harness import Harness
from .reporting import ConformanceReport, diagnostics_for
from .schema_registry import SchemaRegistry
from .scenarios.registry import INTERFACES, Scenario, marker_name

PLAIN_OUTPUT_ENV = "CONFORMANCE_PLAIN_OUTPUT"
_SCENARIO_PROP = "conformance_scenario"
_DIAG_PROP = "conformance_diagnostics"


def _json_safe(value: Any) -> Any:
    return json.loads(json.dumps(value, default=str))


def _interface_of(item: pytest.Item) -> Optional[str]:
    for interface in INTERFACES:
        if item.get_closest_marker(marker_name(interface)) is not None:
            return interface
    return None


def _scenario_name(item: pytest.Item) -> str:
    callspec = getattr(item, "callspec", None)
    if callspec is None:
        return item.name
    entry = callspec.params.get("scenario")
    if isinstance(entry, Scenario):
        return entry.name
    return callspec.id or item.name


# ---------------------------------------------------------------------------
# Reporting plugin
# ---------------------------------------------------------------------------

class ConformancePlugin:
    """Collects scenario outcomes into a ConformanceReport and prints a summary."""

    def __init__(self, report_path: Optional[Path] = None):
        self.report = ConformanceReport()
        self.report_path = report_path
        self.start_time: Optional[float] = None
        self.plain_output: bool = False
        self._pending: Dict[str, Tuple[str, float, Dict[str, Any]]] = {}

    def _fmt(self, emoji: str, text: str) -> str:
        if self.plain_output or not emoji:
            return text
        return f"{emoji} {text}"

    def pytest_sessionstart(self, session: pytest.Session) -> None:
        self.start_time = time.time()
        self.plain_output = os.getenv(PLAIN_OUTPUT_ENV, "").strip().lower() in {"1", "true", "yes", "plain"}

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        props = dict(report.user_properties)
        scenario = props.get(_SCENARIO_PROP)
        if scenario is None:
            return
        # One outcome per scenario: the first non-passing phase decides, and
        # a teardown error only turns a passed scenario into an error.
        pending = self._pending.get(report.nodeid)
        if report.when == "setup" and not report.passed:
            outcome = "skipped" if report.skipped else "error"
        elif report.when == "call":
            outcome = report.outcome
        elif report.when == "teardown" and report.failed:
            outcome = "error"
        else:
            outcome = None
        if outcome is not None and (pending is None or pending[0] == "passed"):
            diagnostics = props.get(_DIAG_PROP) or ({"message": report.longreprtext} if report.failed else {})
            pending = (outcome, report.duration * 1000.0, diagnostics)
            self._pending[report.nodeid] = pending
        if report.when != "teardown":
            return
        self._pending.pop(report.nodeid, None)
        if pending is None:
            return
        outcome, duration_ms, diagnostics = pending
        self.report.record_result(
            scenario["name"],
            scenario["interface"],
            outcome,
            duration_ms=duration_ms,
            diagnostics=diagnostics,
        )

    def pytest_terminal_summary(self, terminalreporter, exitstatus, config) -> None:
        summary = self.report.summary()
        if not summary["total"]:
            return
        terminalreporter.write_sep("=", self._fmt("📋", "Starter conformance"))
        for interface, row in sorted(summary["interfaces"].items(), key=lambda kv: INTERFACES.index(kv[0])):
            bad = row.get("failed", 0) + row.get("error", 0)
            mark = self._fmt("❌" if bad else "✅", interface)
            terminalreporter.write_line(
                f"  {mark:<24} passed={row.get('passed', 0)} failed={row.get('failed', 0)} "
                f"error={row.get('error', 0)} skipped={row.get('skipped', 0)}"
            )
        failures = self.report.failures()
        if failures:
            terminalreporter.write_line("")
            terminalreporter.write_line("Failures:")
            for o in failures:
                code = o.diagnostics.get("code") or o.diagnostics.get("error") or o.outcome
                terminalreporter.write_line(f"  {o.interface}::{o.name}  [{code}]")
                for v in (o.diagnostics.get("details") or {}).get("violations", [])[:5]:
                    terminalreporter.write_line(f"      [{v.get('keyword')}] {v.get('path')}: {v.get('message')}")
                observed = (o.diagnostics.get("details") or {}).get("observed_types")
                if observed is not None:
                    terminalreporter.write_line(f"      observed: {observed or 'nothing'}")
        if summary["conformant"]:
            verdict = "conformant"
        elif not summary["passed"]:
            verdict = "NOT conformant (no scenario passed)"
        else:
            verdict = "NOT conformant"
        terminalreporter.write_line("")
        terminalreporter.write_line(
            f"{self._fmt('⏱️', 'Completed in')} {summary['duration_s']:.2f}s, {summary['total']} scenarios, {verdict}"
        )
        if self.report_path is not None:
            self.report.write(self.report_path)
            terminalreporter.write_line(f"Report written to {self.report_path}")


# ---------------------------------------------------------------------------
# Hooks
# ---------------------------------------------------------------------------

@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo):
    """Tag scenario reports with their interface and failure diagnostics."""
    outcome = yield
    report = outcome.get_result()
    interface = _interface_of(item)
    if interface is None:
        return
    if not any(k == _SCENARIO_PROP for k, _ in report.user_properties):
        report.user_properties.append(
            (_SCENARIO_PROP, {"interface": interface, "name": _scenario_name(item)})
        )
    if report.failed and call.excinfo is not None:
        report.user_properties.append((_DIAG_PROP, _json_safe(diagnostics_for(call.excinfo.value))))


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("starter-conformance")
    group.addoption(
        "--live",
        action="store_true",
        default=False,
        help="Run live scenarios against the starter at BASE_URL",
    )
    group.addoption(
        "--conformance-report",
        action="store",
        default=None,
        metavar="PATH",
        help="Write the JSON conformance report to PATH",
    )


def pytest_configure(config: pytest.Config) -> None:
    """Register markers and the reporting plugin."""
    markers = [f"{marker_name(i)}: {i} interface conformance" for i in INTERFACES]
    markers += [
        "live: Scenario runs against a deployed starter (requires --live)",
        "schema: Schema loading and validation tests",
        "golden: Golden message validation tests",
        "slow: Tests that take longer to run (skip with -m 'not slow')",
    ]
    for marker in markers:
        config.addinivalue_line("markers", marker)

    if hasattr(config, "workerinput"):
        # xdist worker: outcomes are aggregated on the controller.
        return
    report = config.getoption("--conformance-report", default=None)
    config.pluginmanager.register(
        ConformancePlugin(Path(report) if report else None),
        name="starter-conformance-report",
    )


def pytest_collection_modifyitems(config: pytest.Config, items) -> None:
    if config.getoption("--live"):
        return
    skip_live = pytest.mark.skip(reason="live scenario; pass --live to run against BASE_URL")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------------
# Session fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def harness_config() -> HarnessConfig:
    try:
        return HarnessConfig.from_env()
    except ConfigError as e:
        pytest.exit(f"invalid harness configuration: {e}", returncode=2)


@pytest.fixture(scope="session")
def schema_registry(harness_config: HarnessConfig) -> SchemaRegistry:
    registry = SchemaRegistry(harness_config.schemas_root)
    try:
        registry.preload()
    except SchemaError as e:
        pytest.exit(f"schema set is invalid: {e}", returncode=1)
    return registry


@pytest.fixture(scope="session")
def fixture_provider(harness_config: HarnessConfig) -> FixtureProvider:
    return FixtureProvider(harness_config.fixtures_root, fallback=BUNDLED_FIXTURES_ROOT)


@pytest.fixture(scope="session")
def auth_context(harness_config: HarnessConfig) -> AuthContext:
    """Resolved once per run; a session-token failure fails every dependent test."""
    try:
        return fetch_auth_context(harness_config)
    except TransportError as e:
        pytest.fail(f"could not obtain a session token: {e}", pytrace=False)


@pytest.fixture(scope="session")
def harness(
    harness_config: HarnessConfig,
    auth_context: AuthContext,
    schema_registry: SchemaRegistry,
    fixture_provider: FixtureProvider,
) -> Harness:
    return Harness(
        config=harness_config,
        auth=auth_context,
        schemas=schema_registry,
        fixtures=fixture_provider,
    )
