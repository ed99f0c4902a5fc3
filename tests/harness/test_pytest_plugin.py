# SPDX-License-Identifier: Apache-2.0
"""
Pytest plugin, exercised in a subprocess pytest run.

Covers:
  • Interface markers are registered (hyphenated interfaces use underscores)
  • Tests marked `live` are skipped unless --live is passed
  • The terminal summary groups outcomes per interface and shows observed types for wait timeouts
  • --conformance-report writes a JSON report with structured diagnostics
  • CONFORMANCE_PLAIN_OUTPUT strips emoji from the summary
  • A run where every scenario skipped is reported as not conformant
  • A teardown error never records a second outcome for the same scenario
  • The live suite shipped in the package collects by absolute path with only the plugin loaded
"""

from __future__ import annotations

import json

import pytest

from starter_conformance.cli import LIVE_SUITE
from starter_conformance.scenarios import all_scenarios, scenarios_for

PLUGIN = "starter_conformance.pytest_plugin"

SUITE = '''
import pytest
from starter_conformance.errors import WaitTimeoutError


@pytest.mark.stt
def test_transcribe():
    pass


@pytest.mark.live_tts
def test_metadata_event():
    raise WaitTimeoutError(
        "timed out", predicate="type == 'Metadata'", timeout_ms=10, observed_types={"<binary>": 2},
    )


@pytest.mark.live
@pytest.mark.flux
def test_connect():
    pass


def test_not_a_scenario():
    pass
'''


@pytest.fixture
def suite(pytester: pytest.Pytester):
    pytester.makepyfile(test_suite=SUITE)
    return pytester


def test_summary_and_report(suite: pytest.Pytester, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("CONFORMANCE_PLAIN_OUTPUT", "1")
    report = suite.path / "report.json"
    result = suite.runpytest_subprocess("-p", PLUGIN, f"--conformance-report={report}")
    result.assert_outcomes(passed=2, failed=1, skipped=1)

    out = result.stdout.str()
    assert "Starter conformance" in out
    assert "live-tts::test_metadata_event  [WAIT_TIMEOUT]" in out
    assert "observed: {'<binary>': 2}" in out
    assert "NOT conformant" in out
    assert "✅" not in out

    data = json.loads(report.read_text(encoding="utf-8"))
    assert data["summary"]["total"] == 3
    assert data["summary"]["conformant"] is False
    assert data["summary"]["interfaces"]["flux"]["skipped"] == 1
    failed = [s for s in data["scenarios"] if s["outcome"] == "failed"]
    assert [s["interface"] for s in failed] == ["live-tts"]
    assert failed[0]["diagnostics"]["details"]["observed_types"] == {"<binary>": 2}


def test_live_flag_runs_live_tests(suite: pytest.Pytester):
    result = suite.runpytest_subprocess("-p", PLUGIN, "--live", "-m", "flux or stt")
    result.assert_outcomes(passed=2, deselected=2)
    assert "conformant" in result.stdout.str()


def test_markers_are_registered(suite: pytest.Pytester):
    result = suite.runpytest_subprocess("-p", PLUGIN, "--markers")
    out = result.stdout.str()
    for marker in ("@pytest.mark.stt:", "@pytest.mark.live_stt:", "@pytest.mark.text_to_speech:", "@pytest.mark.live:"):
        assert marker in out


def test_all_skipped_run_is_not_conformant(suite: pytest.Pytester):
    report = suite.path / "report.json"
    result = suite.runpytest_subprocess("-p", PLUGIN, "-m", "flux", f"--conformance-report={report}")
    result.assert_outcomes(skipped=1, deselected=3)
    assert "NOT conformant (no scenario passed)" in result.stdout.str()
    assert json.loads(report.read_text(encoding="utf-8"))["summary"]["conformant"] is False


TEARDOWN_SUITE = '''
import pytest


@pytest.fixture
def broken_teardown():
    yield
    raise RuntimeError("teardown blew up")


@pytest.mark.agent
def test_fails_then_teardown_errors(broken_teardown):
    assert False, "scenario failed"


@pytest.mark.agent
def test_passes_then_teardown_errors(broken_teardown):
    pass
'''


def test_each_scenario_is_recorded_once(pytester: pytest.Pytester):
    pytester.makepyfile(test_teardown=TEARDOWN_SUITE)
    report = pytester.path / "report.json"
    result = pytester.runpytest_subprocess("-p", PLUGIN, f"--conformance-report={report}")
    result.assert_outcomes(passed=1, failed=1, errors=2)

    data = json.loads(report.read_text(encoding="utf-8"))
    assert data["summary"]["total"] == 2
    assert data["summary"]["interfaces"]["agent"] == {"passed": 0, "failed": 1, "skipped": 0, "error": 1}
    outcomes = {s["name"]: s["outcome"] for s in data["scenarios"]}
    assert outcomes == {
        "test_fails_then_teardown_errors": "failed",
        "test_passes_then_teardown_errors": "error",
    }
    failed = next(s for s in data["scenarios"] if s["outcome"] == "failed")
    assert failed["diagnostics"]["error"] == "AssertionError"


def test_packaged_live_suite_runs_by_absolute_path(pytester: pytest.Pytester):
    flux_count = len(scenarios_for("flux"))
    result = pytester.runpytest_subprocess("-p", PLUGIN, LIVE_SUITE, "-m", "flux")
    result.assert_outcomes(skipped=flux_count, deselected=len(all_scenarios()) - flux_count)
    assert "NOT conformant (no scenario passed)" in result.stdout.str()
