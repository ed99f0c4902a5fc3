# SPDX-License-Identifier: Apache-2.0
"""
starter-conformance CLI

Run the live conformance suite against a deployed starter, or check a single
JSON document against one of the bundled schemas.

Exit codes: 0 conformant / valid, 1 failures / violations, 2 usage errors.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import time
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import pytest

from .config import HarnessConfig
from .errors import ConfigError, SchemaError
from .schema_registry import SchemaRegistry
from .scenarios.registry import INTERFACES, marker_name

# Shipped inside the package so an installed copy can run it.
LIVE_SUITE = str(Path(__file__).resolve().parent / "live_suite.py")
PLUGIN = "starter_conformance.pytest_plugin"

# Configuration from environment
PYTEST_JOBS = os.environ.get("PYTEST_JOBS", "1")
PYTEST_EXTRA_ARGS = os.environ.get("PYTEST_ARGS", "").split()

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_USAGE = 2


# --------------------------------------------------------------------------- #
# Internal helpers
# --------------------------------------------------------------------------- #

class _OutcomeTally:
    """Counts scenarios whose call phase passed; xdist replays worker reports here."""

    def __init__(self) -> None:
        self.passed = 0

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        if report.when == "call" and report.passed:
            self.passed += 1


def _validate_paths(paths: Sequence[str]) -> bool:
    """Validate that each path we intend pytest to run exists."""
    ok = True
    for p in paths:
        if not Path(p).exists():
            print(f"error: test path does not exist: {p}", file=sys.stderr)
            ok = False
    return ok


def _marker_expression(interfaces: Sequence[str], fast_mode: bool) -> Optional[str]:
    clauses = []
    if interfaces:
        clauses.append("(" + " or ".join(marker_name(i) for i in interfaces) + ")")
    if fast_mode:
        clauses.append("not slow")
    return " and ".join(clauses) or None


def _build_pytest_args(
    test_paths: List[str],
    *,
    interfaces: Sequence[str] = (),
    live: bool = True,
    report_path: Optional[str] = None,
    fast_mode: bool = False,
    quiet_mode: bool = False,
    verbose_mode: bool = False,
    passthrough_args: Optional[List[str]] = None,
) -> List[str]:
    """Build standardized pytest arguments with consistent configuration.

    Paths are used as given; relative ones resolve against the caller's cwd.
    """
    args = [
        "-p", PLUGIN,
        # Cache goes to the caller's cwd, never into site-packages.
        "-o", f"cache_dir={Path.cwd() / '.pytest_cache'}",
        *test_paths,
        *PYTEST_EXTRA_ARGS,
        *(passthrough_args or []),
    ]

    # Verbosity control
    if quiet_mode:
        args.append("-q")
    elif verbose_mode:
        args.append("-vv")
    else:
        args.append("-v")

    # Parallel execution needs pytest-xdist (test extra)
    if PYTEST_JOBS != "1":
        args.extend(["-n", PYTEST_JOBS])

    expr = _marker_expression(interfaces, fast_mode)
    if expr:
        args.extend(["-m", expr])
    if live:
        args.append("--live")
    if report_path:
        args.append(f"--conformance-report={report_path}")
    return args


def _run_pytest(args: List[str], test_paths: List[str]) -> Tuple[int, int, float]:
    """Run pytest in-process from the caller's working directory.

    Returns (pytest exit code, passed scenarios, elapsed seconds).
    """
    if not _validate_paths(test_paths):
        return EXIT_USAGE, 0, 0.0
    tally = _OutcomeTally()
    start_time = time.time()
    rc = int(pytest.main(args, plugins=[tally]))
    return rc, tally.passed, time.time() - start_time


def _exit_code(pytest_rc: int, passed: int) -> int:
    """A run is conformant only when pytest succeeded and at least one scenario passed."""
    if pytest_rc == pytest.ExitCode.USAGE_ERROR:
        return EXIT_USAGE
    if pytest_rc == pytest.ExitCode.OK and passed > 0:
        return EXIT_OK
    return EXIT_FAILURES


# --------------------------------------------------------------------------- #
# Commands
# --------------------------------------------------------------------------- #

def _cmd_run(args: argparse.Namespace, passthrough_args: List[str]) -> int:
    selected = args.interface or []
    test_paths = [LIVE_SUITE]
    report_path = str(Path(args.report).resolve()) if args.report else None
    if not args.quiet:
        print(f"Running starter conformance: {', '.join(selected) or 'all interfaces'}")
        print(f"   Config: jobs={PYTEST_JOBS}")
        if PYTEST_EXTRA_ARGS:
            print(f"   Extra args: {' '.join(PYTEST_EXTRA_ARGS)}")
        if passthrough_args:
            print(f"   Passthrough args: {' '.join(passthrough_args)}")
        if not args.live:
            print("   Without --live every scenario is skipped")

    pytest_args = _build_pytest_args(
        test_paths,
        interfaces=selected,
        live=args.live,
        report_path=report_path,
        fast_mode=args.fast,
        quiet_mode=args.quiet,
        verbose_mode=args.verbose,
        passthrough_args=passthrough_args,
    )
    rc, passed, elapsed = _run_pytest(pytest_args, test_paths)
    code = _exit_code(rc, passed)
    if code == EXIT_OK:
        if not args.quiet:
            print(f"All selected interfaces are conformant ({passed} passed). Completed in {elapsed:.1f}s")
    elif code == EXIT_FAILURES and passed == 0 and rc in (pytest.ExitCode.OK, pytest.ExitCode.NO_TESTS_COLLECTED):
        print("\nNo scenario passed, so nothing was checked (pass --live to run against BASE_URL).", file=sys.stderr)
    elif code == EXIT_FAILURES and not args.quiet:
        print("\nConformance failures detected.")
    return code


def _registry(args: argparse.Namespace) -> SchemaRegistry:
    root = args.schemas_root or HarnessConfig.from_env().schemas_root
    return SchemaRegistry(Path(root))


def _cmd_validate(args: argparse.Namespace) -> int:
    try:
        with open(args.file, "r", encoding="utf-8") as f:
            document = json.load(f)
    except OSError as e:
        print(f"error: cannot read {args.file}: {e}", file=sys.stderr)
        return EXIT_USAGE
    except json.JSONDecodeError as e:
        print(f"error: {args.file} is not valid JSON: {e}", file=sys.stderr)
        return EXIT_USAGE

    registry = _registry(args)
    try:
        schema_id = registry.resolve_id(args.schema)
        result = registry.validate(schema_id, document)
    except KeyError as e:
        print(f"error: {e.args[0]}", file=sys.stderr)
        return EXIT_USAGE

    if result.valid:
        if not args.quiet:
            print(f"OK: {args.file} conforms to {schema_id}")
        return EXIT_OK
    print(f"FAIL: {args.file} does not conform to {schema_id}")
    for v in result.errors:
        print(f"  [{v.keyword}] {v.path}: {v.message}")
    return EXIT_FAILURES


def _cmd_list_schemas(args: argparse.Namespace) -> int:
    for schema_id, path in sorted(_registry(args).list_schemas().items()):
        print(schema_id if args.quiet else f"{schema_id}  {path}")
    return EXIT_OK


# --------------------------------------------------------------------------- #
# main
# --------------------------------------------------------------------------- #

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="starter-conformance",
        description="Starter conformance harness",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  starter-conformance run --live
  starter-conformance run --live -i stt -i agent --report report.json
  starter-conformance run --live --fast -- -x --tb=short
  starter-conformance validate stt/response response.json
  starter-conformance list-schemas

Configuration (environment variables):
  BASE_URL=http://localhost:8080   Starter under test
  AUTH_TOKEN=...                   Static bearer token (skips /api/session)
  SESSION_AUTH=true                Enable protected-endpoint and deploy checks
  PYTEST_JOBS=4                    Run 4 parallel jobs (default: 1, needs pytest-xdist)
  PYTEST_ARGS="-x -s"              Additional pytest arguments
        """.strip(),
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="Minimal output (quiet mode)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Detailed output and debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    run_parser = subparsers.add_parser("run", help="Run conformance scenarios")
    run_parser.add_argument(
        "-i", "--interface",
        action="append",
        choices=INTERFACES,
        help="Select interface(s) to check (can be used multiple times)",
    )
    run_parser.add_argument("--live", action="store_true", help="Run against the starter at BASE_URL")
    run_parser.add_argument("--report", metavar="PATH", help="Write the JSON conformance report to PATH")
    run_parser.add_argument("--fast", action="store_true", help="Skip slow scenarios")

    for name, helptext in (
        ("validate", "Validate a JSON document against a bundled schema"),
        ("list-schemas", "List bundled schemas by $id"),
    ):
        sub = subparsers.add_parser(name, help=helptext)
        sub.add_argument("--schemas-root", metavar="DIR", help="Schema directory (default: bundled schemas)")
        if name == "validate":
            sub.add_argument("schema", help="Schema $id, relative path (stt/response) or unique suffix")
            sub.add_argument("file", help="JSON document to validate")

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    # Manually split passthrough args
    cli_args = list(sys.argv[1:] if argv is None else argv)
    passthrough_args: List[str] = []
    if "--" in cli_args:
        split_index = cli_args.index("--")
        passthrough_args = cli_args[split_index + 1:]
        cli_args = cli_args[:split_index]

    parser = _build_parser()
    try:
        args = parser.parse_args(cli_args)
    except SystemExit as e:
        return EXIT_USAGE if e.code else EXIT_OK

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    try:
        if args.command == "run":
            return _cmd_run(args, passthrough_args)
        if args.command == "validate":
            return _cmd_validate(args)
        if args.command == "list-schemas":
            return _cmd_list_schemas(args)
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE
    except SchemaError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FAILURES

    # argparse enforces the command choice
    parser.print_help()
    return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
