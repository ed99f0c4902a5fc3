# SPDX-License-Identifier: Apache-2.0
"""
Starter conformance harness tests.

Offline tests exercise the harness against the in-process mock starter in
tests/mock. tests/live runs the registered scenarios against a deployed
starter and only executes with ``--live``.
"""
