# SPDX-License-Identifier: Apache-2.0
"""
Assertion/Wait engine.

Waits poll a live, growing message log on a fixed interval and re-evaluate a
pure predicate against each snapshot. Polling keeps the engine ignorant of
how frames reach the log; the streaming driver's reader task and a plain
list appended to by a test look the same.

Every wait takes an explicit ``timeout_ms`` and ``poll_ms``. Expiry raises
WaitTimeoutError carrying the message types observed so far. If the log has
recorded a transport failure and the predicate is still unmet, the wait
fails immediately with that TransportError instead of waiting out the clock.

Waits only suspend in ``asyncio.sleep``; a caller that stops awaiting
(outer timeout, cancellation) leaves no timer or task behind.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .errors import TransportError, WaitTimeoutError
from .transport.streaming import BINARY_TYPE, Frame

__all__ = [
    "Predicate",
    "matches",
    "of_type",
    "of_types",
    "where",
    "event",
    "is_binary",
    "is_final",
    "after",
    "wait_for_one",
    "wait_for_all",
    "wait_for_count",
    "DEFAULT_TIMEOUT_MS",
    "DEFAULT_POLL_MS",
]

DEFAULT_TIMEOUT_MS = 15_000
DEFAULT_POLL_MS = 100


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------

def _data(item: Any) -> Any:
    if isinstance(item, Frame):
        return item.data if item.is_json else None
    return item


def _is_binary_item(item: Any) -> bool:
    if isinstance(item, Frame):
        return item.is_binary
    return isinstance(item, (bytes, bytearray, memoryview))


class Predicate:
    """A named, side-effect-free test over one log element."""

    def __init__(self, fn: Callable[[Any], bool], description: str):
        self._fn = fn
        self.description = description

    def __call__(self, item: Any) -> bool:
        return bool(self._fn(item))

    def __and__(self, other: "Predicate") -> "Predicate":
        return Predicate(lambda m: self(m) and other(m), f"({self.description} and {other.description})")

    def __or__(self, other: "Predicate") -> "Predicate":
        return Predicate(lambda m: self(m) or other(m), f"({self.description} or {other.description})")

    def __invert__(self) -> "Predicate":
        return Predicate(lambda m: not self(m), f"not {self.description}")

    def __repr__(self) -> str:
        return f"Predicate({self.description})"


def matches(fn: Callable[[Any], bool], description: str = "custom predicate") -> Predicate:
    return Predicate(fn, description)


def of_type(msg_type: str) -> Predicate:
    def _check(item: Any) -> bool:
        d = _data(item)
        return isinstance(d, Mapping) and d.get("type") == msg_type
    return Predicate(_check, f"type == {msg_type!r}")


def of_types(*msg_types: str) -> Predicate:
    wanted = frozenset(msg_types)

    def _check(item: Any) -> bool:
        d = _data(item)
        return isinstance(d, Mapping) and d.get("type") in wanted
    return Predicate(_check, f"type in {sorted(wanted)}")


def where(**fields: Any) -> Predicate:
    """Every named field equals the given value (JSON messages only)."""
    def _check(item: Any) -> bool:
        d = _data(item)
        if not isinstance(d, Mapping):
            return False
        return all(k in d and d[k] == v for k, v in fields.items())
    desc = " and ".join(f"{k} == {v!r}" for k, v in fields.items()) or "any JSON message"
    return Predicate(_check, desc)


def event(name: str) -> Predicate:
    return where(event=name)


def is_binary() -> Predicate:
    return Predicate(_is_binary_item, "binary frame")


def is_final() -> Predicate:
    return Predicate(lambda m: isinstance(_data(m), Mapping) and _data(m).get("is_final") is True, "is_final == True")


def after(index: int) -> Predicate:
    """Frames that arrived after the frame at ``index``."""
    return Predicate(lambda m: isinstance(m, Frame) and m.index > index, f"index > {index}")


# ---------------------------------------------------------------------------
# Log access
# ---------------------------------------------------------------------------

def _snapshot(log: Any) -> Tuple[Any, ...]:
    snap = getattr(log, "snapshot", None)
    if callable(snap):
        return snap()
    return tuple(log)


def observed_types(items: Iterable[Any]) -> Dict[str, int]:
    counts: Counter = Counter()
    for item in items:
        if _is_binary_item(item):
            counts[BINARY_TYPE] += 1
            continue
        d = _data(item)
        t = d.get("type") if isinstance(d, Mapping) else None
        counts[t if isinstance(t, str) else "<untyped>"] += 1
    return dict(counts)


def _check_failed(log: Any, description: str, snap: Sequence[Any]) -> None:
    err: Optional[TransportError] = getattr(log, "error", None)
    if err is None:
        return
    raise TransportError(
        f"session failed while waiting for {description}: {err.message}",
        cause=err,
        details={"predicate": description, "observed_types": observed_types(snap)},
    ) from err


async def _poll(
    log: Any,
    check: Callable[[Tuple[Any, ...]], Any],
    description: str,
    timeout_ms: float,
    poll_ms: float,
) -> Any:
    if timeout_ms < 0 or poll_ms <= 0:
        raise ValueError("timeout_ms must be >= 0 and poll_ms > 0")
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_ms / 1000.0
    poll_s = poll_ms / 1000.0
    while True:
        snap = _snapshot(log)
        found = check(snap)
        if found is not None:
            return found
        _check_failed(log, description, snap)
        remaining = deadline - loop.time()
        if remaining <= 0:
            seen = observed_types(snap)
            raise WaitTimeoutError(
                f"timed out after {timeout_ms:.0f} ms waiting for {description}; observed {seen or 'nothing'}",
                predicate=description,
                timeout_ms=timeout_ms,
                observed_types=seen,
            )
        await asyncio.sleep(min(poll_s, remaining))


# ---------------------------------------------------------------------------
# Waits
# ---------------------------------------------------------------------------

async def wait_for_one(
    log: Any,
    predicate: Predicate,
    *,
    timeout_ms: float = DEFAULT_TIMEOUT_MS,
    poll_ms: float = DEFAULT_POLL_MS,
) -> Any:
    """Return the first element of ``log`` satisfying ``predicate``."""
    def _first(snap: Tuple[Any, ...]) -> Any:
        for item in snap:
            if predicate(item):
                return item
        return None
    return await _poll(log, _first, _describe(predicate), timeout_ms, poll_ms)


async def wait_for_all(
    log: Any,
    predicates: Sequence[Predicate],
    *,
    timeout_ms: float = DEFAULT_TIMEOUT_MS,
    poll_ms: float = DEFAULT_POLL_MS,
) -> Tuple[Any, ...]:
    """Resolve once every predicate is satisfied by some element; returns that snapshot."""
    if not predicates:
        return _snapshot(log)

    def _all(snap: Tuple[Any, ...]) -> Any:
        if all(any(p(item) for item in snap) for p in predicates):
            return snap
        return None
    desc = "all of [" + ", ".join(_describe(p) for p in predicates) + "]"
    return await _poll(log, _all, desc, timeout_ms, poll_ms)


async def wait_for_count(
    log: Any,
    predicate: Predicate,
    n: int,
    *,
    timeout_ms: float = DEFAULT_TIMEOUT_MS,
    poll_ms: float = DEFAULT_POLL_MS,
) -> List[Any]:
    """Resolve once at least ``n`` elements match; returns every match in log order."""
    if n < 0:
        raise ValueError("n must be >= 0")

    def _count(snap: Tuple[Any, ...]) -> Any:
        hits = [item for item in snap if predicate(item)]
        return hits if len(hits) >= n else None
    return await _poll(log, _count, f"{n} x {_describe(predicate)}", timeout_ms, poll_ms)


def _describe(predicate: Any) -> str:
    return getattr(predicate, "description", None) or getattr(predicate, "__name__", "predicate")
