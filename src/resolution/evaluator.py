"""Restart-based memoizing evaluator.

Every computation is a function ``fn(key, env)``. When it asks the
environment for a value that has not been computed yet, ``env.get_value``
returns None and records the key; the function must then return right away.
The evaluator computes the missing keys (independent keys in parallel) and
runs the function again from the top. Functions therefore have to be free of
side effects other than requesting values.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from common.logging_utils import extra_context, is_debug_enabled, Timer
from constants import Constants

from .errors import EvaluationInterrupted, FetchError, ResolutionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Key:
    """A request for the value of ``function`` applied to ``argument``."""
    function: str
    argument: Any


Function = Callable[[Key, "Environment"], Any]


class Environment:
    """Per-attempt view of the evaluator handed to a running function."""

    def __init__(self, evaluator: "Evaluator"):
        self._evaluator = evaluator
        self._missing: List[Key] = []

    def get_value(self, key: Key) -> Any:
        """Return the value for ``key``, or None after recording it as missing.

        A memoized failure for ``key`` is raised here.
        """
        found, value = self._evaluator.lookup(key)
        if not found:
            if key not in self._missing:
                self._missing.append(key)
            return None
        return value

    def values_missing(self) -> bool:
        return bool(self._missing)

    @property
    def missing_keys(self) -> Tuple[Key, ...]:
        return tuple(self._missing)


class Evaluator:
    """Memoizes function results and drives restarts.

    At most one computation runs per key; other requesters wait for it.
    Failures derived from ResolutionError are memoized like values, except
    transient fetch failures, which are retried on the next request.
    """

    def __init__(self, functions: Mapping[str, Function],
                 max_workers: int = Constants.MAX_WORKERS):
        self._functions = dict(functions)
        self._results: Dict[Key, Tuple[bool, Any]] = {}
        self._inflight: Dict[Key, threading.Event] = {}
        self._lock = threading.Lock()
        self._interrupted = threading.Event()
        self._local = threading.local()
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers), thread_name_prefix="modresolve"
        )

    def __enter__(self) -> "Evaluator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Release worker threads."""
        self._executor.shutdown(wait=True)

    def interrupt(self) -> None:
        """Abandon in-flight work; pending evaluations raise EvaluationInterrupted."""
        self._interrupted.set()

    def reset(self) -> None:
        """Forget every memoized result so the next evaluation starts fresh."""
        with self._lock:
            self._results.clear()
        self._interrupted.clear()

    def lookup(self, key: Key) -> Tuple[bool, Any]:
        """Return (found, value); raises the memoized failure for ``key``."""
        with self._lock:
            entry = self._results.get(key)
        if entry is None:
            return False, None
        ok, payload = entry
        if not ok:
            raise payload
        return True, payload

    def evaluate(self, key: Key) -> Any:
        """Compute ``key`` and everything it needs; return its value or raise."""
        self._ensure(key)
        _, value = self.lookup(key)
        return value

    def _check_interrupted(self) -> None:
        if self._interrupted.is_set():
            raise EvaluationInterrupted("Evaluation was interrupted")

    def _ensure(self, key: Key) -> None:
        while True:
            self._check_interrupted()
            with self._lock:
                if key in self._results:
                    return
                event = self._inflight.get(key)
                owner = event is None
                if owner:
                    event = threading.Event()
                    self._inflight[key] = event
            if owner:
                break
            event.wait()

        try:
            entry: Optional[Tuple[bool, Any]] = None
            try:
                entry = (True, self._compute(key))
            except FetchError as exc:
                if not exc.transient:
                    entry = (False, exc)
                else:
                    raise
            except EvaluationInterrupted:
                raise
            except ResolutionError as exc:
                entry = (False, exc)
            if entry is not None and not self._interrupted.is_set():
                with self._lock:
                    self._results[key] = entry
        finally:
            with self._lock:
                self._inflight.pop(key, None)
            event.set()

    def _compute(self, key: Key) -> Any:
        function = self._functions[key.function]
        restarts = 0
        with Timer() as t:
            while True:
                self._check_interrupted()
                env = Environment(self)
                value = function(key, env)
                if not env.values_missing():
                    break
                restarts += 1
                self._compute_all(env.missing_keys)
        if is_debug_enabled(logger):
            logger.debug(
                "Computed value",
                extra=extra_context(
                    event="evaluate",
                    component="evaluator",
                    action=key.function,
                    outcome="success",
                    target=str(key.argument),
                    restarts=restarts,
                    duration_ms=t.duration_ms(),
                )
            )
        return value

    def _compute_all(self, keys: Tuple[Key, ...]) -> None:
        # Nested requests from worker threads run inline so that workers never
        # wait on the pool they occupy.
        if len(keys) == 1 or getattr(self._local, "in_worker", False):
            for key in keys:
                self._ensure(key)
            return
        futures = [self._executor.submit(self._ensure_in_worker, key) for key in keys]
        for future in futures:
            future.result()

    def _ensure_in_worker(self, key: Key) -> None:
        self._local.in_worker = True
        try:
            self._ensure(key)
        finally:
            self._local.in_worker = False
