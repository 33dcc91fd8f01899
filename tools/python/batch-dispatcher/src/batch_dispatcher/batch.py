"""
Batch Dispatcher — Core Module
===============================
Fans one geocoding or reverse-geocoding request out to every provider of
a :class:`~batch_dispatcher.providers.Geocoder` and collects one
:class:`~batch_dispatcher.models.BatchResult` per provider per value.

Architecture:
    ``geocode()`` / ``reverse()`` validate the request and build the task
    list; ``serie()`` / ``parallel()`` run it.  Provider failures are
    isolated per task: a failing task yields an empty result in its own
    slot and never aborts the batch.

Task order is provider-major — for providers ``[p1, p2]`` and values
``["a", "b"]`` the tasks are ``(p1, a), (p1, b), (p2, a), (p2, b)`` —
and ``results[i]`` always belongs to ``tasks[i]`` in both modes.

Usage::

    from batch_dispatcher.batch import Batch

    results = Batch(geocoder).geocode(["10 Downing St", "Times Square"]).parallel()
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, cast

from batch_dispatcher.models import BatchResult, Coordinate, Query, Task, TaskKind, TaskOutcome
from batch_dispatcher.providers import Geocoder
from shared.python.exceptions import InputValidationError, InvalidArgumentError

logger = logging.getLogger("geobatch.batch_dispatcher.batch")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass
class BatchConfig:
    """Execution settings for :class:`Batch`.

    Attributes:
        max_workers: Thread pool size for :meth:`Batch.parallel`.
                     ``None`` uses one worker per task, capped at 32.
        timeout: Seconds :meth:`Batch.parallel` waits for the whole
                 batch.  Tasks still running afterwards get an empty
                 result.  ``None`` waits indefinitely and relies on the
                 providers' own HTTP timeouts.
    """

    max_workers: int | None = None
    timeout: float | None = None

    def __post_init__(self) -> None:
        if self.max_workers is not None and self.max_workers < 1:
            raise InputValidationError(
                f"max_workers must be at least 1, got {self.max_workers}."
            )
        if self.timeout is not None and self.timeout <= 0:
            raise InputValidationError(
                f"timeout must be positive, got {self.timeout}."
            )


# ---------------------------------------------------------------------------
# Request validation
# ---------------------------------------------------------------------------


def _as_sequence(value: Any) -> tuple[Any, ...] | None:
    """Return *value* as a tuple when it is a non-empty, non-string sequence."""
    if isinstance(value, (str, bytes, bytearray)) or not isinstance(value, Sequence):
        return None
    return tuple(value) or None


def normalise_addresses(value: Any) -> tuple[str, ...]:
    """Validate a geocode request and return its addresses in order.

    Raises:
        InvalidArgumentError: Unless *value* is a non-blank string or a
            non-empty sequence of non-blank strings.
    """
    values = (value,) if isinstance(value, str) else _as_sequence(value)
    if values is None:
        raise InvalidArgumentError.for_geocode()
    for address in values:
        if not isinstance(address, str) or not address.strip():
            raise InvalidArgumentError.for_geocode()
    return values


def normalise_coordinates(value: Any) -> tuple[Coordinate, ...]:
    """Validate a reverse request and return its coordinates in order.

    Raises:
        InvalidArgumentError: Unless *value* is a :class:`Coordinate` or a
            non-empty sequence of them.
    """
    values = (value,) if isinstance(value, Coordinate) else _as_sequence(value)
    if values is None:
        raise InvalidArgumentError.for_reverse()
    if not all(isinstance(coordinate, Coordinate) for coordinate in values):
        raise InvalidArgumentError.for_reverse()
    return values


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------


def _execute(task: Task) -> TaskOutcome:
    """Run one task, turning any provider exception into a failed outcome."""
    try:
        raw = task.execute()
    except Exception as exc:  # noqa: BLE001
        return TaskOutcome.failed(str(exc) or exc.__class__.__name__)
    if raw is None:
        return TaskOutcome.failed("Provider returned no result.")
    return TaskOutcome.ok(raw)


class Batch:
    """Dispatch a request to every provider of a geocoder.

    Args:
        geocoder: The provider registry to fan out over.
        config: Execution settings; defaults to :class:`BatchConfig()`.

    Example::

        batch = Batch(geocoder)
        for result in batch.reverse(Coordinate(48.8234055, 2.3072664)).serie():
            print(result.provider_name, result.display_name)
    """

    def __init__(self, geocoder: Geocoder, config: BatchConfig | None = None) -> None:
        self.geocoder = geocoder
        self.config: BatchConfig = config or BatchConfig()
        self._tasks: list[Task] = []

    @property
    def tasks(self) -> tuple[Task, ...]:
        """Tasks built by the last successful ``geocode``/``reverse`` call."""
        return tuple(self._tasks)

    # ------------------------------------------------------------------
    # Task building
    # ------------------------------------------------------------------

    def geocode(self, value: str | Sequence[str]) -> Batch:
        """Build one geocode task per provider per address.

        Raises:
            InvalidArgumentError: If *value* is not a non-blank string or
                a non-empty sequence of them.  Existing tasks are kept.
        """
        self._tasks = self._build_tasks(normalise_addresses(value), TaskKind.GEOCODE)
        return self

    def reverse(self, value: Coordinate | Sequence[Coordinate]) -> Batch:
        """Build one reverse task per provider per coordinate.

        Raises:
            InvalidArgumentError: If *value* is not a :class:`Coordinate`
                or a non-empty sequence of them.  Existing tasks are kept.
        """
        self._tasks = self._build_tasks(normalise_coordinates(value), TaskKind.REVERSE)
        return self

    def _build_tasks(self, values: tuple[Query, ...], kind: TaskKind) -> list[Task]:
        providers = self.geocoder.get_providers()
        tasks = [Task(provider, value, kind) for provider in providers for value in values]
        logger.info(
            "Built %d %s task(s): %d provider(s) × %d value(s).",
            len(tasks), kind.value, len(providers), len(values),
        )
        return tasks

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def serie(self) -> list[BatchResult]:
        """Run the tasks one after another, in task order."""
        tasks = list(self._tasks)
        results = []
        for index, task in enumerate(tasks):
            logger.debug("[%d/%d] %s → %s", index + 1, len(tasks), task.provider.name, task.value)
            results.append(self._collect(task, _execute(task)))
        self._log_summary(results)
        return results

    def parallel(self) -> list[BatchResult]:
        """Run the tasks concurrently and return results in task order.

        Blocks until every task has finished, or until
        :attr:`BatchConfig.timeout` elapses; unfinished tasks then get an
        empty result.
        """
        tasks = list(self._tasks)
        if not tasks:
            return []

        workers = self.config.max_workers or min(32, len(tasks))
        logger.debug("Dispatching %d task(s) to %d worker(s).", len(tasks), workers)

        slots: list[BatchResult | None] = [None] * len(tasks)
        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="geobatch")
        timed_out = False
        try:
            futures = {pool.submit(_execute, task): index for index, task in enumerate(tasks)}
            done, not_done = wait(futures, timeout=self.config.timeout)
            for future in done:
                index = futures[future]
                slots[index] = self._collect(tasks[index], future.result())
            for future in not_done:
                timed_out = True
                index = futures[future]
                outcome = TaskOutcome.failed(f"Timed out after {self.config.timeout}s.")
                slots[index] = self._collect(tasks[index], outcome)
        finally:
            pool.shutdown(wait=not timed_out, cancel_futures=timed_out)

        results = cast("list[BatchResult]", slots)
        self._log_summary(results)
        return results

    @staticmethod
    def _collect(task: Task, outcome: TaskOutcome) -> BatchResult:
        try:
            result = BatchResult.from_outcome(task, outcome)
        except Exception as exc:  # noqa: BLE001
            result = BatchResult.empty(task, f"Malformed provider result: {exc}")
        if not result.success:
            logger.warning("  ✗ %s failed for %s — %s", task.provider.name, task.value, result.error)
        return result

    @staticmethod
    def _log_summary(results: list[BatchResult]) -> None:
        succeeded = sum(1 for r in results if r.success)
        logger.info(
            "Batch complete: %d/%d succeeded, %d failed.",
            succeeded, len(results), len(results) - succeeded,
        )
