"""
Batch Dispatcher — Data Model
==============================
Value objects shared by the task builder, the executor, and the CSV tool.

Classes:
    Coordinate      Validated WGS84 latitude/longitude pair.
    TaskKind        Which provider operation a task calls.
    Task            One provider applied to one input value.
    TaskOutcome     Raw provider output or the reason it failed.
    BatchResult     Normalised, caller-owned result for one task.
"""

from __future__ import annotations

import enum
import math
import numbers
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

from shared.python.exceptions import InputValidationError
from shared.python.validators import Validators

if TYPE_CHECKING:
    from batch_dispatcher.providers import Provider


# ---------------------------------------------------------------------------
# Coordinates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Coordinate:
    """A WGS84 position used as the input of a reverse-geocoding task.

    Args:
        latitude: Degrees north, ``-90`` to ``90``.
        longitude: Degrees east, ``-180`` to ``180``.

    Raises:
        InputValidationError: If either value is not a number or is out
            of range.
    """

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        for label, value in (("latitude", self.latitude), ("longitude", self.longitude)):
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise InputValidationError(
                    f"Coordinate {label} must be a number, got {value!r}."
                )
        Validators.assert_coordinate_in_range(float(self.latitude), float(self.longitude))

    @classmethod
    def from_string(cls, text: str) -> Coordinate:
        """Parse ``"lat,lon"`` (e.g. ``"48.8234055,2.3072664"``).

        Raises:
            InputValidationError: If *text* is not two comma-separated
                numbers or the position is out of range.
        """
        parts = [p.strip() for p in text.split(",")]
        if len(parts) != 2:
            raise InputValidationError(
                f"Expected 'latitude,longitude' but got {text!r}."
            )
        try:
            latitude, longitude = float(parts[0]), float(parts[1])
        except ValueError as exc:
            raise InputValidationError(
                f"Expected 'latitude,longitude' but got {text!r}."
            ) from exc
        return cls(latitude, longitude)

    def __str__(self) -> str:
        return f"{self.latitude},{self.longitude}"


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TaskKind(str, enum.Enum):
    GEOCODE = "geocode"
    REVERSE = "reverse"


Query = Union[str, Coordinate]


@dataclass(frozen=True)
class Task:
    """One unit of work: a single provider applied to a single value.

    Attributes:
        provider: The provider whose operation is called.
        value: Address string (geocode) or :class:`Coordinate` (reverse).
        kind: Which of the provider's two operations to call.
    """

    provider: Provider
    value: Query
    kind: TaskKind

    def execute(self) -> Mapping[str, Any]:
        """Call the provider operation matching :attr:`kind`.

        Provider exceptions propagate; the executor decides what to do
        with them.
        """
        if self.kind is TaskKind.REVERSE:
            return self.provider.resolve_reverse(self.value)  # type: ignore[arg-type]
        return self.provider.resolve(self.value)  # type: ignore[arg-type]


@dataclass(frozen=True)
class TaskOutcome:
    """What happened when a task ran.

    Exactly one of ``raw`` and ``error`` is set.  Build instances with
    :meth:`ok` and :meth:`failed`.
    """

    raw: Mapping[str, Any] | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        if (self.raw is None) == (self.error is None):
            raise InputValidationError("TaskOutcome needs exactly one of raw or error.")

    @classmethod
    def ok(cls, raw: Mapping[str, Any]) -> TaskOutcome:
        return cls(raw=raw)

    @classmethod
    def failed(cls, error: str) -> TaskOutcome:
        return cls(error=error)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


def _to_float(value: Any) -> float | None:
    """Read *value* as a finite float, or return ``None``."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


@dataclass(frozen=True)
class BatchResult:
    """Normalised result for one task, owned by the caller.

    Latitude and longitude are either both floats or both ``None``.

    Attributes:
        provider_name: ``name`` of the provider that ran the task.
        query: The address or :class:`Coordinate` that was resolved.
        latitude: WGS84 latitude, or ``None`` if resolution failed.
        longitude: WGS84 longitude, or ``None`` if resolution failed.
        display_name: Formatted address from the provider, if any.
        error: Why resolution failed, ``None`` on success.
    """

    provider_name: str
    query: Query
    latitude: float | None = None
    longitude: float | None = None
    display_name: str | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @classmethod
    def empty(cls, task: Task, error: str | None = None) -> BatchResult:
        """Build the unpopulated result used for a failed task."""
        return cls(provider_name=task.provider.name, query=task.value, error=error)

    @classmethod
    def from_outcome(cls, task: Task, outcome: TaskOutcome) -> BatchResult:
        """Map a :class:`TaskOutcome` onto a result for *task*.

        A raw payload that is not a mapping, or whose latitude/longitude
        are not both finite numbers within WGS84 range, produces an empty
        result.
        """
        if outcome.raw is None:
            return cls.empty(task, outcome.error or "Provider returned no result.")

        raw = outcome.raw
        if not isinstance(raw, Mapping):
            return cls.empty(task, f"Malformed provider result: {raw!r}")

        latitude = _to_float(raw.get("latitude"))
        longitude = _to_float(raw.get("longitude"))
        if latitude is None or longitude is None:
            return cls.empty(
                task,
                "Malformed provider result: missing latitude/longitude.",
            )
        try:
            Validators.assert_coordinate_in_range(latitude, longitude)
        except InputValidationError as exc:
            return cls.empty(task, f"Malformed provider result: {exc}")

        display_name = raw.get("display_name")
        return cls(
            provider_name=task.provider.name,
            query=task.value,
            latitude=latitude,
            longitude=longitude,
            display_name=str(display_name) if display_name is not None else None,
        )

    def to_geojson_feature(self, extra_props: dict[str, Any] | None = None) -> dict[str, Any]:
        """Convert this result to a GeoJSON Feature dict.

        Args:
            extra_props: Additional properties merged into the Feature
                         ``properties`` object (e.g. other CSV columns).

        Returns:
            A GeoJSON Feature with a Point geometry, or ``None`` geometry
            if resolution failed.
        """
        props: dict[str, Any] = {
            "provider": self.provider_name,
            "query": str(self.query),
            "display_name": self.display_name,
            "geocode_success": self.success,
            "error": self.error,
        }
        if extra_props:
            props.update(extra_props)

        geometry = (
            {"type": "Point", "coordinates": [self.longitude, self.latitude]}
            if self.success
            else None
        )
        return {"type": "Feature", "geometry": geometry, "properties": props}
