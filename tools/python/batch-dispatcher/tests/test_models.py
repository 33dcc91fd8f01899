"""
Tests — Batch Dispatcher Models
================================
Unit tests for :class:`~batch_dispatcher.models.Coordinate`,
:class:`~batch_dispatcher.models.TaskOutcome`, and
:class:`~batch_dispatcher.models.BatchResult`.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from batch_dispatcher.models import BatchResult, Coordinate, Task, TaskKind, TaskOutcome
from batch_dispatcher.providers import Provider
from shared.python.exceptions import InputValidationError


def _task(value: object = "foo", kind: TaskKind = TaskKind.GEOCODE) -> Task:
    provider = MagicMock(spec=Provider)
    provider.name = "mock"
    return Task(provider=provider, value=value, kind=kind)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Coordinate tests
# ---------------------------------------------------------------------------


class TestCoordinate:
    def test_valid_coordinate(self) -> None:
        c = Coordinate(48.8234055, 2.3072664)
        assert c.latitude == 48.8234055
        assert str(c) == "48.8234055,2.3072664"

    @pytest.mark.parametrize("lat, lon", [(91, 0), (-90.5, 0), (0, 180.1), (0, -181)])
    def test_out_of_range_raises(self, lat: float, lon: float) -> None:
        with pytest.raises(InputValidationError):
            Coordinate(lat, lon)

    @pytest.mark.parametrize("lat, lon", [("48.8", 2.3), (None, 2.3), (True, 2.3), (float("nan"), 0)])
    def test_non_numeric_raises(self, lat: object, lon: float) -> None:
        with pytest.raises(InputValidationError):
            Coordinate(lat, lon)  # type: ignore[arg-type]

    def test_from_string(self) -> None:
        assert Coordinate.from_string(" 48.8234055 , 2.3072664 ") == Coordinate(48.8234055, 2.3072664)

    @pytest.mark.parametrize("text", ["48.8", "a,b", "1,2,3", ""])
    def test_from_string_rejects_garbage(self, text: str) -> None:
        with pytest.raises(InputValidationError):
            Coordinate.from_string(text)


# ---------------------------------------------------------------------------
# Task tests
# ---------------------------------------------------------------------------


class TestTask:
    def test_geocode_task_calls_resolve(self) -> None:
        task = _task("foo")
        task.provider.resolve.return_value = {"latitude": 1, "longitude": 2}
        assert task.execute() == {"latitude": 1, "longitude": 2}
        task.provider.resolve.assert_called_once_with("foo")
        task.provider.resolve_reverse.assert_not_called()

    def test_reverse_task_calls_resolve_reverse(self) -> None:
        coordinate = Coordinate(1.0, 2.0)
        task = _task(coordinate, TaskKind.REVERSE)
        task.execute()
        task.provider.resolve_reverse.assert_called_once_with(coordinate)
        task.provider.resolve.assert_not_called()


# ---------------------------------------------------------------------------
# TaskOutcome tests
# ---------------------------------------------------------------------------


class TestTaskOutcome:
    def test_ok_and_failed_set_exactly_one_field(self) -> None:
        ok = TaskOutcome.ok({"latitude": 1.0, "longitude": 2.0})
        failed = TaskOutcome.failed("boom")
        assert ok.error is None and ok.raw is not None
        assert failed.raw is None and failed.error == "boom"

    @pytest.mark.parametrize(
        "kwargs",
        [{}, {"raw": {"latitude": 1.0}, "error": "boom"}],
    )
    def test_neither_or_both_fields_raise(self, kwargs: dict) -> None:
        with pytest.raises(InputValidationError):
            TaskOutcome(**kwargs)

    def test_ok_with_none_raises(self) -> None:
        with pytest.raises(InputValidationError):
            TaskOutcome.ok(None)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# BatchResult tests
# ---------------------------------------------------------------------------


class TestBatchResult:
    def test_from_ok_outcome_coerces_numbers(self) -> None:
        outcome = TaskOutcome.ok(
            {"latitude": 48.8234055, "longitude": "2.3072664", "display_name": "Paris"}
        )
        result = BatchResult.from_outcome(_task(), outcome)
        assert result.success is True
        assert result.latitude == 48.8234055
        assert result.longitude == pytest.approx(2.3072664)
        assert result.display_name == "Paris"
        assert result.provider_name == "mock"
        assert result.query == "foo"

    def test_from_failed_outcome_is_empty(self) -> None:
        result = BatchResult.from_outcome(_task(), TaskOutcome.failed("boom"))
        assert result.success is False
        assert result.latitude is None and result.longitude is None
        assert result.error == "boom"

    @pytest.mark.parametrize(
        "raw",
        [
            {"latitude": 48.8},
            {"longitude": 2.3},
            {"latitude": None, "longitude": 2.3},
            {"latitude": "north", "longitude": 2.3},
            {"latitude": True, "longitude": 2.3},
            ["48.8", "2.3"],
            {"latitude": 10**400, "longitude": 1},
            {"latitude": "nan", "longitude": "inf"},
            {"latitude": float("inf"), "longitude": 1},
            {"latitude": 48.8, "longitude": float("-inf")},
            {"latitude": 95.0, "longitude": 2.3},
            {"latitude": 48.8, "longitude": "200"},
        ],
    )
    def test_malformed_raw_is_empty(self, raw: object) -> None:
        result = BatchResult.from_outcome(_task(), TaskOutcome(raw=raw))  # type: ignore[arg-type]
        assert result.latitude is None and result.longitude is None
        assert "Malformed" in (result.error or "")

    def test_successful_result_to_feature(self) -> None:
        r = BatchResult(provider_name="nominatim", query="123 Main St", latitude=32.7, longitude=-96.8)
        feature = r.to_geojson_feature()
        assert feature["type"] == "Feature"
        assert feature["geometry"] == {"type": "Point", "coordinates": [-96.8, 32.7]}
        assert feature["properties"]["provider"] == "nominatim"
        assert feature["properties"]["geocode_success"] is True

    def test_failed_result_has_null_geometry(self) -> None:
        r = BatchResult(provider_name="google", query=Coordinate(1.0, 2.0), error="No results")
        feature = r.to_geojson_feature(extra_props={"name": "Store A"})
        assert feature["geometry"] is None
        assert feature["properties"]["query"] == "1.0,2.0"
        assert feature["properties"]["error"] == "No results"
        assert feature["properties"]["name"] == "Store A"
