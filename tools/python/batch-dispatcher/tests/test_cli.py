"""
Tests — geo-batch CLI
======================
Exercises the ``geocode`` and ``reverse`` commands through
:class:`click.testing.CliRunner`.  The provider classes are patched with
in-memory stubs so no HTTP requests are made.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pandas as pd
import pytest
from click.testing import CliRunner

from batch_dispatcher.cli import cli
from batch_dispatcher.models import Coordinate
from batch_dispatcher.providers import Provider
from shared.python.exceptions import GeocodingError


class StubProvider(Provider):
    def __init__(self, name: str, fail: bool = False) -> None:
        self.name = name
        self.fail = fail

    def resolve(self, address: str) -> dict[str, Any]:
        if self.fail:
            raise GeocodingError("quota exhausted")
        return {"latitude": 48.8234055, "longitude": "2.3072664"}

    def resolve_reverse(self, coordinate: Coordinate) -> dict[str, Any]:
        return {"latitude": coordinate.latitude, "longitude": coordinate.longitude}


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def _reset_tool_logger():
    """Drop handlers the CSV tool binds to the runner's captured stderr."""
    yield
    tool_logger = logging.getLogger("geobatch")
    for handler in list(tool_logger.handlers):
        tool_logger.removeHandler(handler)
    tool_logger.setLevel(logging.NOTSET)


@pytest.fixture()
def stub_nominatim():
    with patch(
        "batch_dispatcher.cli.NominatimProvider",
        side_effect=lambda **kwargs: StubProvider("nominatim"),
    ) as factory:
        yield factory


@pytest.fixture()
def stub_google():
    with patch(
        "batch_dispatcher.cli.GoogleProvider",
        side_effect=lambda **kwargs: StubProvider("google", fail=True),
    ) as factory:
        yield factory


class TestGeocodeCommand:
    def test_prints_one_line_per_task(self, runner: CliRunner, stub_nominatim) -> None:
        result = runner.invoke(cli, ["geocode", "foo", "bar"])
        assert result.exit_code == 0, result.output
        lines = result.output.strip().splitlines()
        assert lines[0] == "nominatim\tfoo\t48.8234055\t2.3072664"
        assert lines[1].startswith("nominatim\tbar\t")
        assert lines[-1] == "Resolved: 2/2 task(s) successfully."

    def test_fans_out_over_several_providers(
        self, runner: CliRunner, stub_nominatim, stub_google
    ) -> None:
        result = runner.invoke(
            cli,
            ["geocode", "foo", "--provider", "nominatim", "--provider", "google",
             "--google-api-key", "k", "--parallel"],
        )
        assert result.exit_code == 0, result.output
        lines = result.output.strip().splitlines()
        assert lines[0].startswith("nominatim\tfoo\t48.8234055")
        assert lines[1] == "google\tfoo\t-\t-\tquota exhausted"
        assert lines[-1] == "Resolved: 1/2 task(s) successfully."
        stub_google.assert_called_once_with(api_key="k", timeout=10.0)

    def test_google_without_key_fails(self, runner: CliRunner) -> None:
        result = runner.invoke(
            cli, ["geocode", "foo", "--provider", "google"],
            env={"GOOGLE_MAPS_API_KEY": None},
        )
        assert result.exit_code == 1
        assert "GOOGLE_MAPS_API_KEY" in result.output

    def test_no_address_fails(self, runner: CliRunner, stub_nominatim) -> None:
        result = runner.invoke(cli, ["geocode"])
        assert result.exit_code == 1
        assert "string or a sequence of strings to geocode" in result.output

    def test_invalid_max_workers_fails(self, runner: CliRunner, stub_nominatim) -> None:
        result = runner.invoke(cli, ["geocode", "foo", "--parallel", "--max-workers", "0"])
        assert result.exit_code == 1
        assert "max_workers" in result.output

    def test_csv_input_writes_geojson(self, runner: CliRunner, tmp_path: Path, stub_nominatim) -> None:
        source = tmp_path / "addresses.csv"
        pd.DataFrame({"street": ["foo", "bar"], "name": ["A", "B"]}).to_csv(source, index=False)
        output = tmp_path / "out.geojson"

        result = runner.invoke(
            cli,
            ["geocode", "--input", str(source), "--output", str(output),
             "--address-col", "street", "--extra-cols", "name"],
        )
        assert result.exit_code == 0, result.output
        assert "Resolved: 2/2" in result.output
        features = json.loads(output.read_text())["features"]
        assert [f["properties"]["name"] for f in features] == ["A", "B"]

    def test_csv_input_without_output_fails(self, runner: CliRunner, tmp_path: Path, stub_nominatim) -> None:
        source = tmp_path / "addresses.csv"
        source.write_text("address\nfoo\n")
        result = runner.invoke(cli, ["geocode", "--input", str(source)])
        assert result.exit_code == 1
        assert "--output is required" in result.output


class TestReverseCommand:
    def test_reverse_coordinates(self, runner: CliRunner, stub_nominatim) -> None:
        result = runner.invoke(cli, ["reverse", "48.82,2.30", "1.5,2.5"])
        assert result.exit_code == 0, result.output
        lines = result.output.strip().splitlines()
        assert lines[0] == "nominatim\t48.82,2.3\t48.82\t2.3"
        assert lines[1] == "nominatim\t1.5,2.5\t1.5\t2.5"

    def test_malformed_coordinate_fails(self, runner: CliRunner, stub_nominatim) -> None:
        result = runner.invoke(cli, ["reverse", "somewhere"])
        assert result.exit_code == 1
        assert "latitude,longitude" in result.output
