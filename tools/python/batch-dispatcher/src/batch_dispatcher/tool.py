"""
Batch Dispatcher — CSV Tool
============================
Runs every row of a CSV through a :class:`~batch_dispatcher.batch.Batch`
and writes one GeoJSON feature per provider per row.

Classes:
    BatchDispatchTool   File-driven tool (inherits GeoTool).

Usage::

    from pathlib import Path
    from batch_dispatcher.tool import BatchDispatchTool

    BatchDispatchTool(
        input_path=Path("data/addresses.csv"),
        output_path=Path("output/addresses.geojson"),
        geocoder=geocoder,
        address_col="full_address",
        parallel=True,
    ).run()
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Literal

import pandas as pd

from batch_dispatcher.batch import Batch, BatchConfig
from batch_dispatcher.models import BatchResult, Coordinate, TaskKind
from batch_dispatcher.providers import Geocoder
from shared.python.base_tool import GeoTool
from shared.python.exceptions import InputValidationError, OutputWriteError
from shared.python.validators import Validators

logger = logging.getLogger("geobatch.batch_dispatcher.tool")

BLANK_ADDRESS = "Blank address; not sent to any provider."


class BatchDispatchTool(GeoTool):
    """Geocode (or reverse-geocode) a CSV against every provider.

    Rows whose tasks fail, or whose address is blank, are still written
    with ``null`` geometry and ``geocode_success: false``, so no data is
    silently lost.

    Args:
        input_path: Path to the input CSV file.
        output_path: Path for the output GeoJSON file.
        geocoder: Provider registry the batch fans out over.
        kind: ``"geocode"`` reads ``address_col``; ``"reverse"`` reads
              ``lat_col`` and ``lon_col``.
        address_col: Column holding address strings.
        lat_col: Column holding latitudes (reverse only).
        lon_col: Column holding longitudes (reverse only).
        extra_cols: Additional CSV columns carried into feature properties.
        parallel: Run the batch with :meth:`Batch.parallel` instead of
                  :meth:`Batch.serie`.
        config: Execution settings for the batch.
        verbose: Enable DEBUG-level logging.
    """

    def __init__(
        self,
        input_path: Path,
        output_path: Path,
        geocoder: Geocoder,
        kind: Literal["geocode", "reverse"] = "geocode",
        address_col: str = "address",
        lat_col: str = "latitude",
        lon_col: str = "longitude",
        extra_cols: list[str] | None = None,
        *,
        parallel: bool = False,
        config: BatchConfig | None = None,
        verbose: bool = False,
    ) -> None:
        super().__init__(input_path, output_path, verbose=verbose)
        self.geocoder = geocoder
        self.kind = TaskKind(kind)
        self.address_col = address_col
        self.lat_col = lat_col
        self.lon_col = lon_col
        self.extra_cols: list[str] = extra_cols or []
        self.parallel = parallel
        self.config = config

        self._results: list[BatchResult] = []

    # ------------------------------------------------------------------
    # GeoTool abstract method implementations
    # ------------------------------------------------------------------

    def validate_inputs(self) -> None:
        """Validate the CSV and configuration before dispatching.

        Raises:
            InputValidationError: If the file is missing, not a CSV, a
                column does not exist, or no provider is registered.
            OutputWriteError: If the output directory cannot be created.
        """
        Validators.assert_file_exists(self.input_path)
        Validators.assert_supported_extension(self.input_path, [".csv"])
        Validators.assert_output_dir_writable(self.output_path)

        if not len(self.geocoder):
            raise InputValidationError("No geocoding provider registered.")

        df_peek = pd.read_csv(self.input_path, nrows=0)
        Validators.assert_columns_exist(df_peek, self._value_columns() + self.extra_cols)
        logger.debug("Inputs validated successfully.")

    def process(self) -> None:
        """Dispatch every row and write the GeoJSON output.

        Rows with a blank address are not sent to any provider; each
        still gets one empty result per provider.

        Raises:
            InputValidationError: If a row holds an invalid coordinate.
            OutputWriteError: If writing the output file fails.
        """
        df = pd.read_csv(self.input_path)
        if df.empty:
            raise InputValidationError(f"No rows to process in '{self.input_path}'.")

        logger.info(
            "Dispatching %d row(s) to %d provider(s) %s...",
            len(df), len(self.geocoder), "in parallel" if self.parallel else "in serie",
        )
        batch = Batch(self.geocoder, self.config)
        if self.kind is TaskKind.REVERSE:
            results = self._run(batch.reverse(self._read_coordinates(df)))
        else:
            results = self._geocode_rows(batch, self._read_addresses(df))

        self._results = results
        self._write_geojson(df, results)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _value_columns(self) -> list[str]:
        if self.kind is TaskKind.REVERSE:
            return [self.lat_col, self.lon_col]
        return [self.address_col]

    def _run(self, batch: Batch) -> list[BatchResult]:
        return batch.parallel() if self.parallel else batch.serie()

    def _geocode_rows(self, batch: Batch, addresses: list[str]) -> list[BatchResult]:
        """Geocode the non-blank addresses and splice in blank rows.

        The returned list is provider-major over *all* rows, so it lines
        up with the CSV exactly as a plain batch would.
        """
        filled = [address for address in addresses if address.strip()]
        blank_count = len(addresses) - len(filled)
        if blank_count:
            logger.warning("Skipping %d row(s) with a blank address.", blank_count)

        dispatched = iter(self._run(batch.geocode(filled)) if filled else [])
        results = []
        for provider in self.geocoder.get_providers():
            for address in addresses:
                if address.strip():
                    results.append(next(dispatched))
                else:
                    results.append(
                        BatchResult(provider_name=provider.name, query=address, error=BLANK_ADDRESS)
                    )
        return results

    def _read_addresses(self, df: pd.DataFrame) -> list[str]:
        return ["" if pd.isna(v) else str(v) for v in df[self.address_col]]

    def _read_coordinates(self, df: pd.DataFrame) -> list[Coordinate]:
        coordinates = []
        for lat, lon in zip(df[self.lat_col], df[self.lon_col]):
            try:
                coordinates.append(Coordinate(float(lat), float(lon)))
            except (TypeError, ValueError) as exc:
                raise InputValidationError(
                    f"Non-numeric coordinate in row: {lat!r}, {lon!r}"
                ) from exc
        return coordinates

    def _write_geojson(self, df: pd.DataFrame, results: list[BatchResult]) -> None:
        """Write results as a GeoJSON FeatureCollection.

        Results are provider-major, so row ``i`` of provider ``p`` sits
        at ``p * len(df) + i``.

        Raises:
            OutputWriteError: If the file cannot be written.
        """
        rows = df.to_dict(orient="records")
        features = []
        for position, result in enumerate(results):
            row = rows[position % len(rows)]
            extra = {col: row[col] for col in self.extra_cols if col in row}
            features.append(result.to_geojson_feature(extra_props=extra))

        geojson: dict[str, Any] = {
            "type": "FeatureCollection",
            "features": features,
        }

        try:
            with open(self.output_path, "w", encoding="utf-8") as fh:
                json.dump(geojson, fh, indent=2, default=str)
        except OSError as exc:
            raise OutputWriteError(str(self.output_path), str(exc)) from exc

    @property
    def results(self) -> list[BatchResult]:
        """All :class:`BatchResult` objects from the last run, or ``[]``."""
        return self._results
