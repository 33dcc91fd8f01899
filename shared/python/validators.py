"""
geobatch — Shared Input Validators
===================================
Static precondition checks used by the batch dispatcher and its CSV tool.

All methods raise an appropriate exception from
:mod:`shared.python.exceptions` rather than returning booleans, so
``validate_inputs`` implementations stay a flat list of assertions::

    class MyTool(GeoTool):
        def validate_inputs(self) -> None:
            Validators.assert_file_exists(self.input_path)
            Validators.assert_supported_extension(self.input_path, [".csv"])
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Sequence

from shared.python.exceptions import (
    ColumnNotFoundError,
    InputValidationError,
    OutputWriteError,
)


class Validators:
    """Collection of static precondition checks.

    All methods are ``@staticmethod`` — this class is never instantiated.
    """

    # ------------------------------------------------------------------
    # File-system checks
    # ------------------------------------------------------------------

    @staticmethod
    def assert_file_exists(path: Path) -> None:
        """Assert that *path* points to an existing regular file.

        Raises:
            InputValidationError: If *path* does not exist or is a
                directory rather than a file.
        """
        path = Path(path)
        if not path.exists():
            raise InputValidationError(
                f"Input file not found: '{path}'. "
                "Check that the path is correct and the file exists."
            )
        if path.is_dir():
            raise InputValidationError(
                f"Expected a file but got a directory: '{path}'."
            )

    @staticmethod
    def assert_output_dir_writable(output_path: Path) -> None:
        """Create the parent directory of *output_path* if needed.

        Raises:
            OutputWriteError: If the parent directory cannot be created.
        """
        parent = Path(output_path).parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OutputWriteError(str(output_path), str(exc)) from exc

    @staticmethod
    def assert_supported_extension(path: Path, extensions: Sequence[str]) -> None:
        """Assert that *path* has one of the allowed file extensions.

        Args:
            path: File path to check.
            extensions: Allowed extensions, each starting with a dot
                        (e.g. ``[".csv"]``).

        Raises:
            InputValidationError: If the file extension is not in
                *extensions*.
        """
        path = Path(path)
        suffix = path.suffix.lower()
        allowed = [ext.lower() for ext in extensions]
        if suffix not in allowed:
            raise InputValidationError(
                f"Unsupported file extension '{suffix}' for '{path.name}'. "
                f"Accepted extensions: {', '.join(allowed)}"
            )

    # ------------------------------------------------------------------
    # Tabular data checks
    # ------------------------------------------------------------------

    @staticmethod
    def assert_columns_exist(
        df: object,  # pandas DataFrame — typed loosely to avoid hard dep
        required_columns: Sequence[str],
    ) -> None:
        """Assert that all *required_columns* are present in *df*.

        Raises:
            ColumnNotFoundError: On the first missing column found.
        """
        available = list(df.columns)  # type: ignore[union-attr]
        for col in required_columns:
            if col not in available:
                raise ColumnNotFoundError(col, available)

    # ------------------------------------------------------------------
    # Coordinate checks
    # ------------------------------------------------------------------

    @staticmethod
    def assert_coordinate_in_range(latitude: float, longitude: float) -> None:
        """Assert that a latitude/longitude pair is a valid WGS84 position.

        Raises:
            InputValidationError: If either value is NaN or outside
                ``[-90, 90]`` / ``[-180, 180]``.

        Example::

            Validators.assert_coordinate_in_range(48.8234055, 2.3072664)
        """
        if math.isnan(latitude) or not -90.0 <= latitude <= 90.0:
            raise InputValidationError(
                f"Invalid latitude {latitude!r}: must be between -90 and 90."
            )
        if math.isnan(longitude) or not -180.0 <= longitude <= 180.0:
            raise InputValidationError(
                f"Invalid longitude {longitude!r}: must be between -180 and 180."
            )
