"""
geobatch — Shared Python Package
=================================
Re-exports the base tool, exception hierarchy, and validator utilities
so the dispatcher can import from a single location::

    from shared.python import GeoTool, Validators
    from shared.python.exceptions import InvalidArgumentError
"""

from shared.python.base_tool import GeoTool
from shared.python.exceptions import (
    ColumnNotFoundError,
    GeoBatchError,
    GeocodingError,
    GeocodingRateLimitError,
    InputValidationError,
    InvalidArgumentError,
    OutputWriteError,
)
from shared.python.validators import Validators

__all__ = [
    "GeoTool",
    "Validators",
    "GeoBatchError",
    "InputValidationError",
    "ColumnNotFoundError",
    "InvalidArgumentError",
    "GeocodingError",
    "GeocodingRateLimitError",
    "OutputWriteError",
]
