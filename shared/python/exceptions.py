"""
geobatch — Custom Exception Hierarchy
======================================
Every geobatch module raises exceptions from this module so callers can
catch them at the right level of granularity.

Hierarchy::

    GeoBatchError                        ← catch-all base
    ├── InputValidationError             ← bad files, columns, coordinates
    │   ├── ColumnNotFoundError          ← CSV/table column missing
    │   └── InvalidArgumentError         ← malformed geocode/reverse request
    ├── GeocodingError                   ← provider API / parse failures
    │   └── GeocodingRateLimitError      ← API rate limit exceeded
    └── OutputWriteError                 ← cannot write to output path

Usage::

    from shared.python.exceptions import InvalidArgumentError

    raise InvalidArgumentError.for_geocode()
"""

from __future__ import annotations


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


class GeoBatchError(Exception):
    """Base exception for all geobatch errors.

    Args:
        message: Human-readable description of the error.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message: str = message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


class InputValidationError(GeoBatchError):
    """Raised when inputs fail validation before any work starts.

    This is the parent class for more specific input problems.
    """


class ColumnNotFoundError(InputValidationError):
    """Raised when an expected column is absent from a tabular dataset.

    Args:
        column: The name of the missing column.
        available: List of column names that ARE present, used to
                   generate a helpful error message.

    Example::

        raise ColumnNotFoundError("address", df.columns.tolist())
    """

    def __init__(self, column: str, available: list[str]) -> None:
        available_str = ", ".join(f"'{c}'" for c in available)
        super().__init__(
            f"Column '{column}' not found. Available columns: {available_str}"
        )
        self.column: str = column
        self.available: list[str] = available


class InvalidArgumentError(InputValidationError):
    """Raised when a batch request has the wrong shape.

    Geocode requests take a string or a sequence of strings; reverse
    requests take a :class:`~batch_dispatcher.models.Coordinate` or a
    sequence of them.  Use the two factory methods so the message stays
    identical wherever the check happens.
    """

    GEOCODE_MESSAGE = "The argument should be a string or a sequence of strings to geocode."
    REVERSE_MESSAGE = "The argument should be a Coordinate or a sequence of Coordinates to reverse."

    @classmethod
    def for_geocode(cls) -> InvalidArgumentError:
        return cls(cls.GEOCODE_MESSAGE)

    @classmethod
    def for_reverse(cls) -> InvalidArgumentError:
        return cls(cls.REVERSE_MESSAGE)


# ---------------------------------------------------------------------------
# Geocoding
# ---------------------------------------------------------------------------


class GeocodingError(GeoBatchError):
    """Raised when a provider cannot resolve a value for any reason.

    Inside a batch these are caught per task and turned into empty
    results; they only reach callers who use a provider directly.
    """


class GeocodingRateLimitError(GeocodingError):
    """Raised when the geocoding provider returns a rate-limit response.

    Args:
        provider: Name of the geocoding service (e.g. ``"Nominatim"``).
        retry_after: Suggested seconds to wait before retrying, if
                     provided by the API.  ``None`` if unknown.

    Example::

        raise GeocodingRateLimitError("Nominatim", retry_after=60)
    """

    def __init__(self, provider: str, retry_after: int | None = None) -> None:
        hint = f" Retry after {retry_after}s." if retry_after else ""
        super().__init__(f"Rate limit exceeded for provider '{provider}'.{hint}")
        self.provider: str = provider
        self.retry_after: int | None = retry_after


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


class OutputWriteError(GeoBatchError):
    """Raised when results cannot be written to disk.

    Args:
        output_path: String representation of the path that failed.
        reason: Underlying OS or library error message.
    """

    def __init__(self, output_path: str, reason: str) -> None:
        super().__init__(
            f"Failed to write output to '{output_path}': {reason}"
        )
        self.output_path: str = output_path
        self.reason: str = reason
