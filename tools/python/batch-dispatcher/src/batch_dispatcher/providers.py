"""
Batch Dispatcher — Providers
=============================
The geocoding capability a :class:`~batch_dispatcher.batch.Batch` fans out
over: an ordered :class:`Geocoder` registry of :class:`Provider` strategies.

Architecture:
    ``Provider`` is an abstract strategy with one method per direction.
    Concrete providers return a raw mapping with ``latitude``,
    ``longitude`` and ``display_name`` keys, and raise
    :class:`~shared.python.exceptions.GeocodingError` when they cannot.
    The batch executor depends only on this interface.

Classes:
    Provider            Abstract base for geocoding providers.
    NominatimProvider   Free OSM-powered geocoder (no API key required).
    GoogleProvider      Google Maps Geocoding API (requires API key).
    Geocoder            Ordered registry of providers.

Usage::

    from batch_dispatcher.providers import Geocoder, NominatimProvider

    geocoder = Geocoder([NominatimProvider(user_agent="my-project/1.0")])
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, Mapping

import requests

from batch_dispatcher.models import Coordinate
from shared.python.exceptions import GeocodingError, GeocodingRateLimitError, InputValidationError

logger = logging.getLogger("geobatch.batch_dispatcher.providers")

RawResult = Mapping[str, Any]


# ---------------------------------------------------------------------------
# Provider strategy
# ---------------------------------------------------------------------------


class Provider(ABC):
    """Abstract strategy for a geocoding provider.

    Subclass this and implement :meth:`resolve` and
    :meth:`resolve_reverse` to add a new backend.  ``name`` identifies
    the provider in results; it does not have to be unique.
    """

    name: str = "provider"

    @abstractmethod
    def resolve(self, address: str) -> RawResult:
        """Geocode a single address string.

        Returns:
            A mapping with at least ``latitude`` and ``longitude``.

        Raises:
            GeocodingRateLimitError: If the provider rate-limits the call.
            GeocodingError: For any other provider failure.
        """

    @abstractmethod
    def resolve_reverse(self, coordinate: Coordinate) -> RawResult:
        """Reverse-geocode a single coordinate.

        Returns:
            A mapping with at least ``latitude`` and ``longitude``.

        Raises:
            GeocodingRateLimitError: If the provider rate-limits the call.
            GeocodingError: For any other provider failure.
        """

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"


class NominatimProvider(Provider):
    """Provider backed by OpenStreetMap's Nominatim API.

    **Free to use** — no API key required.  The Nominatim usage policy
    requires a descriptive ``user_agent``.

    Args:
        user_agent: Identifies your application to Nominatim.
        timeout: HTTP request timeout in seconds.
        base_url: Root of the Nominatim instance, without a trailing slash.
        name: Name reported in results.

    Reference:
        https://nominatim.org/release-docs/develop/api/Overview/
    """

    DEFAULT_BASE_URL = "https://nominatim.openstreetmap.org"

    def __init__(
        self,
        user_agent: str = "geobatch-dispatcher/1.0",
        timeout: float = 10,
        base_url: str = DEFAULT_BASE_URL,
        name: str = "nominatim",
    ) -> None:
        self.user_agent = user_agent
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")
        self.name = name
        self._session = requests.Session()
        self._session.headers["User-Agent"] = self.user_agent

    def resolve(self, address: str) -> RawResult:
        data = self._get("/search", {"q": address, "format": "json", "limit": 1})
        if not data:
            raise GeocodingError(f"Nominatim found no match for {address!r}.")
        return self._to_raw(data[0])

    def resolve_reverse(self, coordinate: Coordinate) -> RawResult:
        data = self._get(
            "/reverse",
            {"lat": coordinate.latitude, "lon": coordinate.longitude, "format": "json"},
        )
        if not data or "error" in data:
            reason = data.get("error", "no result") if isinstance(data, dict) else "no result"
            raise GeocodingError(f"Nominatim could not reverse {coordinate}: {reason}")
        return self._to_raw(data)

    def _get(self, path: str, params: dict[str, Any]) -> Any:
        try:
            response = self._session.get(
                self.base_url + path, params=params, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise GeocodingError(f"Nominatim request failed: {exc}") from exc

        if response.status_code == 429:
            raise GeocodingRateLimitError("Nominatim", retry_after=60)
        if not response.ok:
            raise GeocodingError(f"Nominatim returned HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as exc:
            raise GeocodingError("Nominatim returned a non-JSON body.") from exc

    @staticmethod
    def _to_raw(hit: dict[str, Any]) -> RawResult:
        return {
            "latitude": hit.get("lat"),
            "longitude": hit.get("lon"),
            "display_name": hit.get("display_name"),
        }


class GoogleProvider(Provider):
    """Provider backed by the Google Maps Geocoding API.

    Args:
        api_key: Google Maps Geocoding API key.  Never commit this value
                 to version control; the CLI reads it from the
                 ``GOOGLE_MAPS_API_KEY`` environment variable.
        timeout: HTTP request timeout in seconds.
        name: Name reported in results.

    Reference:
        https://developers.google.com/maps/documentation/geocoding
    """

    BASE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

    def __init__(self, api_key: str, timeout: float = 10, name: str = "google") -> None:
        self.api_key = api_key
        self.timeout = timeout
        self.name = name
        self._session = requests.Session()

    def resolve(self, address: str) -> RawResult:
        return self._query({"address": address})

    def resolve_reverse(self, coordinate: Coordinate) -> RawResult:
        return self._query({"latlng": f"{coordinate.latitude},{coordinate.longitude}"})

    def _query(self, params: dict[str, Any]) -> RawResult:
        try:
            response = self._session.get(
                self.BASE_URL,
                params={**params, "key": self.api_key},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as exc:
            raise GeocodingError(f"Google request failed: {exc}") from exc
        except ValueError as exc:
            raise GeocodingError("Google returned a non-JSON body.") from exc

        status = data.get("status", "UNKNOWN")
        if status == "OVER_QUERY_LIMIT":
            raise GeocodingRateLimitError("Google")
        if status == "REQUEST_DENIED":
            raise GeocodingError("Google geocoding request denied — check your API key.")
        if status != "OK" or not data.get("results"):
            raise GeocodingError(f"Google API status: {status}")

        first = data["results"][0]
        location = first["geometry"]["location"]
        return {
            "latitude": location["lat"],
            "longitude": location["lng"],
            "display_name": first.get("formatted_address"),
        }


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class Geocoder:
    """Ordered collection of providers a batch dispatches to.

    Registration order is preserved and defines the provider order of
    every batch built from this geocoder.
    """

    def __init__(self, providers: Iterable[Provider] | None = None) -> None:
        self._providers: list[Provider] = []
        if providers is not None:
            self.register_providers(providers)

    def register_provider(self, provider: Provider) -> Geocoder:
        """Append *provider*.

        Raises:
            InputValidationError: If *provider* is not a :class:`Provider`.
        """
        if not isinstance(provider, Provider):
            raise InputValidationError(f"Expected a Provider instance, got {provider!r}.")
        self._providers.append(provider)
        logger.debug("Registered provider %s", provider.name)
        return self

    def register_providers(self, providers: Iterable[Provider]) -> Geocoder:
        for provider in providers:
            self.register_provider(provider)
        return self

    def get_providers(self) -> list[Provider]:
        """Return the registered providers in registration order (a copy)."""
        return list(self._providers)

    def __len__(self) -> int:
        return len(self._providers)
