"""
Batch Dispatcher — CLI Entry Point
===================================
Installed as the ``geo-batch`` command via ``pyproject.toml``.

Usage::

    # Ask every provider about two addresses, concurrently
    geo-batch geocode "10 Downing St, London" "Times Square, NYC" \\
        --provider nominatim --provider google --parallel

    # Reverse-geocode a CSV of points into GeoJSON
    geo-batch reverse --input data/points.csv --output output/points.geojson \\
        --lat-col lat --lon-col lon

Run ``geo-batch --help`` for the full option list.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Callable

import click

from batch_dispatcher.batch import Batch, BatchConfig
from batch_dispatcher.models import BatchResult, Coordinate
from batch_dispatcher.providers import Geocoder, GoogleProvider, NominatimProvider
from batch_dispatcher.tool import BatchDispatchTool
from shared.python.exceptions import GeoBatchError

logger = logging.getLogger("geobatch.batch_dispatcher.cli")


def _dispatch_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by ``geocode`` and ``reverse``."""
    options = [
        click.option(
            "--provider", "providers",
            multiple=True,
            type=click.Choice(["nominatim", "google"], case_sensitive=False),
            default=("nominatim",),
            show_default=True,
            help="Provider to dispatch to. Repeat to fan out over several.",
        ),
        click.option(
            "--parallel/--serie", default=False, show_default=True,
            help="Run the batch concurrently or one task at a time.",
        ),
        click.option(
            "--max-workers", default=None, type=int,
            help="Thread pool size for --parallel (default: one per task, max 32).",
        ),
        click.option(
            "--timeout", default=None, type=float,
            help="Seconds to wait for a --parallel batch before giving up on slow tasks.",
        ),
        click.option(
            "--http-timeout", default=10.0, show_default=True, type=float,
            help="Per-request HTTP timeout for every provider.",
        ),
        click.option(
            "--user-agent", default="geobatch-dispatcher/1.0", show_default=True,
            help="User-agent string for Nominatim.",
        ),
        click.option(
            "--google-api-key", default=None, envvar="GOOGLE_MAPS_API_KEY",
            help="Google Maps API key (required with --provider google). "
                 "Can also be set via the GOOGLE_MAPS_API_KEY environment variable.",
        ),
        click.option(
            "--input", "-i", "input_path", default=None,
            type=click.Path(exists=True, file_okay=True, dir_okay=False, path_type=Path),
            help="CSV file to dispatch row by row instead of command-line values.",
        ),
        click.option(
            "--output", "-o", "output_path", default=None,
            type=click.Path(file_okay=True, dir_okay=False, path_type=Path),
            help="GeoJSON output path (required with --input).",
        ),
        click.option(
            "--extra-cols", default="",
            help="Comma-separated CSV columns to copy into GeoJSON properties.",
        ),
        click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _build_geocoder(
    providers: tuple[str, ...],
    user_agent: str,
    google_api_key: str | None,
    http_timeout: float,
) -> Geocoder:
    geocoder = Geocoder()
    for name in providers:
        if name.lower() == "google":
            if not google_api_key:
                click.echo(
                    "Error: --google-api-key or GOOGLE_MAPS_API_KEY env var required "
                    "when using --provider google",
                    err=True,
                )
                sys.exit(1)
            geocoder.register_provider(GoogleProvider(api_key=google_api_key, timeout=http_timeout))
        else:
            geocoder.register_provider(
                NominatimProvider(user_agent=user_agent, timeout=http_timeout)
            )
    return geocoder


def _echo_results(results: list[BatchResult]) -> None:
    for result in results:
        if result.success:
            click.echo(
                f"{result.provider_name}\t{result.query}\t{result.latitude}\t{result.longitude}"
            )
        else:
            click.echo(f"{result.provider_name}\t{result.query}\t-\t-\t{result.error}")
    succeeded = sum(1 for r in results if r.success)
    click.echo(f"Resolved: {succeeded}/{len(results)} task(s) successfully.")


def _dispatch(
    kind: str,
    values: list[Any],
    opts: dict[str, Any],
    column_kwargs: dict[str, str],
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if opts["verbose"] else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    geocoder = _build_geocoder(
        opts["providers"], opts["user_agent"], opts["google_api_key"], opts["http_timeout"]
    )

    try:
        config = BatchConfig(max_workers=opts["max_workers"], timeout=opts["timeout"])

        if opts["input_path"] is not None:
            if opts["output_path"] is None:
                click.echo("Error: --output is required with --input", err=True)
                sys.exit(1)
            extra = [c.strip() for c in opts["extra_cols"].split(",") if c.strip()]
            tool = BatchDispatchTool(
                input_path=opts["input_path"],
                output_path=opts["output_path"],
                geocoder=geocoder,
                kind=kind,  # type: ignore[arg-type]
                extra_cols=extra,
                parallel=opts["parallel"],
                config=config,
                verbose=opts["verbose"],
                **column_kwargs,
            )
            tool.run()
            succeeded = sum(1 for r in tool.results if r.success)
            click.echo(f"\nGeoJSON written to: {opts['output_path']}")
            click.echo(f"Resolved: {succeeded}/{len(tool.results)} task(s) successfully.")
            return

        batch = Batch(geocoder, config)
        if kind == "reverse":
            batch.reverse(values)
        else:
            batch.geocode(values)
        _echo_results(batch.parallel() if opts["parallel"] else batch.serie())
    except GeoBatchError as exc:
        click.echo(f"Error: {exc.message}", err=True)
        sys.exit(1)


@click.group(name="geo-batch", help="Fan geocoding requests out to several providers.")
def cli() -> None:
    """Command group; see ``geocode`` and ``reverse``."""


@cli.command("geocode")
@click.argument("addresses", nargs=-1)
@click.option(
    "--address-col", default="address", show_default=True,
    help="CSV column containing address strings (with --input).",
)
@_dispatch_options
def geocode(addresses: tuple[str, ...], address_col: str, **opts: Any) -> None:
    """Geocode ADDRESSES (or a CSV column) with every selected provider."""
    _dispatch("geocode", list(addresses), opts, {"address_col": address_col})


@cli.command("reverse")
@click.argument("coordinates", nargs=-1)
@click.option(
    "--lat-col", default="latitude", show_default=True,
    help="CSV column containing latitudes (with --input).",
)
@click.option(
    "--lon-col", default="longitude", show_default=True,
    help="CSV column containing longitudes (with --input).",
)
@_dispatch_options
def reverse(coordinates: tuple[str, ...], lat_col: str, lon_col: str, **opts: Any) -> None:
    """Reverse-geocode COORDINATES given as LAT,LON with every selected provider."""
    try:
        values = [Coordinate.from_string(text) for text in coordinates]
    except GeoBatchError as exc:
        click.echo(f"Error: {exc.message}", err=True)
        sys.exit(1)
    _dispatch("reverse", values, opts, {"lat_col": lat_col, "lon_col": lon_col})


if __name__ == "__main__":
    cli()
