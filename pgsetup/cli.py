from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer

from pgsetup.config import load_settings
from pgsetup.logging_config import configure_logging
from pgsetup.models import EXIT_FAILURE, Flavor
from pgsetup.resolver import StaticPrimaryResolver
from pgsetup.services.bootstrap import BootstrapController
from pgsetup.services.errors import ConfigException

logger = logging.getLogger(__name__)
app = typer.Typer(help="Provision the service database on the cluster primary", pretty_exceptions_show_locals=False)


@app.command()
def main(
    config_file: Path = typer.Option(..., "-f", "--file", help="Path to the configuration file."),
    verbose: int = typer.Option(0, "-v", "--verbose", count=True, help="Increase log verbosity (repeatable)."),
    flavor: Flavor = typer.Option(Flavor.SDC, "-r", "--flavor", help="Deployment flavor."),
) -> None:
    configure_logging(verbosity=verbose)
    try:
        settings = load_settings(config_file, flavor=flavor)
    except ConfigException as e:
        logger.critical("Invalid configuration: %s", e)
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=EXIT_FAILURE)

    controller = BootstrapController(
        settings=settings,
        resolver=StaticPrimaryResolver(settings.static_primary),
    )
    raise typer.Exit(code=asyncio.run(controller.run()))


if __name__ == "__main__":
    app()
