"""CLI entry point for neuron.

Commands:
  review    run the suggestion pipeline against a pull request
  baseline  show the suppression baseline of a local checkout
  init      write a .neuron.yml and optional GitHub Actions workflow
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from neuron_cli.commands.baseline import baseline_cmd
from neuron_cli.commands.init import init_cmd
from neuron_cli.commands.review import review_cmd

console = Console()


def _package_version() -> str:
    try:
        return importlib.metadata.version("neuron")
    except importlib.metadata.PackageNotFoundError:
        return "0.0.0"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=False, show_path=verbose)],
        force=True,
    )


@click.group()
@click.version_option(version=_package_version(), prog_name="neuron")
@click.option(
    "--config",
    "config_path",
    default=".neuron.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="NEURON_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Automated PR reviewer: suggestions and regression tests, never repeated."""
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


main.add_command(review_cmd)
main.add_command(baseline_cmd)
main.add_command(init_cmd)
