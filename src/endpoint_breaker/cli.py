"""CLI for endpoint breaker.

Provides command-line access to the circuit breaker demo, HTTP probe and
settings viewer.
"""

from __future__ import annotations

import logging

import click

from .cli_circuits import circuits

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def cli(verbose: bool) -> None:
    """Endpoint Breaker - per-endpoint circuit breakers."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


# Register subcommand groups from separate modules
cli.add_command(circuits)


def main() -> None:
    """Entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
