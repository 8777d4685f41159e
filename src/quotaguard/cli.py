"""quotaguard CLI Entry Point.

Inspect the effective backoff policy and replay captured outcome events
through a coordinator to see the decisions it would make.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import structlog
import typer

from quotaguard.core.config import get_settings
from quotaguard.core.exceptions import ConfigurationError, EventReplayError
from quotaguard.limits.policy import BackoffPolicy
from quotaguard.replay import replay_file

log = structlog.get_logger()

# Main app
app = typer.Typer(
    name="quotaguard",
    help="quotaguard - retry and backoff coordination for rate-limited accounts",
    no_args_is_help=True,
)

# Config subcommand group
config_app = typer.Typer(help="Configuration commands", no_args_is_help=True)
app.add_typer(config_app, name="config")


def configure_logging() -> None:
    """Configure structlog from the loaded settings; logs go to stderr."""
    cfg = get_settings().logging
    renderer = (
        structlog.processors.JSONRenderer()
        if cfg.format == "json"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(cfg.level)
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def load_config_callback(config: Optional[Path]) -> Optional[Path]:
    """Load configuration file if provided."""
    if config:
        if not config.exists():
            typer.echo(f"Error: Config file '{config}' not found", err=True)
            raise typer.Exit(code=1)

        try:
            get_settings(force_reload=True, system_config_path=config)
        except ConfigurationError as e:
            typer.echo(f"Error loading config: {e}", err=True)
            raise typer.Exit(code=1)

    try:
        configure_logging()
    except ConfigurationError as e:
        typer.echo(f"Error loading config: {e}", err=True)
        raise typer.Exit(code=1)

    if config:
        log.info("config_loaded", path=str(config))
    return config


@app.callback()
def main(
    config: Optional[Path] = typer.Option(
        None, "--config", "-c",
        callback=load_config_callback,
        is_eager=True,
        help="Path to configuration file",
    ),
) -> None:
    """quotaguard CLI."""
    pass


@config_app.command("show")
def config_show() -> None:
    """Print the effective backoff policy as JSON."""
    try:
        policy = BackoffPolicy.from_settings(get_settings())
    except ValueError as e:
        typer.echo(f"Error: Invalid backoff policy: {e}", err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(policy.to_dict(), indent=2))


@app.command()
def replay(
    events: Path = typer.Argument(..., help="YAML file with a list of outcome events"),
) -> None:
    """Replay outcome events and print one JSON decision per line."""
    try:
        policy = BackoffPolicy.from_settings(get_settings())
        decisions = replay_file(events, policy)
    except (ConfigurationError, EventReplayError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    for decision in decisions:
        typer.echo(json.dumps(decision))


if __name__ == "__main__":
    app()
