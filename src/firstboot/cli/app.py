# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/firstboot/cli/app.py
from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer

from firstboot.bootstrap.completion import CompletionGuard
from firstboot.bootstrap.orchestrator import BootstrapOrchestrator
from firstboot.bootstrap.toolkit import build_toolkit
from firstboot.bootstrap.userdata import UserDataBootstrap
from firstboot.config.loader import load_run_context, load_settings, load_userdata_context
from firstboot.config.models import BootstrapSettings
from firstboot.errors import BootstrapError
from firstboot.logging.log import init_logging
from firstboot.observers.console import ConsoleObserver
from firstboot.observers.dispatcher import EventBus
from firstboot.observers.jsonfile import JsonFileObserver
from firstboot.observers.logger import LoggerObserver
from firstboot.utils.execution import ExecutionContext
from firstboot.utils.files import HostFiles


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="First-boot bootstrap for EC2 instances")

ConfigOption = typer.Option(None, "--config", help="Host settings YAML (default: $FIRSTBOOT_CONFIG)")
DryRunOption = typer.Option(False, "--dry-run", help="Log mutations instead of performing them")
VerboseOption = typer.Option(False, "--verbose", "-v", help="DEBUG output on the console")
LogDirOption = typer.Option(None, "--log-dir", help="Directory for the run log")


# ------------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------------

def _fail(exc: Exception) -> None:
    typer.secho(f"[firstboot] {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def _event_bus(logger, log_path: Optional[Path]) -> EventBus:
    observers: List = [ConsoleObserver(), LoggerObserver(logger)]
    if log_path is not None:
        observers.append(JsonFileObserver(log_path.with_suffix(".jsonl")))
    return EventBus(observers=observers)


def _setup(config: Optional[Path], exec_ctx: ExecutionContext, log_dir: Optional[Path], prefix: str):
    settings = load_settings(config)
    logger, run_id, log_path = init_logging(
        base_dir=log_dir or settings.log_dir,
        name="firstboot",
        prefix=prefix,
        verbose=exec_ctx.verbose,
    )
    tk = build_toolkit(
        settings,
        dry_run=exec_ctx.dry_run,
        logger=logger,
        bus=_event_bus(logger, log_path),
    )
    tk.event_ctx["run_id"] = run_id
    return settings, tk


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

@app.command()
def run(
    config: Optional[Path] = ConfigOption,
    dry_run: bool = DryRunOption,
    verbose: bool = VerboseOption,
    log_dir: Optional[Path] = LogDirOption,
):
    """
    Bootstrap this instance: identity, agent, storage, convergence.

    Configuration comes from the environment (DOMAIN, ROLE, ...).
    Refuses to run a second time.
    """
    exec_ctx = ExecutionContext(dry_run=dry_run, verbose=verbose)
    try:
        settings, tk = _setup(config, exec_ctx, log_dir, "firstboot")

        # Before anything else, including metadata lookups.
        CompletionGuard(settings.lock_file, tk.files, settings.completion_lock).check()

        ctx = load_run_context(metadata=tk.metadata)
        report = BootstrapOrchestrator(tk).run(ctx)
    except BootstrapError as exc:
        _fail(exc)
        return

    typer.echo(f"[firstboot] {ctx.fqdn}: {report.summary()}")


@app.command()
def userdata(
    config: Optional[Path] = ConfigOption,
    dry_run: bool = DryRunOption,
    verbose: bool = VerboseOption,
    log_dir: Optional[Path] = LogDirOption,
):
    """
    Cloud-init user-data stage: docker, compose and a pip-installed salt.

    Reads ROLE, DOCKER_COMPOSE_VERSION, SALT_VERSION and IS_SALTMASTER.
    """
    exec_ctx = ExecutionContext(dry_run=dry_run, verbose=verbose)
    try:
        ctx = load_userdata_context()
        _, tk = _setup(config, exec_ctx, log_dir, "user-data")
        UserDataBootstrap(tk).run(ctx)
    except BootstrapError as exc:
        _fail(exc)
        return

    typer.echo(f"[firstboot] user-data done for role {ctx.role}")


@app.command()
def status(config: Optional[Path] = ConfigOption):
    """Show the completion marker; exit 1 when the instance is not bootstrapped."""
    try:
        settings: BootstrapSettings = load_settings(config)
    except BootstrapError as exc:
        _fail(exc)
        return

    marker = CompletionGuard(settings.lock_file, HostFiles(), settings.completion_lock).read()
    if marker is None:
        typer.echo("not bootstrapped")
        raise typer.Exit(code=1)

    typer.echo(f"bootstrapped at {marker.get('DATE', '?')} (TIMESTAMP={marker.get('TIMESTAMP', '?')})")


if __name__ == "__main__":
    app()
