# nodectl/cli.py
"""
CLI interface for nodectl.

Thin presentation layer over NodeController. Command output goes to stdout,
logs and errors to stderr.
"""

import asyncio
import json
import logging
from dataclasses import asdict
from pathlib import Path

import typer

from nodectl.config.loader import load_config
from nodectl.config.schema import ControllerConfig
from nodectl.logging_config import configure_logging

app = typer.Typer(
    name="nodectl",
    help="Lifecycle controller for in-process and remote storage nodes.",
    no_args_is_help=True,
)

_options: dict[str, Path | None] = {"config_path": None}


def _run(coro):
    """Run async function from sync CLI context."""
    return asyncio.run(coro)


def _build_controller(config: ControllerConfig):
    """Wire a NodeController with the configured client strategy."""
    from nodectl.api.rpc import ClientFactory, KuboRpcClient, LegacyHttpClient
    from nodectl.controller.lifecycle import NodeController

    if config.client.flavor == "http-api":
        return NodeController(
            config,
            http_module=ClientFactory(LegacyHttpClient, timeout=config.client.timeout),
        )
    return NodeController(
        config,
        rpc_module=ClientFactory(KuboRpcClient, timeout=config.client.timeout),
    )


def _controller():
    return _build_controller(load_config(_options["config_path"]))


def _persistent_controller():
    """Controller for commands whose repository must outlive this process."""
    from nodectl.errors import ConfigurationError

    config = load_config(_options["config_path"])
    if config.disposable and not config.repo:
        raise ConfigurationError(
            "A disposable controller without a repo path gets a fresh temporary "
            "repository each run; set repo or disposable: false in the config"
        )
    return _build_controller(config)


@app.callback()
def main(
    config: Path | None = typer.Option(None, "--config", "-c", help="Config file (YAML)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at debug level"),
):
    """Lifecycle controller for in-process and remote storage nodes."""
    configure_logging(logging.DEBUG if verbose else logging.WARNING)
    _options["config_path"] = config


@app.command()
def init(
    profile: list[str] = typer.Option(None, "--profile", "-p", help="Profile to apply (repeatable)"),
    empty_repo: bool = typer.Option(False, "--empty-repo", help="Create the repository without default content"),
):
    """Initialize the repository (an existing one is adopted untouched)."""
    init_options: dict = {"empty_repo": empty_repo}
    if profile:
        init_options["profiles"] = profile

    async def _init():
        ctl = _persistent_controller()
        await ctl.init(init_options)
        return ctl.path

    try:
        path = _run(_init())
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(path)


@app.command()
def start():
    """Start the node in the foreground until Ctrl+C, then stop it."""
    from nodectl.signals import setup_signal_handlers

    async def _start():
        ctl = _controller()
        await ctl.init()
        await ctl.start()
        try:
            typer.echo(f"Node started: {ctl.peer.id}")
            typer.echo(f"Repository: {ctl.path}")
            stop_event = asyncio.Event()
            setup_signal_handlers(stop_event)
            await stop_event.wait()
        finally:
            await ctl.stop()

    try:
        _run(_start())
    except KeyboardInterrupt:
        typer.echo("\nCancelled.", err=True)
        raise typer.Exit(130)
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo("Node stopped.")


@app.command("id")
def show_id():
    """Start the node, print its identity as JSON, then stop it."""

    async def _id():
        ctl = _controller()
        await ctl.init()
        await ctl.start()
        try:
            return ctl.peer
        finally:
            await ctl.stop()

    try:
        peer = _run(_id())
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(json.dumps(asdict(peer), indent=2))


@app.command()
def version():
    """Print the node version."""

    async def _version():
        ctl = _controller()
        try:
            return await ctl.version()
        finally:
            # version() may have created a disposable repository
            if ctl.disposable:
                await ctl.cleanup()

    try:
        result = _run(_version())
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(result)


@app.command()
def status():
    """Show the repository path, whether it exists, and any running API."""
    from rich.console import Console
    from rich.table import Table

    async def _status():
        ctl = _persistent_controller()
        exists = await ctl.probe.exists(ctl.path)
        running = await ctl.probe.find_running_address(ctl.path)
        return ctl, exists, running

    try:
        ctl, exists, running = _run(_status())
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    table = Table(show_header=False, box=None)
    table.add_column(style="bold")
    table.add_column()
    table.add_row("Mode", ctl.config.type)
    table.add_row("Repository", ctl.path)
    table.add_row("Initialized", "[green]yes[/green]" if exists else "[red]no[/red]")
    table.add_row("Running API", running or "-")
    table.add_row("Disposable", "yes" if ctl.disposable else "no")
    Console().print(table)


@app.command()
def cleanup():
    """Remove the repository from disk."""

    async def _cleanup():
        ctl = _persistent_controller()
        if not await ctl.probe.exists(ctl.path):
            return ctl.path, False
        await ctl.init()  # adopts the existing repository
        await ctl.cleanup()
        return ctl.path, True

    try:
        path, removed = _run(_cleanup())
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if removed:
        typer.echo(f"Removed {path}")
    else:
        typer.echo(f"No repository at {path}")


if __name__ == "__main__":
    app()
