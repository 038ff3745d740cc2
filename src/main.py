"""
privinstall — CLI entrypoint.

Usage:
    python -m src.main --help
    python -m src.main managers
    python -m src.main install curl git
    python -m src.main uninstall cowsay

The CLI is the foreground loop: the install itself runs on an
``InstallWorker`` thread and reports back through its message queue.
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from src import __version__
from src.core.config.loader import ConfigError, load_settings
from src.core.context import InstallerContext, build_context
from src.core.observability.logging_config import setup_logging
from src.core.services.pkg_install.errors import NotSupportedError
from src.core.services.pkg_install.orchestration.orchestrator import Action
from src.core.services.pkg_install.orchestration.worker import InstallWorker


@click.group()
@click.version_option(version=__version__, prog_name="privinstall")
@click.option("--verbose", "-v", is_flag=True, help="Show package manager output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to privinstall.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """privinstall — install system packages through a privileged shell."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("PRIVINSTALL_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("PRIVINSTALL_LOG_FILE"),
        log_file_level=os.environ.get("PRIVINSTALL_LOG_FILE_LEVEL"),
    )

    try:
        ctx.obj["settings"] = load_settings(Path(config_path) if config_path else None)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)


def _context(ctx: click.Context) -> InstallerContext:
    if "context" not in ctx.obj:
        ctx.obj["context"] = build_context(ctx.obj["settings"])
    return ctx.obj["context"]


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def managers(ctx: click.Context, as_json: bool) -> None:
    """List known package managers and the one that would be used."""
    catalog = _context(ctx).catalog
    available = {d.name for d in catalog.available()}
    try:
        selected: str | None = catalog.select().name
    except NotSupportedError:
        selected = None

    if as_json:
        click.echo(json.dumps({
            "selected": selected,
            "managers": [
                {"name": d.name, "kind": d.kind.value, "available": d.name in available}
                for d in catalog.descriptors
            ],
        }, indent=2))
        return

    click.secho("\n📦 Package managers", fg="cyan", bold=True)
    for desc in catalog.descriptors:
        marker = " ← selected" if desc.name == selected else ""
        if desc.name in available:
            click.secho(f"   ✓ {desc.name}", fg="green", nl=False)
        else:
            click.secho(f"   ✗ {desc.name}", fg="white", nl=False)
        click.echo(marker)

    if selected is None:
        click.echo()
        click.secho("   ⚠️  No supported package manager on PATH", fg="yellow")
    click.echo()


@cli.command()
@click.argument("packages", nargs=-1)
@click.option("--password-stdin", is_flag=True, help="Read the elevation password from stdin.")
@click.pass_context
def install(ctx: click.Context, packages: tuple[str, ...], password_stdin: bool) -> None:
    """Install system packages.

    Examples:

        privinstall install curl

        echo "$PW" | privinstall install --password-stdin git make
    """
    _run_action(ctx, "install", list(packages), password_stdin)


@cli.command()
@click.argument("packages", nargs=-1)
@click.option("--password-stdin", is_flag=True, help="Read the elevation password from stdin.")
@click.pass_context
def uninstall(ctx: click.Context, packages: tuple[str, ...], password_stdin: bool) -> None:
    """Remove system packages."""
    _run_action(ctx, "uninstall", list(packages), password_stdin)


def _read_secret(password_stdin: bool) -> str:
    if password_stdin:
        return click.get_text_stream("stdin").readline().rstrip("\r\n")
    return click.prompt("Password", hide_input=True, err=True)


def _run_action(
    ctx: click.Context,
    action: Action,
    packages: list[str],
    password_stdin: bool,
) -> None:
    verbose = ctx.obj.get("verbose", False)
    quiet = ctx.obj.get("quiet", False)
    past = "Installed" if action == "install" else "Removed"

    if not packages:
        if not quiet:
            click.secho(f"✅ Nothing to {action}", fg="green")
        return

    context = _context(ctx)
    secret = None if context.privileged else _read_secret(password_stdin)

    worker = InstallWorker(context, action, packages, secret=secret)
    worker.start()

    try:
        if verbose or quiet:
            for msg in worker.messages():
                if verbose and msg.stdout:
                    click.echo(f"   │ {msg.stdout}")
                if verbose and msg.stderr:
                    click.secho(f"   │ {msg.stderr}", fg="red")
        else:
            _follow_with_bar(worker, context.settings.progress_ceiling, action, packages)
    except KeyboardInterrupt:
        worker.cancel()
        for _ in worker.messages():
            pass

    outcome = worker.outcome
    if outcome is None:
        click.secho(f"❌ {action.capitalize()} worker ended without a result", fg="red")
        sys.exit(1)

    if outcome.failed:
        click.echo()
        click.secho(f"❌ {outcome.error}", fg="red", bold=True)
        if outcome.help_text:
            click.echo(f"   {outcome.help_text}")
        click.echo()
        sys.exit(1)

    if not quiet:
        via = f" via {outcome.manager}" if outcome.manager else ""
        click.secho(f"✅ {past} {' '.join(packages)}{via}", fg="green")


def _follow_with_bar(worker: InstallWorker, ceiling: int, action: str, packages: list[str]) -> None:
    label = f"{action.capitalize()}ing {' '.join(packages)}"
    shown = 0
    with click.progressbar(length=ceiling, label=label) as bar:
        for msg in worker.messages():
            if msg.kind == "progress" and msg.progress > shown:
                bar.update(msg.progress - shown)
                shown = msg.progress


if __name__ == "__main__":
    cli()
