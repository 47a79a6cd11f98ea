"""
modsync — CLI entrypoint.

Usage:
    python -m modsync.main --help
    python -m modsync.main status
    python -m modsync.main login my-module
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from modsync import __version__
from modsync.core.observability.logging_config import setup_from_env


def _load_context(ctx: click.Context, as_json: bool = False):
    """Build the WorkspaceContext for this invocation, or exit on config errors."""
    from modsync.core.config.loader import ConfigError
    from modsync.core.context import WorkspaceContext

    try:
        return WorkspaceContext.load(
            ctx.obj.get("config_path"),
            state_path=ctx.obj.get("state_path"),
            session_factory=ctx.obj.get("session_factory"),
        )
    except ConfigError as e:
        if as_json:
            click.echo(json.dumps({"error": str(e)}, indent=2))
            sys.exit(0)
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)


def _save(workspace) -> None:
    try:
        workspace.save()
    except OSError as e:
        click.secho(f"⚠️  Could not save state: {e}", fg="yellow")


@click.group()
@click.version_option(version=__version__, prog_name="modsync")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to modsync.yml (default: auto-detect).",
)
@click.option(
    "--state",
    "state_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to the state file (default: $MODSYNC_STATE_DIR/state.json).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    state_path: str | None,
) -> None:
    """modsync — track remote module instances and modified files."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["config_path"] = Path(config_path) if config_path else None
    ctx.obj["state_path"] = Path(state_path) if state_path else None

    setup_from_env(debug=debug, verbose=verbose, quiet=quiet)


# ── Status ──────────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--refresh", is_flag=True, help="Re-run module discovery first.")
@click.pass_context
def status(ctx: click.Context, as_json: bool, refresh: bool) -> None:
    """Show modified files, connected instances and disconnected modules."""
    from modsync.core.use_cases.status import get_status

    workspace = _load_context(ctx, as_json)
    result = get_status(workspace, refresh=refresh)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    for err in result.discovery_errors:
        click.secho(f"⚠️  {err}", fg="yellow")

    click.echo(result.text)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def modules(ctx: click.Context, as_json: bool) -> None:
    """List registered modules and their connectivity."""
    workspace = _load_context(ctx, as_json)
    mods = workspace.registry.get_modules()

    if as_json:
        click.echo(json.dumps([
            {
                "name": m.name,
                "instance_url": m.instance_url,
                "module_info": m.label,
                "workspace_folder": m.workspace_folder_name,
                "connected": m.connected,
            }
            for m in mods
        ], indent=2))
        return

    if not mods:
        click.echo("No module registered. Run 'modsync discover'.")
        return

    click.secho(f"\n   Modules: {len(mods)}", bold=True)
    for m in mods:
        if m.connected:
            click.secho(f"   ✓ {m.name} ", fg="green", nl=False)
        else:
            click.secho(f"   ✗ {m.name} ", fg="red", nl=False)
        click.echo(f" → {m.instance_url}")
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--no-save", is_flag=True, help="Don't save discovery results to state.")
@click.pass_context
def discover(ctx: click.Context, as_json: bool, no_save: bool) -> None:
    """Discover modules in the workspace folders."""
    from modsync.core.use_cases.discover import run_discover

    workspace = _load_context(ctx, as_json)
    result = run_discover(workspace, save=not no_save)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    click.secho(f"\n🔍 Discovery: {workspace.config.name}", fg="cyan", bold=True)
    click.echo(f"   Folders: {len(workspace.config.folders)}")
    click.echo(f"   Modules: {len(result.modules)}")
    click.echo()

    for m in result.modules:
        click.secho(f"   ✓ {m.name} ", fg="green", nl=False)
        click.echo(f"→ {m.instance_url}")

    if result.errors:
        click.echo()
        click.secho("   ⚠️  Discovery errors:", fg="yellow")
        for err in result.errors:
            click.echo(f"     • {err}")

    if result.tokens_restored:
        click.echo(f"   🔑 Tokens restored: {result.tokens_restored}")

    click.echo()


# ── Authentication ──────────────────────────────────────────────


def _credentials_prompt(username: str | None, password: str | None):
    from modsync.core.services.remote_session import Credentials

    def prompt(instance_url: str) -> Credentials | None:
        user = username or click.prompt(
            f"Username for {instance_url}", default="", show_default=False
        )
        if not user:
            return None
        secret = password or click.prompt(
            f"Password for {instance_url}", default="", show_default=False, hide_input=True
        )
        if not secret:
            return None
        return Credentials(username=user, password=secret)

    return prompt


def _report_auth(results, as_json: bool) -> bool:
    if as_json:
        click.echo(json.dumps([r.to_dict() for r in results], indent=2))
        return all(r.ok for r in results)

    for r in results:
        if r.ok:
            click.secho(f"✅ {r.message}", fg="green")
        else:
            click.secho(f"❌ {r.error}", fg="red")
    return all(r.ok for r in results)


@cli.command()
@click.argument("target", required=False)
@click.option("--username", "-u", default=None, help="Username (prompted if needed).")
@click.option("--password", "-p", default=None, help="Password (prompted if needed).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def login(
    ctx: click.Context,
    target: str | None,
    username: str | None,
    password: str | None,
    as_json: bool,
) -> None:
    """Log in to TARGET (module name or instance URL), or every disconnected instance."""
    from modsync.core.use_cases.auth import login_all, login_instance

    workspace = _load_context(ctx, as_json)
    prompt = _credentials_prompt(username, password)

    if target:
        results = [login_instance(workspace, target, prompt)]
    else:
        results = login_all(workspace, prompt)
        if not results:
            if as_json:
                click.echo(json.dumps([], indent=2))
            else:
                click.echo("All instances are already connected.")
            return

    if any(r.modules_updated for r in results):
        _save(workspace)

    if not _report_auth(results, as_json) and not as_json:
        sys.exit(1)


@cli.command()
@click.argument("target", required=False)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def logout(ctx: click.Context, target: str | None, as_json: bool) -> None:
    """Log out of TARGET (module name or instance URL), or of every instance."""
    from modsync.core.use_cases.auth import logout_all, logout_instance

    workspace = _load_context(ctx, as_json)
    results = [logout_instance(workspace, target)] if target else logout_all(workspace)

    if any(r.ok for r in results):
        _save(workspace)

    if not _report_auth(results, as_json) and not as_json:
        sys.exit(1)


# ── File tracking ───────────────────────────────────────────────


@cli.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True))
@click.pass_context
def track(ctx: click.Context, paths: tuple[str, ...]) -> None:
    """Mark files as modified."""
    from modsync.core.use_cases.tracking import track_paths

    workspace = _load_context(ctx)
    result = track_paths(workspace, [Path(p) for p in paths])

    if result.changed:
        _save(workspace)
    for path in result.changed:
        click.secho(f"   + {path}", fg="green")
    for path, reason in result.skipped.items():
        click.secho(f"   ⊘ {path} ({reason})", fg="yellow")


@cli.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path())
@click.pass_context
def untrack(ctx: click.Context, paths: tuple[str, ...]) -> None:
    """Forget modified files."""
    from modsync.core.use_cases.tracking import untrack_paths

    workspace = _load_context(ctx)
    result = untrack_paths(workspace, [Path(p) for p in paths])

    if result.changed:
        _save(workspace)
    for path in result.changed:
        click.secho(f"   - {path}", fg="green")
    for path, reason in result.skipped.items():
        click.secho(f"   ⊘ {path} ({reason})", fg="yellow")


@cli.command()
@click.option("--all", "show_all", is_flag=True, help="List every supported module file.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def files(ctx: click.Context, show_all: bool, as_json: bool) -> None:
    """List tracked files."""
    from modsync.core.use_cases.tracking import list_module_files

    workspace = _load_context(ctx, as_json)

    if show_all:
        listing = list_module_files(workspace)
        if as_json:
            click.echo(json.dumps(listing, indent=2))
            return
        for name, paths in listing.items():
            click.secho(f"   {name}", bold=True)
            for path in paths:
                marker = "●" if workspace.tracker.is_tracked(path) else " "
                click.echo(f"     {marker} {path}")
        return

    tracked = workspace.tracker.list()
    if as_json:
        click.echo(json.dumps([t.model_dump(mode="json", by_alias=True) for t in tracked], indent=2))
        return

    if not tracked:
        click.echo("No modified file.")
        return
    for t in tracked:
        click.echo(f"   {t.file_name}  → {t.instance_url}")


@cli.command()
@click.pass_context
def reset(ctx: click.Context) -> None:
    """Forget every modified file."""
    workspace = _load_context(ctx)
    count = len(workspace.tracker)
    workspace.tracker.clear()
    _save(workspace)
    click.echo(f"Cleared {count} tracked file(s).")


# ── Apply ───────────────────────────────────────────────────────


@cli.command()
@click.argument("module", required=False)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def apply(ctx: click.Context, module: str | None, as_json: bool) -> None:
    """Upload modified files to their connected instances, then compile."""
    from modsync.core.use_cases.apply import apply_changes

    workspace = _load_context(ctx, as_json)
    result = apply_changes(workspace, module)

    if result.applied:
        _save(workspace)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    for path in result.applied:
        click.secho(f"   ✓ {path}", fg="green")
    for path, err in result.failed.items():
        click.secho(f"   ✗ {path}: {err}", fg="red")
    for url, message in result.compiled.items():
        click.echo(f"   🔨 {url}: {message}")
    for url, err in result.compile_errors.items():
        click.secho(f"   ❌ Compilation on {url} failed: {err}", fg="red")

    if not result.ok:
        sys.exit(1)


if __name__ == "__main__":
    cli()
