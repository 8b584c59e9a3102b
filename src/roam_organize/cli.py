"""rorg: command-line organizer for an org-roam knowledge base.

Commands:
    rorg check                     validate the configuration
    rorg mkdirs                    create the configured directories
    rorg open-index                open the top-level index file in $EDITOR
    rorg move FILE --line N        relocate the headline at FILE:N and its note
    rorg delete FILE --line N      delete the headline at FILE:N and its note
    rorg update-mocs               refresh tag counters and backlinks on anchors
    rorg ref-backlinks             link literature notes to the notes citing them
    rorg toggle [--anywhere]       enable/disable the organizing commands
    rorg status                    show mode, configuration and templates
    rorg new TEMPLATE TITLE        create a note from a registered template
"""

from __future__ import annotations

import difflib
import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any, NoReturn

import click
from click.exceptions import ClickException, UsageError

from . import __version__
from .errors import OrganizeError, format_error_json

# ─────────────────────────────────────────────────────────────────────────────
# Output Helpers
# ─────────────────────────────────────────────────────────────────────────────


def output(data: Any, as_json: bool = False) -> None:
    """Output data as JSON or formatted text."""
    if as_json:
        if hasattr(data, "model_dump"):
            data = data.model_dump(mode="json")
        click.echo(json.dumps(data, indent=2, default=str))
    else:
        click.echo(data)


def _warn(ctx: click.Context, message: str) -> None:
    quiet = ctx.obj.get("quiet", False) if ctx.obj else False
    if not quiet:
        click.echo(f"Warning: {message}", err=True)


def _resync_hint(ctx: click.Context) -> None:
    quiet = ctx.obj.get("quiet", False) if ctx.obj else False
    if not quiet:
        click.echo("Hint: re-sync the org-roam database to pick up these changes.", err=True)


def _handle_error(
    ctx: click.Context,
    error: Exception,
    fallback_message: str | None = None,
    exit_code: int = 1,
) -> NoReturn:
    """Report an error (plain or JSON per --json-errors) and exit."""
    json_errors = ctx.obj.get("json_errors", False) if ctx.obj else False

    if isinstance(error, OrganizeError):
        if json_errors:
            click.echo(error.to_json(), err=True)
        else:
            click.echo(f"Error: {error.message}", err=True)
            suggestion = error.details.get("suggestion") if error.details else None
            if suggestion:
                click.echo(f"Hint: {suggestion}", err=True)
    else:
        message = f"{fallback_message} {error}" if fallback_message else str(error)
        if json_errors:
            click.echo(format_error_json("FILE_ERROR", message), err=True)
        else:
            click.echo(f"Error: {message}", err=True)

    sys.exit(exit_code)


def get_error_code_for_exception(exc: Exception) -> str:
    """Map Click exceptions to error codes."""
    if isinstance(exc, click.BadParameter):
        return "INVALID_ARGUMENT"
    elif isinstance(exc, click.MissingParameter):
        return "MISSING_ARGUMENT"
    elif isinstance(exc, click.NoSuchOption):
        return "UNKNOWN_OPTION"
    elif isinstance(exc, UsageError):
        return "USAGE_ERROR"
    return "CLI_ERROR"


class JsonErrorGroup(click.Group):
    """Click group that formats usage errors as JSON when --json-errors is set.

    Also suggests the closest command name for typos.
    """

    def resolve_command(self, ctx, args):
        try:
            return super().resolve_command(ctx, args)
        except UsageError as e:
            cmd_name = args[0] if args else ""
            if cmd_name and "No such command" in str(e):
                matches = difflib.get_close_matches(cmd_name, self.list_commands(ctx), n=1, cutoff=0.6)
                if matches:
                    raise UsageError(f"No such command '{cmd_name}'. Did you mean '{matches[0]}'?")
            raise

    def main(
        self,
        args: Sequence[str] | None = None,
        prog_name: str | None = None,
        complete_var: str | None = None,
        standalone_mode: bool = True,
        **extra: Any,
    ) -> Any:
        argv = list(args) if args is not None else list(sys.argv[1:])
        if "--json-errors" not in argv:
            return super().main(args, prog_name, complete_var, standalone_mode, **extra)

        # Accept --json-errors anywhere by moving it in front of the subcommand
        argv = ["--json-errors", *[a for a in argv if a != "--json-errors"]]
        try:
            return super().main(argv, prog_name, complete_var, standalone_mode=False, **extra)
        except ClickException as e:
            click.echo(format_error_json(get_error_code_for_exception(e), e.format_message()), err=True)
            raise SystemExit(1)


# ─────────────────────────────────────────────────────────────────────────────
# Context Helpers
# ─────────────────────────────────────────────────────────────────────────────


def _load_store(ctx: click.Context):
    from .config import load_config

    config_path = ctx.obj.get("config_path") if ctx.obj else None
    try:
        return load_config(Path(config_path) if config_path else None)
    except OrganizeError as e:
        _handle_error(ctx, e)


def _controller(ctx: click.Context):
    from .index import NodeIndex
    from .mode import ModeController

    store = _load_store(ctx)
    return ModeController(store, NodeIndex(store.path("database_file")))


def _run_gated(ctx: click.Context, operation, *args: Any, fallback_message: str):
    """Run an organizing operation through the mode gate.

    Returns None (after printing a warning) when the mode is disabled.
    """
    from .models import OperationResult

    controller = _controller(ctx)
    try:
        result = controller.run(operation, controller.store, controller.index, *args)
    except (OrganizeError, OSError) as e:
        _handle_error(ctx, e, fallback_message=fallback_message)

    if isinstance(result, OperationResult) and result.status == "disabled":
        _warn(ctx, result.message)
        return None
    return result


# ─────────────────────────────────────────────────────────────────────────────
# Main CLI Group
# ─────────────────────────────────────────────────────────────────────────────


@click.group(cls=JsonErrorGroup)
@click.version_option(version=__version__, prog_name="rorg")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="Configuration file (default: discovered .roam-organize.yaml)",
)
@click.option(
    "--json-errors",
    "json_errors",
    is_flag=True,
    help="Output errors as JSON (for programmatic use)",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    envvar="ROAM_ORGANIZE_QUIET",
    help="Suppress warnings and hints, show only errors and essential output",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, json_errors: bool, quiet: bool):
    """rorg: organize an org-roam knowledge base.

    \b
    Typical flow:
      rorg check                         # Validate .roam-organize.yaml
      rorg mkdirs                        # Create configured directories
      rorg toggle                        # Enable the organizing commands
      rorg move inbox.org --line 12      # Promote a fleeting note
      rorg update-mocs                   # Refresh counters and backlinks
    """
    from ._logging import configure_logging, set_quiet_mode

    configure_logging()
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["json_errors"] = json_errors
    ctx.obj["quiet"] = quiet

    if quiet:
        set_quiet_mode(True)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def check(ctx: click.Context, as_json: bool):
    """Validate every configuration setting.

    Exits with status 1 when any setting fails.
    """
    store = _load_store(ctx)
    try:
        report = store.validate()
    except OrganizeError as e:
        _handle_error(ctx, e)

    output(report if as_json else report.text, as_json=as_json)
    if not report.ok:
        sys.exit(1)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def mkdirs(ctx: click.Context, as_json: bool):
    """Create the configured directories (idempotent)."""
    from .config import create_directories

    store = _load_store(ctx)
    try:
        created = create_directories(store)
    except OSError as e:
        _handle_error(ctx, e, fallback_message="Could not create directories.")

    if as_json:
        output({"created": [str(path) for path in created]}, as_json=True)
    elif created:
        for path in created:
            click.echo(f"Created: {path}")
    else:
        click.echo("All configured directories already exist.")


@cli.command("open-index")
@click.pass_context
def open_index(ctx: click.Context):
    """Open the top-level index file in $EDITOR."""
    store = _load_store(ctx)
    path = store.path("index_file")
    if not path.is_file():
        _handle_error(ctx, FileNotFoundError(f"Index file not found: {path}"))
    click.edit(filename=str(path))


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--line", "-l", required=True, type=click.IntRange(min=1), help="Line inside the headline")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def move(ctx: click.Context, file: str, line: int, as_json: bool):
    """Relocate the headline at FILE:LINE and the note it links to.

    \b
    The note is retagged (source_tag -> target_tag), moved under
    move_target_directory, and the headline is moved to move_target_file.

    \b
    Examples:
      rorg move inbox.org --line 12
    """
    from .reorganize import relocate_headline

    result = _run_gated(ctx, relocate_headline, Path(file), line, fallback_message="Move failed.")
    if result is None:
        return

    if as_json:
        output(result, as_json=True)
        return
    if result.moved:
        click.echo(f"Moved: {result.old_path} -> {result.new_path}")
    else:
        click.echo(f"Kept in place: {result.new_path}")
    click.echo(f"Tags: {' '.join(result.tags) or '(none)'}")
    if result.headline_moved:
        click.echo(f"Headline '{result.title}' moved to {result.target_file}")
    _resync_hint(ctx)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--line", "-l", required=True, type=click.IntRange(min=1), help="Line inside the headline")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def delete(ctx: click.Context, file: str, line: int, as_json: bool):
    """Delete the headline at FILE:LINE and the note it links to.

    \b
    Examples:
      rorg delete inbox.org --line 12
    """
    from .reorganize import delete_headline

    result = _run_gated(ctx, delete_headline, Path(file), line, fallback_message="Delete failed.")
    if result is None:
        return

    if as_json:
        output(result, as_json=True)
        return
    click.echo(f"Deleted: {result.deleted_file}")
    if result.deleted_directory:
        click.echo(f"Deleted directory: {result.deleted_directory}")
    click.echo(f"Removed headline '{result.title}' from {result.source_file}")
    _resync_hint(ctx)


def _emit_batch(ctx: click.Context, result, as_json: bool) -> None:
    if as_json:
        output(result, as_json=True)
        return
    for warning in result.warnings:
        _warn(ctx, warning)
    for name, count in result.counters.items():
        click.echo(f"{name}: {count}")
    for anchor, ids in result.inserted.items():
        click.echo(f"Linked {len(ids)} node(s) from {anchor}")
    click.echo(result.message)
    if result.inserted or result.counters:
        _resync_hint(ctx)


@cli.command("update-mocs")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def update_mocs_cmd(ctx: click.Context, as_json: bool):
    """Refresh NUM_OF_<TAG>_NODES counters and add missing backlinks on anchors."""
    from .backlinks import update_mocs

    result = _run_gated(ctx, update_mocs, fallback_message="Update failed.")
    if result is not None:
        _emit_batch(ctx, result, as_json)


@cli.command("ref-backlinks")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def ref_backlinks(ctx: click.Context, as_json: bool):
    """Link each literature note to the notes citing its key."""
    from .backlinks import complete_ref_backlinks
    from .models import OperationResult

    controller = _controller(ctx)
    try:
        result = controller.run(complete_ref_backlinks, controller.index)
    except (OrganizeError, OSError) as e:
        _handle_error(ctx, e, fallback_message="Backlink completion failed.")

    if isinstance(result, OperationResult):
        _warn(ctx, result.message)
        return
    _emit_batch(ctx, result, as_json)


@cli.command()
@click.option("--anywhere", is_flag=True, help="Skip the check that cwd is inside the root")
@click.pass_context
def toggle(ctx: click.Context, anywhere: bool):
    """Enable or disable the organizing commands.

    Enabling validates the configuration, checks that the working directory
    is inside root_directory, and registers configured templates.
    """
    controller = _controller(ctx)
    try:
        result = controller.toggle(override=anywhere)
    except OrganizeError as e:
        _handle_error(ctx, e)

    if result.status == "error":
        click.echo(result.message, err=True)
        sys.exit(1)
    click.echo(result.message)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def status(ctx: click.Context, as_json: bool):
    """Show mode state, configuration source and registered templates."""
    controller = _controller(ctx)
    store = controller.store
    data = {
        "enabled": controller.enabled,
        "config": str(store.source) if store.source else None,
        "root": str(store.root),
        "database": str(controller.index.path),
        "templates": sorted(controller.templates),
    }
    if as_json:
        output(data, as_json=True)
        return
    click.echo(f"Mode:      {'enabled' if data['enabled'] else 'disabled'}")
    click.echo(f"Config:    {data['config'] or '(none)'}")
    click.echo(f"Root:      {data['root']}")
    click.echo(f"Database:  {data['database']}")
    click.echo(f"Templates: {', '.join(data['templates']) or '(none)'}")


@cli.command()
@click.argument("template_key", metavar="TEMPLATE")
@click.argument("title")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def new(ctx: click.Context, template_key: str, title: str, as_json: bool):
    """Create a note titled TITLE from a registered TEMPLATE.

    \b
    Examples:
      rorg new f "Caching trade-offs"
    """
    from .capture import create_note, get_template

    controller = _controller(ctx)
    try:
        template = get_template(controller.templates, template_key)
        node_id, path = create_note(controller.store, template, title)
    except (OrganizeError, OSError) as e:
        _handle_error(ctx, e, fallback_message="Could not create note.")

    if as_json:
        output({"id": node_id, "path": str(path)}, as_json=True)
    else:
        click.echo(f"Created: {path}")
        click.echo(f"ID: {node_id}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
