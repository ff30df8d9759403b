from __future__ import annotations

import contextlib
import io
import sys
from typing import Any

import click
import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape

from .. import __version__
from ..cli_shared import REMOTE_ERRORS, OpError, QuickstartConfig, UsageError, _env_or_none, _eprint
from ..config_commands import COMMAND_HELP, COMMANDS, execute
from ..config_inputs import ConfigInputError, resolve_quickstart_config

PROG_NAME = "instance-config-quickstart"

_ERROR_CONSOLE = Console(stderr=True)


def _click_types(name: str, base: type) -> tuple[type, ...]:
    # Typer may run on its own bundled click; collect the classes it actually uses.
    found = [c for c in (*typer.BadParameter.__mro__, *typer.Context.__mro__) if c.__name__ == name]
    return tuple(dict.fromkeys([base, *found]))


_CLICK_EXCEPTIONS = _click_types("ClickException", click.ClickException)
_CLICK_USAGE_ERRORS = _click_types("UsageError", click.UsageError)
_CLICK_CONTEXTS = _click_types("Context", click.Context)


def _rich_error(msg: str) -> None:
    _ERROR_CONSOLE.print(f"[bold red]error:[/bold red] {escape(msg)}", highlight=False, soft_wrap=True)


def _bootstrap_env() -> None:
    # Discover and load .env without overriding already-exported values.
    load_dotenv()


def _root_help_text(*, root_app: typer.Typer, prog_name: str) -> str:
    buf = io.StringIO()
    with contextlib.redirect_stdout(buf):
        try:
            root_app(args=["--help"], prog_name=prog_name, standalone_mode=False)
        except (typer.Exit, *_CLICK_EXCEPTIONS):
            pass
    return str(buf.getvalue() or "").strip()


def _context_help_text(ctx: Any) -> str:
    # Rich-formatted help is printed rather than returned; keep it off stdout.
    buf = io.StringIO()
    with contextlib.redirect_stdout(buf):
        text = str(ctx.get_help() or "")
    return (text or buf.getvalue()).strip()


def _render_usage_error_with_help(
    *,
    message: str,
    ctx: Any = None,
    fallback_help: str = "",
) -> None:
    _rich_error(message)
    help_text = ""
    if isinstance(ctx, _CLICK_CONTEXTS):
        help_text = _context_help_text(ctx)
    if not help_text:
        help_text = str(fallback_help or "").strip()
    if help_text:
        _eprint("")
        _eprint(help_text)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"{PROG_NAME} {__version__}")
        raise typer.Exit(code=0)


app = typer.Typer(
    name=PROG_NAME,
    help=(
        "Create, update, delete and inspect a custom Cloud Spanner instance config.\n\n"
        f"Command can be one of: {', '.join(COMMANDS)}"
    ),
    no_args_is_help=False,
    add_completion=False,
)


@app.callback()
def app_callback(
    ctx: typer.Context,
    project: str | None = typer.Option(
        None,
        "--project",
        help="Project id (env INSTANCE_CONFIG_PROJECT or GOOGLE_CLOUD_PROJECT)",
    ),
    base_config: str | None = typer.Option(
        None,
        "--base-config",
        help="Base instance config id (env INSTANCE_CONFIG_BASE)",
    ),
    config_id: str | None = typer.Option(
        None,
        "--config-id",
        help="Custom instance config id, must start with 'custom-' (env INSTANCE_CONFIG_ID)",
    ),
    display_name: str | None = typer.Option(
        None,
        "--display-name",
        help="Display name for the created config (env INSTANCE_CONFIG_DISPLAY_NAME)",
    ),
    label: list[str] | None = typer.Option(
        None,
        "--label",
        help="KEY=VALUE label, repeatable (env INSTANCE_CONFIG_LABELS, comma separated)",
    ),
    timeout: str | None = typer.Option(
        None,
        "--timeout",
        help="Deadline in seconds shared by every remote call (default 60; env INSTANCE_CONFIG_TIMEOUT)",
    ),
    plain_json: bool = typer.Option(False, "--plain-json", help="Emit compact JSON output"),
    quiet: bool = typer.Option(False, "--quiet", help="Reduce stderr logging"),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    del version
    try:
        config = resolve_quickstart_config(
            project=project,
            base_config=base_config,
            config_id=config_id,
            display_name=display_name,
            labels=label,
            timeout=timeout,
            env_or_none=_env_or_none,
            pretty=not plain_json,
            quiet=quiet,
        )
    except ConfigInputError as e:
        _render_usage_error_with_help(message=str(e), ctx=ctx)
        raise typer.Exit(code=2)
    ctx.obj = {"config": config}


def _ctx_config(ctx: typer.Context) -> QuickstartConfig:
    obj = ctx.find_root().obj
    if isinstance(obj, dict) and isinstance(obj.get("config"), QuickstartConfig):
        return obj["config"]
    try:
        return resolve_quickstart_config(
            project=None,
            base_config=None,
            config_id=None,
            display_name=None,
            labels=None,
            timeout=None,
            env_or_none=_env_or_none,
        )
    except ConfigInputError as e:
        _render_usage_error_with_help(message=str(e), ctx=ctx)
        raise typer.Exit(code=2)


def _invoke(ctx: typer.Context, command: str) -> None:
    config = _ctx_config(ctx)
    try:
        code = execute(config, command, sys.stdout)
    except UsageError as e:
        _render_usage_error_with_help(message=str(e), ctx=ctx)
        raise typer.Exit(code=2)
    except (*REMOTE_ERRORS, OpError) as e:
        _rich_error(f"{command} failed with {e}")
        raise typer.Exit(code=1)

    if code:
        raise typer.Exit(code=code)


def _register(command: str) -> None:
    def _command(ctx: typer.Context) -> None:
        _invoke(ctx, command)

    _command.__name__ = command
    app.command(command, help=COMMAND_HELP[command])(_command)


for _name in COMMANDS:
    _register(_name)


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    _bootstrap_env()
    try:
        result = app(args=argv, prog_name=PROG_NAME, standalone_mode=False)
        if result is None:
            return 0
        return int(result)
    except typer.Exit as e:
        return int(e.exit_code)
    except _CLICK_EXCEPTIONS as e:
        if isinstance(e, _CLICK_USAGE_ERRORS):
            _render_usage_error_with_help(
                message=e.format_message(),
                ctx=getattr(e, "ctx", None),
                fallback_help=_root_help_text(root_app=app, prog_name=PROG_NAME),
            )
            return int(e.exit_code)
        _rich_error(e.format_message())
        return int(e.exit_code)
    except UsageError as e:
        _render_usage_error_with_help(
            message=str(e),
            fallback_help=_root_help_text(root_app=app, prog_name=PROG_NAME),
        )
        return 2
    except OpError as e:
        _rich_error(str(e))
        return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
