from __future__ import annotations

import os
from pathlib import Path

import typer

from relkit import __version__
from relkit.cli.context import CLIContext, build_context
from relkit.cli.errors import abort_handler
from relkit.core.config import VERSION_ENV_VAR, load_secrets
from relkit.core.errors import ErrorCode
from relkit.core.result import Err
from relkit.output.console import Style
from relkit.release.changelog import parse_changelog, read_changelog
from relkit.release.pipeline import LAST_VALIDATION_STAGE, ReleasePipeline
from relkit.release.toolchain import Toolchain


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

_ROOT_OPTION = typer.Option(None, "--root", help="Project root (default: current directory).")
_CONFIG_OPTION = typer.Option(None, "--config", help="Config file (default: <root>/relkit.toml).")
_VERSION_ARGUMENT = typer.Argument(
    None,
    help=f"Version to release, e.g. 1.2.0 or v1.2.0 (default: ${VERSION_ENV_VAR}).",
    show_default=False,
)


def _raw_version(ctx: CLIContext, value: str | None) -> str:
    raw = value or os.environ.get(VERSION_ENV_VAR, "")
    if not raw.strip():
        ctx.console.error(f"no version given (pass VERSION or set {VERSION_ENV_VAR})")
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))
    return raw


@app.command()
def release(
    version: str | None = _VERSION_ARGUMENT,
    root: Path | None = _ROOT_OPTION,
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """Build, sign, notarize and publish a new version."""
    ctx = build_context(root=root, config_path=config)
    raw = _raw_version(ctx, version)

    secrets = load_secrets(os.environ)
    if isinstance(secrets, Err):
        ctx.console.error(secrets.error.message)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    pipeline = ReleasePipeline(
        root=ctx.root,
        config=ctx.config,
        console=ctx.console,
        toolchain=Toolchain(),
        secrets=secrets.value,
        on_abort=abort_handler(ctx.console),
    )
    summary = pipeline.run_or_abort(raw)
    if summary is None:
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    ctx.console.header(f"Released {summary.version}")
    for path in summary.changed_files:
        ctx.console.print(f"updated {path.relative_to(ctx.root)}", Style.DIM)
    if summary.release_url:
        ctx.console.print(summary.release_url)


@app.command()
def check(
    version: str | None = _VERSION_ARGUMENT,
    root: Path | None = _ROOT_OPTION,
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """Validate a version against the changelog and tags without changing anything."""
    ctx = build_context(root=root, config_path=config)
    raw = _raw_version(ctx, version)

    pipeline = ReleasePipeline(
        root=ctx.root,
        config=ctx.config,
        console=ctx.console,
        toolchain=Toolchain(),
        on_abort=abort_handler(ctx.console),
        stop_after=LAST_VALIDATION_STAGE,
    )
    summary = pipeline.run_or_abort(raw)
    if summary is None:
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))
    ctx.console.success(f"{summary.version} can be released (previous: {summary.previous_version})")


@app.command()
def notes(
    root: Path | None = _ROOT_OPTION,
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """Print the unreleased changes from the changelog."""
    ctx = build_context(root=root, config_path=config)

    text = read_changelog(ctx.root / ctx.config.paths.changelog)
    if isinstance(text, Err):
        ctx.console.error(text.error.message)
        raise typer.Exit(code=int(ErrorCode.IO_ERROR))

    parsed = parse_changelog(text.value)
    if isinstance(parsed, Err):
        ctx.console.error(parsed.error.message)
        if parsed.error.hint:
            ctx.console.print(f"hint: {parsed.error.hint}", Style.DIM)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    ctx.console.print(f"previous version: {parsed.value.previous_version}", Style.DIM)
    ctx.console.print(parsed.value.changes or "(no unreleased changes)")


def _print_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    show_version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit.",
        callback=_print_version,
        is_eager=True,
    ),
) -> None:
    del show_version


def main() -> None:
    app()
