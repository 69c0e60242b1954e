from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer

from relkit.core.config import (
    CONFIG_FILE_NAME,
    ReleaseConfig,
    load_config,
    load_config_or_default,
)
from relkit.core.errors import ErrorCode
from relkit.core.result import Err
from relkit.output.console import ConsoleProtocol, RichConsole


@dataclass(frozen=True, slots=True)
class CLIContext:
    root: Path
    config: ReleaseConfig
    console: ConsoleProtocol


def build_context(*, root: Path | None, config_path: Path | None) -> CLIContext:
    try:
        project_root = (root or Path.cwd()).expanduser().resolve()
    except OSError as e:
        typer.echo(f"error: invalid --root: {e}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    if not project_root.is_dir():
        typer.echo(f"error: project root is not a directory: {project_root}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    # An explicit --config must exist; the implicit relkit.toml is optional.
    if config_path is not None:
        config_result = load_config(config_path)
    else:
        config_result = load_config_or_default(project_root / CONFIG_FILE_NAME)
    if isinstance(config_result, Err):
        typer.echo(f"error: {config_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    return CLIContext(root=project_root, config=config_result.value, console=RichConsole())
