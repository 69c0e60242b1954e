"""Failure presentation and exit-code mapping for release commands."""

from __future__ import annotations

from typing import NoReturn

import typer

from relkit.core.errors import ErrorCode
from relkit.output.console import ConsoleProtocol, Style
from relkit.release.errors import ReleaseErrorKind
from relkit.release.pipeline import AbortHandler, StageFailure

__all__ = ["abort_handler", "release_error_code"]


def release_error_code(kind: ReleaseErrorKind) -> ErrorCode:
    match kind:
        case "changelog_unreadable" | "changelog_write_failed":
            return ErrorCode.IO_ERROR
        case "feed_unreadable" | "feed_write_failed":
            return ErrorCode.IO_ERROR
        case "credential_failed":
            return ErrorCode.ENV_ERROR
        case "command_failed":
            return ErrorCode.BUILD_ERROR
        case "publish_failed":
            return ErrorCode.NETWORK_ERROR
        case _:
            return ErrorCode.USER_ERROR


def abort_handler(console: ConsoleProtocol) -> AbortHandler:
    """Print the failing stage and exit non-zero."""

    def _abort(failure: StageFailure) -> NoReturn:
        console.error(failure.pretty())
        if failure.error.hint:
            console.print(f"hint: {failure.error.hint}", Style.DIM)
        raise typer.Exit(code=int(release_error_code(failure.error.kind)))

    return _abort
