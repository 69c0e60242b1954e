from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

from relkit.core.result import Err, Ok, Result
from relkit.output.console import ConsoleProtocol, Style
from relkit.platform.process import CommandRunner
from relkit.release.errors import ReleaseError, ReleaseErrorKind


def run_step(
    runner: CommandRunner,
    cmd: list[str],
    *,
    cwd: Path,
    console: ConsoleProtocol,
    message: str,
    kind: ReleaseErrorKind = "command_failed",
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
    echo: str | None = None,
) -> Result[str, ReleaseError]:
    """Echo and run one external command, mapping failure to a ReleaseError.

    ``echo`` replaces the printed command line when arguments carry secrets.
    """
    console.print(echo if echo is not None else " ".join(cmd), Style.DIM)
    result = runner.run(cmd, cwd=cwd, env=env, timeout=timeout)
    if isinstance(result, Err):
        e = result.error
        return Err(ReleaseError(kind=kind, message=message, hint=e.detail or str(e)))
    return Ok(result.value)
