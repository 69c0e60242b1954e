from __future__ import annotations

from pathlib import Path

from relkit.core.result import Err, Ok, Result
from relkit.output.console import ConsoleProtocol
from relkit.platform.process import CommandRunner
from relkit.release.commands import run_step
from relkit.release.errors import ReleaseError
from relkit.release.timeouts import GH_PUBLISH_TIMEOUT_SECONDS


def publish_release(
    *,
    runner: CommandRunner,
    repo_root: Path,
    repository: str,
    token: str,
    tag: str,
    title: str,
    notes: str,
    assets: list[Path],
    console: ConsoleProtocol,
) -> Result[str, ReleaseError]:
    """Create the hosted release for ``tag`` and upload ``assets``.

    Returns the release URL printed by ``gh``.
    """
    missing = [str(a) for a in assets if not a.is_file()]
    if missing:
        return Err(
            ReleaseError(
                kind="publish_failed",
                message="release assets not found",
                hint=", ".join(missing),
            )
        )

    cmd = [
        "gh",
        "release",
        "create",
        tag,
        *[str(a) for a in assets],
        "--repo",
        repository,
        "--title",
        title,
        "--notes",
        notes,
        "--verify-tag",
    ]
    result = run_step(
        runner,
        cmd,
        cwd=repo_root,
        console=console,
        message=f"failed to publish release {tag} on {repository}",
        kind="publish_failed",
        env={"GH_TOKEN": token},
        timeout=GH_PUBLISH_TIMEOUT_SECONDS,
        echo=f"gh release create {tag} --repo {repository}",
    )
    if isinstance(result, Err):
        return result

    url = next(
        (line.strip() for line in result.value.splitlines() if line.startswith("https://")),
        "",
    )
    return Ok(url)
