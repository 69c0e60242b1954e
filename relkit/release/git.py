"""Version-control steps: tag lookup, release commit, tag and push."""

from __future__ import annotations

from pathlib import Path

from relkit.core.result import Err, Ok, Result
from relkit.output.console import ConsoleProtocol, Style
from relkit.platform.process import CommandRunner
from relkit.release.commands import run_step
from relkit.release.errors import ReleaseError
from relkit.release.timeouts import GIT_NETWORK_TIMEOUT_SECONDS, GIT_TIMEOUT_SECONDS


def release_commit_message(version: str) -> str:
    return f"Release version {version}! 🎉"


def tag_exists(
    *, runner: CommandRunner, repo_root: Path, tag: str
) -> Result[bool, ReleaseError]:
    result = runner.run(
        ["git", "tag", "--list", tag],
        cwd=repo_root,
        timeout=GIT_TIMEOUT_SECONDS,
    )
    if isinstance(result, Err):
        e = result.error
        return Err(
            ReleaseError(
                kind="command_failed",
                message="failed to list git tags",
                hint=e.detail,
            )
        )
    names = {line.strip() for line in result.value.splitlines()}
    return Ok(tag in names)


def commit_files(
    *,
    runner: CommandRunner,
    repo_root: Path,
    paths: list[Path],
    message: str,
    console: ConsoleProtocol,
) -> Result[None, ReleaseError]:
    rels = [_relative(p, repo_root) for p in paths]

    add = run_step(
        runner,
        ["git", "add", "--", *rels],
        cwd=repo_root,
        console=console,
        message="git add failed",
        timeout=GIT_TIMEOUT_SECONDS,
    )
    if isinstance(add, Err):
        return add

    commit = run_step(
        runner,
        ["git", "commit", "-m", message, "--", *rels],
        cwd=repo_root,
        console=console,
        message="git commit failed",
        timeout=GIT_TIMEOUT_SECONDS,
    )
    if isinstance(commit, Err):
        return commit
    return Ok(None)


def create_tag(
    *, runner: CommandRunner, repo_root: Path, tag: str, console: ConsoleProtocol
) -> Result[None, ReleaseError]:
    result = run_step(
        runner,
        ["git", "tag", tag],
        cwd=repo_root,
        console=console,
        message=f"failed to create tag {tag}",
        timeout=GIT_TIMEOUT_SECONDS,
    )
    if isinstance(result, Err):
        return result
    return Ok(None)


def push_with_tags(
    *, runner: CommandRunner, repo_root: Path, tag: str, console: ConsoleProtocol
) -> Result[None, ReleaseError]:
    """Push the current branch, then the release tag."""
    for cmd in (["git", "push"], ["git", "push", "origin", tag]):
        result = run_step(
            runner,
            cmd,
            cwd=repo_root,
            console=console,
            message=f"git failed: {' '.join(cmd)}",
            kind="publish_failed",
            timeout=GIT_NETWORK_TIMEOUT_SECONDS,
        )
        if isinstance(result, Err):
            return result
    console.print(f"pushed {tag}", Style.DIM)
    return Ok(None)


def _relative(path: Path, root: Path) -> str:
    try:
        return str(path.relative_to(root))
    except ValueError:
        return str(path)
