from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from relkit.platform.process import CommandRunner, SubprocessRunner
from relkit.release.notes import Markdown2Renderer, NotesRenderer


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class Toolchain:
    """External collaborators a release talks to.

    Tests swap in fakes for any of them; production uses the defaults.
    """

    runner: CommandRunner = field(default_factory=SubprocessRunner)
    renderer: NotesRenderer = field(default_factory=Markdown2Renderer)
    clock: Callable[[], datetime] = _utc_now
