from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


def _no_paths() -> list[Path]:
    return []


@dataclass(slots=True)
class ReleaseContext:
    """Working state of one pipeline run.

    Created by the pipeline, filled in stage by stage and dropped when the run
    ends, whether it succeeded or not.
    """

    raw_version: str
    new_version: str | None = None
    previous_version: str | None = None
    changelog_text: str | None = None
    changes: str | None = None
    app_path: Path | None = None
    archive_name: str | None = None
    release_url: str | None = None
    # Files the release modified, in the order they were written; committed together.
    changed_files: list[Path] = field(default_factory=_no_paths)

    def record_change(self, path: Path) -> None:
        if path not in self.changed_files:
            self.changed_files.append(path)
