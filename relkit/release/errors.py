from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ReleaseErrorKind = Literal[
    # data integrity: unsafe to proceed
    "invalid_version",
    "changelog_unparseable",
    "tag_exists",
    "version_not_greater",
    "changelog_heading_missing",
    "changelog_footer_missing",
    "feed_unparseable",
    "missing_secret",
    # collaborator failures
    "changelog_unreadable",
    "changelog_write_failed",
    "feed_unreadable",
    "feed_write_failed",
    "credential_failed",
    "command_failed",
    "publish_failed",
]


@dataclass(frozen=True, slots=True)
class ReleaseError:
    """Why a release step failed.

    ``message`` names the operation and file; ``hint`` carries tool output or
    the next thing the operator should check.
    """

    kind: ReleaseErrorKind
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message
