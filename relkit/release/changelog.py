"""Keep-a-Changelog parsing and the per-release rewrite.

Expected shape::

    ## [Unreleased]
    - pending change

    ## [1.0.0]
    ...

    [Unreleased]: https://github.com/owner/repo/compare/1.0.0...HEAD
    [1.0.0]: https://github.com/owner/repo/compare/0.9.0...1.0.0

All edits are splices on the text: the result is built from slices of the
input, so everything outside the edited spots is preserved byte-for-byte.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from relkit.core.result import Err, Ok, Result
from relkit.platform.files import atomic_write_text
from relkit.release.errors import ReleaseError
from relkit.release.patterns import capture_spans, splice

UNRELEASED_BLOCK_PATTERN = r"## \[Unreleased\](.*?)## \[([0-9]+\.[0-9]+\.[0-9]+)\]"
UNRELEASED_HEADING_PATTERN = r"(##\s\[Unreleased\]\r?\n)"
UNRELEASED_LINK_PATTERN = r"(\[Unreleased\]:\s([^\n]*/)([0-9]+\.[0-9]+\.[0-9]+)\.\.\.HEAD)"


@dataclass(frozen=True, slots=True)
class ChangelogChanges:
    """What the changelog says about the release being prepared."""

    changes: str
    previous_version: str

    @property
    def has_changes(self) -> bool:
        return bool(self.changes)


def parse_changelog(text: str) -> Result[ChangelogChanges, ReleaseError]:
    """Extract the Unreleased block and the last released version."""
    spans = capture_spans(text, UNRELEASED_BLOCK_PATTERN)
    if spans is None or len(spans) < 2:
        return Err(
            ReleaseError(
                kind="changelog_unparseable",
                message="was unable to read the changelog",
                hint="Expected '## [Unreleased]' followed by a '## [X.Y.Z]' heading.",
            )
        )

    return Ok(
        ChangelogChanges(
            changes=spans[0].slice(text).strip(),
            previous_version=spans[1].slice(text),
        )
    )


def rewrite_changelog(text: str, *, new_version: str) -> Result[str, ReleaseError]:
    """Move the Unreleased block under a new version heading.

    Inserts ``## [<new>]`` below ``## [Unreleased]``, adds a
    ``[<new>]: <base><prev>...<new>`` footer link under the Unreleased link and
    points the Unreleased link at ``<new>...HEAD``.

    Not idempotent: applying it twice produces a second heading for the same
    version. Callers guard against re-runs by validating the version first.
    """
    heading = capture_spans(text, UNRELEASED_HEADING_PATTERN)
    if heading is None:
        return Err(
            ReleaseError(
                kind="changelog_heading_missing",
                message="could not find '## [Unreleased]' in the changelog",
            )
        )
    nl = "\r\n" if "\r\n" in text else "\n"
    text = splice(text, heading[0].end, f"{nl}## [{new_version}]{nl}")

    # Located again on the updated text: the heading splice shifted the footer.
    link = capture_spans(text, UNRELEASED_LINK_PATTERN)
    if link is None or len(link) != 3:
        return Err(
            ReleaseError(
                kind="changelog_footer_missing",
                message="unable to find footer links in the changelog",
                hint="Expected '[Unreleased]: <base>/<X.Y.Z>...HEAD'.",
            )
        )
    line, base, previous = link
    base_url = base.slice(text)
    previous_version = previous.slice(text)

    footer = f"[{new_version}]: {base_url}{previous_version}...{new_version}{nl}"
    line_break = text.find("\n", line.end)
    if line_break < 0:
        text = text + nl + footer
    else:
        text = splice(text, line_break + 1, footer)

    # The footer splice landed after `previous`, so its offsets still hold.
    text = text[: previous.start] + new_version + text[previous.end :]
    return Ok(text)


def read_changelog(path: Path) -> Result[str, ReleaseError]:
    try:
        # newline="" keeps CRLF changelogs untouched outside the edits.
        with path.open("r", encoding="utf-8", newline="") as handle:
            return Ok(handle.read())
    except (OSError, UnicodeDecodeError) as e:
        return Err(
            ReleaseError(
                kind="changelog_unreadable",
                message=f"was unable to read {path.name}: {e}",
                hint=str(path),
            )
        )


def write_changelog(path: Path, text: str) -> Result[None, ReleaseError]:
    try:
        atomic_write_text(path, text)
    except OSError as e:
        return Err(
            ReleaseError(
                kind="changelog_write_failed",
                message=f"unable to update {path.name}: {e}",
                hint=str(path),
            )
        )
    return Ok(None)
