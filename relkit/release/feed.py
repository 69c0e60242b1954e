"""Sparkle appcast update.

A new ``<item>`` is spliced in as text right before the first existing item;
the rest of the document (preamble, older entries, formatting) is left
byte-for-byte as it was. No XML parser touches the file.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from email.utils import format_datetime
from pathlib import Path
from xml.sax.saxutils import escape

from relkit.core.config import FeedConfig
from relkit.core.result import Err, Ok, Result
from relkit.platform.files import atomic_write_text
from relkit.release.errors import ReleaseError
from relkit.release.patterns import capture_spans, splice

# Group 1: preamble up to the line holding the first item.
# Group 2: that item's indentation, reused for the new entry.
FIRST_ITEM_PATTERN = r"(.*?\n)([ \t]+)<item>"

_STEP = "    "


@dataclass(frozen=True, slots=True)
class FeedEntry:
    """One update record as read by the auto-update client."""

    version: str
    notes_html: str
    pub_date: str
    minimum_system_version: str
    download_url: str
    schema_version: str
    signature: str

    @classmethod
    def create(
        cls,
        *,
        version: str,
        archive_name: str,
        notes_html: str,
        signature: str,
        minimum_system_version: str,
        feed: FeedConfig,
        published_at: datetime,
    ) -> FeedEntry:
        return cls(
            version=version,
            notes_html=notes_html,
            pub_date=format_pub_date(published_at),
            minimum_system_version=minimum_system_version,
            download_url=download_url(feed, version=version, archive_name=archive_name),
            schema_version=feed.schema_version,
            signature=signature.strip(),
        )


def download_url(feed: FeedConfig, *, version: str, archive_name: str) -> str:
    """Release asset URL: ``<download_base>/<version>/<archive>``."""
    return f"{feed.download_base.rstrip('/')}/{version}/{archive_name}"


def format_pub_date(moment: datetime) -> str:
    """RFC 822 date, e.g. ``Tue, 03 Sep 2024 14:05:09 +0200``.

    Naive datetimes are taken as local time.
    """
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return format_datetime(moment)


def _cdata_safe(text: str) -> str:
    # A literal "]]>" would close the section early; split it across two sections.
    return text.replace("]]>", "]]]]><![CDATA[>")


def render_feed_entry(entry: FeedEntry, *, indent: str = "        ") -> str:
    """Compose the ``<item>`` block, ending with a newline."""
    inner = indent + _STEP
    cdata = inner + _STEP
    url = escape(entry.download_url, {'"': "&quot;"})
    lines = [
        f"{indent}<item>",
        f"{inner}<title>Version {escape(entry.version)}</title>",
        f"{inner}<description>",
        f"{cdata}<![CDATA[",
        f"{cdata}{_cdata_safe(entry.notes_html)}",
        f"{cdata}]]>",
        f"{inner}</description>",
        f"{inner}<pubDate>{entry.pub_date}</pubDate>",
        f"{inner}<sparkle:minimumSystemVersion>{escape(entry.minimum_system_version)}"
        "</sparkle:minimumSystemVersion>",
        f'{inner}<enclosure url="{url}"',
        f'{inner}sparkle:version="{entry.schema_version}" '
        f'sparkle:shortVersionString="{escape(entry.version)}"',
        f"{inner}{entry.signature}",
        f'{inner}type="application/octet-stream"/>',
        f"{indent}</item>",
    ]
    return "\n".join(lines) + "\n"


def insert_feed_entry(feed_text: str, entry: FeedEntry) -> Result[str, ReleaseError]:
    """Splice ``entry`` in front of the first existing ``<item>``."""
    spans = capture_spans(feed_text, FIRST_ITEM_PATTERN)
    if spans is None:
        return Err(
            ReleaseError(
                kind="feed_unparseable",
                message="unable to locate the first <item> in the appcast",
                hint="The feed needs at least one indented <item> entry.",
            )
        )
    preamble, indentation = spans
    block = render_feed_entry(entry, indent=indentation.slice(feed_text))
    return Ok(splice(feed_text, preamble.end, block))


def read_feed(path: Path) -> Result[str, ReleaseError]:
    try:
        # newline="" keeps CRLF documents untouched around the splice.
        with path.open("r", encoding="utf-8", newline="") as handle:
            return Ok(handle.read())
    except (OSError, UnicodeDecodeError) as e:
        return Err(
            ReleaseError(
                kind="feed_unreadable",
                message=f"unable to locate {path.name}: {e}",
                hint=str(path),
            )
        )


def update_feed(*, feed_path: Path, entry: FeedEntry) -> Result[None, ReleaseError]:
    """Read the appcast, insert ``entry`` and write the document back."""
    text = read_feed(feed_path)
    if isinstance(text, Err):
        return text

    updated = insert_feed_entry(text.value, entry)
    if isinstance(updated, Err):
        return updated

    try:
        atomic_write_text(feed_path, updated.value)
    except OSError as e:
        return Err(
            ReleaseError(
                kind="feed_write_failed",
                message=f"unable to update {feed_path.name}: {e}",
                hint=str(feed_path),
            )
        )
    return Ok(None)
