from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

from relkit.core.result import Err, Ok, Result
from relkit.release.errors import ReleaseError
from relkit.release.patterns import capture_spans

VERSION_PATTERN = r"([0-9]+\.[0-9]+\.[0-9]+)"

_STRICT_RE = re.compile(r"^([0-9]+)\.([0-9]+)\.([0-9]+)$")

Ordering = Literal["greater", "equal", "lesser"]


@dataclass(frozen=True, slots=True, order=True)
class Version:
    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


def parse_version(text: str) -> Version | None:
    """Parse an exact ``MAJOR.MINOR.PATCH`` string."""
    m = _STRICT_RE.match(text)
    if m is None:
        return None
    return Version(int(m.group(1)), int(m.group(2)), int(m.group(3)))


def extract_version(raw: str) -> Result[str, ReleaseError]:
    """Pull the first ``X.Y.Z`` out of free-form input such as ``v2.3.4-beta``."""
    spans = capture_spans(raw, VERSION_PATTERN)
    if spans is None:
        return Err(
            ReleaseError(
                kind="invalid_version",
                message=f"a valid version number wasn't provided: {raw!r}",
                hint="Expected MAJOR.MINOR.PATCH, e.g. 1.0.0 or v1.0.0",
            )
        )
    return Ok(spans[0].slice(raw))


def compare_versions(a: str, b: str) -> Ordering:
    """Compare two ``X.Y.Z`` strings numerically per component."""
    left = parse_version(a)
    right = parse_version(b)
    if left is None or right is None:
        raise ValueError(f"not a MAJOR.MINOR.PATCH version: {a!r} / {b!r}")
    if left > right:
        return "greater"
    if left == right:
        return "equal"
    return "lesser"


def validate_new_version(
    *, new_version: str, previous_version: str, tag_exists: bool
) -> Result[None, ReleaseError]:
    """Reject a version that is already tagged or not above the last release."""
    if tag_exists:
        return Err(
            ReleaseError(
                kind="tag_exists",
                message=f"tag for version {new_version} already exists",
                hint="Pick a new version number or delete the stale tag.",
            )
        )

    if compare_versions(new_version, previous_version) != "greater":
        return Err(
            ReleaseError(
                kind="version_not_greater",
                message=(
                    f"new version {new_version} was not higher than "
                    f"previous version {previous_version}"
                ),
            )
        )

    return Ok(None)
