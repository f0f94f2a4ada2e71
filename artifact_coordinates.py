"""
Artifact Coordinate Resolution

Turns raw AQL result rows into Maven-style coordinates. Artifactory reports
the folder of each file as a repository-relative path such as
`com/example/my-artifact/1.0.0`; the last two segments are the artifact and
version and everything before them is the group, dot-joined.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional, Tuple

from catalog_errors import ParseRejection

# Fractional seconds after hh:mm:ss; fromisoformat before 3.11 wants exactly 3 or 6 digits
_FRACTION_PATTERN = re.compile(r"(\d{2}:\d{2}:\d{2})\.(\d+)")


@dataclass(frozen=True)
class RawCatalogItem:
    """One row of an AQL search result, before resolution"""

    repository_key: str
    path: Any
    updated: Any


@dataclass(frozen=True)
class ArtifactCoordinate:
    """A resolved (groupId, artifactId, version) plus its last update time"""

    group_id: str
    artifact_id: str
    version: str
    last_updated_millis: int

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.group_id, self.artifact_id, self.version)


# Persisted rows have exactly the coordinate shape
CatalogRecord = ArtifactCoordinate


def resolve_coordinate(path: Any) -> Tuple[str, str, str]:
    """Split a repository path into (group_id, artifact_id, version)

    Raises ParseRejection for paths with fewer than three segments or with an
    empty group, artifact or version.
    """
    if not isinstance(path, str):
        raise ParseRejection(path, "path is not a string")

    segments = path.split("/")
    if len(segments) < 3:
        raise ParseRejection(path, f"expected at least 3 path segments, got {len(segments)}")

    version = segments[-1]
    artifact_id = segments[-2]
    group_id = ".".join(segments[:-2])

    if not group_id or not artifact_id or not version:
        raise ParseRejection(path, "empty groupId, artifactId or version")

    return group_id, artifact_id, version


def _parse_datetime(raw: str) -> Optional[datetime]:
    text = raw.strip()
    if not text:
        return None

    # ISO-8601, the format Artifactory uses (2021-03-01T10:20:30.123Z)
    iso_text = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    iso_text = _FRACTION_PATTERN.sub(lambda m: f"{m.group(1)}.{m.group(2)[:6].ljust(6, '0')}", iso_text, count=1)
    try:
        return datetime.fromisoformat(iso_text)
    except ValueError:
        pass

    # RFC 2822 (Mon, 01 Jan 2024 10:00:00 GMT)
    try:
        return parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        return None


def resolve_timestamp(raw: Any) -> int:
    """Parse a date string into epoch milliseconds

    Values without an offset are read as UTC. Raises ParseRejection when the
    value is not a parseable date.
    """
    if not isinstance(raw, str):
        raise ParseRejection(raw, "timestamp is not a string")

    parsed = _parse_datetime(raw)
    if parsed is None:
        raise ParseRejection(raw, "unparseable timestamp")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return int(round(parsed.timestamp() * 1000))


def resolve_item(item: RawCatalogItem) -> ArtifactCoordinate:
    """Resolve a raw AQL row into a coordinate, or raise ParseRejection"""
    group_id, artifact_id, version = resolve_coordinate(item.path)
    last_updated_millis = resolve_timestamp(item.updated)
    return ArtifactCoordinate(group_id, artifact_id, version, last_updated_millis)


def format_timestamp(millis: int) -> str:
    """Render epoch milliseconds as a local date-time for display"""
    return datetime.fromtimestamp(millis / 1000).strftime("%Y-%m-%d %H:%M:%S")
