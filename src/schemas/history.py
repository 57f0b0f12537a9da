"""Pydantic view schemas for page history and version comparison."""
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel

from models.diff import DiffRun


def version_timestamp(version_id: int) -> datetime:
    """Wall-clock time a version identifier was minted at (milliseconds since epoch)."""
    return datetime.fromtimestamp(version_id / 1000, tz=UTC)


class VersionSide(BaseModel):
    """One side of a side-by-side comparison."""

    side: Literal["left", "right"]
    version_id: int
    saved_at: datetime
    position: int  # 1-based rank of this version in the page's history
    previous_version_id: int | None  # None when this is the earliest version
    next_version_id: int | None  # None when this is the latest version
    content: str
    diffs: list[DiffRun]  # Diff from the other side's content to this side's content
    diff_html: str
    inserted_chars: int
    deleted_chars: int


class ComparisonView(BaseModel):
    """Two versions of a page, each diffed from the perspective of the other."""

    identity: str
    left: VersionSide
    right: VersionSide
    earliest_version_id: int
    latest_version_id: int
    num_versions: int
