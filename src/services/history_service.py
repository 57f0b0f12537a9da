"""Service layer for page history reconstruction and version comparison."""
import logging
from dataclasses import dataclass

from diff_match_patch import diff_match_patch

from models.page import PageLayout
from schemas.history import ComparisonView, VersionSide, version_timestamp
from services.diff_service import DiffService
from services.exceptions import (
    DocumentNotFoundError,
    UnreadablePatchError,
    VersionNotFoundError,
)
from services.patch_store import PatchRecord, PatchStore, read_text_exact

logger = logging.getLogger(__name__)


@dataclass
class Reconstruction:
    """Content of a page at one version."""

    content: str
    position: int  # Zero-based rank of the version among all versions, ascending


@dataclass
class HistoryCheck:
    """Result of replaying a page's full history against its canonical content."""

    identity: str
    consistent: bool
    num_versions: int
    latest_version_id: int | None = None
    replayed_content: str | None = None  # None when the page has no history
    canonical_content: str | None = None


def neighbours(version_ids: list[int], version_id: int) -> tuple[int | None, int | None]:
    """
    Get the versions immediately before and after `version_id`.

    Args:
        version_ids: Version identifiers sorted ascending.
        version_id: A member of `version_ids`.

    Returns:
        Tuple of (previous, next); either is None at the ends of the history.
    """
    index = version_ids.index(version_id)
    previous_id = version_ids[index - 1] if index > 0 else None
    next_id = version_ids[index + 1] if index < len(version_ids) - 1 else None
    return previous_id, next_id


class HistoryService:
    """
    Rebuilds page content at any version by replaying patches.

    Each version's patch transforms the previous version's content into its
    own. Replay starts from "" and applies patches in ascending version order
    up to and including the target.
    """

    def __init__(
        self,
        layout: PageLayout,
        store: PatchStore,
        diff_service: DiffService,
    ) -> None:
        """Initialize the history service with diff-match-patch."""
        self.layout = layout
        self.store = store
        self.diff_service = diff_service
        self.dmp = diff_match_patch()

    def version_ids(self, identity: str) -> list[int]:
        """Version identifiers of a page, ascending. Empty for a new page."""
        return sorted(self.store.list_patches(identity))

    def reconstruct(self, identity: str, version_id: int) -> Reconstruction:
        """
        Reconstruct page content at a version.

        Args:
            identity: Normalized page identity.
            version_id: Version to reconstruct.

        Returns:
            Reconstruction with the content and the version's position.

        Raises:
            VersionNotFoundError: If the version is not in the page's history
                (always the case when the history is empty).
            UnreadablePatchError: If a patch on the way cannot be decoded or applied.
        """
        records = self.store.list_patches(identity)
        return self._replay(identity, records, sorted(records), version_id)

    def reconstruct_latest(self, identity: str) -> tuple[int, Reconstruction]:
        """
        Reconstruct the most recent version of a page.

        Returns:
            Tuple of (latest version identifier, reconstruction).

        Raises:
            VersionNotFoundError: If the page has no history.
        """
        records = self.store.list_patches(identity)
        version_ids = sorted(records)
        if not version_ids:
            raise VersionNotFoundError(identity)
        latest = version_ids[-1]
        return latest, self._replay(identity, records, version_ids, latest)

    def default_comparison(self, identity: str) -> tuple[int, int] | None:
        """
        Pick the versions to compare when none are requested.

        Returns:
            (second latest, latest), or None if the page has fewer than two versions.
        """
        version_ids = self.version_ids(identity)
        if len(version_ids) < 2:  # noqa: PLR2004
            return None
        return version_ids[-2], version_ids[-1]

    def compare(self, identity: str, left: int, right: int) -> ComparisonView:
        """
        Compare two versions of a page side by side.

        Each side gets its own diff computed from the other side's content, so
        the left view highlights what the left version has that the right one
        lacks, and vice versa.

        Raises:
            DocumentNotFoundError: If the page has no canonical content.
            VersionNotFoundError: If either version is not in the history.
        """
        if not self.layout.page_path(identity).is_file():
            raise DocumentNotFoundError(identity)

        records = self.store.list_patches(identity)
        version_ids = sorted(records)
        left_version = self._replay(identity, records, version_ids, left)
        right_version = self._replay(identity, records, version_ids, right)

        return ComparisonView(
            identity=identity,
            left=self._build_side(
                "left", left, left_version, right_version.content, version_ids,
            ),
            right=self._build_side(
                "right", right, right_version, left_version.content, version_ids,
            ),
            earliest_version_id=version_ids[0],
            latest_version_id=version_ids[-1],
            num_versions=len(version_ids),
        )

    def verify_history(self, identity: str) -> HistoryCheck:
        """
        Replay a page's full history and compare it with the canonical content.

        A page with content but no history is reported consistent: there is
        nothing recorded to contradict it.

        Raises:
            DocumentNotFoundError: If the page has no canonical content.
            UnreadablePatchError: If a patch cannot be decoded or applied.
        """
        page_path = self.layout.page_path(identity)
        if not page_path.is_file():
            raise DocumentNotFoundError(identity)

        records = self.store.list_patches(identity)
        canonical = read_text_exact(page_path)
        version_ids = sorted(records)
        if not version_ids:
            return HistoryCheck(
                identity=identity,
                consistent=True,
                num_versions=0,
                canonical_content=canonical,
            )

        latest = version_ids[-1]
        replayed = self._replay(identity, records, version_ids, latest).content
        if replayed != canonical:
            logger.warning(
                "History of %s does not replay to its canonical content (%d versions)",
                identity,
                len(version_ids),
            )
        return HistoryCheck(
            identity=identity,
            consistent=replayed == canonical,
            num_versions=len(version_ids),
            latest_version_id=latest,
            replayed_content=replayed,
            canonical_content=canonical,
        )

    def _replay(
        self,
        identity: str,
        records: dict[int, PatchRecord],
        version_ids: list[int],
        target_version: int,
    ) -> Reconstruction:
        """Apply patches in ascending order from "" up to and including the target."""
        if target_version not in records:
            raise VersionNotFoundError(identity, target_version)

        content = ""
        position = version_ids.index(target_version)
        for version_id in version_ids[: position + 1]:
            content, results = self.dmp.patch_apply(
                list(records[version_id].patches), content,
            )
            if not all(results):
                logger.error(
                    "Patch %s for %s failed to apply (hunk results %s)",
                    version_id,
                    identity,
                    results,
                )
                raise UnreadablePatchError(
                    identity, version_id, "patch does not apply to the preceding version",
                )
        return Reconstruction(content=content, position=position)

    def _build_side(
        self,
        side: str,
        version_id: int,
        version: Reconstruction,
        other_content: str,
        version_ids: list[int],
    ) -> VersionSide:
        """Diff one side against the other and package it for display."""
        diffs = self.diff_service.compute_diff(other_content, version.content)
        summary = self.diff_service.summarize(diffs)
        previous_id, next_id = neighbours(version_ids, version_id)
        return VersionSide(
            side=side,
            version_id=version_id,
            saved_at=version_timestamp(version_id),
            position=version.position + 1,
            previous_version_id=previous_id,
            next_version_id=next_id,
            content=version.content,
            diffs=diffs,
            diff_html=self.diff_service.render_html(diffs),
            inserted_chars=summary.inserted,
            deleted_chars=summary.deleted,
        )
