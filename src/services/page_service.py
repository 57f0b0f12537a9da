"""Service layer for reading pages and saving edits into their history."""
import logging
import threading
import time
from collections.abc import Callable

from core.config import Settings
from models.page import PageLayout
from schemas.page import EditView, PageView
from services import patch_codec
from services.diff_service import DiffService
from services.exceptions import (
    ContentTooLargeError,
    DocumentNotFoundError,
    PartialSaveError,
    VersionNotFoundError,
)
from services.history_service import HistoryService
from services.patch_store import PatchStore, atomic_write_text, read_text_exact

logger = logging.getLogger(__name__)


def current_time_millis() -> int:
    """Wall-clock time in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


class PageLocks:
    """
    One lock per page identity.

    Saves to the same page run one at a time; saves to different pages and all
    reads run concurrently. Locks are never evicted, so the map holds one entry
    per page saved since the process started.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def for_page(self, identity: str) -> threading.Lock:
        """Get the lock guarding saves to `identity`."""
        with self._guard:
            lock = self._locks.get(identity)
            if lock is None:
                lock = self._locks[identity] = threading.Lock()
            return lock


class PageService:
    """
    Reads pages and saves new content as a patch plus a canonical overwrite.

    A save is two sequential writes: the patch record first, then the canonical
    content. Each write is atomic on its own; the pair is not. A failure
    between them raises PartialSaveError naming the orphan patch.
    """

    def __init__(
        self,
        settings: Settings,
        clock: Callable[[], int] = current_time_millis,
        locks: PageLocks | None = None,
    ) -> None:
        self.settings = settings
        self.layout = PageLayout.from_settings(settings)
        self.store = PatchStore(self.layout)
        self.diff_service = DiffService(diff_timeout=settings.diff_timeout)
        self.history = HistoryService(self.layout, self.store, self.diff_service)
        self.clock = clock
        self.locks = locks or PageLocks()

    def read_content(self, identity: str) -> str:
        """
        Read the canonical content of a page.

        Raises:
            DocumentNotFoundError: If the page has no canonical content yet.
        """
        path = self.layout.page_path(identity)
        try:
            return read_text_exact(path)
        except FileNotFoundError as e:
            raise DocumentNotFoundError(identity) from e

    def get_page(self, identity: str) -> PageView:
        """Get the current state of a page, or the new-page state if it does not exist."""
        try:
            content = self.read_content(identity)
        except DocumentNotFoundError:
            return PageView(identity=identity, is_new=True, content=None, num_versions=0)
        version_ids = self.history.version_ids(identity)
        return PageView(
            identity=identity,
            is_new=False,
            content=content,
            num_versions=len(version_ids),
            latest_version_id=version_ids[-1] if version_ids else None,
        )

    def get_edit_view(self, identity: str, version_id: int | None = None) -> EditView:
        """
        Get the content to prefill the editor with.

        With a version identifier the content is reconstructed at that version.
        A version missing from history falls back to the current content.
        """
        try:
            current = self.read_content(identity)
        except DocumentNotFoundError:
            current = ""
        if version_id is None:
            return EditView(identity=identity, content=current, version_id=None)

        try:
            reconstruction = self.history.reconstruct(identity, version_id)
        except VersionNotFoundError:
            logger.info("Version %s of %s not found, editing current content", version_id, identity)
            return EditView(
                identity=identity,
                content=current,
                version_id=None,
                requested_version_id=version_id,
                fell_back=True,
            )
        return EditView(
            identity=identity,
            content=reconstruction.content,
            version_id=version_id,
            requested_version_id=version_id,
        )

    def save(self, identity: str, new_content: str) -> int:
        """
        Save new content for a page, recording the edit in its history.

        Args:
            identity: Normalized page identity.
            new_content: Full text of the page after the edit.

        Returns:
            The new version identifier, now the latest key in the page's history.

        Raises:
            ContentTooLargeError: If the content exceeds max_content_length.
            UnreadablePatchError: If the existing history cannot be read.
            PartialSaveError: If the patch was written but the canonical content was not.
            OSError: If the patch could not be written (nothing was changed).
        """
        if len(new_content) > self.settings.max_content_length:
            raise ContentTooLargeError(len(new_content), self.settings.max_content_length)

        with self.locks.for_page(identity):
            try:
                current = self.read_content(identity)
            except DocumentNotFoundError:
                current = ""
            version_ids = sorted(self.store.list_patches(identity))

            version_id = self._next_version_id(version_ids)
            baseline = self._baseline(identity, current, version_ids, version_id)
            diffs = self.diff_service.compute_diff(baseline, new_content)

            patch_path = self.store.write_patch(identity, version_id, patch_codec.encode(diffs))
            try:
                atomic_write_text(self.layout.page_path(identity), new_content)
            except OSError as e:
                logger.error(
                    "Canonical write for %s failed after writing patch %s: %s",
                    identity,
                    patch_path,
                    e,
                )
                raise PartialSaveError(identity, version_id, patch_path) from e

        logger.info(
            "Saved %s version %s (%d versions before)", identity, version_id, len(version_ids),
        )
        return version_id

    def _next_version_id(self, version_ids: list[int]) -> int:
        """
        Mint a version identifier from the clock.

        The identifier is never below the latest existing one, so a clock that
        stepped backwards still appends. A clock tie reuses the latest key
        unless bump_colliding_versions is set, in which case it moves past it.
        """
        now = self.clock()
        if not version_ids:
            return now
        latest = version_ids[-1]
        if now < latest or (now == latest and self.settings.bump_colliding_versions):
            return latest + 1
        return now

    def _baseline(
        self, identity: str, current: str, version_ids: list[int], version_id: int,
    ) -> str:
        """
        Content the new patch is diffed from.

        Without recorded history the first patch starts from "", so content
        seeded outside the wiki still replays correctly. A patch that replaces
        the latest record must apply to the version before that record.
        """
        if not version_ids:
            return ""
        if version_id == version_ids[-1]:
            if len(version_ids) == 1:
                return ""
            return self.history.reconstruct(identity, version_ids[-2]).content
        return current
