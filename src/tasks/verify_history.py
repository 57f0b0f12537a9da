"""
History verification task.

Replays the full history of every page in the wiki directory and checks that
it reproduces the page's canonical content. A mismatch means history and page
have drifted apart: the page file was edited by hand, a patch record was
deleted, or a save was interrupted between its two writes.

Usage:
    WIKI_DIR=/path/to/wiki python -m tasks.verify_history

Exits non-zero when any page is inconsistent or has unreadable history.
"""
import logging
import sys
from dataclasses import dataclass, field

from core.config import Settings, get_settings
from models.page import PageLayout
from services.diff_service import DiffService
from services.exceptions import PatchError
from services.history_service import HistoryService
from services.patch_store import PatchStore

logger = logging.getLogger(__name__)


@dataclass
class VerifyStats:
    """Statistics from a verification run."""

    pages_checked: int = 0
    consistent: int = 0
    without_history: int = 0

    # Identities for follow-up
    inconsistent_pages: list[str] = field(default_factory=list)
    unreadable_pages: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Whether every page replayed to its canonical content."""
        return not self.inconsistent_pages and not self.unreadable_pages

    def to_dict(self) -> dict[str, int]:
        """Convert to simple dict for logging/return."""
        return {
            "pages_checked": self.pages_checked,
            "consistent": self.consistent,
            "without_history": self.without_history,
            "inconsistent": len(self.inconsistent_pages),
            "unreadable": len(self.unreadable_pages),
        }


def run_verification(settings: Settings | None = None) -> VerifyStats:
    """
    Verify the history of every page.

    Args:
        settings: Settings to use. Defaults to get_settings().

    Returns:
        VerifyStats for the run.
    """
    settings = settings or get_settings()
    layout = PageLayout.from_settings(settings)
    history = HistoryService(
        layout, PatchStore(layout), DiffService(diff_timeout=settings.diff_timeout),
    )
    stats = VerifyStats()

    logger.info("Verifying page history in %s", layout.wiki_dir)
    for identity in layout.list_identities():
        stats.pages_checked += 1
        try:
            check = history.verify_history(identity)
        except PatchError as e:
            logger.error("Unreadable history for %s: %s", identity, e)
            stats.unreadable_pages.append(identity)
            continue

        if check.num_versions == 0:
            stats.without_history += 1
        if check.consistent:
            stats.consistent += 1
        else:
            logger.warning(
                "Inconsistent history for %s: latest version %s replays to %d chars, "
                "page has %d chars",
                identity,
                check.latest_version_id,
                len(check.replayed_content or ""),
                len(check.canonical_content or ""),
            )
            stats.inconsistent_pages.append(identity)

    logger.info("Verification complete: %s", stats.to_dict())
    return stats


def main() -> None:
    """Entry point for running verification as a script."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    stats = run_verification()
    sys.exit(0 if stats.ok else 1)


if __name__ == "__main__":
    main()
