"""
Page identities and the on-disk layout of a wiki.

A wiki directory holds one file per page plus a history directory of patch
records:

    {wiki_dir}/{identity}.md
    {wiki_dir}/versions/{identity}_{version_id}.md

The patch file naming is shared with existing wikis, so history written by
earlier installs stays discoverable.
"""
import re
from dataclasses import dataclass
from pathlib import Path

from core.config import Settings
from services.exceptions import InvalidIdentityError

INDEX_IDENTITY = "index"

# Characters stripped from both ends of a raw title
_TITLE_TRIM = "/. \t\n\r"


def normalize_title(title: str) -> str:
    """
    Normalize a raw page title into a page identity.

    An empty title or "/" is the index page. Otherwise the title is trimmed of
    slashes, dots and whitespace at both ends, lowercased, and spaces become
    hyphens.
    """
    if title in ("", "/"):
        title = INDEX_IDENTITY
    return title.lower().strip(_TITLE_TRIM).replace(" ", "-")


@dataclass(frozen=True)
class PageLayout:
    """Maps page identities to canonical files and patch record files."""

    wiki_dir: Path
    history_dir_name: str = "versions"
    page_extension: str = ".md"

    @classmethod
    def from_settings(cls, settings: Settings) -> "PageLayout":
        """Build the layout configured for this process."""
        return cls(
            wiki_dir=settings.wiki_dir,
            history_dir_name=settings.history_dir_name,
            page_extension=settings.page_extension,
        )

    @property
    def history_dir(self) -> Path:
        """Directory holding patch records for every page."""
        return self.wiki_dir / self.history_dir_name

    def validate_identity(self, identity: str) -> str:
        """
        Reject identities that would escape the wiki directory or are not normalized.

        Two titles that normalize equally name the same page, so callers pass
        titles through normalize_title first.

        Returns the identity unchanged when it is safe to use as a file stem.
        """
        if not identity:
            raise InvalidIdentityError(identity, "empty identity")
        if "/" in identity or "\\" in identity or "\x00" in identity:
            raise InvalidIdentityError(identity, "path separators are not allowed")
        if identity in (".", ".."):
            raise InvalidIdentityError(identity, "path outside of served directory")
        if identity.startswith(".git"):
            raise InvalidIdentityError(identity, "path is forbidden")
        if identity != normalize_title(identity):
            raise InvalidIdentityError(
                identity, f"not a normalized title, use {normalize_title(identity)!r}",
            )
        return identity

    def page_path(self, identity: str) -> Path:
        """Canonical content file for a page."""
        self.validate_identity(identity)
        return self.wiki_dir / f"{identity}{self.page_extension}"

    def patch_path(self, identity: str, version_id: int) -> Path:
        """Patch record file for one version of a page."""
        self.validate_identity(identity)
        return self.history_dir / f"{identity}_{version_id}{self.page_extension}"

    def patch_name_pattern(self, identity: str) -> re.Pattern[str]:
        """
        Regex matching the full file name of this page's patch records.

        The full-name match keeps identity "foo" from claiming the records of
        identity "foo_bar".
        """
        self.validate_identity(identity)
        return re.compile(
            rf"^{re.escape(identity)}_(\d+){re.escape(self.page_extension)}$",
        )

    def list_identities(self) -> list[str]:
        """
        Identities of every page with canonical content, sorted.

        Files whose stem is not a normalized title were not written by the wiki
        and are skipped.
        """
        if not self.wiki_dir.is_dir():
            return []
        stems = (
            path.name[: -len(self.page_extension)]
            for path in self.wiki_dir.iterdir()
            if path.is_file()
            and path.name.endswith(self.page_extension)
            and not path.name.startswith(".")
        )
        return sorted(stem for stem in stems if stem and stem == normalize_title(stem))
