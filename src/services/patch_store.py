"""Discovery and persistence of a page's patch records."""
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from diff_match_patch import patch_obj

from models.diff import DiffRun
from models.page import PageLayout
from services import patch_codec
from services.exceptions import PatchError, UnreadablePatchError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PatchRecord:
    """
    One immutable entry of a page's history.

    `payload` transforms the content immediately preceding `version_id` into the
    content at `version_id`; the first record of a page starts from "".
    """

    version_id: int
    identity: str
    payload: str
    patches: tuple[patch_obj, ...]

    @property
    def diffs(self) -> list[DiffRun]:
        """Diff runs of every hunk, in order."""
        return patch_codec.decode(self.payload)


def read_text_exact(path: Path) -> str:
    """Read a UTF-8 file without translating line endings."""
    with path.open(encoding="utf-8", newline="") as f:
        return f.read()


def atomic_write_text(path: Path, content: str) -> None:
    """
    Replace `path` with `content` in a single rename.

    Readers see either the old file or the complete new one, never a torn write.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class PatchStore:
    """
    File-backed store of patch records.

    Every call rescans the history directory; nothing is cached, so the store
    always reflects out-of-band changes.
    """

    def __init__(self, layout: PageLayout) -> None:
        self.layout = layout

    def list_patches(self, identity: str) -> dict[int, PatchRecord]:
        """
        Get every patch record of a page, keyed by version identifier.

        A page without canonical content has no history. A page with content
        but no history directory has an empty history, not an error.

        Args:
            identity: Normalized page identity.

        Returns:
            Mapping of version identifier to decoded patch record (unordered).

        Raises:
            UnreadablePatchError: If any record fails to decode. The whole
                listing fails, since a partial history would replay to the
                wrong content.
        """
        if not self.layout.page_path(identity).is_file():
            return {}
        history_dir = self.layout.history_dir
        if not history_dir.is_dir():
            return {}

        pattern = self.layout.patch_name_pattern(identity)
        records: dict[int, PatchRecord] = {}
        for entry in history_dir.iterdir():
            match = pattern.match(entry.name)
            if match is None or not entry.is_file():
                continue
            version_id = int(match.group(1))
            records[version_id] = self._read_record(identity, version_id, entry)
        return records

    def write_patch(self, identity: str, version_id: int, payload: str) -> Path:
        """
        Persist a patch record.

        A record already stored under the same version identifier is replaced.

        Returns:
            Path of the written record.
        """
        path = self.layout.patch_path(identity, version_id)
        if path.exists():
            logger.warning(
                "Overwriting patch record %s for %s (version identifier collision)",
                version_id,
                identity,
            )
        atomic_write_text(path, payload)
        return path

    def _read_record(self, identity: str, version_id: int, path: Path) -> PatchRecord:
        """Read and decode one record file."""
        try:
            payload = read_text_exact(path)
            patches = patch_codec.decode_patches(payload)
        except (OSError, UnicodeDecodeError, PatchError) as e:
            logger.error(
                "Unreadable patch record %s for %s at %s: %s",
                version_id,
                identity,
                path,
                e,
            )
            raise UnreadablePatchError(identity, version_id, str(e)) from e
        return PatchRecord(
            version_id=version_id,
            identity=identity,
            payload=payload,
            patches=tuple(patches),
        )
