"""Text diffs for storing patches and for comparing versions side by side."""
from dataclasses import dataclass

from diff_match_patch import diff_match_patch

from models.diff import DiffOperation, DiffRun, to_diff_runs


@dataclass
class DiffSummary:
    """Character counts of a diff sequence."""

    inserted: int = 0
    deleted: int = 0
    unchanged: int = 0

    @property
    def changed(self) -> bool:
        """Whether the diff contains any insertion or deletion."""
        return bool(self.inserted or self.deleted)


class DiffService:
    """Character-level diffs backed by diff-match-patch."""

    def __init__(self, diff_timeout: float = 0.0) -> None:
        """
        Initialize the diff service.

        Args:
            diff_timeout: Seconds diff-match-patch may spend per diff. 0 disables
                the timeout, which keeps output identical across runs.
        """
        self.dmp = diff_match_patch()
        self.dmp.Diff_Timeout = diff_timeout

    def compute_diff(self, old_content: str, new_content: str) -> list[DiffRun]:
        """
        Compute the runs transforming `old_content` into `new_content`.

        Line-mode speedup is off so the result depends only on the two inputs.
        """
        return to_diff_runs(self.dmp.diff_main(old_content, new_content, False))

    def render_html(self, diffs: list[DiffRun]) -> str:
        """Mark up a diff with <ins>, <del> and <span> runs for display."""
        return self.dmp.diff_prettyHtml(diffs)

    def summarize(self, diffs: list[DiffRun]) -> DiffSummary:
        """Count inserted, deleted and unchanged characters."""
        summary = DiffSummary()
        for op, text in diffs:
            if op == DiffOperation.INSERT:
                summary.inserted += len(text)
            elif op == DiffOperation.DELETE:
                summary.deleted += len(text)
            else:
                summary.unchanged += len(text)
        return summary
