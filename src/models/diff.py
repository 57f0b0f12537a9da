"""Diff run types shared by the codec, the diff service and the view schemas."""
from enum import IntEnum
from typing import NamedTuple


class DiffOperation(IntEnum):
    """Edit operation of a diff run, numbered the way diff-match-patch numbers them."""

    DELETE = -1
    EQUAL = 0
    INSERT = 1


class DiffRun(NamedTuple):
    """One run of a diff sequence: an operation and the text it covers."""

    operation: DiffOperation
    text: str


def to_diff_runs(diffs: list[tuple[int, str]]) -> list[DiffRun]:
    """Convert raw diff-match-patch tuples into typed runs."""
    return [DiffRun(DiffOperation(op), text) for op, text in diffs]
