"""
Serialization of diff sequences to and from patch text.

Payloads are diff-match-patch patch text. `encode` writes the whole diff
sequence as a single hunk anchored at offset 0, so every run (EQUAL runs
included) is stored verbatim and `decode(encode(diffs)) == diffs`. Multi-hunk
patch text, as produced by `patch_make`, decodes as well: the runs of each hunk
are returned in order.
"""
from collections.abc import Sequence

from diff_match_patch import diff_match_patch, patch_obj

from models.diff import DiffRun, to_diff_runs
from services.exceptions import MalformedPatchError

_dmp = diff_match_patch()


def encode(diffs: Sequence[tuple[int, str]]) -> str:
    """
    Encode a diff sequence as patch text.

    Args:
        diffs: Ordered (operation, text) runs transforming one text into another.

    Returns:
        Patch text holding exactly one hunk covering both texts end to end.
    """
    patch = patch_obj()
    patch.diffs = [(int(op), text) for op, text in diffs]
    patch.start1 = 0
    patch.start2 = 0
    patch.length1 = len(_dmp.diff_text1(patch.diffs))
    patch.length2 = len(_dmp.diff_text2(patch.diffs))
    return _dmp.patch_toText([patch])


def decode_patches(payload: str) -> list[patch_obj]:
    """
    Parse patch text into diff-match-patch hunks ready for `patch_apply`.

    An empty payload is an empty patch list: earlier installs wrote an empty
    record when a save left the content unchanged.

    Raises:
        MalformedPatchError: If the payload is not patch text.
    """
    try:
        return _dmp.patch_fromText(payload)
    except ValueError as e:
        raise MalformedPatchError(str(e)) from e


def decode(payload: str) -> list[DiffRun]:
    """
    Decode patch text back into its diff sequence.

    Raises:
        MalformedPatchError: If the payload is not patch text.
    """
    diffs: list[tuple[int, str]] = []
    for patch in decode_patches(payload):
        diffs.extend(patch.diffs)
    try:
        return to_diff_runs(diffs)
    except ValueError as e:
        raise MalformedPatchError(str(e)) from e
