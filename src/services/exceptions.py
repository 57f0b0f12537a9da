"""Shared exceptions for page and history operations."""
from pathlib import Path


class InvalidIdentityError(ValueError):
    """Raised when a page identity would resolve outside the wiki directory."""

    def __init__(self, identity: str, reason: str) -> None:
        self.identity = identity
        super().__init__(f"Invalid page identity {identity!r}: {reason}")


class DocumentNotFoundError(Exception):
    """
    Raised when a page has no canonical content yet.

    Callers treat this as the "new page" state rather than a user-facing error.
    """

    def __init__(self, identity: str) -> None:
        self.identity = identity
        super().__init__(f"Page not found: {identity}")


class VersionNotFoundError(Exception):
    """Raised when a version identifier is not present in a page's history."""

    def __init__(self, identity: str, version_id: int | None = None) -> None:
        self.identity = identity
        self.version_id = version_id
        if version_id is None:
            super().__init__(f"No versions in history of {identity}")
        else:
            super().__init__(f"No version {version_id} in history of {identity}")


class PatchError(Exception):
    """
    Base exception for stored patches that cannot be used.

    Signals storage corruption. Never converted into an empty or partial
    history; the operation on that page's history fails instead.
    """


class MalformedPatchError(PatchError):
    """Raised by the codec when a payload is not valid patch text."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Malformed patch: {reason}")


class UnreadablePatchError(PatchError):
    """Raised when a stored patch record cannot be decoded or applied."""

    def __init__(self, identity: str, version_id: int, reason: str) -> None:
        self.identity = identity
        self.version_id = version_id
        self.reason = reason
        super().__init__(f"Unreadable patch {version_id} for {identity}: {reason}")


class ContentTooLargeError(ValueError):
    """Raised when submitted content exceeds the configured maximum length."""

    def __init__(self, length: int, limit: int) -> None:
        self.length = length
        self.limit = limit
        super().__init__(f"Content length {length} exceeds maximum of {limit}")


class PartialSaveError(Exception):
    """
    Raised when a patch was written but the canonical content was not.

    The patch at `patch_path` is an orphan: replaying history now yields the
    submitted content while the canonical file still holds the previous one.
    """

    def __init__(self, identity: str, version_id: int, patch_path: Path) -> None:
        self.identity = identity
        self.version_id = version_id
        self.patch_path = patch_path
        super().__init__(
            f"Saved patch {version_id} for {identity} but failed to update canonical "
            f"content; orphan patch left at {patch_path}",
        )
