"""Pydantic view schemas for reading and editing pages."""
from pydantic import BaseModel


class PageView(BaseModel):
    """Current state of a page, or the new-page state when it has no content yet."""

    identity: str
    is_new: bool
    content: str | None  # None for a new page
    num_versions: int
    latest_version_id: int | None = None


class EditView(BaseModel):
    """Content to prefill the editor with."""

    identity: str
    content: str
    version_id: int | None  # Version the content was reconstructed from; None for current
    requested_version_id: int | None = None
    fell_back: bool = False  # Requested version was missing, current content shown instead
