"""Page identity and diff models."""
from models.diff import DiffOperation, DiffRun
from models.page import INDEX_IDENTITY, PageLayout, normalize_title

__all__ = [
    "INDEX_IDENTITY",
    "DiffOperation",
    "DiffRun",
    "PageLayout",
    "normalize_title",
]
