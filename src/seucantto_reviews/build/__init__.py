"""Build package for SeuCantto reviews."""

from .builder import ReviewBuilder, render_markdown
from .sources import write_review_source
from .validator import ValidationReport, validate_file, validate_sources

__all__ = [
    "ReviewBuilder",
    "render_markdown",
    "write_review_source",
    "ValidationReport",
    "validate_file",
    "validate_sources",
]
