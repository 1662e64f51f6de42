"""Utils package for SeuCantto reviews."""

from .helpers import (
    email_local_part,
    format_remaining,
    iso_utc,
    normalize_identity,
    now_ms,
    retry_async,
    review_id_from_filename,
    sanitize_text,
    slugify,
    validate_email,
)

__all__ = [
    "email_local_part",
    "format_remaining",
    "iso_utc",
    "normalize_identity",
    "now_ms",
    "retry_async",
    "review_id_from_filename",
    "sanitize_text",
    "slugify",
    "validate_email",
]
