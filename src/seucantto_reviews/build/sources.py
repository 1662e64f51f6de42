"""
Writing new review source files into the reviews directory.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import frontmatter

from ..utils.helpers import email_local_part, now_ms, sanitize_text, slugify

logger = logging.getLogger(__name__)


def write_review_source(
    reviews_dir: Union[str, Path],
    email: str,
    rating: int,
    comment: str,
    timestamp: Optional[int] = None,
    product_id: Optional[str] = None,
    location: Optional[str] = None,
    tags: Optional[List[str]] = None,
    verified: bool = False,
    metadata: Optional[Dict[str, Any]] = None,
) -> Path:
    """
    Write a submitted review as a markdown file with front-matter.

    The file becomes part of the published feed on the next build.

    Returns:
        Path of the file written
    """
    reviews_dir = Path(reviews_dir)
    reviews_dir.mkdir(parents=True, exist_ok=True)
    timestamp = now_ms() if timestamp is None else timestamp

    front = {"email": email, "rating": int(rating), "timestamp": int(timestamp), "verified": verified}
    if product_id:
        front["product_id"] = product_id
    if location:
        front["location"] = location
    if tags:
        front["tags"] = list(tags)
    if metadata:
        front["metadata"] = dict(metadata)

    post = frontmatter.Post(sanitize_text(comment), **front)

    base = f"{timestamp}-{slugify(email_local_part(email)) or 'review'}"
    path = reviews_dir / f"{base}.md"
    suffix = 1
    while path.exists():
        suffix += 1
        path = reviews_dir / f"{base}-{suffix}.md"

    with open(path, "w", encoding="utf-8") as f:
        f.write(frontmatter.dumps(post))
        f.write("\n")

    logger.info(f"Wrote review source {path.name}")
    return path
