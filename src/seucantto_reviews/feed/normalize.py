"""
Load-time migration of published feeds to the current shape.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Union

from ..build.builder import render_markdown
from ..exceptions import FeedFormatError
from ..models.review import FEED_VERSION, FeedMetadata, ReviewRecord

logger = logging.getLogger(__name__)


def _upgrade_review(entry: Dict[str, Any]) -> Dict[str, Any]:
    record = ReviewRecord.from_dict(entry)
    if not record.comment_html and record.comment:
        data = record.to_dict()
        data["commentHtml"] = render_markdown(record.comment)
        return data
    return record.to_dict()


def normalize_feed(data: Any) -> Dict[str, Any]:
    """
    Bring a feed document to the ``{metadata, reviews}`` shape.

    Older builds published a bare list of reviews without metadata; those
    are upgraded here, with metadata computed from the reviews.

    Args:
        data: Parsed JSON of a published feed

    Returns:
        Feed dictionary with ``metadata`` and ``reviews`` keys

    Raises:
        FeedFormatError: the document has neither supported shape
    """
    if isinstance(data, list):
        logger.info(f"Upgrading legacy feed with {len(data)} reviews")
        try:
            reviews = [_upgrade_review(entry) for entry in data]
        except (KeyError, TypeError, ValueError) as e:
            raise FeedFormatError(f"Legacy feed entry is malformed: {e}") from e

        reviews.sort(key=lambda r: r["timestamp"], reverse=True)
        records = [ReviewRecord.from_dict(r) for r in reviews]
        return {"metadata": FeedMetadata.from_records(records).to_dict(), "reviews": reviews}

    if isinstance(data, dict) and isinstance(data.get("reviews"), list):
        metadata = dict(data.get("metadata") or {})
        metadata.setdefault("version", FEED_VERSION)
        metadata.setdefault("total_reviews", len(data["reviews"]))
        return {"metadata": metadata, "reviews": data["reviews"]}

    raise FeedFormatError(f"Unsupported feed shape: {type(data).__name__}")


def load_feed_file(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read and normalize a feed from disk.

    Returns:
        Normalized feed, or an empty feed when the file does not exist
    """
    path = Path(path)
    if not path.exists():
        logger.warning(f"No published feed at {path}")
        return {"metadata": FeedMetadata.from_records([]).to_dict(), "reviews": []}

    with open(path, "r", encoding="utf-8") as f:
        return normalize_feed(json.load(f))
