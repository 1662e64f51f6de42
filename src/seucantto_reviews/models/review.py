"""
Data models for the SeuCantto review feed.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

from ..utils.helpers import iso_utc

FEED_VERSION = 1


@dataclass(frozen=True)
class ReviewRecord:
    """
    One published review, derived from a single markdown source file.

    Records are rebuilt from the source files on every build and never
    mutated afterwards.
    """

    id: str
    author: str
    email: str
    rating: int
    timestamp: int
    comment: str
    comment_html: str
    product_id: Optional[str] = None
    verified: bool = False
    location: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert the record to its feed representation."""
        return {
            "id": self.id,
            "author": self.author,
            "email": self.email,
            "rating": self.rating,
            "timestamp": self.timestamp,
            "comment": self.comment,
            "commentHtml": self.comment_html,
            "product_id": self.product_id,
            "verified": self.verified,
            "location": self.location,
            "tags": list(self.tags),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReviewRecord":
        """Rebuild a record from its feed representation."""
        return cls(
            id=str(data["id"]),
            author=data.get("author") or str(data.get("email", "")).split("@")[0],
            email=data.get("email") or "",
            rating=int(data["rating"]),
            timestamp=int(data["timestamp"]),
            comment=data.get("comment", ""),
            comment_html=data.get("commentHtml", ""),
            product_id=data.get("product_id"),
            verified=bool(data.get("verified", False)),
            location=data.get("location"),
            tags=list(data.get("tags") or []),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class FeedMetadata:
    """Summary block at the top of the published feed."""

    total_reviews: int
    average_rating: float
    generated_at: str
    last_update: int
    version: int = FEED_VERSION

    @classmethod
    def from_records(cls, records: List[ReviewRecord], now: Optional[datetime] = None) -> "FeedMetadata":
        """Compute feed metadata for a set of records."""
        now = now or datetime.now(timezone.utc)
        return cls(
            total_reviews=len(records),
            average_rating=average_rating([r.rating for r in records]),
            generated_at=iso_utc(now),
            last_update=int(now.timestamp() * 1000),
        )

    def to_dict(self) -> dict:
        return {
            "total_reviews": self.total_reviews,
            "average_rating": self.average_rating,
            "generated_at": self.generated_at,
            "last_update": self.last_update,
            "version": self.version,
        }


@dataclass
class BuildStats:
    """
    Counters reported at the end of a build run.
    """

    processed: int = 0
    errors: int = 0
    warnings: int = 0
    total: int = 0
    average_rating: float = 0.0
    timestamp: Optional[str] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> dict:
        return {
            "processed": self.processed,
            "errors": self.errors,
            "warnings": self.warnings,
            "total": self.total,
            "average_rating": self.average_rating,
            "timestamp": self.timestamp,
        }


def average_rating(ratings: List[int]) -> float:
    """Arithmetic mean rounded half-up to one decimal, 0 for no ratings."""
    if not ratings:
        return 0
    mean = Decimal(str(sum(ratings) / len(ratings)))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))
