"""Models package for SeuCantto reviews."""

from .review import BuildStats, FeedMetadata, ReviewRecord, average_rating
from .schema import ReviewSourceSchema

__all__ = ["ReviewRecord", "FeedMetadata", "BuildStats", "ReviewSourceSchema", "average_rating"]
