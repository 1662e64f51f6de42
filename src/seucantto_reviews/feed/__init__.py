"""Feed consumption package for SeuCantto reviews."""

from .client import FeedClient
from .normalize import load_feed_file, normalize_feed
from .stats import feed_statistics

__all__ = ["FeedClient", "feed_statistics", "load_feed_file", "normalize_feed"]
