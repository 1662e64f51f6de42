"""
Summary statistics over a published feed.
"""

import logging
from typing import Any, Dict

import pandas as pd

from ..models.review import average_rating

logger = logging.getLogger(__name__)


def feed_statistics(feed: Dict[str, Any]) -> Dict[str, Any]:
    """
    Summarize a normalized feed.

    Args:
        feed: Feed dictionary with ``metadata`` and ``reviews``

    Returns:
        Totals, rating distribution, per-product breakdown and verified share
    """
    reviews = feed.get("reviews", [])
    stats = {
        "total_reviews": len(reviews),
        "average_rating": 0,
        "by_rating": {rating: 0 for rating in range(1, 6)},
        "by_product": {},
        "verified_share": 0.0,
        "generated_at": feed.get("metadata", {}).get("generated_at"),
    }
    if not reviews:
        return stats

    df = pd.DataFrame(reviews)
    stats["average_rating"] = average_rating(df["rating"].astype(int).tolist())

    counts = df["rating"].astype(int).value_counts()
    for rating, count in counts.items():
        stats["by_rating"][int(rating)] = int(count)

    if "product_id" in df.columns:
        products = df.dropna(subset=["product_id"])
        for product_id, group in products.groupby("product_id"):
            stats["by_product"][str(product_id)] = {
                "count": int(len(group)),
                "average_rating": average_rating(group["rating"].astype(int).tolist()),
            }

    if "verified" in df.columns:
        stats["verified_share"] = round(float(df["verified"].fillna(False).astype(bool).mean()), 2)

    logger.debug(f"Computed statistics for {len(reviews)} reviews")
    return stats
