"""
Unit tests for feed loading, fetching and statistics.
"""

import json
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from seucantto_reviews.exceptions import FeedFormatError
from seucantto_reviews.feed import FeedClient, feed_statistics, load_feed_file, normalize_feed


def review(rid, rating, timestamp, **extra):
    data = {
        "id": rid,
        "author": "a",
        "email": "a@b.com",
        "rating": rating,
        "timestamp": timestamp,
        "comment": "Ok",
        "commentHtml": "<p>Ok</p>",
    }
    data.update(extra)
    return data


@pytest.fixture
def feed():
    return {
        "metadata": {"total_reviews": 3, "average_rating": 4.0, "generated_at": "2024-01-01T00:00:00.000Z"},
        "reviews": [
            review("c", 5, 300, product_id="bolsa", verified=True),
            review("b", 4, 200, product_id="bolsa"),
            review("a", 3, 100),
        ],
    }


class TestNormalizeFeed:
    """Test cases for upgrading feed documents."""

    def test_current_shape_passes_through(self, feed):
        result = normalize_feed(feed)

        assert result["reviews"] == feed["reviews"]
        assert result["metadata"]["version"] == 1
        assert result["metadata"]["total_reviews"] == 3

    def test_legacy_list_upgraded(self):
        """Test that a bare list gets metadata, order and rendered HTML."""
        legacy = [
            {"id": "old", "email": "x@y.com", "rating": 4, "timestamp": 100, "comment": "Bom"},
            {"id": "new", "email": "z@y.com", "rating": 5, "timestamp": 200, "comment": "Ótimo"},
        ]

        result = normalize_feed(legacy)

        assert [r["id"] for r in result["reviews"]] == ["new", "old"]
        assert result["reviews"][1]["author"] == "x"
        assert result["reviews"][1]["commentHtml"] == "<p>Bom</p>"
        assert result["metadata"]["total_reviews"] == 2
        assert result["metadata"]["average_rating"] == 4.5

    def test_malformed_legacy_entry(self):
        with pytest.raises(FeedFormatError):
            normalize_feed([{"email": "x@y.com"}])

    @pytest.mark.parametrize("data", [None, "reviews", {"metadata": {}}, {"reviews": "none"}])
    def test_unsupported_shapes(self, data):
        with pytest.raises(FeedFormatError):
            normalize_feed(data)

    def test_load_missing_file(self, temp_dir):
        result = load_feed_file(temp_dir / "missing.json")

        assert result["reviews"] == []
        assert result["metadata"]["total_reviews"] == 0

    def test_load_file(self, temp_dir, feed):
        path = temp_dir / "reviews.json"
        path.write_text(json.dumps(feed), encoding="utf-8")

        assert len(load_feed_file(path)["reviews"]) == 3


class TestFeedClient:
    """Test cases for fetching the feed with retries."""

    @pytest.fixture
    def client(self):
        return FeedClient("http://localhost:9/api/reviews", max_retries=2, delay=0, backoff=1)

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, client, feed):
        fetch_once = AsyncMock(side_effect=[aiohttp.ClientError("boom"), feed])

        with patch.object(client, "_fetch_once", fetch_once):
            result = await client.fetch()

        assert result is feed
        assert fetch_once.await_count == 2
        assert client.cached is feed

    @pytest.mark.asyncio
    async def test_serves_cache_when_remote_down(self, client, feed):
        with patch.object(client, "_fetch_once", AsyncMock(return_value=feed)):
            await client.fetch()

        failing = AsyncMock(side_effect=aiohttp.ClientError("down"))
        with patch.object(client, "_fetch_once", failing):
            result = await client.fetch()

        assert result is feed
        assert failing.await_count == 3

    @pytest.mark.asyncio
    async def test_raises_without_cache(self, client):
        failing = AsyncMock(side_effect=aiohttp.ClientError("down"))

        with patch.object(client, "_fetch_once", failing):
            with pytest.raises(aiohttp.ClientError):
                await client.fetch()

    @pytest.mark.asyncio
    async def test_session_closed_after_fetch(self, client, feed):
        with patch.object(client, "_fetch_once", AsyncMock(return_value=feed)):
            await client.fetch()

        assert client.session is None

    def test_from_config(self, sample_config):
        client = FeedClient.from_config(sample_config)

        assert client.url == sample_config["feed"]["url"]
        assert client.max_retries == 3


class TestFeedStatistics:
    """Test cases for feed statistics."""

    def test_statistics(self, feed):
        stats = feed_statistics(feed)

        assert stats["total_reviews"] == 3
        assert stats["average_rating"] == 4.0
        assert stats["by_rating"] == {1: 0, 2: 0, 3: 1, 4: 1, 5: 1}
        assert stats["by_product"] == {"bolsa": {"count": 2, "average_rating": 4.5}}
        assert stats["verified_share"] == 0.33
        assert stats["generated_at"] == "2024-01-01T00:00:00.000Z"

    def test_empty_feed(self):
        stats = feed_statistics({"metadata": {}, "reviews": []})

        assert stats["total_reviews"] == 0
        assert stats["average_rating"] == 0
        assert stats["by_product"] == {}
