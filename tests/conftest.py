"""Test configuration and fixtures."""

import shutil
import tempfile
from pathlib import Path

import pytest
import yaml

from seucantto_reviews.config import DEFAULT_CONFIG, merge_config


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path)


@pytest.fixture
def sample_config(temp_dir):
    """Provide a configuration rooted in the temporary directory."""
    return merge_config(
        DEFAULT_CONFIG,
        {
            "paths": {
                "reviews_dir": str(temp_dir / "reviews"),
                "output_file": str(temp_dir / "public" / "reviews.json"),
                "backup_file": str(temp_dir / "public" / "reviews-backup.json"),
            },
            "database": {"path": str(temp_dir / "data" / "gate.db")},
            "flask": {"SECRET_KEY": "test-secret", "TESTING": True},
            "logging": {"level": "DEBUG", "file": None},
        },
    )


@pytest.fixture
def reviews_dir(temp_dir):
    """Empty reviews directory."""
    path = temp_dir / "reviews"
    path.mkdir()
    return path


@pytest.fixture
def write_review(reviews_dir):
    """Write a markdown review file with front-matter and return its path."""

    def _write(filename, front, body="Great!"):
        content = "---\n" + yaml.safe_dump(front, sort_keys=False) + "---\n\n" + body + "\n"
        path = reviews_dir / filename
        path.write_text(content, encoding="utf-8")
        return path

    return _write
