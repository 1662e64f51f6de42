"""
Review build pipeline: markdown sources in, published JSON feed out.
"""

import json
import logging
import os
import shutil
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import frontmatter
import markdown
import yaml

from ..exceptions import FatalValidationError, MissingFieldsError
from ..models.review import BuildStats, FeedMetadata, ReviewRecord, average_rating
from ..utils.helpers import email_local_part, iso_utc, review_id_from_filename

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("email", "rating", "timestamp")

# Errors that only disqualify the file being processed
PER_FILE_ERRORS = (MissingFieldsError, yaml.YAMLError, ValueError, TypeError)


class ReviewBuilder:
    """
    Compiles the reviews directory into the published feed.

    The published file is only ever replaced as a whole. A snapshot of the
    last good feed is taken before processing and copied back if the run
    fails, so the feed is always either the new build or the previous one.
    """

    def __init__(
        self,
        reviews_dir: Union[str, Path] = "reviews",
        output_file: Union[str, Path] = "public/reviews.json",
        backup_file: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize the builder.

        Args:
            reviews_dir: Directory holding the markdown review files
            output_file: Path of the published JSON feed
            backup_file: Snapshot path (defaults to <output>-backup.json)
        """
        self.reviews_dir = Path(reviews_dir)
        self.output_file = Path(output_file)
        if backup_file is None:
            backup_file = self.output_file.with_name(f"{self.output_file.stem}-backup.json")
        self.backup_file = Path(backup_file)
        self.stats = BuildStats()

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "ReviewBuilder":
        paths = config["paths"]
        return cls(paths["reviews_dir"], paths["output_file"], paths.get("backup_file"))

    def build(self) -> BuildStats:
        """
        Run the full pipeline.

        Returns:
            BuildStats for the run

        Raises:
            FatalValidationError: the batch holds out-of-range ratings
            OSError: reading sources or writing the feed failed
        """
        logger.info(f"Starting review build from {self.reviews_dir}")
        self.stats = BuildStats()

        self.create_backup()

        try:
            records = self.process_reviews()
            self.validate_reviews(records)
            self.save_reviews(records)
        except Exception as e:
            logger.error(f"Review build failed: {e}")
            self.restore_backup()
            raise

        self.log_stats(records)
        return self.stats

    def create_backup(self) -> bool:
        """Snapshot the published feed, if there is one."""
        if not self.output_file.exists():
            return False

        self.backup_file.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(self.output_file, self.backup_file)
        logger.info(f"Backup created at {self.backup_file}")
        return True

    def restore_backup(self) -> bool:
        """Copy the snapshot back over the published feed."""
        if not self.backup_file.exists():
            logger.warning("No backup available to restore")
            return False

        shutil.copyfile(self.backup_file, self.output_file)
        logger.info(f"Backup restored to {self.output_file}")
        return True

    def process_reviews(self) -> List[ReviewRecord]:
        """
        Process every markdown file in filename order.

        Files that fail parsing or lack required fields are logged, counted
        in ``stats.errors`` and skipped.
        """
        if not self.reviews_dir.exists():
            logger.warning(f"Reviews directory {self.reviews_dir} not found")
            return []

        filenames = sorted(p.name for p in self.reviews_dir.iterdir() if p.name.endswith(".md"))
        records = []

        for filename in filenames:
            try:
                record = self.process_file(filename)
            except PER_FILE_ERRORS as e:
                logger.error(f"Error processing {filename}: {e}")
                self.stats.errors += 1
                continue

            records.append(record)
            self.stats.processed += 1

        logger.info(f"Processed {len(records)} of {len(filenames)} review files")
        return records

    def process_file(self, filename: str) -> ReviewRecord:
        """
        Parse one markdown file into a ReviewRecord.

        Args:
            filename: Name of the file inside the reviews directory

        Returns:
            The derived ReviewRecord

        Raises:
            MissingFieldsError: email, rating or timestamp is absent, empty or zero
        """
        filepath = self.reviews_dir / filename
        with open(filepath, "r", encoding="utf-8") as f:
            post = frontmatter.load(f)

        meta = post.metadata
        missing = [name for name in REQUIRED_FIELDS if not meta.get(name)]
        if missing:
            raise MissingFieldsError(filename, missing)

        body = post.content.strip()
        email = str(meta["email"]).strip()
        tags = meta.get("tags")

        record_metadata = {"filename": filename, "processed_at": iso_utc()}
        if isinstance(meta.get("metadata"), dict):
            record_metadata.update(meta["metadata"])

        return ReviewRecord(
            id=review_id_from_filename(filename),
            author=email_local_part(email),
            email=email,
            rating=_to_int(meta["rating"], "rating"),
            timestamp=_to_int(meta["timestamp"], "timestamp"),
            comment=body,
            comment_html=render_markdown(body),
            product_id=_optional_str(meta.get("product_id")),
            verified=bool(meta.get("verified", False)),
            location=_optional_str(meta.get("location")),
            tags=[str(tag) for tag in tags] if isinstance(tags, list) else [],
            metadata=record_metadata,
        )

    def validate_reviews(self, records: List[ReviewRecord]) -> None:
        """
        Batch-level checks.

        Duplicate timestamps are only a warning. Any rating outside 1-5 is
        fatal and aborts the build.
        """
        counts = Counter(r.timestamp for r in records)
        duplicates = sum(n - 1 for n in counts.values() if n > 1)
        if duplicates:
            logger.warning(f"{duplicates} duplicate timestamps found")
            self.stats.warnings += 1

        invalid = [r for r in records if r.rating < 1 or r.rating > 5]
        if invalid:
            ids = ", ".join(r.id for r in invalid)
            raise FatalValidationError(f"{len(invalid)} reviews with invalid rating: {ids}")

    def save_reviews(self, records: List[ReviewRecord]) -> Dict[str, Any]:
        """
        Sort newest first and write the feed document.

        Returns:
            The feed document that was written
        """
        ordered = sorted(records, key=lambda r: r.timestamp, reverse=True)
        feed = {
            "metadata": FeedMetadata.from_records(ordered).to_dict(),
            "reviews": [r.to_dict() for r in ordered],
        }

        content = json.dumps(feed, indent=2, ensure_ascii=False, default=str)

        self.output_file.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.output_file.with_name(f".{self.output_file.name}.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_path, self.output_file)

        logger.info(f"Saved {len(ordered)} reviews to {self.output_file}")
        return feed

    def log_stats(self, records: List[ReviewRecord]) -> None:
        """Record final totals and log the build summary."""
        self.stats.total = len(records)
        self.stats.average_rating = average_rating([r.rating for r in records])

        logger.info(
            f"Build finished. Processed: {self.stats.processed}, "
            f"Errors: {self.stats.errors}, "
            f"Warnings: {self.stats.warnings}, "
            f"Total: {self.stats.total}"
        )
        if records:
            logger.info(f"Average rating: {self.stats.average_rating}/5")


def render_markdown(text: str) -> str:
    """Render a review body to HTML."""
    return markdown.markdown(text)


def _to_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number, got {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"{name} must be an integer, got {value!r}")
        return int(value)
    try:
        return int(str(value).strip())
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def _optional_str(value: Any) -> Optional[str]:
    if value in (None, ""):
        return None
    return str(value)
