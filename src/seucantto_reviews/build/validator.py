"""
Strict front-matter validation for review sources.

Run before merging new review files; unlike the build it rejects anything
that does not match ReviewSourceSchema exactly and never touches the feed.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Union

import frontmatter
import yaml
from pydantic import ValidationError

from ..models.schema import ReviewSourceSchema

logger = logging.getLogger(__name__)


@dataclass
class ValidationReport:
    """Outcome of validating a reviews directory."""

    valid: List[str] = field(default_factory=list)
    invalid: Dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.valid) + len(self.invalid)

    @property
    def ok(self) -> bool:
        return not self.invalid


def validate_file(filepath: Union[str, Path]) -> ReviewSourceSchema:
    """
    Validate one review file against the schema.

    Raises:
        pydantic.ValidationError: front-matter does not match the schema
        yaml.YAMLError: front-matter is not valid YAML
    """
    with open(filepath, "r", encoding="utf-8") as f:
        post = frontmatter.load(f)
    return ReviewSourceSchema.model_validate(post.metadata)


def validate_sources(reviews_dir: Union[str, Path]) -> ValidationReport:
    """
    Validate every markdown file in a directory.

    Args:
        reviews_dir: Directory holding the review files

    Returns:
        ValidationReport listing valid files and errors per invalid file
    """
    reviews_dir = Path(reviews_dir)
    report = ValidationReport()

    if not reviews_dir.exists():
        logger.warning(f"Reviews directory {reviews_dir} not found")
        return report

    for path in sorted(reviews_dir.glob("*.md")):
        try:
            validate_file(path)
        except ValidationError as e:
            messages = "; ".join(
                f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            report.invalid[path.name] = messages
            logger.error(f"{path.name}: {messages}")
        except (yaml.YAMLError, UnicodeDecodeError) as e:
            report.invalid[path.name] = f"parse error: {e}"
            logger.error(f"{path.name}: parse error - {e}")
        else:
            report.valid.append(path.name)
            logger.debug(f"{path.name}: valid")

    if report.ok:
        logger.info(f"All {report.total} review files are valid")
    else:
        logger.error(f"{len(report.invalid)} review file(s) with errors")

    return report
