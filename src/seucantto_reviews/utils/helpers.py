"""
Utility functions for the SeuCantto review pipeline and access gate.
"""

import asyncio
import logging
import math
import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from email_validator import EmailNotValidError
from email_validator import validate_email as check_email

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"[^a-z0-9]+")


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def iso_utc(moment: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def validate_email(email: str) -> bool:
    """
    Check that a string looks like an email address.

    Args:
        email: Candidate address

    Returns:
        True if email-validator accepts the address (no DNS lookup)
    """
    if not email:
        return False
    try:
        check_email(email.strip(), check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def normalize_identity(email: str) -> str:
    """Canonical identity key for an email address."""
    return (email or "").strip().lower()


def email_local_part(email: str) -> str:
    """Return the part of an email before the first @."""
    return str(email).split("@")[0]


def slugify(text: str) -> str:
    """Lowercase, dash-separated slug safe for filenames."""
    return SLUG_PATTERN.sub("-", text.lower()).strip("-")


def review_id_from_filename(filename: str) -> str:
    """Review id is the markdown filename without its extension."""
    return Path(filename).stem


def sanitize_text(text: str) -> str:
    """
    Clean user-submitted text before writing it into a markdown file.

    Args:
        text: Raw text to clean

    Returns:
        Cleaned text
    """
    if not text:
        return ""

    text = text.replace("\x00", "")  # Remove null bytes
    text = text.replace("\r\n", "\n")  # Normalize line endings

    # Collapse runs of spaces but keep paragraph breaks for markdown
    lines = [" ".join(line.split()) for line in text.split("\n")]
    return "\n".join(lines).strip()


def format_remaining(lockout_end: int, now: int) -> str:
    """
    Human-readable wait message for a lockout.

    Args:
        lockout_end: Epoch millis when the lockout lifts
        now: Current epoch millis

    Returns:
        Message such as "Try again in 12 minutes."
    """
    remaining_ms = max(0, lockout_end - now)
    minutes = math.ceil(remaining_ms / 60000)

    if minutes >= 120:
        hours = math.ceil(minutes / 60)
        return f"Too many attempts. Try again in {hours} hours."
    if minutes <= 1:
        return "Too many attempts. Try again in 1 minute."
    return f"Too many attempts. Try again in {minutes} minutes."


async def retry_async(func, max_retries: int = 3, delay: float = 1.0, backoff: float = 2.0):
    """
    Retry an async function with exponential backoff.

    Args:
        func: Async function to retry
        max_retries: Maximum number of retry attempts
        delay: Initial delay between retries
        backoff: Backoff multiplier

    Returns:
        Function result or raises last exception
    """
    last_exception = None

    for attempt in range(max_retries + 1):
        try:
            return await func()
        except Exception as e:
            last_exception = e

            if attempt < max_retries:
                wait_time = delay * (backoff**attempt)
                logger.warning(f"Attempt {attempt + 1} failed: {e}. Retrying in {wait_time:.2f}s")
                await asyncio.sleep(wait_time)
            else:
                logger.error(f"All {max_retries + 1} attempts failed")

    raise last_exception
