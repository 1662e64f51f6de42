"""
Per-identity rate limiting for OTP login and review submission.
"""

import logging
from typing import Any, Dict, Optional

from ..config import DEFAULT_CONFIG
from ..utils.helpers import normalize_identity, now_ms
from .store import AttemptStore
from .window import SlidingWindow

logger = logging.getLogger(__name__)

OTP_GENERATION = "otp_generation"
OTP_VERIFICATION = "otp_verification"
REVIEW_SUBMISSION = "review_submission"


class AccessGate:
    """
    Gates OTP generation, OTP verification and review submission per email.

    Generation and review submission are sliding windows that only decay
    with time. Verification counts consecutive failures since the last
    success; reaching the limit locks the identity until the lockout has
    passed since the last failure, and a success wipes the history.

    Checks never record anything. Callers record an attempt only after the
    matching check passed, so a denied request cannot extend a lockout.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, store: Optional[AttemptStore] = None):
        """
        Initialize the gate.

        Args:
            config: ``rate_limit`` section of the configuration
            store: Durable store mirroring review-submission attempts
        """
        config = config or DEFAULT_CONFIG["rate_limit"]
        generation = config[OTP_GENERATION]
        verification = config[OTP_VERIFICATION]
        review = config[REVIEW_SUBMISSION]

        self.generation_limit = generation["max_attempts"]
        self.generation_window_ms = generation["window_ms"]
        self.verification_limit = verification["max_failures"]
        self.verification_lockout_ms = verification["lockout_ms"]
        self.review_limit = review["max_attempts"]
        self.review_window_ms = review["window_ms"]

        self.store = store
        self._generation: Dict[str, SlidingWindow] = {}
        self._verification: Dict[str, SlidingWindow] = {}
        self._review: Dict[str, SlidingWindow] = {}

    # ── OTP generation ─────────────────────────────────────────────────────

    def _generation_window(self, identity: str, now: int) -> SlidingWindow:
        return _pruned(self._generation, normalize_identity(identity), self.generation_window_ms, now)

    def can_generate_otp(self, identity: str, now: int) -> bool:
        return self._generation_window(identity, now).count() < self.generation_limit

    def record_generation_attempt(self, identity: str, now: int) -> None:
        window = self._generation_window(identity, now)
        window.record(now)
        self._generation[normalize_identity(identity)] = window
        logger.debug(f"OTP generation attempt {window.count()}/{self.generation_limit} for {identity}")

    def get_generation_lockout_end(self, identity: str, now: Optional[int] = None) -> int:
        """Epoch millis when generation reopens, 0 when not locked out."""
        now = now_ms() if now is None else now
        window = self._generation_window(identity, now)
        if window.count() < self.generation_limit:
            return 0
        return window.oldest() + self.generation_window_ms

    # ── OTP verification ───────────────────────────────────────────────────

    def _verification_window(self, identity: str, now: Optional[int]) -> SlidingWindow:
        key = normalize_identity(identity)
        window = self._verification.get(key) or SlidingWindow()
        if now is not None and window.count() >= self.verification_limit:
            if now >= window.newest() + self.verification_lockout_ms:
                # Lockout served; the identity starts over
                window.clear()
                self._verification.pop(key, None)
        return window

    def is_otp_verification_locked(self, identity: str, now: int) -> bool:
        window = self._verification_window(identity, now)
        if window.count() < self.verification_limit:
            return False
        return now < window.newest() + self.verification_lockout_ms

    def record_verification_attempt(self, identity: str, now: int, success: bool = False) -> None:
        """
        Record the outcome of a verification.

        Args:
            identity: Email being verified
            now: Epoch millis of the attempt
            success: True clears the failure history instead of adding to it
        """
        if success:
            self.reset_verification(identity)
            return

        window = self._verification_window(identity, now)
        window.record(now)
        self._verification[normalize_identity(identity)] = window
        logger.info(
            f"Failed OTP verification {window.count()}/{self.verification_limit} for {identity}"
        )

    def reset_verification(self, identity: str) -> None:
        self._verification.pop(normalize_identity(identity), None)

    def get_verification_lockout_end(self, identity: str) -> int:
        """Epoch millis when verification reopens, 0 when not locked out."""
        window = self._verification_window(identity, None)
        if window.count() < self.verification_limit:
            return 0
        return window.newest() + self.verification_lockout_ms

    def remaining_verification_attempts(self, identity: str) -> int:
        window = self._verification_window(identity, None)
        return max(0, self.verification_limit - window.count())

    # ── Review submission ──────────────────────────────────────────────────

    def _review_window(self, identity: str, now: int) -> SlidingWindow:
        key = normalize_identity(identity)
        if key not in self._review:
            stored = self.store.load(REVIEW_SUBMISSION, key) if self.store else []
            self._review[key] = SlidingWindow(self.review_window_ms, stored)
        return _pruned(self._review, key, self.review_window_ms, now)

    def can_post_review(self, identity: str, now: int) -> bool:
        return self._review_window(identity, now).count() < self.review_limit

    def record_review_attempt(self, identity: str, now: int) -> None:
        key = normalize_identity(identity)
        window = self._review_window(key, now)
        window.record(now)
        self._review[key] = window
        if self.store:
            self.store.save(REVIEW_SUBMISSION, key, window.attempts)
        logger.debug(f"Review attempt {window.count()}/{self.review_limit} for {identity}")

    def get_review_lockout_end(self, identity: str, now: Optional[int] = None) -> int:
        """Epoch millis when review posting reopens, 0 when not locked out."""
        now = now_ms() if now is None else now
        window = self._review_window(identity, now)
        if window.count() < self.review_limit:
            return 0
        return window.oldest() + self.review_window_ms


def _pruned(windows: Dict[str, SlidingWindow], key: str, window_ms: int, now: int) -> SlidingWindow:
    """Prune the identity's window, dropping it from ``windows`` once empty."""
    window = windows.get(key) or SlidingWindow(window_ms)
    window.prune(now)
    if window.count():
        windows[key] = window
    else:
        windows.pop(key, None)
    return window
