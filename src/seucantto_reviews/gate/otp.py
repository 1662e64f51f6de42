"""
One-time password login flow on top of the access gate.
"""

import logging
import secrets
import string
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from ..exceptions import OtpExpired, OtpMismatch, RateLimitDenied
from ..utils.helpers import format_remaining, normalize_identity, now_ms
from .limiter import OTP_GENERATION, OTP_VERIFICATION, AccessGate
from .timers import ScheduledTask, Scheduler

logger = logging.getLogger(__name__)

OTP_ALPHABET = string.digits + string.ascii_uppercase


@dataclass
class OtpChallenge:
    """An outstanding code for one identity."""

    identity: str
    code: str
    issued_at: int
    expires_at: int
    expiry_task: Optional[ScheduledTask] = None

    def is_expired(self, now: int) -> bool:
        return now >= self.expires_at


def log_sender(identity: str, code: str) -> None:
    """Development sender: writes the code to the log instead of emailing it."""
    logger.info(f"OTP code for {identity}: {code}")


class OtpService:
    """
    Issues and verifies login codes.

    State per identity: no code (idle), one outstanding code, or locked by
    the gate after repeated failures. A code is valid for ``ttl_ms``; with a
    scheduler the code is also discarded by a timer when it runs out, and
    every path that ends the challenge cancels that timer.
    """

    def __init__(
        self,
        gate: AccessGate,
        ttl_ms: int = 15 * 60 * 1000,
        code_length: int = 4,
        sender: Optional[Callable[[str, str], None]] = None,
        scheduler: Optional[Scheduler] = None,
    ):
        """
        Initialize the OTP service.

        Args:
            gate: Access gate holding the per-identity counters
            ttl_ms: Code validity in milliseconds
            code_length: Number of characters in a code
            sender: Callable delivering (identity, code); defaults to logging
            scheduler: Optional scheduler for expiry timers
        """
        self.gate = gate
        self.ttl_ms = ttl_ms
        self.code_length = code_length
        self.sender = sender or log_sender
        self.scheduler = scheduler
        self._challenges: Dict[str, OtpChallenge] = {}

    def generate_code(self) -> str:
        return "".join(secrets.choice(OTP_ALPHABET) for _ in range(self.code_length))

    def request_code(self, identity: str, now: Optional[int] = None) -> OtpChallenge:
        """
        Issue a fresh code for an identity.

        The generation attempt is spent as soon as the gate lets the request
        through, whether or not delivery then succeeds.

        Raises:
            RateLimitDenied: too many codes requested within the window
        """
        now = now_ms() if now is None else now
        key = normalize_identity(identity)

        if not self.gate.can_generate_otp(key, now):
            lockout_end = self.gate.get_generation_lockout_end(key, now)
            logger.warning(f"OTP generation denied for {key} until {lockout_end}")
            raise RateLimitDenied(OTP_GENERATION, lockout_end, format_remaining(lockout_end, now))

        self.gate.record_generation_attempt(key, now)
        self._discard(key)
        self.purge_expired(now)
        self.gate.reset_verification(key)

        challenge = OtpChallenge(
            identity=key,
            code=self.generate_code(),
            issued_at=now,
            expires_at=now + self.ttl_ms,
        )
        if self.scheduler is not None:
            challenge.expiry_task = self.scheduler.call_later(
                self.ttl_ms, lambda: self._expire(challenge), name=f"otp-expiry:{key}"
            )
        self._challenges[key] = challenge

        self.sender(key, challenge.code)
        logger.info(f"OTP issued for {key}, expires at {challenge.expires_at}")
        return challenge

    def verify(self, identity: str, code: str, now: Optional[int] = None) -> bool:
        """
        Check a submitted code.

        Returns:
            True when the code matches; the challenge is then consumed

        Raises:
            RateLimitDenied: verification is locked for this identity
            OtpExpired: there is no live code to check against
            OtpMismatch: wrong code, carries the remaining attempt count
        """
        now = now_ms() if now is None else now
        key = normalize_identity(identity)

        if self.gate.is_otp_verification_locked(key, now):
            lockout_end = self.gate.get_verification_lockout_end(key)
            raise RateLimitDenied(OTP_VERIFICATION, lockout_end, format_remaining(lockout_end, now))

        challenge = self.get_challenge(key, now)
        if challenge is None:
            raise OtpExpired()

        submitted = (code or "").strip().upper()
        if not secrets.compare_digest(submitted.encode("utf-8"), challenge.code.encode("utf-8")):
            self.gate.record_verification_attempt(key, now)
            remaining = self.gate.remaining_verification_attempts(key)
            if remaining == 0:
                logger.warning(f"OTP verification locked for {key}")
                self._discard(key)
            raise OtpMismatch(remaining)

        self.gate.record_verification_attempt(key, now, success=True)
        self._discard(key)
        logger.info(f"OTP verified for {key}")
        return True

    def get_challenge(self, identity: str, now: Optional[int] = None) -> Optional[OtpChallenge]:
        """Return the live challenge for an identity, discarding an expired one."""
        now = now_ms() if now is None else now
        key = normalize_identity(identity)
        challenge = self._challenges.get(key)
        if challenge is not None and challenge.is_expired(now):
            logger.info(f"OTP for {key} expired")
            self._discard(key)
            return None
        return challenge

    def purge_expired(self, now: Optional[int] = None) -> int:
        """
        Drop every challenge past its expiry.

        Returns:
            Number of challenges removed
        """
        now = now_ms() if now is None else now
        expired = [key for key, challenge in self._challenges.items() if challenge.is_expired(now)]
        for key in expired:
            self._discard(key)
        if expired:
            logger.info(f"Purged {len(expired)} expired OTP challenge(s)")
        return len(expired)

    def cancel(self, identity: str) -> bool:
        """Abandon the outstanding code, e.g. when the login dialog closes."""
        return self._discard(normalize_identity(identity))

    def _discard(self, key: str) -> bool:
        challenge = self._challenges.pop(key, None)
        if challenge is None:
            return False
        if challenge.expiry_task is not None:
            challenge.expiry_task.cancel()
        return True

    def _expire(self, challenge: OtpChallenge) -> None:
        if self._challenges.get(challenge.identity) is challenge:
            del self._challenges[challenge.identity]
            logger.info(f"OTP for {challenge.identity} expired")
