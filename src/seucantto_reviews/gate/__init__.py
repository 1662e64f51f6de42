"""Access gate package for SeuCantto reviews."""

from .limiter import OTP_GENERATION, OTP_VERIFICATION, REVIEW_SUBMISSION, AccessGate
from .otp import OtpChallenge, OtpService
from .session import Session, SessionManager
from .store import AttemptStore
from .timers import ScheduledTask, Scheduler
from .window import SlidingWindow

__all__ = [
    "AccessGate",
    "AttemptStore",
    "OtpChallenge",
    "OtpService",
    "ScheduledTask",
    "Scheduler",
    "Session",
    "SessionManager",
    "SlidingWindow",
    "OTP_GENERATION",
    "OTP_VERIFICATION",
    "REVIEW_SUBMISSION",
]
