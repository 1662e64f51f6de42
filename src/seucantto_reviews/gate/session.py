"""
Login sessions with an inactivity deadline.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..utils.helpers import normalize_identity, now_ms
from .timers import ScheduledTask, Scheduler

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """A logged-in identity and its inactivity deadline."""

    identity: str
    last_activity_at: int
    duration_ms: int
    credentials: Dict[str, Any] = field(default_factory=dict)
    listeners: List[Callable[[str, int], None]] = field(default_factory=list)
    timer: Optional[ScheduledTask] = None

    @property
    def deadline(self) -> int:
        return self.last_activity_at + self.duration_ms

    def is_expired(self, now: int) -> bool:
        return now >= self.deadline

    def to_dict(self) -> dict:
        """Persistable part of the session."""
        return {"identity": self.identity, "last_activity_at": self.last_activity_at}

    @classmethod
    def from_dict(cls, data: Dict[str, Any], duration_ms: int) -> "Session":
        return cls(
            identity=data["identity"],
            last_activity_at=int(data["last_activity_at"]),
            duration_ms=duration_ms,
        )


class SessionManager:
    """
    Tracks sessions and logs identities out after a period of inactivity.

    Expiry is checked lazily on every lookup. When a scheduler is given, an
    inactivity timer additionally logs the identity out when the deadline
    passes; any tracked activity reschedules it.
    """

    def __init__(
        self,
        duration_ms: int = 72 * 60 * 60 * 1000,
        scheduler: Optional[Scheduler] = None,
        on_expire: Optional[Callable[[str], None]] = None,
    ):
        """
        Initialize the session manager.

        Args:
            duration_ms: Inactivity allowed before a forced logout
            scheduler: Optional scheduler for inactivity timers
            on_expire: Called with the identity when a session times out
        """
        self.duration_ms = duration_ms
        self.scheduler = scheduler
        self.on_expire = on_expire
        self.sessions: Dict[str, Session] = {}
        # Durable profile data survives logout
        self.profiles: Dict[str, Dict[str, Any]] = {}

    def start(self, identity: str, now: Optional[int] = None, credentials: Optional[Dict[str, Any]] = None) -> Session:
        """Open (or replace) the session for an identity."""
        now = now_ms() if now is None else now
        key = normalize_identity(identity)

        self.logout(key)
        session = Session(
            identity=key,
            last_activity_at=now,
            duration_ms=self.duration_ms,
            credentials=dict(credentials or {}),
        )
        self.sessions[key] = session
        self.profiles.setdefault(key, {"email": key})
        self._schedule(session)

        logger.info(f"Session started for {key}, deadline {session.deadline}")
        return session

    def restore(self, data: Dict[str, Any], now: Optional[int] = None) -> Optional[Session]:
        """Rebuild a persisted session unless it already timed out."""
        now = now_ms() if now is None else now
        session = Session.from_dict(data, self.duration_ms)
        session.identity = normalize_identity(session.identity)
        if session.is_expired(now):
            logger.info(f"Persisted session for {session.identity} already expired")
            return None

        self.logout(session.identity)
        self.sessions[session.identity] = session
        self.profiles.setdefault(session.identity, {"email": session.identity})
        self._schedule(session, now)
        return session

    def get(self, identity: str, now: Optional[int] = None) -> Optional[Session]:
        """Return the active session, logging out one that has timed out."""
        now = now_ms() if now is None else now
        key = normalize_identity(identity)
        session = self.sessions.get(key)
        if session is not None and session.is_expired(now):
            self._expire(key)
            return None
        return session

    def is_active(self, identity: str, now: Optional[int] = None) -> bool:
        return self.get(identity, now) is not None

    def touch(self, identity: str, now: Optional[int] = None) -> bool:
        """
        Record activity, pushing the deadline out.

        Returns:
            False when there is no active session to extend
        """
        now = now_ms() if now is None else now
        session = self.get(identity, now)
        if session is None:
            return False

        session.last_activity_at = now
        self._schedule(session, now)
        for listener in list(session.listeners):
            listener(session.identity, now)
        return True

    def add_listener(self, identity: str, callback: Callable[[str, int], None]) -> bool:
        """Attach a callback invoked on every tracked activity."""
        session = self.sessions.get(normalize_identity(identity))
        if session is None:
            return False
        session.listeners.append(callback)
        return True

    def logout(self, identity: str) -> bool:
        """
        End a session. Safe to call repeatedly.

        Cancels the inactivity timer, detaches listeners and drops the session
        credentials. The profile is kept.

        Returns:
            True if a session was ended by this call
        """
        key = normalize_identity(identity)
        session = self.sessions.pop(key, None)
        if session is None:
            return False

        if session.timer is not None:
            session.timer.cancel()
            session.timer = None
        session.listeners.clear()
        session.credentials.clear()

        logger.info(f"Session ended for {key}")
        return True

    def _schedule(self, session: Session, now: Optional[int] = None) -> None:
        if self.scheduler is None:
            return
        if session.timer is not None:
            session.timer.cancel()

        now = session.last_activity_at if now is None else now
        session.timer = self.scheduler.call_later(
            session.deadline - now,
            lambda: self._on_timer(session),
            name=f"session-inactivity:{session.identity}",
        )

    def _on_timer(self, session: Session) -> None:
        if self.sessions.get(session.identity) is session:
            self._expire(session.identity)

    def _expire(self, key: str) -> None:
        logger.info(f"Session for {key} expired after inactivity")
        self.logout(key)
        if self.on_expire is not None:
            self.on_expire(key)
