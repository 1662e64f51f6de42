"""
Unit tests for the OTP login flow, timers and sessions.
"""

import asyncio

import pytest

from seucantto_reviews.exceptions import OtpExpired, OtpMismatch, RateLimitDenied
from seucantto_reviews.gate.limiter import OTP_GENERATION, OTP_VERIFICATION, AccessGate
from seucantto_reviews.gate.otp import OTP_ALPHABET, OtpService
from seucantto_reviews.gate.session import Session, SessionManager
from seucantto_reviews.gate.timers import Scheduler

MINUTE = 60 * 1000
HOUR = 60 * MINUTE
EMAIL = "cliente@example.com"


@pytest.fixture
def sent():
    return []


@pytest.fixture
def otp(sent):
    return OtpService(AccessGate(), sender=lambda identity, code: sent.append((identity, code)))


def wrong_code(code):
    return "0000" if code != "0000" else "1111"


class TestRequestCode:
    """Test cases for issuing codes."""

    def test_code_format(self, otp, sent):
        challenge = otp.request_code(EMAIL, 0)

        assert len(challenge.code) == 4
        assert all(c in OTP_ALPHABET for c in challenge.code)
        assert sent == [(EMAIL, challenge.code)]
        assert challenge.expires_at == 15 * MINUTE

    def test_sixth_request_denied_without_counting(self, otp):
        """Test that a denied request is not recorded as an attempt."""
        for i in range(5):
            otp.request_code(EMAIL, i * MINUTE)

        with pytest.raises(RateLimitDenied) as exc_info:
            otp.request_code(EMAIL, 10 * MINUTE)

        assert exc_info.value.action == OTP_GENERATION
        assert exc_info.value.lockout_end == HOUR
        assert "Try again in 50 minutes" in str(exc_info.value)

        # Denied requests must not push the lockout further out
        with pytest.raises(RateLimitDenied):
            otp.request_code(EMAIL, 30 * MINUTE)
        assert otp.gate.get_generation_lockout_end(EMAIL, 30 * MINUTE) == HOUR

    def test_attempt_spent_when_sending_fails(self):
        """Test that a failed delivery still uses up a generation attempt."""

        def broken_sender(identity, code):
            raise ConnectionError("smtp down")

        service = OtpService(AccessGate(), sender=broken_sender)

        with pytest.raises(ConnectionError):
            service.request_code(EMAIL, 0)

        assert service.gate._generation_window(EMAIL, 0).count() == 1

    def test_new_code_replaces_old(self, otp):
        first = otp.request_code(EMAIL, 0)
        second = otp.request_code(EMAIL, 1000)

        assert otp.get_challenge(EMAIL, 1000) is second
        assert first is not second

    def test_expired_challenges_purged_on_new_request(self, otp):
        """Test that stale codes for other identities are dropped."""
        otp.request_code("outra@example.com", 0)

        otp.request_code(EMAIL, 15 * MINUTE)

        assert set(otp._challenges) == {EMAIL}

    def test_purge_keeps_live_challenges(self, otp):
        otp.request_code(EMAIL, 0)

        assert otp.purge_expired(15 * MINUTE - 1) == 0
        assert otp.purge_expired(15 * MINUTE) == 1
        assert otp._challenges == {}


class TestVerify:
    """Test cases for code verification."""

    def test_correct_code(self, otp):
        challenge = otp.request_code(EMAIL, 0)

        assert otp.verify(EMAIL, challenge.code, 1000) is True
        assert otp.get_challenge(EMAIL, 1000) is None

    def test_lowercase_code_accepted(self, otp):
        challenge = otp.request_code(EMAIL, 0)

        assert otp.verify(EMAIL, f" {challenge.code.lower()} ", 1000) is True

    def test_mismatch_reports_remaining(self, otp):
        challenge = otp.request_code(EMAIL, 0)

        with pytest.raises(OtpMismatch) as exc_info:
            otp.verify(EMAIL, wrong_code(challenge.code), 1000)

        assert exc_info.value.remaining_attempts == 2

    def test_third_failure_locks(self, otp):
        """Test the Failed x3 -> Locked transition."""
        challenge = otp.request_code(EMAIL, 0)
        bad = wrong_code(challenge.code)

        for t in (1000, 2000):
            with pytest.raises(OtpMismatch):
                otp.verify(EMAIL, bad, t)
        with pytest.raises(OtpMismatch) as exc_info:
            otp.verify(EMAIL, bad, 3000)
        assert exc_info.value.remaining_attempts == 0

        with pytest.raises(RateLimitDenied) as exc_info:
            otp.verify(EMAIL, challenge.code, 4000)
        assert exc_info.value.action == OTP_VERIFICATION
        assert exc_info.value.lockout_end == 3000 + 30 * MINUTE

    def test_lockout_expiry_returns_to_idle(self, otp):
        challenge = otp.request_code(EMAIL, 0)
        bad = wrong_code(challenge.code)
        for t in (1000, 2000, 3000):
            with pytest.raises(OtpMismatch):
                otp.verify(EMAIL, bad, t)

        # Code was discarded on lock, so after the lockout there is nothing to verify
        with pytest.raises(OtpExpired):
            otp.verify(EMAIL, challenge.code, 3000 + 31 * MINUTE)

    def test_success_after_failures_clears_history(self, otp):
        challenge = otp.request_code(EMAIL, 0)
        bad = wrong_code(challenge.code)
        for t in (1000, 2000):
            with pytest.raises(OtpMismatch):
                otp.verify(EMAIL, bad, t)

        otp.verify(EMAIL, challenge.code, 3000)

        assert otp.gate.is_otp_verification_locked(EMAIL, 3001) is False
        assert otp.gate.remaining_verification_attempts(EMAIL) == 3

    def test_expired_code(self, otp):
        challenge = otp.request_code(EMAIL, 0)

        with pytest.raises(OtpExpired):
            otp.verify(EMAIL, challenge.code, 15 * MINUTE)

    def test_no_code_requested(self, otp):
        with pytest.raises(OtpExpired):
            otp.verify(EMAIL, "ABCD", 0)

    def test_cancel_is_idempotent(self, otp):
        otp.request_code(EMAIL, 0)

        assert otp.cancel(EMAIL) is True
        assert otp.cancel(EMAIL) is False
        with pytest.raises(OtpExpired):
            otp.verify(EMAIL, "ABCD", 1000)


class TestScheduledTasks:
    """Test cases for cancellable timers."""

    @pytest.mark.asyncio
    async def test_task_fires_once(self):
        calls = []
        task = Scheduler().call_later(10, lambda: calls.append(1))

        await asyncio.sleep(0.05)

        assert calls == [1]
        assert task.done is True
        assert task.cancel() is False

    @pytest.mark.asyncio
    async def test_cancel_prevents_firing(self):
        calls = []
        task = Scheduler().call_later(20, lambda: calls.append(1))

        assert task.cancel() is True
        assert task.cancel() is False
        await asyncio.sleep(0.05)

        assert calls == []
        assert task.cancelled is True
        assert task.pending is False

    @pytest.mark.asyncio
    async def test_otp_expiry_timer(self):
        """Test that a scheduled expiry discards the code."""
        service = OtpService(AccessGate(), ttl_ms=20, scheduler=Scheduler())
        challenge = service.request_code(EMAIL, 0)

        await asyncio.sleep(0.06)

        assert challenge.expiry_task.done is True
        assert service.get_challenge(EMAIL, 1) is None

    @pytest.mark.asyncio
    async def test_verify_cancels_expiry_timer(self):
        service = OtpService(AccessGate(), ttl_ms=50, scheduler=Scheduler())
        challenge = service.request_code(EMAIL, 0)

        service.verify(EMAIL, challenge.code, 1)

        assert challenge.expiry_task.cancelled is True

    @pytest.mark.asyncio
    async def test_replaced_code_timer_cancelled(self):
        service = OtpService(AccessGate(), ttl_ms=50, scheduler=Scheduler())
        first = service.request_code(EMAIL, 0)
        second = service.request_code(EMAIL, 1)

        assert first.expiry_task.cancelled is True
        assert second.expiry_task.pending is True
        service.cancel(EMAIL)
        assert second.expiry_task.cancelled is True


class TestSessionManager:
    """Test cases for inactivity sessions."""

    def test_deadline_and_touch(self):
        sessions = SessionManager()
        session = sessions.start(EMAIL, 0)

        assert session.deadline == 72 * HOUR
        assert sessions.touch(EMAIL, 10 * HOUR) is True
        assert session.deadline == 82 * HOUR

    def test_expiry_forces_logout(self):
        expired = []
        sessions = SessionManager(on_expire=expired.append)
        sessions.start(EMAIL, 0)

        assert sessions.is_active(EMAIL, 72 * HOUR - 1) is True
        assert sessions.is_active(EMAIL, 72 * HOUR) is False
        assert expired == [EMAIL]

    def test_logout_idempotent_and_keeps_profile(self):
        sessions = SessionManager()
        session = sessions.start(EMAIL, 0, credentials={"token": "abc"})
        sessions.add_listener(EMAIL, lambda identity, now: None)

        assert sessions.logout(EMAIL) is True
        assert sessions.logout(EMAIL) is False
        assert session.credentials == {}
        assert session.listeners == []
        assert sessions.profiles[EMAIL] == {"email": EMAIL}

    def test_listeners_called_on_activity(self):
        seen = []
        sessions = SessionManager()
        sessions.start(EMAIL, 0)
        sessions.add_listener(EMAIL, lambda identity, now: seen.append(now))

        sessions.touch(EMAIL, 500)

        assert seen == [500]

    def test_restore_persisted_session(self):
        sessions = SessionManager()
        data = Session(EMAIL, 1000, sessions.duration_ms).to_dict()

        assert sessions.restore(data, now=2000) is not None
        assert sessions.restore(data, now=1000 + 72 * HOUR) is None

    def test_restore_replaces_existing_session(self):
        sessions = SessionManager()
        old = sessions.start(EMAIL, 0, credentials={"token": "abc"})
        sessions.add_listener(EMAIL, lambda identity, now: None)

        restored = sessions.restore(Session(EMAIL.upper(), 1000, sessions.duration_ms).to_dict(), now=2000)

        assert sessions.sessions[EMAIL] is restored
        assert old.listeners == []
        assert old.credentials == {}

    @pytest.mark.asyncio
    async def test_restore_cancels_previous_timer(self):
        sessions = SessionManager(duration_ms=50, scheduler=Scheduler())
        old_timer = sessions.start(EMAIL, 0).timer

        sessions.restore({"identity": EMAIL, "last_activity_at": 10}, now=20)

        assert old_timer.cancelled is True
        sessions.logout(EMAIL)

    @pytest.mark.asyncio
    async def test_inactivity_timer_logs_out(self):
        expired = []
        sessions = SessionManager(duration_ms=20, scheduler=Scheduler(), on_expire=expired.append)
        session = sessions.start(EMAIL, 0)

        await asyncio.sleep(0.06)

        assert expired == [EMAIL]
        assert EMAIL not in sessions.sessions
        assert session.timer is None

    @pytest.mark.asyncio
    async def test_logout_cancels_timer(self):
        expired = []
        sessions = SessionManager(duration_ms=20, scheduler=Scheduler(), on_expire=expired.append)
        session = sessions.start(EMAIL, 0)
        timer = session.timer

        sessions.logout(EMAIL)
        await asyncio.sleep(0.05)

        assert timer.cancelled is True
        assert expired == []
