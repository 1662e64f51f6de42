"""
Flask app for the storefront's login and review endpoints.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from flask import Flask, jsonify, request, session

from ..build.sources import write_review_source
from ..config import DEFAULT_CONFIG, merge_config
from ..exceptions import FeedFormatError, OtpExpired, OtpMismatch, RateLimitDenied
from ..feed.normalize import load_feed_file
from ..feed.stats import feed_statistics
from ..gate.limiter import REVIEW_SUBMISSION, AccessGate
from ..gate.otp import OtpService
from ..gate.session import SessionManager
from ..gate.store import AttemptStore
from ..utils.helpers import format_remaining, normalize_identity, now_ms, validate_email

logger = logging.getLogger(__name__)


class StorefrontApp:
    """
    Flask application wiring the access gate into the login and review flows.

    One AccessGate, OtpService and SessionManager are built per app and
    shared by every request handler.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, sender=None):
        """
        Initialize the app.

        Args:
            config: Configuration overrides layered over the defaults
            sender: OTP delivery callable (identity, code); logs by default
        """
        self.config = merge_config(DEFAULT_CONFIG, config or {})
        self.app = Flask(__name__)
        self.app.config.update(self.config["flask"])
        self.app.extensions["storefront"] = self

        self.store = AttemptStore(self.config["database"]["path"])
        self.gate = AccessGate(self.config["rate_limit"], store=self.store)
        self.otp = OtpService(
            self.gate,
            ttl_ms=self.config["otp"]["ttl_ms"],
            code_length=self.config["otp"]["code_length"],
            sender=sender,
        )
        self.sessions = SessionManager(self.config["session"]["duration_ms"])

        self._register_routes()

        logger.info("Storefront app initialized")

    def _current_identity(self, now: int) -> Optional[str]:
        identity = session.get("email")
        if not identity or not self.sessions.touch(identity, now):
            return None
        return identity

    def _register_routes(self):
        """Register Flask routes."""

        @self.app.route("/api/health")
        def api_health():
            """Health check endpoint."""
            feed_path = self.config["paths"]["output_file"]
            try:
                feed = load_feed_file(feed_path)
            except (OSError, ValueError, FeedFormatError) as e:
                logger.error(f"Health check could not read feed: {e}")
                return jsonify({"status": "degraded", "feed": False}), 503
            return jsonify({"status": "ok", "feed": True, "reviews": len(feed["reviews"])})

        @self.app.route("/api/reviews", methods=["GET"])
        def api_reviews():
            """Published review feed."""
            try:
                return jsonify(load_feed_file(self.config["paths"]["output_file"]))
            except (OSError, ValueError, FeedFormatError) as e:
                logger.error(f"Error loading feed: {e}")
                return jsonify({"error": "Feed unavailable"}), 500

        @self.app.route("/api/stats")
        def api_stats():
            """Statistics over the published feed."""
            try:
                feed = load_feed_file(self.config["paths"]["output_file"])
            except (OSError, ValueError, FeedFormatError) as e:
                logger.error(f"Error loading feed: {e}")
                return jsonify({"error": "Feed unavailable"}), 500
            return jsonify(feed_statistics(feed))

        @self.app.route("/api/auth/request-otp", methods=["POST"])
        def api_request_otp():
            """Issue a login code for an email."""
            data = request.get_json(silent=True) or {}
            email = normalize_identity(data.get("email", ""))
            if not validate_email(email):
                return jsonify({"error": "Please enter a valid email address"}), 400

            try:
                challenge = self.otp.request_code(email, now_ms())
            except RateLimitDenied as e:
                return _denied(e)

            return jsonify(
                {
                    "message": f"Code sent to {email}",
                    "expires_at": challenge.expires_at,
                    "expires_in_seconds": self.otp.ttl_ms // 1000,
                }
            )

        @self.app.route("/api/auth/verify-otp", methods=["POST"])
        def api_verify_otp():
            """Verify a login code and start a session."""
            data = request.get_json(silent=True) or {}
            email = normalize_identity(data.get("email", ""))
            code = str(data.get("code", ""))
            if not validate_email(email) or not code:
                return jsonify({"error": "Email and code are required"}), 400

            now = now_ms()
            try:
                self.otp.verify(email, code, now)
            except RateLimitDenied as e:
                return _denied(e)
            except OtpExpired as e:
                return jsonify({"error": str(e)}), 410
            except OtpMismatch as e:
                return jsonify({"error": str(e), "remaining_attempts": e.remaining_attempts}), 401

            user_session = self.sessions.start(email, now)
            session["email"] = email
            return jsonify({"message": "Logged in", "email": email, "deadline": user_session.deadline})

        @self.app.route("/api/auth/cancel-otp", methods=["POST"])
        def api_cancel_otp():
            """Abandon an outstanding login code."""
            data = request.get_json(silent=True) or {}
            self.otp.cancel(data.get("email", ""))
            return jsonify({"message": "Cancelled"})

        @self.app.route("/api/auth/logout", methods=["POST"])
        def api_logout():
            """End the current session. Idempotent."""
            identity = session.get("email")
            if identity:
                self.otp.cancel(identity)
                self.sessions.logout(identity)
            session.clear()
            return jsonify({"message": "Logged out"})

        @self.app.route("/api/reviews", methods=["POST"])
        def api_submit_review():
            """Submit a review for the next feed build."""
            now = now_ms()
            identity = self._current_identity(now)
            if identity is None:
                return jsonify({"error": "Login required"}), 401

            data = request.get_json(silent=True) or {}
            payload, error = _parse_review_payload(data)
            if error:
                return jsonify({"error": error}), 400

            if not self.gate.can_post_review(identity, now):
                lockout_end = self.gate.get_review_lockout_end(identity, now)
                return _denied(
                    RateLimitDenied(REVIEW_SUBMISSION, lockout_end, format_remaining(lockout_end, now))
                )
            self.gate.record_review_attempt(identity, now)

            try:
                path = write_review_source(
                    self.config["paths"]["reviews_dir"], identity, timestamp=now, **payload
                )
            except OSError as e:
                logger.error(f"Error writing review for {identity}: {e}")
                return jsonify({"error": "Could not save review"}), 500

            return jsonify({"id": path.stem, "timestamp": now}), 201

    def run(self, host: str = "0.0.0.0", port: int = 5000, debug: bool = False):
        """Run the Flask application."""
        logger.info(f"Starting storefront API on {host}:{port}")
        self.app.run(host=host, port=port, debug=debug)


def _denied(error: RateLimitDenied):
    return jsonify({"error": str(error), "action": error.action, "lockout_end": error.lockout_end}), 429


def _parse_review_payload(data: Dict[str, Any]) -> Tuple[Dict[str, Any], Optional[str]]:
    try:
        rating = int(data.get("rating"))
    except (TypeError, ValueError):
        return {}, "Rating must be a number from 1 to 5"
    if not 1 <= rating <= 5:
        return {}, "Rating must be a number from 1 to 5"

    comment = str(data.get("comment") or "").strip()
    if not comment:
        return {}, "Comment cannot be empty"

    tags = data.get("tags") or []
    if not isinstance(tags, list):
        return {}, "Tags must be a list"

    location = data.get("location")
    if location and len(str(location)) > 100:
        return {}, "Location is too long"

    return {
        "rating": rating,
        "comment": comment,
        "product_id": data.get("product_id"),
        "location": location,
        "tags": [str(tag) for tag in tags],
    }, None


def create_app(config: Optional[Dict[str, Any]] = None, sender=None) -> Flask:
    """Factory function to create Flask app."""
    storefront = StorefrontApp(config, sender=sender)
    return storefront.app
