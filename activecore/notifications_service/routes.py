"""
Admin notification routes: trigger the inactive member sweep and send a
test email.
"""

import logging
from typing import Tuple, Dict, Any

from flask import Blueprint, request, jsonify, Response
from activecore.auth_service.utils import verify_token_from_request
from activecore.notifications_service import mailer, sweep

notifications_bp = Blueprint("notifications", __name__)

logger = logging.getLogger(__name__)


# --- NOTIFY INACTIVE (ADMIN) ---
@notifications_bp.route("/admin/attendance/notify-inactive", methods=["POST"])
def notify_inactive() -> Tuple[Response, int]:
    """
    Admin-only: run the inactive member sweep now.

    Expects JSON: { "thresholdDays"?: int }  (default INACTIVE_NOTIFY_DAYS)

    Returns:
        200: {success, notified}
        400: thresholdDays is not a positive integer.
        500: Sweep failed.
    """
    _, _, err, code = verify_token_from_request(required_roles=["admin"])
    if err:
        return err, code

    data: Dict[str, Any] = request.get_json(silent=True) or {}
    try:
        threshold = int(data.get("thresholdDays", sweep.INACTIVE_NOTIFY_DAYS))
    except (TypeError, ValueError):
        return jsonify({"error": "thresholdDays must be an integer"}), 400
    if threshold < 1:
        return jsonify({"error": "thresholdDays must be at least 1"}), 400

    try:
        result = sweep.notify_inactive_members(threshold)
    except Exception as e:
        logger.error(f"notify-inactive error: {e}")
        return jsonify({"error": "Failed to notify inactive members"}), 500

    return jsonify(result), 200


# --- TEST EMAIL (ADMIN) ---
@notifications_bp.route("/admin/attendance/test-email", methods=["POST"])
def test_email() -> Tuple[Response, int]:
    """
    Admin-only: send a test message to verify SMTP settings.

    Expects JSON: { "to": str }
    """
    _, _, err, code = verify_token_from_request(required_roles=["admin"])
    if err:
        return err, code

    data: Dict[str, Any] = request.get_json(silent=True) or {}
    to = data.get("to")
    if not to:
        return jsonify({"error": 'Missing "to" address in body'}), 400

    html = "<p>This is a test message from <strong>ActiveCore</strong>. If you received this, SMTP settings are valid.</p>"
    if not mailer.send_email(to, "ActiveCore test email", html):
        return jsonify({"error": "Failed to send test email. Check SMTP settings and logs."}), 500

    return jsonify({"success": True, "message": f"Test email sent to {to}"}), 200
