"""
Attendance service routes: QR check-in, member history and admin views.
"""

import logging
import math
import random
import string
from datetime import date, datetime, timedelta, timezone
from typing import Tuple, Dict, Any, Optional

import psycopg2.errors
from flask import Blueprint, request, jsonify, Response
from activecore.database.db_connection import get_db
from activecore.auth_service.utils import verify_token_from_request
from activecore.attendance_service.streaks import compute_streak

attendance_bp = Blueprint("attendance", __name__)

logger = logging.getLogger(__name__)

QR_TOKEN_MARKER = "ACTIVECORE_GYM"
DEFAULT_LOCATION = "Main Gym"
MAX_QR_TOKEN_HOURS = 24 * 365


def generate_qr_token(now: Optional[datetime] = None) -> str:
    """ACTIVECORE_GYM_<UTC yyyymmddHHMMSS>_<6 random uppercase alphanumerics>."""
    now = now or datetime.now(timezone.utc)
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=6))
    return f"{QR_TOKEN_MARKER}_{now.strftime('%Y%m%d%H%M%S')}_{suffix}"


def _format_record(row: Dict[str, Any]) -> Dict[str, Any]:
    check_in = row["check_in_time"]
    return {
        "id": row["id"],
        "checkInTime": check_in.isoformat() if isinstance(check_in, datetime) else str(check_in),
        "location": row.get("location"),
        "status": row.get("status") or "present",
        "date": check_in.strftime("%Y-%m-%d") if isinstance(check_in, datetime) else str(check_in)[:10],
        "time": check_in.strftime("%H:%M:%S") if isinstance(check_in, datetime) else "",
    }


# --- CHECK IN ---
@attendance_bp.route("/attendance/checkin", methods=["POST"])
def check_in() -> Tuple[Response, int]:
    """
    Record today's attendance for the authenticated member.

    Expects JSON: { "qrToken": str, "location"?: str }

    Returns:
        200: Check-in recorded.
        400: Invalid QR code or already checked in today.
        401: Authentication failure.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    data: Dict[str, Any] = request.get_json(silent=True) or {}
    qr_token = data.get("qrToken")

    if not isinstance(qr_token, str) or QR_TOKEN_MARKER not in qr_token:
        return jsonify({"error": "Invalid QR code."}), 400

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT id FROM attendance WHERE user_id = %s AND check_in_date = CURRENT_DATE;",
                    (user_id,),
                )
                if cur.fetchone():
                    return jsonify({"error": "Already checked in today."}), 400

                cur.execute(
                    """
                    INSERT INTO attendance (user_id, check_in_time, check_in_date, location, status)
                    VALUES (%s, NOW(), CURRENT_DATE, %s, 'present');
                    """,
                    (user_id, data.get("location") or DEFAULT_LOCATION),
                )
                conn.commit()
    except psycopg2.errors.UniqueViolation:
        return jsonify({"error": "Already checked in today."}), 400
    except Exception as e:
        logger.error(f"Attendance check-in error: {e}")
        return jsonify({"error": "Failed to record attendance."}), 500

    logger.info(f"User {user_id} checked in")
    return jsonify({"success": True, "message": "Check-in successful."}), 200


# --- HISTORY ---
@attendance_bp.route("/attendance/history", methods=["GET"])
def history() -> Tuple[Response, int]:
    """
    The authenticated member's check-ins (newest first) with total and streak.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT id, check_in_time, location, status
                    FROM attendance
                    WHERE user_id = %s
                    ORDER BY check_in_time DESC;
                    """,
                    (user_id,),
                )
                rows = [dict(r) for r in cur.fetchall()]
    except Exception as e:
        logger.error(f"Attendance history error: {e}")
        return jsonify({"error": "Failed to fetch attendance history."}), 500

    streak = compute_streak(r["check_in_time"] for r in rows if isinstance(r["check_in_time"], (date, datetime)))

    return jsonify({
        "success": True,
        "attendance": [_format_record(r) for r in rows],
        "stats": {
            "totalAttendance": len(rows),
            "currentStreak": streak,
        },
    }), 200


def _attendance_for_day(day: date):
    with get_db() as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT a.id, a.user_id, a.check_in_time, a.location,
                       u.first_name, u.last_name, u.email
                FROM attendance a
                INNER JOIN users u ON a.user_id = u.id
                WHERE a.check_in_date = %s
                ORDER BY a.check_in_time DESC;
                """,
                (day,),
            )
            return [dict(r) for r in cur.fetchall()]


# --- ADMIN: TODAY ---
@attendance_bp.route("/admin/attendance/today", methods=["GET"])
def present_today() -> Tuple[Response, int]:
    """Admin-only: who has checked in today."""
    _, _, err, code = verify_token_from_request(required_roles=["admin"])
    if err:
        return err, code

    try:
        rows = _attendance_for_day(date.today())
    except Exception as e:
        logger.error(f"Admin today attendance error: {e}")
        return jsonify({"error": "Failed to fetch today's attendance."}), 500

    for r in rows:
        if isinstance(r["check_in_time"], datetime):
            r["check_in_time"] = r["check_in_time"].isoformat()

    return jsonify({"success": True, "present": rows}), 200


# --- ADMIN: BY DATE ---
@attendance_bp.route("/admin/attendance", methods=["GET"])
def attendance_by_date() -> Tuple[Response, int]:
    """
    Admin-only: attendance for ?date=YYYY-MM-DD (default today).
    """
    _, _, err, code = verify_token_from_request(required_roles=["admin"])
    if err:
        return err, code

    raw_date = request.args.get("date")
    try:
        day = date.fromisoformat(raw_date) if raw_date else date.today()
    except ValueError:
        return jsonify({"error": "date must be YYYY-MM-DD"}), 400

    try:
        rows = _attendance_for_day(day)
    except Exception as e:
        logger.error(f"Admin attendance error: {e}")
        return jsonify({"error": "Failed to fetch attendance."}), 500

    attendance = []
    for r in rows:
        record = _format_record(r)
        record.update({
            "userId": r["user_id"],
            "fullName": f"{r['first_name']} {r['last_name']}",
            "email": r["email"],
        })
        attendance.append(record)

    return jsonify({"success": True, "attendance": attendance}), 200


# --- ADMIN: QR TOKEN ---
@attendance_bp.route("/admin/qr-token/generate", methods=["POST"])
def generate_token() -> Tuple[Response, int]:
    """Admin-only: mint the string encoded into the front-desk QR code."""
    _, _, err, code = verify_token_from_request(required_roles=["admin"])
    if err:
        return err, code

    data: Dict[str, Any] = request.get_json(silent=True) or {}
    try:
        hours = float(data.get("expiresInHours", 24))
    except (TypeError, ValueError):
        return jsonify({"error": "expiresInHours must be a number"}), 400

    if not math.isfinite(hours) or not 0 < hours <= MAX_QR_TOKEN_HOURS:
        return jsonify({"error": f"expiresInHours must be between 0 and {MAX_QR_TOKEN_HOURS}"}), 400

    now = datetime.now(timezone.utc)
    return jsonify({
        "success": True,
        "token": generate_qr_token(now),
        "expiresAt": (now + timedelta(hours=hours)).isoformat(),
    }), 200
