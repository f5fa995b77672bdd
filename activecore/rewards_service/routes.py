"""
Rewards service: a fixed attendance ladder members can claim from.
"""

import logging
from datetime import datetime
from typing import Tuple, Dict, Any

import psycopg2.errors
from flask import Blueprint, request, jsonify, Response
from activecore.database.db_connection import get_db
from activecore.auth_service.utils import verify_token_from_request

rewards_bp = Blueprint("rewards", __name__)

logger = logging.getLogger(__name__)

# Thresholds are total attendance records.
REWARD_LADDER = [
    {"id": 1, "title": "Bronze Streak", "description": "Attend 3 sessions",
     "requiredAttendance": 3, "points": 10, "category": "streak", "icon": "🥉"},
    {"id": 2, "title": "Silver Streak", "description": "Attend 7 sessions",
     "requiredAttendance": 7, "points": 25, "category": "streak", "icon": "🥈"},
    {"id": 3, "title": "Gold Streak", "description": "Attend 14 sessions",
     "requiredAttendance": 14, "points": 50, "category": "streak", "icon": "🥇"},
    {"id": 4, "title": "Attendance Pro", "description": "Attend 30 sessions",
     "requiredAttendance": 30, "points": 100, "category": "streak", "icon": "🏆"},
]


def find_reward(reward_id: Any):
    try:
        reward_id = int(reward_id)
    except (TypeError, ValueError):
        return None
    return next((r for r in REWARD_LADDER if r["id"] == reward_id), None)


def _attendance_count(cur, user_id: int) -> int:
    cur.execute("SELECT COUNT(*) AS cnt FROM attendance WHERE user_id = %s;", (user_id,))
    row = cur.fetchone()
    return int(row["cnt"]) if row else 0


# --- AVAILABLE REWARDS ---
@rewards_bp.route("/rewards/available", methods=["GET"])
def available_rewards() -> Tuple[Response, int]:
    """
    The reward ladder annotated for the authenticated member.

    Returns:
        200: {success, rewards: [... claimed, claimedAt, unlocked], totalAttendance}
        401: Authentication failure.
        500: Database error.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                count = _attendance_count(cur, user_id)
                cur.execute(
                    "SELECT reward_id, claimed_at FROM rewards_claimed WHERE user_id = %s;",
                    (user_id,),
                )
                claimed = {row["reward_id"]: row["claimed_at"] for row in cur.fetchall()}
    except Exception as e:
        logger.error(f"Error fetching rewards: {e}")
        return jsonify({"error": "Failed to fetch rewards"}), 500

    rewards = []
    for reward in REWARD_LADDER:
        claimed_at = claimed.get(reward["id"])
        rewards.append({
            **reward,
            "claimed": reward["id"] in claimed,
            "claimedAt": claimed_at.isoformat() if isinstance(claimed_at, datetime) else claimed_at,
            "unlocked": count >= reward["requiredAttendance"],
        })

    return jsonify({"success": True, "rewards": rewards, "totalAttendance": count}), 200


# --- CLAIM REWARD ---
@rewards_bp.route("/rewards/claim", methods=["POST"])
def claim_reward() -> Tuple[Response, int]:
    """
    Claim a ladder reward once attendance reaches its threshold.

    Expects JSON: { "rewardId": int }

    Returns:
        200: Reward claimed.
        400: Missing id, threshold not met or already claimed.
        404: Unknown reward.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    data: Dict[str, Any] = request.get_json(silent=True) or {}
    if data.get("rewardId") in (None, ""):
        return jsonify({"error": "rewardId is required"}), 400

    reward = find_reward(data["rewardId"])
    if not reward:
        return jsonify({"error": "Reward not found"}), 404

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                count = _attendance_count(cur, user_id)
                if count < reward["requiredAttendance"]:
                    return jsonify({
                        "error": f"You need {reward['requiredAttendance']} attendance records to claim this reward"
                    }), 400

                cur.execute(
                    "SELECT id FROM rewards_claimed WHERE user_id = %s AND reward_id = %s;",
                    (user_id, reward["id"]),
                )
                if cur.fetchone():
                    return jsonify({"error": "Reward already claimed"}), 400

                cur.execute(
                    "INSERT INTO rewards_claimed (user_id, reward_id, claimed_at) VALUES (%s, %s, NOW());",
                    (user_id, reward["id"]),
                )
                conn.commit()
    except psycopg2.errors.UniqueViolation:
        return jsonify({"error": "Reward already claimed"}), 400
    except Exception as e:
        logger.error(f"Error claiming reward: {e}")
        return jsonify({"error": "Failed to claim reward"}), 500

    logger.info(f"User {user_id} claimed reward {reward['id']}")
    return jsonify({
        "success": True,
        "message": f"Claimed {reward['title']}! +{reward['points']} points",
        "reward": reward,
    }), 200
