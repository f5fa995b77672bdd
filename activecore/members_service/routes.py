"""
Member management routes: admin CRUD over member accounts and the
member's own subscription view.
"""

import logging
from datetime import date, datetime
from typing import Tuple, Dict, Any, Optional

import psycopg2.errors
from flask import Blueprint, request, jsonify, Response
from activecore.database.db_connection import get_db
from activecore.auth_service.utils import (
    MIN_PASSWORD_LENGTH,
    hash_password,
    is_valid_email,
    verify_token_from_request,
)
from activecore.auth_service.routes import parse_iso_date
from activecore.payments_service.ledger import (
    DEFAULT_MEMBERSHIP_PRICE,
    DEFAULT_MEMBERSHIP_TYPE,
    MEMBERSHIP_TYPES,
    subscription_window,
)

members_bp = Blueprint("members", __name__)

logger = logging.getLogger(__name__)

MEMBER_STATUSES = ("active", "inactive")

# Request key -> column. Only these may be changed through PUT /members/<id>.
UPDATABLE_FIELDS = {
    "firstName": "first_name",
    "lastName": "last_name",
    "email": "email",
    "phone": "phone",
    "gender": "gender",
    "dateOfBirth": "date_of_birth",
    "membershipType": "membership_type",
    "membershipPrice": "membership_price",
    "status": "status",
    "emergencyContact": "emergency_contact",
    "address": "address",
}

# Fields that may be cleared with an empty value.
CLEARABLE_FIELDS = ("emergencyContact", "address")


def iso_date(value: Any) -> Optional[str]:
    """Render a date/datetime column as YYYY-MM-DD."""
    if not value:
        return None
    if isinstance(value, (date, datetime)):
        return value.strftime("%Y-%m-%d")
    return str(value)[:10]


def serialize_member(row: Dict[str, Any]) -> Dict[str, Any]:
    """Shape a users row (joined with its payment count) for the admin dashboard."""
    price = row.get("membership_price")
    return {
        "id": row["id"],
        "firstName": row.get("first_name") or "",
        "lastName": row.get("last_name") or "",
        "email": row.get("email"),
        "phone": row.get("phone") or "",
        "gender": row.get("gender") or "male",
        "dateOfBirth": iso_date(row.get("date_of_birth")) or "",
        "membershipType": row.get("membership_type") or DEFAULT_MEMBERSHIP_TYPE,
        "membershipPrice": float(price) if price is not None else float(DEFAULT_MEMBERSHIP_PRICE),
        "joinDate": iso_date(row.get("join_date")) or date.today().isoformat(),
        "status": row.get("status") or "active",
        "paymentStatus": row.get("payment_status") or "pending",
        "subscriptionStart": iso_date(row.get("subscription_start")),
        "subscriptionEnd": iso_date(row.get("subscription_end")),
        "emergencyContact": row.get("emergency_contact") or "",
        "address": row.get("address") or "",
        "totalPayments": int(row.get("total_payments") or 0),
    }


# --- LIST MEMBERS (ADMIN) ---
@members_bp.route("/members", methods=["GET"])
def list_members() -> Tuple[Response, int]:
    """
    Admin-only: list every member with a count of their payments.

    Returns:
        200: List of member objects.
        401/403: Unauthorized.
        500: Database error.
    """
    _, _, err, code = verify_token_from_request(required_roles=["admin"])
    if err:
        return err, code

    sql = """
        SELECT u.id, u.email, u.first_name, u.last_name, u.phone, u.gender,
               u.date_of_birth, u.membership_type, u.membership_price,
               u.join_date, u.status, u.payment_status,
               u.subscription_start, u.subscription_end,
               u.emergency_contact, u.address,
               COUNT(p.id) AS total_payments
        FROM users u
        LEFT JOIN payments p ON u.id = p.user_id
        WHERE u.role = 'member'
        GROUP BY u.id
        ORDER BY u.id ASC;
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql)
                members = [serialize_member(dict(row)) for row in cur.fetchall()]
    except Exception as e:
        logger.error(f"Error fetching members: {e}")
        return jsonify({"error": "Failed to retrieve members"}), 500

    return jsonify(members), 200


# --- ADD MEMBER (ADMIN) ---
@members_bp.route("/members", methods=["POST"])
def create_member() -> Tuple[Response, int]:
    """
    Admin-only: add a member account.

    Required: firstName, lastName, email, password.
    The subscription window is derived from membershipType (default monthly).

    Returns:
        201: {success, message, id}
        400: Validation error or duplicate email.
        401/403: Unauthorized.
    """
    _, _, err, code = verify_token_from_request(required_roles=["admin"])
    if err:
        return err, code

    data: Dict[str, Any] = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    membership_type = data.get("membershipType") or DEFAULT_MEMBERSHIP_TYPE
    status = data.get("status") or "active"

    if not all([data.get("firstName"), data.get("lastName"), email, password]):
        return jsonify({"error": "Missing required fields"}), 400
    if not is_valid_email(email):
        return jsonify({"error": "Invalid email format"}), 400
    if len(password) < MIN_PASSWORD_LENGTH:
        return jsonify({"error": f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"}), 400
    if membership_type not in MEMBERSHIP_TYPES:
        return jsonify({"error": f"membershipType must be one of: {', '.join(MEMBERSHIP_TYPES)}"}), 400
    if status not in MEMBER_STATUSES:
        return jsonify({"error": f"status must be one of: {', '.join(MEMBER_STATUSES)}"}), 400

    start, end = subscription_window(membership_type)

    sql = """
        INSERT INTO users (
            first_name, last_name, email, password, phone,
            gender, date_of_birth, role, status,
            membership_type, membership_price, join_date,
            subscription_start, subscription_end,
            payment_status, emergency_contact, address
        ) VALUES (%s, %s, %s, %s, %s, %s, %s, 'member', %s,
                  %s, %s, %s, %s, %s, 'pending', %s, %s)
        RETURNING id;
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT id FROM users WHERE email = %s;", (email,))
                if cur.fetchone():
                    return jsonify({"error": "Email already exists"}), 400

                cur.execute(sql, (
                    data["firstName"],
                    data["lastName"],
                    email,
                    hash_password(password),
                    data.get("phone"),
                    data.get("gender") or "male",
                    data.get("dateOfBirth") or None,
                    status,
                    membership_type,
                    data.get("membershipPrice") or DEFAULT_MEMBERSHIP_PRICE,
                    parse_iso_date(data.get("joinDate")),
                    start,
                    end,
                    data.get("emergencyContact") or None,
                    data.get("address") or None,
                ))
                member = cur.fetchone()
                conn.commit()
    except psycopg2.errors.UniqueViolation:
        return jsonify({"error": "Email already exists"}), 400
    except Exception as e:
        logger.error(f"Error adding member: {e}")
        return jsonify({"error": "Failed to add member"}), 500

    logger.info(f"Member added with ID: {member['id']}")
    return jsonify({"success": True, "message": "Member added successfully", "id": member["id"]}), 201


# --- UPDATE MEMBER ---
@members_bp.route("/members/<int:member_id>", methods=["PUT"])
def update_member(member_id: int) -> Tuple[Response, int]:
    """
    Partially update a member. Admins may update anyone; members only themselves.

    A new password is re-hashed. Emergency contact and address may be cleared
    with an empty string; other fields ignore empty values.

    Returns:
        200: Success status.
        400: No valid fields / invalid enum.
        403: Not allowed to edit this member.
        404: Member not found.
    """
    user_id, role, err, code = verify_token_from_request()
    if err:
        return err, code

    if role != "admin" and user_id != member_id:
        return jsonify({"error": "Permission denied"}), 403

    data: Dict[str, Any] = request.get_json(silent=True) or {}

    if role != "admin":
        # Members cannot change their own plan, price or account status.
        for key in ("membershipType", "membershipPrice", "status"):
            data.pop(key, None)

    if "membershipType" in data and data["membershipType"] and data["membershipType"] not in MEMBERSHIP_TYPES:
        return jsonify({"error": f"membershipType must be one of: {', '.join(MEMBERSHIP_TYPES)}"}), 400
    if "status" in data and data["status"] and data["status"] not in MEMBER_STATUSES:
        return jsonify({"error": f"status must be one of: {', '.join(MEMBER_STATUSES)}"}), 400
    if data.get("email") and not is_valid_email(data["email"]):
        return jsonify({"error": "Invalid email format"}), 400

    fields = []
    values = []

    for key, column in UPDATABLE_FIELDS.items():
        if key not in data:
            continue
        value = data[key]
        if not value and key not in CLEARABLE_FIELDS:
            continue
        if key == "email":
            value = value.strip().lower()
        fields.append(f"{column} = %s")
        values.append(value)

    if data.get("password"):
        if len(data["password"]) < MIN_PASSWORD_LENGTH:
            return jsonify({"error": f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"}), 400
        fields.append("password = %s")
        values.append(hash_password(data["password"]))

    if not fields:
        return jsonify({"error": "No fields to update"}), 400

    values.append(member_id)
    sql = f"UPDATE users SET {', '.join(fields)} WHERE id = %s AND role = 'member';"

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, values)
                updated = cur.rowcount
                conn.commit()
    except psycopg2.errors.UniqueViolation:
        return jsonify({"error": "Email already exists"}), 400
    except Exception as e:
        logger.error(f"Error updating member {member_id}: {e}")
        return jsonify({"error": "Failed to update member"}), 500

    if updated == 0:
        return jsonify({"error": "Member not found"}), 404

    return jsonify({"success": True, "message": "Member updated successfully"}), 200


# --- DELETE MEMBER (ADMIN) ---
@members_bp.route("/members/<int:member_id>", methods=["DELETE"])
def delete_member(member_id: int) -> Tuple[Response, int]:
    """
    Admin-only: permanently delete a member account.
    """
    _, _, err, code = verify_token_from_request(required_roles=["admin"])
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM users WHERE id = %s AND role = 'member';", (member_id,))
                deleted = cur.rowcount
                conn.commit()
    except Exception as e:
        logger.error(f"Error deleting member {member_id}: {e}")
        return jsonify({"error": "Failed to delete member"}), 500

    if deleted == 0:
        return jsonify({"error": "Member not found"}), 404

    logger.info(f"Member {member_id} deleted")
    return jsonify({"message": "Member deleted successfully"}), 200


# --- MY SUBSCRIPTION ---
@members_bp.route("/member/subscription", methods=["GET"])
def get_subscription() -> Tuple[Response, int]:
    """
    The authenticated member's plan, subscription window and payment status.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    sql = """
        SELECT id, email, first_name, last_name, membership_type, membership_price,
               subscription_start, subscription_end, payment_status, status
        FROM users
        WHERE id = %s AND role = 'member';
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (user_id,))
                member = cur.fetchone()
    except Exception as e:
        logger.error(f"Error fetching subscription: {e}")
        return jsonify({"error": "Failed to fetch subscription"}), 500

    if not member:
        return jsonify({"error": "Member not found"}), 404

    price = member["membership_price"]
    return jsonify({
        "id": member["id"],
        "email": member["email"],
        "firstName": member["first_name"],
        "lastName": member["last_name"],
        "membershipType": member["membership_type"],
        "membershipPrice": float(price) if price is not None else None,
        "subscriptionStart": iso_date(member["subscription_start"]),
        "subscriptionEnd": iso_date(member["subscription_end"]),
        "paymentStatus": member["payment_status"],
        "status": member["status"],
    }), 200
