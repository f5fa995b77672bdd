"""
Authentication service route handlers.

Provides routes for:
- Member self-registration (/register)
- Login (/auth/login)
- Password change (/auth/change-password)
- Current user profile (/user/profile)

All JWT and hashing logic is delegated to `auth_service.utils`.
"""

import logging
from datetime import date
from typing import Tuple, Dict, Any

import psycopg2.errors
from flask import Blueprint, request, jsonify, Response
from activecore.database.db_connection import get_db
from activecore.auth_service.utils import (
    MIN_PASSWORD_LENGTH,
    check_password,
    create_token,
    hash_password,
    is_valid_email,
    verify_token_from_request,
)
from activecore.payments_service.ledger import (
    DEFAULT_MEMBERSHIP_PRICE,
    DEFAULT_MEMBERSHIP_TYPE,
    MEMBERSHIP_TYPES,
    subscription_window,
)

auth_bp = Blueprint("auth", __name__)


# --- REQUEST LOGGING ---
@auth_bp.before_request
def before_request() -> None:
    """
    Log every incoming request method and path hitting the auth routes.
    Headers are not logged since they carry bearer tokens.
    """
    logging.info(f"[Auth] Incoming {request.method} {request.path}")


@auth_bp.after_request
def after_request(response: Response) -> Response:
    """
    Log the response status code for every request.

    Args:
        response (Response): The Flask response object.

    Returns:
        Response: The passed-through response object.
    """
    logging.info(f"[Auth] Response {response.status}")
    return response


def parse_iso_date(value: Any) -> date:
    """Parse YYYY-MM-DD (or a full ISO timestamp); fall back to today."""
    if not value:
        return date.today()
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return date.today()


# --- REGISTER ---
@auth_bp.route("/register", methods=["POST"])
def register() -> Tuple[Response, int]:
    """
    Register a new gym member.

    Expects a JSON body with:
    - firstName, lastName, email, password, phone (required)
    - gender, dateOfBirth, membershipType, membershipPrice,
      emergencyContact, address, joinDate (optional)

    Returns:
        201: {success, message, userId}
        400: Missing fields, invalid input, or email already registered.
        500: Server-side error (hashing or database).
    """
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    email: str = (data.get("email") or "").strip().lower()
    password: str = data.get("password") or ""
    first_name = data.get("firstName")
    last_name = data.get("lastName")
    phone = data.get("phone")
    membership_type = data.get("membershipType") or DEFAULT_MEMBERSHIP_TYPE

    # Validate input
    if not all([first_name, last_name, email, password, phone]):
        return jsonify({"error": "Missing required fields"}), 400
    if not is_valid_email(email):
        return jsonify({"error": "Invalid email format"}), 400
    if len(password) < MIN_PASSWORD_LENGTH:
        return jsonify({"error": f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"}), 400
    if membership_type not in MEMBERSHIP_TYPES:
        return jsonify({"error": f"membershipType must be one of: {', '.join(MEMBERSHIP_TYPES)}"}), 400

    logging.info(f"[Auth] Registering new member: {email}")

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT id FROM users WHERE email = %s;", (email,))
                if cur.fetchone():
                    return jsonify({"error": "Email already registered"}), 400
    except Exception as e:
        logging.error(f"[Auth] Registration lookup failed: {e}")
        return jsonify({"error": "Registration failed"}), 500

    try:
        pw_hash = hash_password(password)
    except Exception:
        return jsonify({"error": "Password hashing failed"}), 500

    start, end = subscription_window(membership_type)

    sql = """
        INSERT INTO users (
            first_name, last_name, email, password, phone,
            gender, date_of_birth, role, status,
            membership_type, membership_price, join_date,
            subscription_start, subscription_end,
            payment_status, emergency_contact, address
        ) VALUES (%s, %s, %s, %s, %s, %s, %s, 'member', 'active',
                  %s, %s, %s, %s, %s, 'pending', %s, %s)
        RETURNING id;
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (
                    first_name,
                    last_name,
                    email,
                    pw_hash,
                    phone,
                    data.get("gender") or "male",
                    data.get("dateOfBirth") or None,
                    membership_type,
                    data.get("membershipPrice") or DEFAULT_MEMBERSHIP_PRICE,
                    parse_iso_date(data.get("joinDate")),
                    start,
                    end,
                    data.get("emergencyContact") or None,
                    data.get("address") or None,
                ))
                user = cur.fetchone()
                conn.commit()
    except psycopg2.errors.UniqueViolation:
        return jsonify({"error": "Email already registered"}), 400
    except Exception as e:
        logging.error(f"[Auth] Registration insert failed: {e}")
        return jsonify({"error": "Registration failed"}), 500

    return jsonify({
        "success": True,
        "message": "Member registered successfully",
        "userId": user["id"],
    }), 201


# --- LOGIN ---
@auth_bp.route("/auth/login", methods=["POST"])
def login() -> Tuple[Response, int]:
    """
    Authenticate a user and return a JWT.

    Expects a JSON body with:
    - email (str)
    - password (str)

    Returns:
        200: JSON with token and user summary.
        400: Missing credentials.
        401: Invalid credentials (wrong password or email).
        500: Database error.
    """
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    email: str = (data.get("email") or "").strip().lower()
    password: str = data.get("password") or ""

    if not email or not password:
        return jsonify({"error": "Email and password required"}), 400

    sql = """
        SELECT id, email, password, first_name, last_name, role
        FROM users WHERE email = %s;
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (email,))
                user = cur.fetchone()
    except Exception as e:
        logging.error(f"[Auth] Login lookup failed: {e}")
        return jsonify({"error": "Login failed"}), 500

    if not user or not check_password(user["password"], password):
        return jsonify({"error": "Invalid credentials"}), 401

    token = create_token(user["id"], user["role"])

    return jsonify({
        "token": token,
        "user": {
            "id": user["id"],
            "email": user["email"],
            "firstName": user["first_name"],
            "lastName": user["last_name"],
            "role": user["role"],
        },
    }), 200


# --- CHANGE PASSWORD ---
@auth_bp.route("/auth/change-password", methods=["POST"])
def change_password() -> Tuple[Response, int]:
    """
    Change the authenticated user's password.

    Expects JSON: { "currentPassword": "...", "newPassword": "..." }

    Returns:
        200: Password updated.
        400: Missing or too-short new password.
        401: Current password incorrect / auth failure.
        404: User not found.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    data: Dict[str, Any] = request.get_json(silent=True) or {}
    current_password = data.get("currentPassword") or ""
    new_password = data.get("newPassword") or ""

    if not current_password or not new_password:
        return jsonify({"error": "currentPassword and newPassword required"}), 400
    if len(new_password) < MIN_PASSWORD_LENGTH:
        return jsonify({"error": f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"}), 400

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT password FROM users WHERE id = %s;", (user_id,))
                user = cur.fetchone()
                if not user:
                    return jsonify({"error": "User not found"}), 404

                if not check_password(user["password"], current_password):
                    return jsonify({"error": "Current password is incorrect"}), 401

                cur.execute(
                    "UPDATE users SET password = %s WHERE id = %s;",
                    (hash_password(new_password), user_id),
                )
                conn.commit()
    except Exception as e:
        logging.error(f"[Auth] Password change failed: {e}")
        return jsonify({"error": "Password change failed"}), 500

    return jsonify({"message": "Password updated successfully"}), 200


# --- CURRENT USER PROFILE ---
@auth_bp.route("/user/profile", methods=["GET"])
def get_profile() -> Tuple[Response, int]:
    """
    Retrieve the current user's identity (used by the QR attendance screen).

    Returns:
        200: {success, user{id, email, firstName, lastName, role}}
        401: Authentication failure.
        404: User not found.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT id, email, first_name, last_name, role FROM users WHERE id = %s;",
                    (user_id,),
                )
                user = cur.fetchone()
    except Exception as e:
        logging.error(f"[Auth] Profile lookup failed: {e}")
        return jsonify({"error": "Failed to fetch user profile"}), 500

    if not user:
        return jsonify({"error": "User not found"}), 404

    return jsonify({
        "success": True,
        "user": {
            "id": user["id"],
            "email": user["email"],
            "firstName": user["first_name"],
            "lastName": user["last_name"],
            "role": user["role"],
        },
    }), 200
