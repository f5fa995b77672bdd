"""
Shared authentication helpers.
Provides token creation, verification, role enforcement and password hashing.
"""

import os
import re
import jwt
from datetime import datetime, timedelta, timezone
from typing import Tuple, Optional, Any
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from flask import jsonify, request, Response
from dotenv import load_dotenv

# Load .env only once here
load_dotenv()

# Load secrets & configs
JWT_SECRET = os.getenv("JWT_SECRET")
if not JWT_SECRET:
    raise RuntimeError("JWT_SECRET is missing. Set it in .env")

TOKEN_EXPIRATION_MINUTES = int(os.getenv("TOKEN_EXPIRATION_MINUTES", 1440))  # 24 hours
JWT_ALGORITHM = "HS256"

ROLES = ("member", "admin")
MIN_PASSWORD_LENGTH = 6
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

ph = PasswordHasher()


# --- PASSWORDS ---
def hash_password(password: str) -> str:
    """Hash a plaintext password with Argon2."""
    return ph.hash(password)


def check_password(password_hash: str, password: str) -> bool:
    """
    Compare a plaintext password against a stored Argon2 hash.

    Returns False for a wrong password or an unreadable hash instead of raising.
    """
    try:
        return ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def is_valid_email(email: Any) -> bool:
    if not email or not isinstance(email, str):
        return False
    return bool(EMAIL_RE.match(email.strip()))


# --- JWT CREATION ---
def create_token(user_id: int, role: str) -> str:
    """
    Sign a session token for a member or admin.

    The user id travels as a string ``sub`` claim (PyJWT rejects integers there);
    ``role`` is what the admin-only routes check.
    """
    issued = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "role": role,
        "iat": issued,
        "exp": issued + timedelta(minutes=TOKEN_EXPIRATION_MINUTES),
    }
    return jwt.encode(claims, JWT_SECRET, algorithm=JWT_ALGORITHM)


def _decode(token: str) -> dict:
    return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])


def _user_id_from_claims(claims: dict) -> Optional[int]:
    try:
        return int(claims.get("sub"))
    except (TypeError, ValueError):
        return None


# --- JWT VALIDATION ---
def verify_token_from_request(required_roles: Optional[list] = None) -> Tuple[Optional[int], Optional[str], Optional[Response], Optional[int]]:
    """
    Authenticate the current request from its ``Authorization: Bearer`` header.

    Args:
        required_roles (list, optional): Roles allowed through, e.g. ["admin"].
            Any authenticated role passes when omitted.

    Returns:
        tuple: (user_id, role, error_response, status_code). On success the last
               two are None; on failure the first two are None and the route
               should return ``error_response, status_code`` unchanged.
    """
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return None, None, jsonify({"error": "missing token"}), 401

    try:
        claims = _decode(header.split(" ", 1)[1])
    except jwt.ExpiredSignatureError:
        return None, None, jsonify({"error": "token expired"}), 401
    except jwt.InvalidTokenError:
        return None, None, jsonify({"error": "invalid token"}), 401

    user_id = _user_id_from_claims(claims)
    role = claims.get("role")
    if user_id is None or role not in ROLES:
        return None, None, jsonify({"error": "invalid token"}), 401

    if required_roles and role not in required_roles:
        return None, None, jsonify({"error": "permission denied"}), 403

    return user_id, role, None, None


def verify_token(token: str) -> Optional[int]:
    """Member id carried by ``token``, or None when it is expired or forged."""
    try:
        claims = _decode(token)
    except jwt.InvalidTokenError:
        return None
    return _user_id_from_claims(claims)
