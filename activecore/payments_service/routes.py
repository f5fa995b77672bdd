"""
Payments service routes.

- Member GCash payment (auto-approved) and admin cash recording.
- Admin payment listing and revenue summary.
- PayMongo source creation, webhook reconciliation and status lookup.
"""

import json
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Tuple, Dict, Any

import psycopg2.errors
from flask import Blueprint, request, jsonify, Response
from activecore.database.db_connection import get_db
from activecore.auth_service.utils import verify_token_from_request
from activecore.payments_service import paymongo
from activecore.payments_service.ledger import (
    MEMBERSHIP_TYPES,
    TERMINAL_STATUSES,
    activate_subscription,
    make_transaction_id,
    plan_from_label,
    record_paid_payment,
    subscription_window,
)

payments_bp = Blueprint("payments", __name__)

logger = logging.getLogger(__name__)


def _jsonable(row: Dict[str, Any]) -> Dict[str, Any]:
    """Convert Decimal and date values of a DB row for JSON output."""
    out = {}
    for key, value in row.items():
        if isinstance(value, Decimal):
            value = float(value)
        elif isinstance(value, (date, datetime)):
            value = value.isoformat()
        out[key] = value
    return out


def _parse_payment_request(data: Dict[str, Any]):
    """Validate the shared fields of GCash / cash payments. Returns (amount, plan, error)."""
    membership_type = data.get("membershipType")
    amount = data.get("amount")

    if not membership_type or not amount:
        return None, None, "Missing required fields"
    if membership_type not in MEMBERSHIP_TYPES:
        return None, None, f"membershipType must be one of: {', '.join(MEMBERSHIP_TYPES)}"
    try:
        amount = float(amount)
    except (TypeError, ValueError):
        return None, None, "amount must be a number"
    if amount <= 0:
        return None, None, "Valid payment amount is required"

    return amount, membership_type, None


# --- GCASH PAYMENT (MEMBER) ---
@payments_bp.route("/member/payment/gcash", methods=["POST"])
def pay_with_gcash() -> Tuple[Response, int]:
    """
    Record an auto-approved GCash payment and activate the subscription.

    Members pay for themselves; admins may pass another userId.

    Returns:
        201: payment id, transaction id and the new subscription window.
        400: Missing or invalid fields.
        403: Paying for another member without admin role.
    """
    user_id, role, err, code = verify_token_from_request()
    if err:
        return err, code

    data: Dict[str, Any] = request.get_json(silent=True) or {}
    target_id = data.get("userId") or user_id
    try:
        target_id = int(target_id)
    except (TypeError, ValueError):
        return jsonify({"error": "userId must be an integer"}), 400

    if role != "admin" and target_id != user_id:
        return jsonify({"error": "Permission denied"}), 403

    amount, membership_type, problem = _parse_payment_request(data)
    if problem:
        return jsonify({"error": problem}), 400

    transaction_id = make_transaction_id("GCASH")
    logger.info(f"Processing GCash payment for user {target_id}: {membership_type} {amount}")

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                result = record_paid_payment(
                    cur, target_id, amount, membership_type,
                    data.get("paymentMethod") or "gcash", transaction_id,
                )
                conn.commit()
    except psycopg2.errors.ForeignKeyViolation:
        return jsonify({"error": "Member not found"}), 404
    except Exception as e:
        logger.error(f"GCash payment error: {e}")
        return jsonify({"error": "Payment processing failed"}), 500

    return jsonify({
        "success": True,
        "message": "Payment successful! Your subscription is now active.",
        "transactionId": transaction_id,
        "paymentStatus": "paid",
        **result,
    }), 201


# --- CASH PAYMENT (ADMIN) ---
@payments_bp.route("/admin/payments/record-cash", methods=["POST"])
def record_cash_payment() -> Tuple[Response, int]:
    """
    Admin-only: record a walk-in cash payment for a member.
    """
    _, _, err, code = verify_token_from_request(required_roles=["admin"])
    if err:
        return err, code

    data: Dict[str, Any] = request.get_json(silent=True) or {}
    if not data.get("userId"):
        return jsonify({"error": "Missing required fields"}), 400

    amount, membership_type, problem = _parse_payment_request(data)
    if problem:
        return jsonify({"error": problem}), 400

    transaction_id = make_transaction_id("CASH")

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                result = record_paid_payment(
                    cur, int(data["userId"]), amount, membership_type,
                    data.get("paymentMethod") or "cash", transaction_id,
                    notes=data.get("notes"),
                )
                conn.commit()
    except psycopg2.errors.ForeignKeyViolation:
        return jsonify({"error": "Member not found"}), 404
    except Exception as e:
        logger.error(f"Cash payment recording error: {e}")
        return jsonify({"error": "Failed to record payment"}), 500

    return jsonify({
        "success": True,
        "message": "Payment recorded! Member subscription is now active.",
        "transactionId": transaction_id,
        "paymentStatus": "paid",
        **result,
    }), 201


# --- ALL PAYMENTS (ADMIN) ---
@payments_bp.route("/admin/payments/all", methods=["GET"])
def list_payments() -> Tuple[Response, int]:
    """Admin-only: every payment with the member's name, newest first."""
    _, _, err, code = verify_token_from_request(required_roles=["admin"])
    if err:
        return err, code

    sql = """
        SELECT p.id, p.user_id, p.amount, p.payment_method, p.membership_type,
               COALESCE(p.payment_status, 'paid') AS payment_status,
               p.payment_date, p.transaction_id,
               p.subscription_start, p.subscription_end, p.notes,
               u.first_name AS "firstName", u.last_name AS "lastName", u.email
        FROM payments p
        INNER JOIN users u ON p.user_id = u.id
        ORDER BY COALESCE(p.payment_date, p.created_at) DESC;
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql)
                payments = [_jsonable(dict(row)) for row in cur.fetchall()]
    except Exception as e:
        logger.error(f"Get all payments error: {e}")
        return jsonify({"error": "Failed to get payments"}), 500

    return jsonify(payments), 200


# --- PAYMENT SUMMARY (ADMIN) ---
@payments_bp.route("/admin/payments/summary", methods=["GET"])
def payment_summary() -> Tuple[Response, int]:
    """Admin-only: revenue from paid payments and paid/pending counts."""
    _, _, err, code = verify_token_from_request(required_roles=["admin"])
    if err:
        return err, code

    sql = """
        SELECT
            COALESCE(SUM(amount) FILTER (WHERE payment_status = 'paid'), 0) AS total_revenue,
            COUNT(*) FILTER (WHERE payment_status = 'pending') AS pending_payments,
            COUNT(*) FILTER (WHERE payment_status = 'paid') AS paid_payments
        FROM payments;
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql)
                row = cur.fetchone()
    except Exception as e:
        logger.error(f"Payment summary error: {e}")
        return jsonify({"error": "Failed to get payment summary"}), 500

    return jsonify({
        "success": True,
        "totalRevenue": float(row["total_revenue"] or 0),
        "pendingPayments": int(row["pending_payments"] or 0),
        "paidPayments": int(row["paid_payments"] or 0),
    }), 200


# --- PAYMONGO: CREATE SOURCE ---
@payments_bp.route("/payments/paymongo/create-source", methods=["POST"])
def create_source() -> Tuple[Response, int]:
    """
    Create a PayMongo GCash source and a matching pending payment row.

    Expects JSON: { "amount": number, "plan": str,
                    "successRedirect"?: str, "failedRedirect"?: str }

    Returns:
        200: { success, checkoutUrl, sourceId }
        400: Missing amount or plan.
        500: Gateway or database failure.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    data: Dict[str, Any] = request.get_json(silent=True) or {}
    amount = data.get("amount")
    plan = data.get("plan")

    if not amount or not plan:
        return jsonify({"error": "Missing amount or plan"}), 400
    try:
        amount = float(amount)
    except (TypeError, ValueError):
        return jsonify({"error": "amount must be a number"}), 400

    try:
        source_id, checkout_url = paymongo.create_gcash_source(
            amount, plan, user_id,
            success_url=data.get("successRedirect"),
            failed_url=data.get("failedRedirect"),
        )
    except paymongo.PaymentGatewayError as e:
        logger.warning(f"create-source failed: {e}")
        return jsonify({"error": "Create source failed"}), 500

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO payments (user_id, amount, payment_method, membership_type,
                                          payment_status, transaction_id)
                    VALUES (%s, %s, 'gcash', %s, 'pending', %s);
                    """,
                    (user_id, amount, plan_from_label(plan), source_id),
                )
                conn.commit()
    except Exception as e:
        logger.error(f"Failed to record pending PayMongo payment {source_id}: {e}")
        return jsonify({"error": "Create source failed"}), 500

    return jsonify({"success": True, "checkoutUrl": checkout_url, "sourceId": source_id}), 200


# --- PAYMONGO: WEBHOOK ---
@payments_bp.route("/payments/paymongo/webhook", methods=["POST"])
def paymongo_webhook() -> Tuple[Response, int]:
    """
    Reconcile a PayMongo callback against the payments ledger.

    Unverifiable, unknown or already-settled events are acknowledged with 200
    and change nothing, so the gateway does not keep retrying them.
    """
    raw_body = request.get_data()
    signature = (request.headers.get("Paymongo-Signature")
                 or request.headers.get("X-Paymongo-Signature") or "")

    if not paymongo.verify_signature(raw_body, signature, paymongo.PAYMONGO_WEBHOOK_SECRET):
        logger.warning("Invalid PayMongo webhook signature; ignoring event")
        return jsonify({"received": True}), 200

    try:
        event = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return jsonify({"error": "Malformed webhook payload"}), 400

    if not isinstance(event, dict):
        return jsonify({"received": True}), 200

    event_type, source_id, payment_id = paymongo.extract_event(event)
    new_status = paymongo.status_for_event(event_type)
    logger.info(f"PayMongo webhook received: {event_type}")

    ids = [i for i in (source_id, payment_id) if i]
    if not new_status or not ids:
        return jsonify({"received": True}), 200

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT id, user_id, amount, membership_type, payment_status
                    FROM payments
                    WHERE transaction_id = ANY(%s)
                    LIMIT 1;
                    """,
                    (ids,),
                )
                record = cur.fetchone()

                if not record:
                    logger.warning(f"No payment record matches {ids}")
                    return jsonify({"received": True}), 200

                if record["payment_status"] in TERMINAL_STATUSES:
                    return jsonify({"received": True}), 200

                if new_status == "paid":
                    plan = plan_from_label(record["membership_type"])
                    start, end = subscription_window(plan)
                    cur.execute(
                        """
                        UPDATE payments
                        SET payment_status = 'paid', payment_date = NOW(),
                            subscription_start = %s, subscription_end = %s
                        WHERE id = %s AND payment_status = 'pending';
                        """,
                        (start, end, record["id"]),
                    )
                    activate_subscription(cur, record["user_id"], plan,
                                          float(record["amount"]), start, end)
                else:
                    cur.execute(
                        """
                        UPDATE payments
                        SET payment_status = 'failed', payment_date = NOW()
                        WHERE id = %s AND payment_status = 'pending';
                        """,
                        (record["id"],),
                    )
                conn.commit()
    except Exception as e:
        logger.error(f"PayMongo webhook processing failed: {e}")
        return jsonify({"error": "Webhook processing failed"}), 500

    logger.info(f"Payment {record['id']} for user {record['user_id']} marked {new_status}")
    return jsonify({"received": True}), 200


# --- PAYMONGO: VERIFY ---
@payments_bp.route("/payments/paymongo/verify", methods=["GET"])
def verify_payment() -> Tuple[Response, int]:
    """Look up a payment's status by source or payment id."""
    user_id, role, err, code = verify_token_from_request()
    if err:
        return err, code

    transaction_id = request.args.get("sourceId") or request.args.get("paymentId")
    if not transaction_id:
        return jsonify({"error": "Missing sourceId or paymentId"}), 400

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT * FROM payments WHERE transaction_id = %s LIMIT 1;", (transaction_id,))
                payment = cur.fetchone()
    except Exception as e:
        logger.error(f"Verify payment error: {e}")
        return jsonify({"error": "Failed to verify payment"}), 500

    if not payment:
        return jsonify({"success": True, "status": "pending", "message": "No payment found yet."}), 200

    if role != "admin" and payment["user_id"] != user_id:
        return jsonify({"error": "Permission denied"}), 403

    return jsonify({"success": True, "status": payment["payment_status"], "payment": _jsonable(dict(payment))}), 200
