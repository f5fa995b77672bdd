"""
Membership ledger helpers shared by registration, member admin and payments.

Subscription windows are derived from the membership type; paying for a plan
writes a payment row and overwrites the single subscription window stored on
the user row.
"""

import random
import string
import time
from datetime import date
from typing import Optional, Tuple, Dict, Any

from dateutil.relativedelta import relativedelta

MEMBERSHIP_TYPES = ("monthly", "quarterly", "annual")
DEFAULT_MEMBERSHIP_TYPE = "monthly"
DEFAULT_MEMBERSHIP_PRICE = 1500

TERMINAL_STATUSES = ("paid", "failed")

_PLAN_LENGTHS = {
    "monthly": relativedelta(months=1),
    "quarterly": relativedelta(months=3),
    "annual": relativedelta(years=1),
}


def subscription_window(membership_type: str, start: Optional[date] = None) -> Tuple[date, date]:
    """
    Compute (start, end) for a membership plan.

    Month arithmetic is calendar based and clamps to the end of the month,
    so Jan 31 + 1 month is Feb 28/29.

    Raises:
        ValueError: unknown membership type.
    """
    if membership_type not in _PLAN_LENGTHS:
        raise ValueError(f"Unknown membership type: {membership_type}")

    start = start or date.today()
    return start, start + _PLAN_LENGTHS[membership_type]


def plan_from_label(label: Optional[str]) -> str:
    """Map a loose plan label ('Annual plan', 'quarterly') onto a membership type."""
    text = (label or "").lower()
    if "year" in text or "annual" in text:
        return "annual"
    if "quarter" in text:
        return "quarterly"
    return "monthly"


def make_transaction_id(prefix: str) -> str:
    """GCASH-1700000000000-AB12CD34E style identifiers."""
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=9))
    return f"{prefix.upper()}-{int(time.time() * 1000)}-{suffix}"


def record_paid_payment(cur, user_id: int, amount: float, membership_type: str,
                        payment_method: str, transaction_id: str,
                        notes: Optional[str] = None) -> Dict[str, Any]:
    """
    Insert a paid payment and activate the member's subscription window.

    The two statements are not wrapped in their own transaction; the caller
    commits.

    Returns:
        dict: paymentId plus the subscription window that was applied.
    """
    start, end = subscription_window(membership_type)

    cur.execute(
        """
        INSERT INTO payments (
            user_id, amount, payment_date, payment_method,
            membership_type, payment_status, transaction_id,
            subscription_start, subscription_end, notes
        ) VALUES (%s, %s, NOW(), %s, %s, 'paid', %s, %s, %s, %s)
        RETURNING id;
        """,
        (user_id, amount, payment_method, membership_type, transaction_id,
         start, end, notes or ""),
    )
    payment = cur.fetchone()

    activate_subscription(cur, user_id, membership_type, amount, start, end)

    return {
        "paymentId": payment["id"],
        "subscription": {
            "start": start.isoformat(),
            "end": end.isoformat(),
            "type": membership_type,
            "amount": amount,
        },
    }


def activate_subscription(cur, user_id: int, membership_type: str, amount: float,
                          start: date, end: date) -> None:
    cur.execute(
        """
        UPDATE users
        SET status = 'active',
            payment_status = 'paid',
            subscription_start = %s,
            subscription_end = %s,
            membership_type = %s,
            membership_price = %s
        WHERE id = %s;
        """,
        (start, end, membership_type, amount, user_id),
    )
