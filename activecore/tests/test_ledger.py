import re
import pytest
from datetime import date
from unittest.mock import MagicMock

from activecore.payments_service.ledger import (
    make_transaction_id,
    plan_from_label,
    record_paid_payment,
    subscription_window,
)


@pytest.mark.parametrize("plan,start,end", [
    ("monthly", date(2025, 3, 10), date(2025, 4, 10)),
    ("quarterly", date(2025, 3, 10), date(2025, 6, 10)),
    ("annual", date(2025, 3, 10), date(2026, 3, 10)),
    ("monthly", date(2025, 1, 31), date(2025, 2, 28)),
    ("annual", date(2024, 2, 29), date(2025, 2, 28)),
])
def test_subscription_window(plan, start, end):
    assert subscription_window(plan, start) == (start, end)


def test_subscription_window_defaults_to_today():
    start, _ = subscription_window("monthly")
    assert start == date.today()


def test_subscription_window_unknown_plan():
    with pytest.raises(ValueError):
        subscription_window("weekly")


@pytest.mark.parametrize("label,plan", [
    ("Annual Plan", "annual"),
    ("1 year", "annual"),
    ("Quarterly", "quarterly"),
    ("monthly", "monthly"),
    (None, "monthly"),
])
def test_plan_from_label(label, plan):
    assert plan_from_label(label) == plan


def test_make_transaction_id_format():
    tx = make_transaction_id("gcash")
    assert re.fullmatch(r"GCASH-\d{13}-[A-Z0-9]{9}", tx)


def test_record_paid_payment_activates_subscription():
    cur = MagicMock()
    cur.fetchone.return_value = {"id": 42}

    result = record_paid_payment(cur, 7, 1500.0, "monthly", "gcash", "GCASH-1-ABC")

    assert result["paymentId"] == 42
    assert result["subscription"]["type"] == "monthly"
    assert cur.execute.call_count == 2

    update_sql, update_params = cur.execute.call_args_list[1][0]
    assert "UPDATE users" in update_sql
    assert update_params[2:] == ("monthly", 1500.0, 7)
