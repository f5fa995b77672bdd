import hashlib
import hmac
import pytest
import requests
from unittest.mock import MagicMock

from activecore.payments_service import paymongo
from activecore.payments_service.paymongo import (
    PaymentGatewayError,
    create_gcash_source,
    extract_event,
    status_for_event,
    verify_signature,
)

BODY = b'{"data": {"id": "evt_1"}}'
SECRET = "whsk_test"
DIGEST = hmac.new(SECRET.encode(), BODY, hashlib.sha256).hexdigest()


@pytest.mark.parametrize("header,expected", [
    (DIGEST, True),
    (f"t=1700000000,sha256={DIGEST}", True),
    (f"t=1700000000, sha256={DIGEST.upper()}", True),
    ("sha256=deadbeef", False),
    ("t=1700000000,te=abc", False),
    ("", False),
])
def test_verify_signature(header, expected):
    assert verify_signature(BODY, header, SECRET) is expected


def test_verify_signature_without_secret():
    assert verify_signature(BODY, DIGEST, "") is False


def test_verify_signature_tampered_body():
    assert verify_signature(BODY + b" ", DIGEST, SECRET) is False


def test_extract_event_wrapped_source():
    event = {"data": {"id": "evt_1", "attributes": {
        "type": "source.chargeable",
        "data": {"id": "src_1", "attributes": {}},
    }}}
    assert extract_event(event) == ("source.chargeable", "src_1", None)


def test_extract_event_payment_with_source():
    event = {"type": "payment.paid", "data": {"id": "pay_1", "attributes": {"source": {"id": "src_9"}}}}
    assert extract_event(event) == ("payment.paid", "src_9", "pay_1")


def test_extract_event_empty():
    assert extract_event({}) == (None, None, None)


@pytest.mark.parametrize("event,expected", [
    ([], (None, None, None)),
    ("payment.paid", (None, None, None)),
    ({"data": "src_abc"}, (None, None, None)),
    ({"type": "payment.paid", "data": {"id": "pay_1", "attributes": "paid"}}, ("payment.paid", None, "pay_1")),
    ({"data": {"attributes": {"type": ["payment.paid"], "data": 7}}}, (None, None, None)),
])
def test_extract_event_odd_shapes(event, expected):
    assert extract_event(event) == expected


@pytest.mark.parametrize("event_type,status", [
    ("payment.paid", "paid"),
    ("source.chargeable", "paid"),
    ("payment.failed", "failed"),
    ("payment.refunded", None),
    (None, None),
])
def test_status_for_event(event_type, status):
    assert status_for_event(event_type) == status


def test_create_gcash_source(mocker):
    response = MagicMock()
    response.json.return_value = {"data": {"id": "src_1", "attributes": {
        "redirect": {"checkout_url": "https://pay.example/src_1"}}}}
    post = mocker.patch("activecore.payments_service.paymongo.requests.post", return_value=response)

    source_id, checkout_url = create_gcash_source(1500, "monthly", 3)

    assert (source_id, checkout_url) == ("src_1", "https://pay.example/src_1")
    payload = post.call_args.kwargs["json"]["data"]["attributes"]
    assert payload["amount"] == 150000
    assert payload["currency"] == "PHP"
    assert payload["type"] == "gcash"
    assert payload["redirect"]["success"].endswith("?sourceId={id}")
    assert payload["metadata"] == {"userId": 3, "plan": "monthly"}
    assert post.call_args.kwargs["timeout"] == paymongo.REQUEST_TIMEOUT_SECONDS


def test_create_gcash_source_http_error(mocker):
    response = MagicMock()
    response.raise_for_status.side_effect = requests.exceptions.HTTPError("401 Unauthorized")
    mocker.patch("activecore.payments_service.paymongo.requests.post", return_value=response)

    with pytest.raises(PaymentGatewayError):
        create_gcash_source(1500, "monthly", 3)


def test_create_gcash_source_missing_id(mocker):
    response = MagicMock()
    response.json.return_value = {"data": {}}
    mocker.patch("activecore.payments_service.paymongo.requests.post", return_value=response)

    with pytest.raises(PaymentGatewayError):
        create_gcash_source(1500, "monthly", 3)
