"""
PayMongo gateway adapter.

Creates GCash payment sources and interprets webhook callbacks.
HTTP goes through `requests`; webhook payloads are authenticated with an
HMAC-SHA256 digest of the raw request body.
"""

import hashlib
import hmac
import logging
import os
from typing import Optional, Dict, Any, Tuple

import requests
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

PAYMONGO_BASE_URL = os.getenv("PAYMONGO_BASE_URL", "https://api.paymongo.com/v1")
PAYMONGO_SECRET_KEY = os.getenv("PAYMONGO_SECRET_KEY", "")
PAYMONGO_WEBHOOK_SECRET = os.getenv("PAYMONGO_WEBHOOK_SECRET", "")
APP_URL = os.getenv("APP_URL", "http://localhost:3000")

REQUEST_TIMEOUT_SECONDS = 15

# Webhook event type -> terminal payment status
EVENT_STATUSES = {
    "payment.paid": "paid",
    "source.chargeable": "paid",
    "payment.failed": "failed",
}


class PaymentGatewayError(Exception):
    """Raised when PayMongo cannot be reached or answers with an error."""


def create_gcash_source(amount: float, plan: str, user_id: int,
                        success_url: Optional[str] = None,
                        failed_url: Optional[str] = None) -> Tuple[str, Optional[str]]:
    """
    Create a GCash source on PayMongo.

    Args:
        amount (float): Amount in pesos (converted to centavos for the API).
        plan (str): Membership plan label, stored in metadata.
        user_id (int): Paying member, stored in metadata.
        success_url (str, optional): Redirect after successful authorization.
        failed_url (str, optional): Redirect after failed authorization.

    Returns:
        tuple: (source_id, checkout_url)

    Raises:
        PaymentGatewayError: transport failure, non-2xx answer or malformed body.
    """
    payload = {
        "data": {
            "attributes": {
                "amount": int(round(float(amount) * 100)),
                "currency": "PHP",
                "type": "gcash",
                "redirect": {
                    "success": (success_url or f"{APP_URL}/payment/success") + "?sourceId={id}",
                    "failed": (failed_url or f"{APP_URL}/payment/failed") + "?sourceId={id}",
                },
                "metadata": {"userId": user_id, "plan": plan},
            }
        }
    }

    try:
        response = requests.post(
            f"{PAYMONGO_BASE_URL}/sources",
            json=payload,
            auth=(PAYMONGO_SECRET_KEY, ""),
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        body = response.json()
    except requests.exceptions.RequestException as e:
        raise PaymentGatewayError(f"PayMongo source creation failed: {e}") from e
    except ValueError as e:
        raise PaymentGatewayError("PayMongo returned a non-JSON response") from e

    source = (body or {}).get("data") or {}
    source_id = source.get("id")
    if not source_id:
        raise PaymentGatewayError("PayMongo response did not include a source id")

    checkout_url = ((source.get("attributes") or {}).get("redirect") or {}).get("checkout_url")
    return source_id, checkout_url


def gateway_reachable(timeout: float = 1.5) -> bool:
    """Cheap reachability probe used by the system status endpoint."""
    try:
        requests.get(f"{PAYMONGO_BASE_URL}/sources", auth=(PAYMONGO_SECRET_KEY, ""), timeout=timeout)
        return True
    except requests.exceptions.RequestException:
        return False


def _signature_from_header(header: str) -> Optional[str]:
    header = (header or "").strip()
    if not header:
        return None
    if "=" not in header and "," not in header:
        return header
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "sha256" and value:
            return value
    return None


def verify_signature(raw_body: bytes, header: str, secret: str) -> bool:
    """
    Check a webhook signature.

    The header may be the bare hex digest or a comma-separated list that
    contains `sha256=<hex digest>`. Missing secret or header never verifies.
    """
    if not secret:
        return False

    provided = _signature_from_header(header)
    if not provided:
        return False

    expected = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, provided.lower())


def _mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def extract_event(event: Any) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """
    Pull (event_type, source_id, payment_id) out of a webhook body.

    PayMongo nests the resource under data / data.attributes depending on
    the event, so several shapes are accepted. Anything unrecognised yields
    None for that part.
    """
    event = _mapping(event)
    event_type = _text(event.get("type"))
    data = _mapping(event.get("data"))
    attributes = _mapping(data.get("attributes"))

    # Wrapped events: {"data": {"attributes": {"type": ..., "data": {...}}}}
    if not event_type and _text(attributes.get("type")):
        event_type = attributes["type"]
        data = _mapping(attributes.get("data"))
        attributes = _mapping(data.get("attributes"))

    source = attributes.get("source")
    if isinstance(source, dict):
        source_id = _text(source.get("id"))
    else:
        source_id = _text(source)

    resource_id = _text(data.get("id"))
    payment_id = _text(attributes.get("payment"))

    if resource_id and resource_id.startswith("src_"):
        source_id = source_id or resource_id
    else:
        payment_id = payment_id or resource_id

    return event_type, source_id, payment_id


def status_for_event(event_type: Optional[str]) -> Optional[str]:
    return EVENT_STATUSES.get(event_type or "")
