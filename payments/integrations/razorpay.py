import hashlib
import hmac
import json
import logging

import requests
from django.conf import settings
from requests import RequestException
from requests.auth import HTTPBasicAuth

from projectbuzz.exceptions import DownstreamFailure

logger = logging.getLogger(__name__)


class RazorpayError(DownstreamFailure):
    pass


def _config() -> dict:
    return getattr(settings, "RAZORPAY", {})


def is_mock() -> bool:
    return bool(_config().get("MOCK"))


def _auth() -> HTTPBasicAuth:
    cfg = _config()
    if not cfg.get("KEY_ID") or not cfg.get("KEY_SECRET"):
        raise RazorpayError("Missing RAZORPAY_KEY_ID / RAZORPAY_KEY_SECRET")
    return HTTPBasicAuth(cfg["KEY_ID"], cfg["KEY_SECRET"])


def _request(method: str, path: str, *, payload=None) -> dict:
    cfg = _config()
    url = f"{cfg.get('BASE_URL', 'https://api.razorpay.com/v1').rstrip('/')}/{path.lstrip('/')}"
    try:
        resp = requests.request(method, url, auth=_auth(), json=payload, timeout=cfg.get("TIMEOUT", 20))
    except RequestException as e:
        raise RazorpayError(f"Gateway request failed: {e}")
    try:
        data = resp.json()
    except ValueError:
        data = {"raw": resp.text}
    if resp.status_code == 200:
        return data
    if resp.status_code == 401:
        hint = "Check RAZORPAY_KEY_ID / RAZORPAY_KEY_SECRET."
    elif resp.status_code == 400:
        hint = (data.get("error") or {}).get("description", "Bad request") if isinstance(data, dict) else "Bad request"
    else:
        hint = f"HTTP {resp.status_code}"
    raise RazorpayError(f"{method} {path} failed: {hint}. Response: {json.dumps(data)[:500]}")


def create_order(*, receipt: str, amount: int, currency: str = "INR", notes=None) -> dict:
    """Create a gateway order for ``amount`` paise. Returns the gateway's order object."""
    if is_mock():
        return {
            "id": f"order_{receipt}_mock",
            "entity": "order",
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "status": "created",
            "notes": notes or {},
        }
    data = _request("POST", "orders", payload={
        "amount": amount,
        "currency": currency,
        "receipt": receipt,
        "notes": notes or {},
    })
    if not data.get("id"):
        raise RazorpayError("Invalid response from gateway: missing order id")
    return data


def get_order_status(gateway_order_id: str) -> dict:
    if is_mock():
        return {"id": gateway_order_id, "status": "created"}
    return _request("GET", f"orders/{gateway_order_id}")


def get_order_payments(gateway_order_id: str) -> list:
    if is_mock():
        return []
    return _request("GET", f"orders/{gateway_order_id}/payments").get("items", [])


def get_payment_details(gateway_payment_id: str) -> dict:
    if is_mock():
        return {"id": gateway_payment_id, "status": "captured", "method": "card"}
    return _request("GET", f"payments/{gateway_payment_id}")


def _hmac_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def payment_signature(gateway_order_id: str, gateway_payment_id: str) -> str:
    """Signature the checkout returns for a captured payment."""
    secret = _config().get("KEY_SECRET", "")
    return _hmac_hex(secret, f"{gateway_order_id}|{gateway_payment_id}".encode("utf-8"))


def verify_payment_signature(gateway_order_id: str, gateway_payment_id: str, signature: str) -> bool:
    if not _config().get("KEY_SECRET"):
        logger.error("Cannot verify payment signature: RAZORPAY_KEY_SECRET is not set")
        return False
    if not (gateway_order_id and gateway_payment_id and signature):
        return False
    return hmac.compare_digest(payment_signature(gateway_order_id, gateway_payment_id), str(signature))


def webhook_signature(raw_body: bytes) -> str:
    cfg = _config()
    secret = cfg.get("WEBHOOK_SECRET") or cfg.get("KEY_SECRET", "")
    return _hmac_hex(secret, raw_body)


def verify_webhook_signature(raw_body: bytes, signature: str) -> bool:
    cfg = _config()
    if not (cfg.get("WEBHOOK_SECRET") or cfg.get("KEY_SECRET")):
        logger.error("Cannot verify webhook: RAZORPAY_WEBHOOK_SECRET is not set")
        return False
    if not signature:
        return False
    return hmac.compare_digest(webhook_signature(raw_body), str(signature))
