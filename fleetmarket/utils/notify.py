import hashlib
import hmac
import json
import logging
import time
from typing import Any, Dict

import httpx

from ..config import settings


logger = logging.getLogger("fleetmarket.notify")


def _sign(secret: str, ts: str, event: str, body: bytes) -> str:
    msg = (ts + event).encode("utf-8") + body
    return hmac.new(secret.encode("utf-8"), msg, hashlib.sha256).hexdigest()


def _post(url: str, event: str, payload: Dict[str, Any], timeout: float) -> None:
    body = json.dumps(payload, separators=(",", ":"), default=str).encode("utf-8")
    ts = str(int(time.time()))
    headers = {
        "Content-Type": "application/json",
        "X-Webhook-Event": event,
        "X-Webhook-Ts": ts,
    }
    if settings.NOTIFY_WEBHOOK_SECRET:
        headers["X-Webhook-Sign"] = _sign(settings.NOTIFY_WEBHOOK_SECRET, ts, event, body)
    try:
        with httpx.Client(timeout=timeout) as client:
            client.post(url, content=body, headers=headers)
    except httpx.HTTPError as e:
        # Best-effort; no retries
        logger.warning("notify %s failed: %s", event, e)


def notify_dealership(event: str, payload: Dict[str, Any], tasks=None) -> bool:
    """Queue a dealer notification. Returns False when no webhook is configured."""
    url = settings.NOTIFY_WEBHOOK_URL
    if not url:
        return False
    timeout = float(settings.NOTIFY_TIMEOUT_SECS)
    if tasks is not None:
        tasks.add_task(_post, url, event, payload, timeout)
    else:
        _post(url, event, payload, timeout)
    return True
