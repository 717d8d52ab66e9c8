import requests
import logging
import os
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_WEBHOOK = os.getenv("PRICING_ALERT_WEBHOOK_URL", "")
DEFAULT_MAX_RETRIES = int(os.getenv("PRICING_ALERT_MAX_RETRIES", "3"))
DEFAULT_TIMEOUT_SECONDS = float(os.getenv("PRICING_ALERT_TIMEOUT_SECONDS", "2"))


class AlertClient:
    """Operator alert channel for data problems found while serving requests.

    Every event is logged; when a webhook is configured it is also posted there,
    on a background thread unless `blocking` is set. Reporting never raises.
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff: float = 0.5,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        blocking: bool = False,
    ):
        self.webhook = DEFAULT_WEBHOOK if webhook_url is None else webhook_url
        self.max_retries = max(1, max_retries)
        self.backoff = backoff
        self.timeout = timeout
        self.blocking = blocking
        logger.debug("AlertClient initialized with webhook=%s max_retries=%s", self.webhook or "<none>", self.max_retries)

    def report(self, event: str, book_size: Optional[str] = None, detail: Any = None) -> bool:
        """Log the event and hand it to the webhook.

        Returns False when no webhook is configured. A blocking client returns
        the delivery result; otherwise True once delivery has been started.
        """
        payload: Dict[str, Any] = {
            "event": event,
            "book_size": book_size,
            "detail": detail,
            "occurred_at": datetime.now(timezone.utc).isoformat(),
        }
        logger.warning("Pricing alert event=%s book_size=%s detail=%s", event, book_size, detail)
        if not self.webhook:
            return False
        if self.blocking:
            return self._deliver(payload)

        threading.Thread(target=self._deliver, args=(payload,), name=f"alert-{event}", daemon=True).start()
        return True

    def _deliver(self, payload: Dict[str, Any]) -> bool:
        event = payload["event"]
        headers = {"Content-Type": "application/json"}
        for attempt in range(1, self.max_retries + 1):
            try:
                resp = requests.post(self.webhook, json=payload, timeout=self.timeout, headers=headers)
                resp.raise_for_status()
                logger.info("Delivered alert event=%s status=%s", event, resp.status_code)
                return True
            except requests.RequestException as e:
                logger.warning("Attempt %s: failed to deliver alert event=%s: %s", attempt, event, e)
            if attempt < self.max_retries:
                time.sleep(self.backoff * attempt)
        logger.error("All %s attempts to deliver alert event=%s failed", self.max_retries, event)
        return False
