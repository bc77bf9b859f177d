import logging
import os
from typing import Any, Optional

import requests

from lightwatch.models import Alert, DeliveryResult
from lightwatch.sinks.base import DeliverySink

log = logging.getLogger(__name__)

_DENIED_STATUSES = frozenset({401, 403})


class WebhookSink(DeliverySink):
    """
    POSTs each alert as JSON to a configured URL.

    Sink config (the "sink" entry in settings.json):
    {
      "type": "webhook",
      "url": "https://hooks.example.com/lights",
      "timeout_seconds": 10,
      "token_env_var": "LIGHTWATCH_WEBHOOK_TOKEN",   # optional bearer token
      "vibrate_url": "https://hooks.example.com/vibrate"   # optional
    }

    401/403 responses mean the receiving end refused us (PERMISSION_DENIED);
    any other non-2xx status or transport error is FAILED.
    """

    name = "webhook"

    def __init__(self, sink_config: dict[str, Any], session: Optional[requests.Session] = None) -> None:
        super().__init__(sink_config)
        if not sink_config.get("url"):
            raise ValueError("Webhook sink requires a \"url\" entry")
        self._url         = sink_config["url"]
        self._vibrate_url = sink_config.get("vibrate_url")
        self._timeout     = float(sink_config.get("timeout_seconds", 10))
        self._session     = session or requests.Session()

        env_var = sink_config.get("token_env_var")
        if env_var:
            self._session.headers["Authorization"] = f"Bearer {os.environ[env_var]}"

    def deliver(self, alert: Alert) -> DeliveryResult:
        try:
            response = self._session.post(self._url, json=alert.to_dict(), timeout=self._timeout)
        except requests.exceptions.RequestException as exc:
            log.error("[webhook] delivery to %s failed: %s", self._url, exc)
            return DeliveryResult.FAILED

        log.info("[webhook] status=%s", response.status_code)
        if response.status_code in _DENIED_STATUSES:
            log.warning("[webhook] permission denied by %s", self._url)
            return DeliveryResult.PERMISSION_DENIED
        if not response.ok:
            log.error("[webhook] delivery failed: %s %s", response.status_code, response.text)
            return DeliveryResult.FAILED
        return DeliveryResult.DELIVERED

    def vibrate(self, millis: int) -> None:
        if not self._vibrate_url:
            return
        try:
            self._session.post(self._vibrate_url, json={"millis": millis}, timeout=self._timeout)
        except requests.exceptions.RequestException as exc:
            log.warning("[webhook] vibration hint failed: %s", exc)
