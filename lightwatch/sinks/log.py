import logging

from lightwatch.models import Alert, DeliveryResult
from lightwatch.sinks.base import DeliverySink

log = logging.getLogger(__name__)


class LogSink(DeliverySink):
    """Writes alerts to the log. Always succeeds."""

    name = "log"

    def deliver(self, alert: Alert) -> DeliveryResult:
        log.warning("%s | %s", alert.title, alert.body.replace("\n", " | "))
        log.debug("Expanded alert:\n%s", alert.expanded_body)
        return DeliveryResult.DELIVERED

    def vibrate(self, millis: int) -> None:
        log.info("Bzzz (%dms)", millis)
