import logging
from abc import ABC, abstractmethod
from typing import Any

from lightwatch.models import Alert, DeliveryResult

log = logging.getLogger(__name__)


class DeliverySink(ABC):
    """
    Abstract base for notification delivery channels.

    A sink only delivers; cooldown, grouping and formatting belong to the
    NotificationDispatcher, which hands over one finished Alert per call.

    Attributes
    ----------
    name : str
        Class-level identifier matching the "type" field of the "sink"
        entry in settings.json. Used by the sink registry in __init__.py.
    """

    name: str = ""

    def __init__(self, sink_config: dict[str, Any]) -> None:
        self.config = sink_config

    @abstractmethod
    def deliver(self, alert: Alert) -> DeliveryResult:
        """
        Deliver one alert.

        Returns PERMISSION_DENIED when the channel refuses the alert for
        lack of permission and FAILED for any other failure. Should not
        raise; the dispatcher treats an exception as FAILED.
        """

    def vibrate(self, millis: int) -> None:
        """Device-vibration hint sent after a successful delivery. No-op by default."""
        log.debug("[%s] vibration hint ignored (%dms)", self.name, millis)
