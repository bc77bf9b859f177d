from typing import Any

from lightwatch.sinks.base import DeliverySink
from lightwatch.sinks.log import LogSink
from lightwatch.sinks.webhook import WebhookSink

# Registry: "type" value of the "sink" entry in settings.json -> class
SINK_REGISTRY: dict[str, type[DeliverySink]] = {
    LogSink.name:     LogSink,
    WebhookSink.name: WebhookSink,
}


def build_sink(sink_config: dict[str, Any]) -> DeliverySink:
    sink_type = sink_config.get("type", LogSink.name)
    sink_cls  = SINK_REGISTRY.get(sink_type)
    if sink_cls is None:
        raise ValueError(
            f"Unknown sink type {sink_type!r}. Available: {list(SINK_REGISTRY)}"
        )
    return sink_cls(sink_config)


__all__ = ["DeliverySink", "LogSink", "WebhookSink", "SINK_REGISTRY", "build_sink"]
