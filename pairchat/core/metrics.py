"""
Prometheus metrics for the API service.

Tracks WebSocket rooms, broadcast fan-out and business events.
"""
from prometheus_client import Counter, Gauge, CollectorRegistry

# Create registry
registry = CollectorRegistry()

# WebSocket connection metrics
websocket_connections_active = Gauge(
    "websocket_connections_active",
    "Number of active WebSocket connections",
    labelnames=["instance"],
    registry=registry
)

websocket_connections_total = Counter(
    "websocket_connections_total",
    "Total number of WebSocket connections established",
    labelnames=["instance"],
    registry=registry
)

websocket_disconnections_total = Counter(
    "websocket_disconnections_total",
    "Total number of WebSocket disconnections",
    labelnames=["instance", "reason"],
    registry=registry
)

room_joins_total = Counter(
    "room_joins_total",
    "Total number of conversation room joins",
    labelnames=["instance"],
    registry=registry
)

rooms_active = Gauge(
    "rooms_active",
    "Number of conversation rooms with at least one subscriber",
    labelnames=["instance"],
    registry=registry
)

broadcast_deliveries_total = Counter(
    "broadcast_deliveries_total",
    "Total number of message events delivered to subscribed connections",
    labelnames=["status", "instance"],
    registry=registry
)

# API business metrics
conversations_resolved_total = Counter(
    "conversations_resolved_total",
    "Total number of create-or-find conversation calls",
    labelnames=["outcome", "instance"],
    registry=registry
)

messages_created_total = Counter(
    "messages_created_total",
    "Total number of messages appended",
    labelnames=["instance"],
    registry=registry
)


def update_websocket_metrics(gateway) -> None:
    """
    Refresh gauges from the connection gateway state.

    Args:
        gateway: ConnectionGateway instance
    """
    websocket_connections_active.labels(instance="api").set(gateway.get_connection_count())
    rooms_active.labels(instance="api").set(gateway.get_room_count())
