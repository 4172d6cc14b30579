"""
Realtime broadcaster: best-effort fan-out of freshly appended messages.
"""
import logging

from pairchat.api.websocket_manager import ConnectionGateway
from pairchat.core.metrics import broadcast_deliveries_total
from pairchat.services.messages import MessageRecord

logger = logging.getLogger(__name__)

RECEIVE_MESSAGE_EVENT = "receive_message"


class RealtimeBroadcaster:
    """
    Delivers a message to every connection subscribed to its conversation
    room at publish time.

    There is no acknowledgment, retry or replay buffer. Connections that
    were not subscribed when ``publish`` ran receive nothing and recover
    through the message list. Publishing to an empty room is a no-op.
    """

    def __init__(self, gateway: ConnectionGateway):
        self._gateway = gateway

    async def publish(self, conversation_id: int, message: MessageRecord) -> int:
        """
        Send the message event to the current subscriber snapshot.

        Returns:
            Number of connections the event was delivered to
        """
        subscribers = self._gateway.subscribers(conversation_id)
        if not subscribers:
            logger.debug(f"No subscribers for conversation {conversation_id}")
            return 0

        event = {"type": RECEIVE_MESSAGE_EVENT, "data": message.to_payload()}

        delivered = 0
        stale_connections = []
        for connection in subscribers:
            try:
                await connection.send_json(event)
                delivered += 1
            except Exception as e:
                logger.warning(
                    f"Dropping connection {connection.id} after failed delivery "
                    f"for conversation {conversation_id}: {e}"
                )
                stale_connections.append(connection)

        # Clean up stale connections
        for connection in stale_connections:
            self._gateway.disconnect(connection, reason="send_failed")

        broadcast_deliveries_total.labels(status="delivered", instance="api").inc(delivered)
        if stale_connections:
            broadcast_deliveries_total.labels(status="failed", instance="api").inc(len(stale_connections))

        logger.info(f"Broadcast message {message.id} to conversation {conversation_id}: {delivered} connections")
        return delivered
