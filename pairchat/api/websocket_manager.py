"""
WebSocket connection gateway.

Keeps the runtime room registry: conversation id -> set of live
connections. The registry is mutated only by discrete register / join /
leave / disconnect events; readers get immutable snapshots, so a broadcast
never iterates a set that a concurrent join is changing.

The gateway does not check that a connection's user participates in the
conversation it joins. That decision belongs to the caller (see the
``require_participation_on_join`` setting used by the WebSocket endpoint).
Subscriptions are not persisted: a reconnecting client must join again.
"""
import logging
import threading
from collections import defaultdict
from typing import Any, Dict, FrozenSet, Optional, Set
from uuid import uuid4
from fastapi import WebSocket

from pairchat.core.identity import Identity
from pairchat.core.metrics import (
    websocket_connections_total, websocket_disconnections_total,
    room_joins_total, update_websocket_metrics
)

logger = logging.getLogger(__name__)


class Connection:
    """A live client connection, optionally bound to an authenticated identity."""

    def __init__(self, websocket: WebSocket, identity: Optional[Identity] = None):
        self.id = uuid4().hex
        self.websocket = websocket
        self.identity = identity

    @property
    def user_id(self) -> Optional[int]:
        return self.identity.user_id if self.identity else None

    async def send_json(self, payload: Dict[str, Any]) -> None:
        await self.websocket.send_json(payload)

    def __repr__(self) -> str:
        return f"Connection(id={self.id}, user_id={self.user_id})"


class ConnectionGateway:
    """
    Manages live connections and the conversation rooms they subscribe to.

    Guarded by a lock so that sync endpoints running in the threadpool can
    read snapshots while the event loop applies join/disconnect events.
    """

    def __init__(self):
        # {conversation_id: Set[Connection]}
        self._rooms: Dict[int, Set[Connection]] = defaultdict(set)

        # {Connection: Set[conversation_id]} - reverse lookup for disconnect
        self._memberships: Dict[Connection, Set[int]] = {}

        self._lock = threading.Lock()

    async def accept(self, connection: Connection) -> None:
        """Complete the WebSocket handshake and register the connection."""
        await connection.websocket.accept()
        self.register(connection)

    def register(self, connection: Connection) -> None:
        with self._lock:
            if connection in self._memberships:
                return
            self._memberships[connection] = set()

        websocket_connections_total.labels(instance="api").inc()
        update_websocket_metrics(self)
        logger.info(f"Connection {connection.id} registered (user {connection.user_id})")

    def join(self, connection: Connection, conversation_id: int) -> None:
        """Subscribe a connection to a conversation room."""
        with self._lock:
            self._memberships.setdefault(connection, set()).add(conversation_id)
            self._rooms[conversation_id].add(connection)

        room_joins_total.labels(instance="api").inc()
        update_websocket_metrics(self)
        logger.info(f"Connection {connection.id} joined conversation room {conversation_id}")

    def leave(self, connection: Connection, conversation_id: int) -> None:
        """Unsubscribe a connection from one conversation room."""
        with self._lock:
            memberships = self._memberships.get(connection)
            if memberships is not None:
                memberships.discard(conversation_id)
            self._discard_from_room(connection, conversation_id)

        update_websocket_metrics(self)
        logger.info(f"Connection {connection.id} left conversation room {conversation_id}")

    def disconnect(self, connection: Connection, reason: str = "normal") -> FrozenSet[int]:
        """
        Remove a connection from every room it was subscribed to.

        Returns:
            The conversation ids the connection was subscribed to
        """
        with self._lock:
            memberships = self._memberships.pop(connection, None)
            if memberships is None:
                return frozenset()
            for conversation_id in memberships:
                self._discard_from_room(connection, conversation_id)

        websocket_disconnections_total.labels(instance="api", reason=reason).inc()
        update_websocket_metrics(self)
        logger.info(
            f"Connection {connection.id} disconnected ({reason}), "
            f"left {len(memberships)} rooms"
        )
        return frozenset(memberships)

    def subscribers(self, conversation_id: int) -> FrozenSet[Connection]:
        """Immutable snapshot of the connections currently in a room."""
        with self._lock:
            return frozenset(self._rooms.get(conversation_id, ()))

    def rooms_for(self, connection: Connection) -> FrozenSet[int]:
        with self._lock:
            return frozenset(self._memberships.get(connection, ()))

    def get_connection_count(self) -> int:
        with self._lock:
            return len(self._memberships)

    def get_room_count(self) -> int:
        with self._lock:
            return len(self._rooms)

    def _discard_from_room(self, connection: Connection, conversation_id: int) -> None:
        # Caller holds the lock
        room = self._rooms.get(conversation_id)
        if room is None:
            return
        room.discard(connection)
        if not room:
            del self._rooms[conversation_id]
