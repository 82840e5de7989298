import asyncio
import json
import uuid
from typing import Dict, Iterable, Optional

from fastapi import WebSocket

from constants import OUTBOUND_QUEUE_SIZE
from logging_config import get_logger

logger = get_logger(__name__)


def encode_frame(event: str, data=None) -> str:
    return json.dumps({"event": event, "data": data})


class _Connection:
    def __init__(self, connection_id: str, websocket: WebSocket, queue_size: int):
        self.id = connection_id
        self.websocket = websocket
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.writer: Optional[asyncio.Task] = None


class ConnectionHub:
    """Live websocket connections, each with a bounded outbound queue.

    `send` and `broadcast` never block: frames are queued with put_nowait and a
    per-connection writer task pushes them to the socket. A full queue drops the
    frame for that receiver only.
    """

    def __init__(self, queue_size: int = OUTBOUND_QUEUE_SIZE):
        self.queue_size = queue_size
        self._connections: Dict[str, _Connection] = {}

    def __len__(self):
        return len(self._connections)

    def __contains__(self, connection_id):
        return connection_id in self._connections

    def connection_ids(self) -> list:
        return list(self._connections)

    async def register(self, websocket: WebSocket) -> str:
        """Accept the socket, issue a fresh connection id and start its writer."""
        await websocket.accept()
        connection_id = str(uuid.uuid4())
        while connection_id in self._connections:
            connection_id = str(uuid.uuid4())

        connection = _Connection(connection_id, websocket, self.queue_size)
        connection.writer = asyncio.create_task(self._write_loop(connection))
        self._connections[connection_id] = connection
        logger.info(f"Connection {connection_id} registered ({len(self._connections)} live)")
        return connection_id

    def unregister(self, connection_id: str) -> Optional[asyncio.Task]:
        """Stop delivering to a connection. Synchronous so it also runs from a cancelled task."""
        connection = self._connections.pop(connection_id, None)
        if connection is None:
            return None
        if connection.writer is not None:
            connection.writer.cancel()
        logger.info(f"Connection {connection_id} unregistered ({len(self._connections)} live)")
        return connection.writer

    async def _write_loop(self, connection: _Connection):
        while True:
            frame = await connection.queue.get()
            try:
                await connection.websocket.send_text(frame)
            except Exception as e:
                # Socket is gone; the receive loop will notice and unregister
                logger.warning(f"Error sending to connection {connection.id}: {e}")
                return

    def _enqueue(self, connection_id: str, frame: str) -> bool:
        connection = self._connections.get(connection_id)
        if connection is None:
            logger.debug(f"Dropping frame for unknown connection {connection_id}")
            return False
        try:
            connection.queue.put_nowait(frame)
        except asyncio.QueueFull:
            logger.warning(f"Outbound queue full for connection {connection_id}, dropping frame")
            return False
        return True

    def send(self, targets: Iterable[str], event: str, data=None) -> int:
        """Queue one frame for each target. Returns how many were queued."""
        frame = encode_frame(event, data)
        return sum(1 for connection_id in targets if self._enqueue(connection_id, frame))

    def send_to(self, connection_id: str, event: str, data=None) -> bool:
        return self._enqueue(connection_id, encode_frame(event, data))

    def broadcast(self, event: str, data=None) -> int:
        return self.send(self.connection_ids(), event, data)

    async def close(self):
        writers = [self.unregister(connection_id) for connection_id in self.connection_ids()]
        await asyncio.gather(*(writer for writer in writers if writer is not None), return_exceptions=True)
