"""
Peripheral Server

TCP stand-in for the notification transport. Serves exactly one peer at a
time: the transfer state machine holds a single session, so a second
connection is refused with an ERROR message instead of silently sharing it.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

from .adapter import PeripheralAdapter
from .protocol import PeripheralConnection, PeripheralMessage, PeripheralMessageType

logger = logging.getLogger(__name__)


# Type for message handlers
MessageHandler = Callable[[PeripheralMessage, PeripheralConnection], Awaitable[None]]


class PeripheralServer:
    """Accepts a central and feeds its events to a PeripheralAdapter."""

    def __init__(self, adapter: PeripheralAdapter,
                 host: str = '0.0.0.0', port: int = 8470):
        self.adapter = adapter
        self.host = host
        self.port = port
        self.server: Optional[asyncio.AbstractServer] = None
        self._active: Optional[PeripheralConnection] = None
        self._running = False
        self._handlers: Dict[PeripheralMessageType, MessageHandler] = {
            PeripheralMessageType.SUBSCRIBE: self._handle_subscribe,
            PeripheralMessageType.UNSUBSCRIBE: self._handle_unsubscribe,
            PeripheralMessageType.WRITE: self._handle_write,
            PeripheralMessageType.READ: self._handle_read,
        }

    @property
    def has_peer(self) -> bool:
        return self._active is not None

    async def start(self):
        self.server = await asyncio.start_server(
            self._handle_connection,
            self.host,
            self.port
        )
        self._running = True

        # Pick up the real port when bound to port 0
        addr = self.server.sockets[0].getsockname()
        self.port = addr[1]
        logger.info(f"Peripheral server listening on {addr[0]}:{addr[1]}")

    async def stop(self):
        self._running = False
        if self._active:
            await self._active.close()
        if self.server:
            self.server.close()
            await self.server.wait_closed()
            logger.info("Peripheral server stopped")

    async def _handle_connection(self, reader: asyncio.StreamReader,
                                 writer: asyncio.StreamWriter):
        connection = PeripheralConnection(reader, writer)
        peer = connection.remote_address

        if self._active is not None:
            logger.warning(f"Refusing connection from {peer}: a peer is already connected")
            await connection.send(PeripheralMessage(
                type=PeripheralMessageType.ERROR,
                headers={'reason': 'busy'}
            ))
            await connection.close()
            return

        self._active = connection
        logger.info(f"Central connected: {peer}")

        try:
            while self._running:
                message = await connection.receive()
                if message is None:
                    break

                handler = self._handlers.get(message.type)
                if handler:
                    await handler(message, connection)
                else:
                    logger.warning(f"No handler for {message.type}")

        except ValueError as e:
            logger.error(f"Malformed message from {peer}: {e}")
        except ConnectionError as e:
            logger.error(f"Error handling connection from {peer}: {e}")
        finally:
            await self.adapter.disconnect()
            self._active = None
            await connection.close()
            logger.info(f"Central disconnected: {peer}")

    async def _handle_subscribe(self, message: PeripheralMessage,
                                connection: PeripheralConnection):
        max_payload_size = message.headers.get('max_payload_size')
        if not isinstance(max_payload_size, int):
            await connection.send(PeripheralMessage(
                type=PeripheralMessageType.ERROR,
                headers={'reason': 'max_payload_size required'}
            ))
            return
        await self.adapter.subscribe(max_payload_size, connection.notify)

    async def _handle_unsubscribe(self, message: PeripheralMessage,
                                  connection: PeripheralConnection):
        await self.adapter.unsubscribe()

    async def _handle_write(self, message: PeripheralMessage,
                            connection: PeripheralConnection):
        offset = message.headers.get('offset', 0)
        result = await self.adapter.write(message.data, offset)
        await connection.send(PeripheralMessage(
            type=PeripheralMessageType.WRITE_RESPONSE,
            headers={'result': result.value}
        ))

    async def _handle_read(self, message: PeripheralMessage,
                           connection: PeripheralConnection):
        offset = message.headers.get('offset', 0)
        if not isinstance(offset, int) or offset < 0:
            offset = 0
        data = await self.adapter.read(offset)
        await connection.send(PeripheralMessage(
            type=PeripheralMessageType.READ_RESPONSE,
            data=data
        ))
