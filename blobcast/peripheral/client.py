"""
Peripheral Client

Central side of the emulated link: subscribes with a chosen payload size,
acknowledges every notification and reassembles the blob.

The peripheral never retransmits, so the only protection against a stalled
transfer is the client's own receive timeout.
"""

import asyncio
import logging
from typing import Callable, Optional

from ..transfer.assembler import FrameAssembler, ProtocolError
from ..transfer.gate import ACK_TOKEN
from .adapter import WriteResult
from .protocol import PeripheralConnection, PeripheralMessage, PeripheralMessageType

logger = logging.getLogger(__name__)

# Progress callback type
ProgressCallback = Callable[[FrameAssembler], None]


class PeripheralClient:
    """Fetches a blob from a PeripheralServer."""

    def __init__(self, connection: PeripheralConnection, timeout: float = 30.0):
        self.connection = connection
        self.timeout = timeout

    async def _receive(self) -> PeripheralMessage:
        message = await asyncio.wait_for(self.connection.receive(), timeout=self.timeout)
        if message is None:
            raise ConnectionError("Peripheral closed the connection")
        if message.type == PeripheralMessageType.ERROR:
            raise ConnectionError(f"Peripheral error: {message.headers.get('reason')}")
        return message

    async def read(self) -> bytes:
        """Read the characteristic value."""
        await self.connection.send(PeripheralMessage(type=PeripheralMessageType.READ))
        while True:
            message = await self._receive()
            if message.type == PeripheralMessageType.READ_RESPONSE:
                return message.data

    async def fetch(self, max_payload_size: int,
                    progress_callback: Optional[ProgressCallback] = None) -> bytes:
        """
        Subscribe and pull the whole blob.

        Raises:
            ProtocolError: malformed frames or a rejected write
            ConnectionError: the peripheral closed or refused the link
            asyncio.TimeoutError: no message within `timeout`
        """
        assembler = FrameAssembler()
        await self.connection.send(PeripheralMessage(
            type=PeripheralMessageType.SUBSCRIBE,
            headers={'max_payload_size': max_payload_size}
        ))

        done = False
        pending_acks = 0
        while True:
            message = await self._receive()

            if message.type == PeripheralMessageType.NOTIFY:
                assembler.feed(message.data)
                if progress_callback:
                    progress_callback(assembler)
                logger.debug(f"Frame {assembler.frames_received} "
                             f"({assembler.bytes_received}/{assembler.expected_length} bytes)")
                # The final ACK lets the peripheral drain its session
                done = assembler.is_complete
                await self.connection.send(PeripheralMessage(
                    type=PeripheralMessageType.WRITE,
                    headers={'offset': 0},
                    data=ACK_TOKEN.encode('utf-8')
                ))
                pending_acks += 1

            elif message.type == PeripheralMessageType.WRITE_RESPONSE:
                result = message.headers.get('result')
                if result != WriteResult.SUCCESS.value:
                    raise ProtocolError(f"Acknowledgement rejected: {result}")
                pending_acks -= 1
                if done and pending_acks == 0:
                    break

        await self.connection.send(PeripheralMessage(type=PeripheralMessageType.UNSUBSCRIBE))
        logger.info(f"Received {assembler.bytes_received:,} bytes "
                    f"in {assembler.frames_received} frames")
        return assembler.result()

    async def close(self):
        await self.connection.close()


async def connect_to_peripheral(host: str, port: int,
                                timeout: float = 10.0) -> Optional[PeripheralClient]:
    """
    Connect to a peripheral server.

    Returns:
        PeripheralClient, or None if connection failed
    """
    try:
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port),
            timeout=timeout
        )
    except (OSError, asyncio.TimeoutError) as e:
        logger.error(f"Failed to connect to {host}:{port}: {e}")
        return None
    return PeripheralClient(PeripheralConnection(reader, writer), timeout=timeout)


async def fetch_blob(host: str, port: int, max_payload_size: int,
                     timeout: float = 30.0,
                     progress_callback: Optional[ProgressCallback] = None) -> bytes:
    """Connect, fetch the blob and disconnect."""
    client = await connect_to_peripheral(host, port, timeout=timeout)
    if client is None:
        raise ConnectionError(f"Could not connect to {host}:{port}")
    try:
        return await client.fetch(max_payload_size, progress_callback)
    finally:
        await client.close()
