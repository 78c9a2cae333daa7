"""
Peripheral Adapter

Translates peripheral-transport events (subscribe, unsubscribe, write,
read) into calls on the transfer state machine.

Every event runs to completion under a single lock before the next one is
handled. Subscribe awaits the blob load, so without the lock a write or an
unsubscribe could land between the load and the emission of frame 0.
"""

import asyncio
import logging
from enum import Enum

from ..transfer.gate import AcknowledgementGate
from ..transfer.source import EmitCallback, TransferSource

logger = logging.getLogger(__name__)

READ_BANNER = b'File Transfer Service Ready'


class WriteResult(Enum):
    """Result reported back to the transport for a write request."""
    SUCCESS = "success"
    ATTR_NOT_LONG = "attr_not_long"


class PeripheralAdapter:
    """Event-driven front of a TransferSource / AcknowledgementGate pair."""

    def __init__(self, source: TransferSource, gate: AcknowledgementGate):
        self.source = source
        self.gate = gate
        self._lock = asyncio.Lock()

    async def subscribe(self, max_payload_size: int, emit: EmitCallback) -> bool:
        """Handle a new subscription. Returns True if frame 0 was emitted."""
        async with self._lock:
            logger.info(f"Client subscribed to notifications "
                        f"(max payload size: {max_payload_size})")
            if not callable(emit):
                logger.error("Invalid emit callback provided")
                self.source.reset()
                return False
            return await self.source.start_session(max_payload_size, emit)

    async def unsubscribe(self):
        async with self._lock:
            logger.info("Client unsubscribed")
            self.source.reset()

    async def disconnect(self):
        """The peer went away without unsubscribing."""
        async with self._lock:
            if self.source.is_active:
                logger.info("Client disconnected mid-transfer")
            self.source.reset()

    async def write(self, payload: bytes, offset: int = 0) -> WriteResult:
        async with self._lock:
            if offset:
                logger.warning("Write request with offset, rejecting")
                return WriteResult.ATTR_NOT_LONG
            self.gate.on_write(payload)
            return WriteResult.SUCCESS

    async def read(self, offset: int = 0) -> bytes:
        logger.debug("Read request received")
        return READ_BANNER[offset:]
