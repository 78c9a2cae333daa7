"""
Peripheral Node - Main Controller

Wires the components of a serving peripheral together:
- Blob loader for the configured file
- Transfer source + acknowledgement gate (the session state machine)
- Adapter translating transport events
- TCP server standing in for the notification transport
"""

import logging
from typing import Optional

from .config import Config
from .file import BlobLoader
from .peripheral import PeripheralAdapter, PeripheralServer
from .transfer import AcknowledgementGate, TransferSource

logger = logging.getLogger(__name__)


class PeripheralNode:
    """
    A complete file transfer peripheral.

    - start(): begin accepting a central
    - stop(): drop the peer and close the server
    - get_stats(): session and transfer counters
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()

        self.loader = BlobLoader(self.config.file_path)
        self.source = TransferSource(self.loader)
        self.gate = AcknowledgementGate(self.source)
        self.adapter = PeripheralAdapter(self.source, self.gate)
        self.server = PeripheralServer(
            self.adapter,
            host=self.config.host,
            port=self.config.port
        )

        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def port(self) -> int:
        return self.server.port

    async def start(self):
        if self._running:
            return

        logger.info(f"Starting file transfer peripheral for {self.config.file_path}")
        if not await self.loader.exists():
            # Not fatal: the file is re-read on every subscription
            logger.warning(f"File not found: {self.config.file_path}")

        await self.server.start()
        self._running = True
        logger.info("File transfer peripheral initialized")

    async def stop(self):
        if not self._running:
            return

        await self.server.stop()
        self.source.reset()
        self._running = False
        stats = self.source.stats
        logger.info(f"Peripheral stopped. Completed {stats.sessions_completed} transfers, "
                    f"{stats.bytes_sent:,} bytes sent")

    def get_stats(self) -> dict:
        return {
            'running': self._running,
            'file_path': str(self.config.file_path),
            'port': self.server.port,
            'peer_connected': self.server.has_peer,
            'session': self.source.get_stats(),
            'gate': self.gate.get_stats(),
        }
