"""
Acknowledgement Gate

Interprets inbound peer writes as protocol control messages. The only
recognised message is the literal token "ACK"; anything else is accepted
and ignored. There is no NACK and no sequence check: every "ACK" is taken
to confirm the most recently emitted frame.
"""

import logging
from enum import Enum

from .source import TransferSource

logger = logging.getLogger(__name__)

ACK_TOKEN = "ACK"


class WriteOutcome(Enum):
    """Protocol effect of an inbound write."""
    ACKNOWLEDGED = "acknowledged"
    IGNORED = "ignored"


class AcknowledgementGate:
    """Advances a TransferSource on each acknowledgement."""

    def __init__(self, source: TransferSource):
        self.source = source
        self.acks_received = 0
        self.writes_ignored = 0

    def on_write(self, payload: bytes) -> WriteOutcome:
        try:
            message = bytes(payload).decode('utf-8')
        except UnicodeDecodeError:
            message = None

        if message != ACK_TOKEN:
            self.writes_ignored += 1
            logger.info(f"Write request received: {payload!r} (ignored)")
            return WriteOutcome.IGNORED

        self.acks_received += 1
        logger.debug(f"Acknowledgment received for frame {self.source.cursor}")
        self.source.send_next()
        return WriteOutcome.ACKNOWLEDGED

    def get_stats(self) -> dict:
        return {
            'acks_received': self.acks_received,
            'writes_ignored': self.writes_ignored,
        }
