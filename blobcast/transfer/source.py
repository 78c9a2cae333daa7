"""
Transfer Source

Design Decision: Delivery Scheme
================================

Options Considered:
1. Stream every frame back to back
   - Fastest, but a notification transport drops what the peer can't absorb

2. Sliding window with sequence numbers
   - Better throughput, needs per-frame headers and retransmission timers

3. Stop-and-wait on an application-level "ACK" write
   - One frame in flight, trivial for the peer to implement
   - No loss recovery: a peer that stops acknowledging stalls the session

Decision: Stop-and-wait
- Frame 0 is emitted as soon as the peer subscribes
- Every "ACK" write releases exactly one more frame
- The ACK after the last frame resets the session

Session Lifecycle:
```
IDLE --subscribe--> ANNOUNCING --ACK--> STREAMING --ACK--> ... --> DRAINED
  ^                                                                   |
  +------------------- ACK / unsubscribe / reset ---------------------+
```
A new subscribe from any state discards the current session and starts
again from a fresh load.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from ..file.chunker import FrameChunker, InvalidConfiguration
from ..file.loader import BlobLoader, LoadFailure

logger = logging.getLogger(__name__)


# Outbound notification capability handed over by the transport
EmitCallback = Callable[[bytes], None]


class SessionState(Enum):
    """Observable state of the transfer session."""
    IDLE = "idle"
    ANNOUNCING = "announcing"
    STREAMING = "streaming"
    DRAINED = "drained"


@dataclass
class TransferStats:
    """Counters kept across sessions."""
    sessions_started: int = 0
    sessions_completed: int = 0
    load_failures: int = 0
    frames_sent: int = 0
    bytes_sent: int = 0

    def to_dict(self) -> dict:
        return {
            'sessions_started': self.sessions_started,
            'sessions_completed': self.sessions_completed,
            'load_failures': self.load_failures,
            'frames_sent': self.frames_sent,
            'bytes_sent': self.bytes_sent,
        }


class TransferSource:
    """
    Owns the blob's frame sequence and the emission cursor.

    Only one session exists at a time. `emit` is set only while a peer is
    subscribed; `cursor` is the index of the next frame to emit and stays
    within [0, len(frames)].
    """

    def __init__(self, loader: BlobLoader):
        self.loader = loader
        self.frames: List[bytes] = []
        self.cursor = 0
        self.emit: Optional[EmitCallback] = None
        self.stats = TransferStats()

    @property
    def state(self) -> SessionState:
        """
        Derived from emit and cursor.

        Right after frame 0 goes out the session is ANNOUNCING, even for an
        empty blob where frame 0 is also the last frame. That session leaves
        ANNOUNCING straight for IDLE on the next ACK; DRAINED is only
        reported once a data frame has been the last one sent.
        """
        if self.emit is None:
            return SessionState.IDLE
        if self.cursor <= 1:
            return SessionState.ANNOUNCING
        if self.cursor < len(self.frames):
            return SessionState.STREAMING
        return SessionState.DRAINED

    @property
    def is_active(self) -> bool:
        return self.emit is not None

    async def start_session(self, max_payload_size: int,
                            emit: EmitCallback) -> bool:
        """
        Start a new session for a freshly subscribed peer.

        Any previous session is discarded. Frame 0 is emitted before this
        returns. Load and configuration errors are logged and leave the
        source idle.

        Returns:
            True if a session was started and frame 0 emitted
        """
        if self.is_active:
            logger.info(f"Discarding previous session at frame "
                        f"{self.cursor}/{len(self.frames)}")
        self.reset()

        try:
            chunker = FrameChunker(max_payload_size)
        except InvalidConfiguration as e:
            logger.error(f"Rejecting subscription: {e}")
            return False

        try:
            blob = await self.loader.load()
        except LoadFailure as e:
            self.stats.load_failures += 1
            logger.error(f"Failed to load the file: {e}")
            return False

        try:
            frames = chunker.build_frames(blob)
        except InvalidConfiguration as e:
            logger.error(f"Rejecting subscription: {e}")
            return False

        self.frames = frames
        self.cursor = 0
        self.emit = emit
        self.stats.sessions_started += 1
        logger.info(f"File split into {chunker.get_frame_count(len(blob))} data frames "
                    f"plus length frame ({chunker.frame_size} bytes per data frame)")

        self.send_next()
        return True

    def send_next(self):
        """Emit the frame under the cursor, or reset when nothing is left."""
        if self.emit is None or self.cursor >= len(self.frames):
            if self.emit is not None:
                self.stats.sessions_completed += 1
                logger.info("All frames sent")
            self.reset()
            return

        frame = self.frames[self.cursor]
        logger.debug(f"Sending frame {self.cursor + 1}/{len(self.frames)} "
                     f"({len(frame)} bytes)")
        self.emit(frame)
        self.cursor += 1
        self.stats.frames_sent += 1
        self.stats.bytes_sent += len(frame)

    def reset(self):
        """Drop the session. Safe to call on an idle source."""
        was_active = self.is_active
        self.frames = []
        self.cursor = 0
        self.emit = None
        if was_active:
            logger.info("Stream reset")

    def get_stats(self) -> dict:
        return {
            'state': self.state.value,
            'cursor': self.cursor,
            'total_frames': len(self.frames),
            **self.stats.to_dict(),
        }
