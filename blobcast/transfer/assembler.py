"""
Frame Assembler

Central-side counterpart of the TransferSource: rebuilds a blob from the
frames received over the notification channel.

The first frame carries the total length as ASCII decimal text; data
frames are appended until that many bytes have arrived.
"""

from typing import List, Optional


class ProtocolError(Exception):
    """A received frame does not fit the transfer framing."""


class FrameAssembler:
    """Reassembles a blob frame by frame."""

    def __init__(self):
        self.expected_length: Optional[int] = None
        self.frames_received = 0
        self._parts: List[bytes] = []
        self._received = 0

    @property
    def bytes_received(self) -> int:
        return self._received

    @property
    def is_complete(self) -> bool:
        return (self.expected_length is not None
                and self._received == self.expected_length)

    @property
    def progress(self) -> float:
        """Progress as 0.0 to 1.0."""
        if self.expected_length is None:
            return 0.0
        if self.expected_length == 0:
            return 1.0
        return self._received / self.expected_length

    def feed(self, frame: bytes):
        """
        Consume one received frame.

        Raises:
            ProtocolError: malformed length frame, or more data than announced
        """
        if self.expected_length is None:
            self.expected_length = self._parse_length(frame)
        else:
            if self._received + len(frame) > self.expected_length:
                raise ProtocolError(
                    f"Received {self._received + len(frame)} bytes, "
                    f"announced {self.expected_length}"
                )
            self._parts.append(bytes(frame))
            self._received += len(frame)
        self.frames_received += 1

    def result(self) -> bytes:
        if not self.is_complete:
            raise ProtocolError(
                f"Transfer incomplete ({self._received}/{self.expected_length} bytes)"
            )
        return b''.join(self._parts)

    @staticmethod
    def _parse_length(frame: bytes) -> int:
        try:
            text = bytes(frame).decode('ascii')
        except UnicodeDecodeError:
            raise ProtocolError(f"Length frame is not ASCII: {frame!r}")
        if not text.isdigit():
            raise ProtocolError(f"Length frame is not a decimal number: {text!r}")
        return int(text)
