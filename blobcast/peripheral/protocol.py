"""
Peripheral Emulation Protocol

Design Decision: Stand-in Transport
===================================

The radio stack that normally carries notifications is not part of this
project. To serve and fetch blobs without it, the peripheral side is
emulated over TCP with one message per GATT-level event.

Options Considered:
1. Raw frames on the socket
   - Loses the event boundaries (subscribe vs. write vs. notify)

2. Newline-delimited JSON with base64 payloads
   - Easy to read, but inflates binary frames

3. Length-prefixed JSON header + binary data
   - Keeps event boundaries and raw frame bytes
   - Same framing as the chunk transfer protocol this grew from

Decision: Length-prefixed messages

Message Format:
```
+----------------+----------------+----------------+----------------+
| Length (4B)    | Hdr len (4B)   | Header (JSON)  | Data (binary)  |
+----------------+----------------+----------------+----------------+

Header JSON:
{
    "type": "SUBSCRIBE" | "NOTIFY" | "WRITE" | "WRITE_RESPONSE" | ...
    "data_length": 19,
    ...
}
```

Event mapping:
- SUBSCRIBE {max_payload_size}  central -> peripheral
- UNSUBSCRIBE                    central -> peripheral
- WRITE {offset} + data          central -> peripheral
- WRITE_RESPONSE {result}        peripheral -> central
- READ {offset}                  central -> peripheral
- READ_RESPONSE + data           peripheral -> central
- NOTIFY + data                  peripheral -> central (one frame)
- ERROR {reason}                 either direction
"""

import asyncio
import json
import logging
import struct
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

# Sanity limit for a single message
MAX_MESSAGE_SIZE = 1024 * 1024


class PeripheralMessageType(Enum):
    """Peripheral emulation message types."""
    # Subscription
    SUBSCRIBE = "SUBSCRIBE"
    UNSUBSCRIBE = "UNSUBSCRIBE"
    NOTIFY = "NOTIFY"

    # Attribute access
    WRITE = "WRITE"
    WRITE_RESPONSE = "WRITE_RESPONSE"
    READ = "READ"
    READ_RESPONSE = "READ_RESPONSE"

    # Control
    ERROR = "ERROR"


@dataclass
class PeripheralMessage:
    """A peripheral emulation message."""
    type: PeripheralMessageType
    headers: Dict[str, Any] = field(default_factory=dict)
    data: bytes = b''

    def to_bytes(self) -> bytes:
        """Serialize message to bytes."""
        header_dict = {
            'type': self.type.value,
            'data_length': len(self.data),
            **self.headers
        }
        header_bytes = json.dumps(header_dict).encode('utf-8')

        total_length = len(header_bytes) + len(self.data)

        # Pack: length (4 bytes) + header_length (4 bytes) + header + data
        return (
            struct.pack('>I', total_length) +
            struct.pack('>I', len(header_bytes)) +
            header_bytes +
            self.data
        )

    @classmethod
    async def from_reader(cls, reader: asyncio.StreamReader) -> Optional['PeripheralMessage']:
        """
        Read a message from a stream.

        Returns:
            The message, or None if the stream ended

        Raises:
            ValueError: the stream carried a malformed message
        """
        try:
            length_bytes = await reader.readexactly(4)
        except asyncio.IncompleteReadError:
            return None

        total_length = struct.unpack('>I', length_bytes)[0]
        if total_length > MAX_MESSAGE_SIZE:
            raise ValueError(f"Message too large: {total_length}")

        try:
            header_length = struct.unpack('>I', await reader.readexactly(4))[0]
            if header_length > total_length:
                raise ValueError(f"Header length {header_length} exceeds "
                                 f"message length {total_length}")
            header_bytes = await reader.readexactly(header_length)
            data_length = total_length - header_length
            data = await reader.readexactly(data_length) if data_length > 0 else b''
        except asyncio.IncompleteReadError:
            return None

        try:
            header_dict = json.loads(header_bytes.decode('utf-8'))
            if not isinstance(header_dict, dict):
                raise ValueError(f"Header is not a JSON object: {header_dict!r}")
            msg_type = PeripheralMessageType(header_dict.pop('type'))
        except (UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError) as e:
            raise ValueError(f"Malformed message header: {e}") from e
        header_dict.pop('data_length', None)

        return cls(type=msg_type, headers=header_dict, data=data)


class PeripheralConnection:
    """
    One end of an emulated peripheral link.

    `notify()` is synchronous so it can be handed to the transfer source as
    its emit callback; `send()` also drains the writer.
    """

    def __init__(self, reader: asyncio.StreamReader,
                 writer: asyncio.StreamWriter):
        self.reader = reader
        self.writer = writer
        self._closed = False

    @property
    def remote_address(self) -> Tuple[str, int]:
        return self.writer.get_extra_info('peername')

    @property
    def is_closed(self) -> bool:
        return self._closed or self.writer.is_closing()

    def send_nowait(self, message: PeripheralMessage):
        """Queue a message without waiting for the buffer to drain."""
        if self.is_closed:
            raise ConnectionError("Connection closed")
        self.writer.write(message.to_bytes())

    async def send(self, message: PeripheralMessage):
        self.send_nowait(message)
        await self.writer.drain()

    async def receive(self) -> Optional[PeripheralMessage]:
        if self._closed:
            return None
        return await PeripheralMessage.from_reader(self.reader)

    def notify(self, frame: bytes):
        """Emit one frame as a notification (fire-and-forget)."""
        try:
            self.send_nowait(PeripheralMessage(
                type=PeripheralMessageType.NOTIFY,
                data=frame
            ))
        except ConnectionError:
            logger.warning(f"Dropping {len(frame)} byte notification, connection closed")

    async def close(self):
        if not self._closed:
            self._closed = True
            self.writer.close()
            try:
                await self.writer.wait_closed()
            except OSError as e:
                logger.debug(f"Error closing connection: {e}")
