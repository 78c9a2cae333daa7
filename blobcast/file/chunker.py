"""
Frame Chunker

Design Decision: Frame Layout
=============================

Options Considered:
| Layout                    | Pros                          | Cons                          |
|---------------------------|-------------------------------|-------------------------------|
| Per-frame header (seq/len)| Self-describing frames        | Eats into a tiny MTU          |
| Length frame + raw slices | Zero per-frame overhead       | Receiver must count bytes     |
| Delimiter-terminated      | No length needed up front     | Needs escaping of binary data |

Decision: Length frame + raw slices
- Frame 0 is the blob length as ASCII decimal text (e.g. b"25")
- Frames 1..N are raw slices of the blob, in order
- Slice size is (max_payload_size - 1) bytes; the last slice may be shorter
- An empty blob produces only the length frame b"0"

Chunking Strategy: Fixed-Size
- The peer learns the total from frame 0 and stops once it has that many bytes
- Frame count is predictable: 1 + ceil(L / (M - 1))
"""

from typing import List


class InvalidConfiguration(ValueError):
    """Raised when the negotiated payload size cannot carry any data."""


class FrameChunker:
    """
    Splits a blob into the ordered frame sequence sent to a subscriber.

    The chunker is stateless apart from the payload size; a new one is
    built for every subscription because the size is negotiated per peer.
    """

    def __init__(self, max_payload_size: int):
        if max_payload_size <= 1:
            raise InvalidConfiguration(
                f"max payload size must be greater than 1, got {max_payload_size}"
            )
        self.max_payload_size = max_payload_size

    @property
    def frame_size(self) -> int:
        """Bytes of blob data carried by each data frame."""
        return self.max_payload_size - 1

    def get_frame_count(self, blob_size: int) -> int:
        """Number of data frames (excluding the length frame)."""
        return (blob_size + self.frame_size - 1) // self.frame_size

    def length_frame(self, blob_size: int) -> bytes:
        return str(blob_size).encode('ascii')

    def build_frames(self, blob: bytes) -> List[bytes]:
        """
        Build the full frame sequence for a blob.

        Returns:
            [length_frame, data_frame_1, ..., data_frame_N]

        Raises:
            InvalidConfiguration: the length frame does not fit in one frame
        """
        length_frame = self.length_frame(len(blob))
        if len(length_frame) > self.frame_size:
            raise InvalidConfiguration(
                f"length frame {length_frame!r} exceeds {self.frame_size} bytes "
                f"at max payload size {self.max_payload_size}"
            )

        frames = [length_frame]
        view = memoryview(blob)
        for offset in range(0, len(blob), self.frame_size):
            frames.append(bytes(view[offset:offset + self.frame_size]))
        return frames


def build_frames(blob: bytes, max_payload_size: int) -> List[bytes]:
    """Build the frame sequence for `blob` at the given payload size."""
    return FrameChunker(max_payload_size).build_frames(blob)
