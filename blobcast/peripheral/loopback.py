"""
In-process central for exercising an adapter without any transport.

Emission is synchronous, so after each acknowledgement the next frame is
already queued; an empty queue before completion means the peripheral
stopped sending.
"""

import asyncio

from ..transfer.assembler import FrameAssembler, ProtocolError
from ..transfer.gate import ACK_TOKEN
from .adapter import PeripheralAdapter


async def run_loopback(adapter: PeripheralAdapter, max_payload_size: int) -> FrameAssembler:
    """Subscribe, acknowledge every frame, and return the filled assembler."""
    frames: asyncio.Queue = asyncio.Queue()
    assembler = FrameAssembler()

    if not await adapter.subscribe(max_payload_size, frames.put_nowait):
        raise ProtocolError("Peripheral did not start a transfer")

    while not assembler.is_complete:
        if frames.empty():
            raise ProtocolError(
                f"Peripheral stopped after {assembler.frames_received} frames"
            )
        assembler.feed(frames.get_nowait())
        await adapter.write(ACK_TOKEN.encode('utf-8'))

    await adapter.unsubscribe()
    return assembler
