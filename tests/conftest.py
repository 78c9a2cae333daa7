"""Shared fixtures for blobcast tests."""

import os
from pathlib import Path
from typing import Callable, List

import pytest

from blobcast.file import BlobLoader
from blobcast.peripheral import PeripheralAdapter
from blobcast.transfer import AcknowledgementGate, TransferSource


class RecordingEmit:
    """Emit callback that keeps every frame it is given."""

    def __init__(self) -> None:
        self.frames: List[bytes] = []

    def __call__(self, frame: bytes) -> None:
        self.frames.append(frame)


@pytest.fixture
def write_blob(tmp_path: Path) -> Callable[[bytes], Path]:
    """Write bytes to a file under tmp_path and return its path."""
    def _write(data: bytes, name: str = "blob.bin") -> Path:
        path = tmp_path / name
        path.write_bytes(data)
        return path
    return _write


@pytest.fixture
def blob_25(write_blob) -> Path:
    return write_blob(bytes(range(25)))


@pytest.fixture
def random_blob(write_blob) -> Path:
    return write_blob(os.urandom(1000))


@pytest.fixture
def emit() -> RecordingEmit:
    return RecordingEmit()


@pytest.fixture
def source(blob_25: Path) -> TransferSource:
    return TransferSource(BlobLoader(blob_25))


@pytest.fixture
def gate(source: TransferSource) -> AcknowledgementGate:
    return AcknowledgementGate(source)


@pytest.fixture
def adapter(source: TransferSource, gate: AcknowledgementGate) -> PeripheralAdapter:
    return PeripheralAdapter(source, gate)
