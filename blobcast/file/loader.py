"""
Blob Loader

Reads the blob served to subscribers. The file is re-read on every
subscription so a peer always receives the current contents.

Reads go through aiofiles so a large blob does not stall the event loop
that is also handling transport events.
"""

import logging
from pathlib import Path
from typing import Union

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)


class LoadFailure(Exception):
    """The blob could not be loaded."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"{reason}: {path}")
        self.path = path
        self.reason = reason


class BlobNotFound(LoadFailure):
    def __init__(self, path: Path):
        super().__init__(path, "File not found")


class BlobReadError(LoadFailure):
    def __init__(self, path: Path, error: Exception):
        super().__init__(path, f"Error loading file ({error})")
        self.error = error


class BlobLoader:
    """Loads a blob from disk."""

    def __init__(self, file_path: Union[str, Path]):
        self.file_path = Path(file_path)

    async def exists(self) -> bool:
        return await aiofiles.os.path.isfile(self.file_path)

    async def load(self) -> bytes:
        """
        Read the whole file.

        Raises:
            BlobNotFound: the path does not exist or is not a regular file
            BlobReadError: the file exists but could not be read
        """
        if not await self.exists():
            raise BlobNotFound(self.file_path)

        try:
            async with aiofiles.open(self.file_path, 'rb') as f:
                data = await f.read()
        except FileNotFoundError:
            # Removed between the existence check and the open
            raise BlobNotFound(self.file_path)
        except OSError as e:
            raise BlobReadError(self.file_path, e) from e

        logger.info(f"Loaded file ({len(data):,} bytes): {self.file_path}")
        return data
