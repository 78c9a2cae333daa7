"""
File Module - Blob Loading and Framing

This module turns the served file into the frame sequence sent to a peer.
"""

from .chunker import FrameChunker, InvalidConfiguration, build_frames
from .loader import BlobLoader, BlobNotFound, BlobReadError, LoadFailure

__all__ = [
    'FrameChunker',
    'InvalidConfiguration',
    'build_frames',
    'BlobLoader',
    'BlobNotFound',
    'BlobReadError',
    'LoadFailure',
]
