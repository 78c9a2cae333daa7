"""
blobcast - stop-and-wait file transfer over a notification channel

A peripheral exposes one file to one subscribed peer. The file is split
into frames no larger than the negotiated payload size: frame 0 announces
the length, the rest carry the data. Each "ACK" written by the peer
releases the next frame.
"""

from .config import Config, load_config
from .node import PeripheralNode

__version__ = '0.1.0'

__all__ = ['Config', 'load_config', 'PeripheralNode', '__version__']
