"""
Peripheral Module - Transport Adapter and TCP Emulation

Bridges transport events to the transfer state machine, and provides a TCP
stand-in for the notification transport.
"""

from .adapter import PeripheralAdapter, WriteResult, READ_BANNER
from .protocol import PeripheralMessage, PeripheralMessageType, PeripheralConnection
from .server import PeripheralServer
from .client import PeripheralClient, connect_to_peripheral, fetch_blob
from .loopback import run_loopback

__all__ = [
    'PeripheralAdapter',
    'WriteResult',
    'READ_BANNER',
    'PeripheralMessage',
    'PeripheralMessageType',
    'PeripheralConnection',
    'PeripheralServer',
    'PeripheralClient',
    'connect_to_peripheral',
    'fetch_blob',
    'run_loopback',
]
