"""
Transfer Module - Stop-and-Wait Frame Delivery

Holds the session state machine (source + acknowledgement gate) and the
central-side assembler.
"""

from .source import TransferSource, SessionState, TransferStats, EmitCallback
from .gate import AcknowledgementGate, WriteOutcome, ACK_TOKEN
from .assembler import FrameAssembler, ProtocolError

__all__ = [
    'TransferSource',
    'SessionState',
    'TransferStats',
    'EmitCallback',
    'AcknowledgementGate',
    'WriteOutcome',
    'ACK_TOKEN',
    'FrameAssembler',
    'ProtocolError',
]
