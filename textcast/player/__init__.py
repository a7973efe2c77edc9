"""
TextCast Player - Transport adapters for the platform media player.
"""
from .transport import Transport, VLCTransport, NullTransport

__all__ = ['Transport', 'VLCTransport', 'NullTransport']
