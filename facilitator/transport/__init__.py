"""
Transports for reading and writing batches.
Each transport implements byte-stream access for one kind of storage.
"""

from facilitator.transport.base import Transport
from facilitator.transport.file import FileTransport

__all__ = [
    "Transport",
    "FileTransport",
]
