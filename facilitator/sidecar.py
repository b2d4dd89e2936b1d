"""
Write-through stream that keeps a copy of everything written.

Output files are signed after they are written. The destination may be
remote or append-only, so instead of reading the bytes back we keep them in
memory as they go out.
"""

import io
from typing import BinaryIO


class SidecarWriter(io.RawIOBase):
    """
    Forwards every write to ``writer`` and appends the same bytes to
    ``sidecar``.

    Closing a SidecarWriter does not close ``writer``; ``sidecar`` stays
    readable after close.

    Args:
        writer: The destination stream (usually from ``Transport.put``).
    """

    def __init__(self, writer: BinaryIO):
        super().__init__()
        self.writer = writer
        self.sidecar = bytearray()

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed file")
        data = bytes(data)
        self.writer.write(data)
        self.sidecar.extend(data)
        return len(data)

    def flush(self):
        super().flush()
        self.writer.flush()
