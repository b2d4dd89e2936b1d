"""
Facilitator — Prio Share Processor
Validates ingestion batches and publishes signed validation shares.

An ingestion server splits every user contribution into two secret shares,
one per share processor, and publishes a signed batch for each. A share
processor:
1. Verifies the batch header and packet file came unmodified from the ingestor
2. Computes its half of every packet's validity proof check
3. Publishes a validation batch signed with its own key

Neither processor learns anything about a contribution beyond whether it
is well formed.

Usage:
    from facilitator import BatchIngestor, FileTransport
    ingestor = BatchIngestor(name, batch_uuid, date, FileTransport(src),
                             FileTransport(dst), True, ecies_key,
                             signing_key, ingestor_public_key)
    ingestor.generate_validation_share()
"""

from facilitator.batch import Batch
from facilitator.errors import (
    FacilitatorError,
    IoError,
    AvroError,
    EofError,
    CryptographyError,
    MalformedHeaderError,
    MalformedDataPacketError,
    LibPrioError,
)
from facilitator.ingestion import BatchIngestor
from facilitator.sidecar import SidecarWriter
from facilitator.transport import Transport, FileTransport

__version__ = "0.1.0"
__all__ = [
    "Batch",
    "BatchIngestor",
    "SidecarWriter",
    "Transport",
    "FileTransport",
    "FacilitatorError",
    "IoError",
    "AvroError",
    "EofError",
    "CryptographyError",
    "MalformedHeaderError",
    "MalformedDataPacketError",
    "LibPrioError",
]
