"""
Error taxonomy for the share processor.

Every failure surfaced by batch validation is one of these types, so the
caller can tell upstream corruption, key misconfiguration and transport
outages apart.
"""

from typing import Optional

__all__ = [
    "FacilitatorError",
    "IoError",
    "AvroError",
    "EofError",
    "CryptographyError",
    "MalformedHeaderError",
    "MalformedDataPacketError",
    "LibPrioError",
]


class FacilitatorError(Exception):
    """Base class for all facilitator errors."""

    def __init__(self, message: str, context: Optional[str] = None):
        self.message = message
        self.context = context

        full_msg = message
        if context:
            full_msg += f" ({context})"

        super().__init__(full_msg)


class IoError(FacilitatorError):
    """A transport read or write failed."""

    def __init__(self, message: str, key: Optional[str] = None):
        self.key = key
        super().__init__(message, f"key: {key}" if key else None)


class AvroError(FacilitatorError):
    """A record could not be encoded or decoded."""


class EofError(FacilitatorError):
    """Clean end of a record stream. Not a failure."""

    def __init__(self, message: str = "end of record stream"):
        super().__init__(message)


class CryptographyError(FacilitatorError):
    """Signing failed, or a signature did not verify."""


class MalformedHeaderError(FacilitatorError):
    """A header decoded fine but carries invalid values."""


class MalformedDataPacketError(FacilitatorError):
    """A data share packet field is outside its valid domain."""


class LibPrioError(FacilitatorError):
    """The Prio engine could not produce a verification message."""
