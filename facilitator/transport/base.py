"""
Base class for batch transports.
A transport is wherever batches live: a local directory, a bucket, etc.
"""

from abc import ABC, abstractmethod
from typing import BinaryIO


class Transport(ABC):
    """Abstract base class for byte-stream storage keyed by batch keys."""

    @abstractmethod
    def get(self, key: str) -> BinaryIO:
        """
        Open the object stored under ``key`` for reading.

        Args:
            key: A storage key built by ``Batch``.

        Returns:
            A readable binary stream. The caller closes it.

        Raises:
            IoError: If the object is missing or unreadable.
        """

    @abstractmethod
    def put(self, key: str) -> BinaryIO:
        """
        Open the object under ``key`` for writing, replacing any previous one.

        Args:
            key: A storage key built by ``Batch``.

        Returns:
            A writable binary stream. The object is complete once the caller
            closes it.

        Raises:
            IoError: If the backend refuses the write.
        """
