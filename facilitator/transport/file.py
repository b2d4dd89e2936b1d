"""
Local filesystem transport.
Batches are plain files under a root directory, one file per storage key.
"""

import logging
from pathlib import Path
from typing import BinaryIO

from facilitator.errors import IoError
from facilitator.transport.base import Transport

logger = logging.getLogger(__name__)


class FileTransport(Transport):
    """
    Stores objects as files below ``directory``.

    Storage keys are ``/``-separated and map directly onto subdirectories.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory.joinpath(*key.split("/"))

    def get(self, key: str) -> BinaryIO:
        path = self._path(key)
        logger.debug("opening %s for reading", path)
        try:
            return open(path, "rb")
        except OSError as e:
            raise IoError(f"failed to open file for reading: {e.strerror}", key) from e

    def put(self, key: str) -> BinaryIO:
        path = self._path(key)
        logger.debug("opening %s for writing", path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            return open(path, "wb")
        except OSError as e:
            raise IoError(f"failed to open file for writing: {e.strerror}", key) from e
