"""
Raw capture file access.

Reads dual-fiber capture files for the decoding pipeline.
"""

import logging
from pathlib import Path
from typing import BinaryIO, Optional, Union

from ..protocols.base import QUAD_SIZE_BYTES

logger = logging.getLogger(__name__)


class CaptureFile:
    """
    Raw capture reader.

    Example:
        with CaptureFile("run_0042.bin") as capture:
            for event in decoder.iter_events(capture):
                ...
    """

    def __init__(self, filepath: Union[str, Path]):
        """
        Open a capture file.

        Args:
            filepath: Path to the capture

        Raises:
            OSError: If the file cannot be opened
        """
        self._filepath = Path(filepath)
        self._size = self._filepath.stat().st_size
        self._file: Optional[BinaryIO] = open(self._filepath, "rb")

        if self.trailing_bytes:
            logger.warning(
                f"{self._filepath}: size {self._size} is not a multiple of "
                f"{QUAD_SIZE_BYTES} bytes, last {self.trailing_bytes} byte(s) "
                "will be ignored"
            )
        logger.info(f"Opened capture {self._filepath} ({self.total_quads} quads)")

    @property
    def filepath(self) -> Path:
        """Path of the capture file."""
        return self._filepath

    @property
    def size_bytes(self) -> int:
        """File size in bytes."""
        return self._size

    @property
    def total_quads(self) -> int:
        """Number of complete quads in the file."""
        return self._size // QUAD_SIZE_BYTES

    @property
    def trailing_bytes(self) -> int:
        """Bytes after the last complete quad."""
        return self._size % QUAD_SIZE_BYTES

    @property
    def closed(self) -> bool:
        """True once the file has been closed."""
        return self._file is None

    def read(self, size: int = -1) -> bytes:
        """
        Read raw bytes.

        Args:
            size: Maximum bytes to read (-1 for the rest of the file)

        Returns:
            Bytes read, empty at end of file
        """
        if self._file is None:
            raise ValueError("read from closed capture file")
        return self._file.read(size)

    def close(self) -> None:
        """Close the capture file."""
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
