"""
Word demultiplexer.

Splits the raw capture into quads of four little-endian 16-bit words,
(fiber1 A, fiber1 B, fiber2 A, fiber2 B), and classifies each quad as
an event boundary sentinel or payload.
"""

import logging
from enum import Enum
from typing import BinaryIO, Iterator, Optional, Tuple, Union

import numpy as np

from ..core.diagnostics import DiagnosticKind, DiagnosticReporter
from .base import EVENT_BOUNDARY_MARK, QUAD_SIZE_BYTES, WORDS_PER_QUAD, TruncatedStream

logger = logging.getLogger(__name__)

Quad = Tuple[int, int, int, int]
ByteSource = Union[BinaryIO, bytes, bytearray, memoryview]

# Little-endian unsigned 16-bit, independent of host byte order
WORD_DTYPE = np.dtype("<u2")


class QuadKind(Enum):
    """Classification of a quad."""

    SENTINEL = "sentinel"  # All four words equal the boundary mark
    PAYLOAD = "payload"


class _BytesReader:
    """Minimal read() adapter over an in-memory buffer."""

    def __init__(self, data: Union[bytes, bytearray, memoryview]):
        self._data = memoryview(data)
        self._pos = 0

    def read(self, size: int) -> bytes:
        chunk = self._data[self._pos : self._pos + size]
        self._pos += len(chunk)
        return chunk.tobytes()


class WordDemux:
    """
    Lazy quad reader over a byte source.

    The source is read in chunks and converted with numpy; quads are
    yielded one at a time together with their classification.

    Example:
        demux = WordDemux(open("run.bin", "rb"))
        for kind, quad in demux:
            ...
    """

    def __init__(
        self,
        source: ByteSource,
        boundary_mark: int = EVENT_BOUNDARY_MARK,
        chunk_quads: int = 4096,
        reporter: Optional[DiagnosticReporter] = None,
    ):
        """
        Initialize demultiplexer.

        Args:
            source: Binary file-like object or bytes-like buffer
            boundary_mark: 16-bit event boundary value
            chunk_quads: Number of quads read per chunk
            reporter: Diagnostic reporter (a private one if None)
        """
        if isinstance(source, (bytes, bytearray, memoryview)):
            source = _BytesReader(source)
        self._source = source
        self._boundary_mark = boundary_mark
        self._chunk_bytes = max(1, chunk_quads) * QUAD_SIZE_BYTES
        self._reporter = reporter or DiagnosticReporter()
        self._pending = b""
        self._exhausted = False

    @property
    def exhausted(self) -> bool:
        """True once the source has been fully consumed."""
        return self._exhausted

    def read_chunk(self) -> Optional[np.ndarray]:
        """
        Read the next block of quads.

        Returns:
            Array of shape (n, 4) of uint16 words, or None at end of input

        Raises:
            TruncatedStream: If the source ends inside a quad
        """
        if self._exhausted:
            return None

        data = self._pending
        while len(data) < self._chunk_bytes:
            block = self._source.read(self._chunk_bytes - len(data))
            if not block:
                break
            data += block
        usable = len(data) - len(data) % QUAD_SIZE_BYTES

        if usable == 0:
            self._exhausted = True
            self._pending = b""
            if data:
                raise TruncatedStream(len(data))
            return None

        self._pending = data[usable:]
        words = np.frombuffer(data[:usable], dtype=WORD_DTYPE)
        return words.reshape(-1, WORDS_PER_QUAD)

    def classify(self, quads: np.ndarray) -> np.ndarray:
        """
        Flag sentinel quads.

        Args:
            quads: Array of shape (n, 4)

        Returns:
            Boolean array of length n, True where the quad is a sentinel
        """
        return np.all(quads == self._boundary_mark, axis=1)

    def iter_chunks(self) -> Iterator[Tuple[np.ndarray, np.ndarray]]:
        """Yield (quads, sentinel_mask) blocks until the source is exhausted."""
        stats = self._reporter.stats
        while True:
            try:
                quads = self.read_chunk()
            except TruncatedStream as e:
                stats.truncated_bytes += e.remaining
                self._reporter.report(
                    DiagnosticKind.TRUNCATED_STREAM,
                    f"dropping partial quad: {e}",
                    remaining=e.remaining,
                )
                return
            if quads is None:
                return
            stats.quads_read += len(quads)
            yield quads, self.classify(quads)

    def __iter__(self) -> Iterator[Tuple[QuadKind, Quad]]:
        for quads, sentinels in self.iter_chunks():
            for row, is_sentinel in zip(quads.tolist(), sentinels.tolist()):
                kind = QuadKind.SENTINEL if is_sentinel else QuadKind.PAYLOAD
                yield kind, tuple(row)
