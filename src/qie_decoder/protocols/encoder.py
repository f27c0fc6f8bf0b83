"""
Synthetic capture encoder.

Produces raw captures in the dual-fiber quad format from decoded records,
for fixtures and round-trip testing of the decoder.
"""

import logging
from typing import Iterable, List, Sequence, Tuple

import numpy as np

from .base import (
    EVENT_BOUNDARY_MARK,
    PADDING_CHAR,
    WORDS_PER_QUAD,
    EventRecord,
    FrameRecord,
)
from .frame import pack_frame

logger = logging.getLogger(__name__)


def bytes_to_words(data: bytes) -> List[int]:
    """
    Pack byte lanes into 16-bit words, first byte in the low lane.

    Args:
        data: Even number of bytes

    Returns:
        List of 16-bit words
    """
    if len(data) % 2:
        raise ValueError(f"byte count must be even, got {len(data)}")
    return np.frombuffer(bytes(data), dtype="<u2").tolist()


def timestamp_words(timestamp: int) -> Tuple[List[int], List[int]]:
    """
    Split a 64-bit timestamp into the per-fiber header words.

    Returns:
        Tuple of ([fiber1 word 0, word 1], [fiber2 word 0, word 1])
    """
    if not (0 <= timestamp < 1 << 64):
        raise ValueError(f"timestamp must fit in 64 bits, got {timestamp}")
    return (
        [(timestamp >> 48) & 0xFFFF, (timestamp >> 16) & 0xFFFF],
        [(timestamp >> 32) & 0xFFFF, timestamp & 0xFFFF],
    )


class CaptureEncoder:
    """
    Builds raw capture bytes.

    Example:
        encoder = CaptureEncoder()
        raw = encoder.encode_records([record], offset=5)
    """

    def __init__(
        self,
        boundary_mark: int = EVENT_BOUNDARY_MARK,
        padding_char: int = PADDING_CHAR,
        marker: int = 0xBC,
    ):
        """
        Initialize encoder.

        Args:
            boundary_mark: 16-bit event boundary value
            padding_char: 16-bit filler word
            marker: Frame-start byte written into every frame
        """
        self._boundary_mark = boundary_mark
        self._padding_char = padding_char
        self._marker = marker

    def sentinel(self) -> bytes:
        """One boundary quad."""
        return np.full(WORDS_PER_QUAD, self._boundary_mark, dtype="<u2").tobytes()

    def fiber_payload(self, frames: Sequence[FrameRecord], offset: int = 0) -> bytes:
        """
        Pack the frames of one fiber.

        Args:
            frames: Frames in time order
            offset: Byte rotation applied to the packed frames, as produced by
                a misaligned readout buffer

        Returns:
            Payload bytes
        """
        payload = b"".join(pack_frame(frame, self._marker) for frame in frames)
        if payload and offset:
            offset %= len(payload)
            payload = payload[offset:] + payload[:offset]
        return payload

    def encode_event(
        self, timestamp: int, fiber1: bytes, fiber2: bytes
    ) -> bytes:
        """
        Encode one event body (no boundary quads).

        Shorter fibers and odd word counts are filled with padding words.

        Args:
            timestamp: 64-bit event timestamp
            fiber1: Fiber 1 payload bytes
            fiber2: Fiber 2 payload bytes

        Returns:
            Quad bytes of the event

        Raises:
            ValueError: If a payload word collides with the padding or
                boundary values
        """
        head1, head2 = timestamp_words(timestamp)
        words1 = head1 + bytes_to_words(fiber1)
        words2 = head2 + bytes_to_words(fiber2)

        for word in words1 + words2:
            if word == self._padding_char:
                raise ValueError(
                    f"word 0x{word:04X} collides with the padding character"
                )

        length = max(len(words1), len(words2))
        length += length % 2
        words1 += [self._padding_char] * (length - len(words1))
        words2 += [self._padding_char] * (length - len(words2))

        quads = np.empty((length // 2, WORDS_PER_QUAD), dtype="<u2")
        quads[:, 0] = words1[0::2]
        quads[:, 1] = words1[1::2]
        quads[:, 2] = words2[0::2]
        quads[:, 3] = words2[1::2]

        if np.any(np.all(quads == self._boundary_mark, axis=1)):
            raise ValueError("event body contains a boundary quad")

        return quads.tobytes()

    def encode_record(self, record: EventRecord, offset: int = 0) -> bytes:
        """Encode one EventRecord body, see encode_event()."""
        return self.encode_event(
            record.timestamp,
            self.fiber_payload(record.fiber1_frames, offset),
            self.fiber_payload(record.fiber2_frames, offset),
        )

    def encode_records(
        self,
        records: Iterable[EventRecord],
        offset: int = 0,
        preamble: bytes = b"",
    ) -> bytes:
        """
        Encode a complete capture.

        Args:
            records: Events in order
            offset: Byte rotation applied to every fiber payload
            preamble: Raw quad bytes written before the first boundary

        Returns:
            Capture bytes, each event enclosed by boundary quads
        """
        parts = [preamble, self.sentinel()]
        for record in records:
            parts.append(self.encode_record(record, offset))
            parts.append(self.sentinel())
        capture = b"".join(parts)
        logger.debug("Encoded capture of %d bytes", len(capture))
        return capture
