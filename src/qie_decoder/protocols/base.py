"""
Base definitions for the QIE link protocol.

Holds the link constants, the decode error hierarchy and the
record types produced by the decoding pipeline.
"""

from dataclasses import dataclass, field
from typing import Tuple

# 16-bit word present on all four quad positions between events
EVENT_BOUNDARY_MARK = 0xFFFF
# Filler word inserted by the link, carries no payload
PADDING_CHAR = 0xFBF7
# First byte of every measurement frame (0xFC marks the orbit boundary)
FRAME_MARKERS = (0xBC, 0xFC)

FRAME_SIZE = 12
CHANNELS_PER_FRAME = 8
TIMESTAMP_WORDS = 2
WORDS_PER_QUAD = 4
QUAD_SIZE_BYTES = WORDS_PER_QUAD * 2


class DecodeError(Exception):
    """Base class for telemetry decoding errors."""

    pass


class TruncatedStream(DecodeError):
    """Raised when fewer than one quad of bytes remains in the stream."""

    def __init__(self, remaining: int):
        self.remaining = remaining
        super().__init__(
            f"{remaining} trailing byte(s) do not form a complete "
            f"{QUAD_SIZE_BYTES}-byte quad"
        )


class MalformedFrame(DecodeError):
    """Raised when a reassembled frame does not have the expected size."""

    def __init__(self, size: int, expected: int = FRAME_SIZE):
        self.size = size
        self.expected = expected
        super().__init__(f"received {size}/{expected} bytes")


@dataclass(frozen=True)
class FrameRecord:
    """One time sample on one fiber: control bits plus 8 channels."""

    reserve: int
    cap_id: int
    cap_id_error: int
    bc0: int
    amplitudes: Tuple[int, ...]
    phases: Tuple[int, ...]


@dataclass(frozen=True)
class EventRecord:
    """
    One decoded acquisition event.

    Both fiber sequences always hold the same number of time samples;
    the assembler trims the longer one before the record is built.
    """

    timestamp: int
    fiber1_frames: Tuple[FrameRecord, ...]
    fiber2_frames: Tuple[FrameRecord, ...]
    index: int = 0
    word_counts: Tuple[int, int] = field(default=(0, 0), compare=False)

    def __post_init__(self) -> None:
        if len(self.fiber1_frames) != len(self.fiber2_frames):
            raise ValueError(
                f"fiber frame counts differ: {len(self.fiber1_frames)} "
                f"vs {len(self.fiber2_frames)}"
            )

    @property
    def num_samples(self) -> int:
        """Number of time samples per fiber."""
        return len(self.fiber1_frames)
