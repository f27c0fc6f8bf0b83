"""
Byte-level frame resynchronization.

The link natively frames 8-bit characters, the capture stores them as
16-bit words. Each word is split into its (low, high) byte lanes and the
resulting byte stream is cut into frames at every frame-start marker.

Bytes ahead of the first marker are the tail of a frame cut at the start
of the event, bytes after the last marker are the head of a frame cut at
its end. When the two add up to exactly one frame they are rejoined
(trailing part first), which undoes the pointer offset of the readout
circular buffer.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..core.diagnostics import DiagnosticKind, DiagnosticReporter
from .base import FRAME_MARKERS, FRAME_SIZE

logger = logging.getLogger(__name__)


class ResyncState(Enum):
    """Resynchronizer states."""

    SEEKING = "seeking"  # No marker seen yet in this event
    IN_FRAME = "in_frame"


class ResyncAction(Enum):
    """Actions taken on a byte."""

    STASH_LEADING = "stash_leading"
    OPEN_FRAME = "open_frame"
    CLOSE_FRAME = "close_frame"  # Close current frame, open a new one
    APPEND = "append"


# (state, byte is marker) -> (action, next state)
TRANSITIONS: Dict[Tuple[ResyncState, bool], Tuple[ResyncAction, ResyncState]] = {
    (ResyncState.SEEKING, False): (ResyncAction.STASH_LEADING, ResyncState.SEEKING),
    (ResyncState.SEEKING, True): (ResyncAction.OPEN_FRAME, ResyncState.IN_FRAME),
    (ResyncState.IN_FRAME, True): (ResyncAction.CLOSE_FRAME, ResyncState.IN_FRAME),
    (ResyncState.IN_FRAME, False): (ResyncAction.APPEND, ResyncState.IN_FRAME),
}


def words_to_bytes(words: Sequence[int]) -> np.ndarray:
    """
    Split 16-bit words into byte lanes.

    Args:
        words: 16-bit words

    Returns:
        uint8 array of (low, high) bytes per word
    """
    return np.asarray(words, dtype="<u2").view(np.uint8)


@dataclass
class ResyncResult:
    """Frames recovered from one fiber of one event."""

    frames: List[bytes] = field(default_factory=list)
    leading: bytes = b""  # Bytes before the first marker
    trailing: bytes = b""  # Open frame left after the last marker
    boundary_recovered: bool = False


class FrameResynchronizer:
    """
    Cuts one fiber's event words into frames.

    Closed frames are returned whatever their length; size validation is
    left to the frame decoder.
    """

    def __init__(
        self,
        markers: Sequence[int] = FRAME_MARKERS,
        frame_size: int = FRAME_SIZE,
        boundary_correction: bool = True,
        reporter: Optional[DiagnosticReporter] = None,
    ):
        """
        Initialize resynchronizer.

        Args:
            markers: Byte values that start a frame
            frame_size: Frame length in bytes
            boundary_correction: Rejoin the partial frames at the event edges
            reporter: Diagnostic reporter (a private one if None)
        """
        self._markers = np.asarray(sorted(set(markers)), dtype=np.uint8)
        self._frame_size = frame_size
        self._boundary_correction = boundary_correction
        self._reporter = reporter or DiagnosticReporter()

    def is_marker(self, value: int) -> bool:
        """Check whether a byte starts a frame."""
        return bool(np.isin(value, self._markers))

    def resync(
        self,
        words: Sequence[int],
        event_index: Optional[int] = None,
        fiber: Optional[int] = None,
    ) -> ResyncResult:
        """
        Cut a word sequence into frames.

        Args:
            words: Padding-free payload words (timestamp words excluded)
            event_index: Event index for diagnostics
            fiber: Fiber number for diagnostics

        Returns:
            Resynchronization result
        """
        data = words_to_bytes(words)
        return self.resync_bytes(data, event_index=event_index, fiber=fiber)

    def resync_bytes(
        self,
        data: Sequence[int],
        event_index: Optional[int] = None,
        fiber: Optional[int] = None,
    ) -> ResyncResult:
        """Cut a byte sequence into frames, see resync()."""
        data = np.asarray(data, dtype=np.uint8)
        marker_flags = np.isin(data, self._markers)

        state = ResyncState.SEEKING
        frames: List[bytes] = []
        frame_buf = bytearray()
        leading_buf = bytearray()

        for value, is_marker in zip(data.tolist(), marker_flags.tolist()):
            action, state = TRANSITIONS[(state, is_marker)]
            if action is ResyncAction.APPEND:
                frame_buf.append(value)
            elif action is ResyncAction.CLOSE_FRAME:
                frames.append(bytes(frame_buf))
                frame_buf = bytearray([value])
            elif action is ResyncAction.STASH_LEADING:
                leading_buf.append(value)
            else:
                logger.debug("First frame marker 0x%02X", value)
                frame_buf.append(value)

        result = ResyncResult(
            frames=frames, leading=bytes(leading_buf), trailing=bytes(frame_buf)
        )

        combined = len(result.trailing) + len(result.leading)
        if self._boundary_correction and combined == self._frame_size:
            frames.append(result.trailing + result.leading)
            result.boundary_recovered = True
            self._reporter.stats.boundary_frames_recovered += 1
            logger.debug(
                "Rejoined %d + %d boundary bytes into one frame",
                len(result.trailing),
                len(result.leading),
            )
        elif combined:
            self._reporter.stats.partial_frames_discarded += 1
            self._reporter.report(
                DiagnosticKind.PARTIAL_DISCARDED,
                f"discarding {len(result.trailing)} trailing and "
                f"{len(result.leading)} leading byte(s)",
                event_index=event_index,
                fiber=fiber,
                trailing=len(result.trailing),
                leading=len(result.leading),
            )

        return result
