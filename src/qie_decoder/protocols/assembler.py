"""
Event assembly.

Turns the two word buffers of one event into an EventRecord: extracts the
timestamp, cuts each fiber into frames, trims the fibers to a common
number of time samples, then decodes the frames slot by slot.
"""

import logging
from typing import List, Optional, Sequence, Tuple, TypeVar

from ..core.diagnostics import DiagnosticKind, DiagnosticReporter
from .base import TIMESTAMP_WORDS, EventRecord, FrameRecord, MalformedFrame
from .frame import decode_frame
from .resync import FrameResynchronizer

logger = logging.getLogger(__name__)

T = TypeVar("T")


def extract_timestamp(fiber1: Sequence[int], fiber2: Sequence[int]) -> int:
    """
    Build the 64-bit event timestamp from the two header words per fiber.

    Args:
        fiber1: Fiber 1 event words
        fiber2: Fiber 2 event words

    Returns:
        Timestamp, fiber1[0] in the most significant 16 bits
    """
    return (
        (fiber1[0] & 0xFFFF) << 48
        | (fiber2[0] & 0xFFFF) << 32
        | (fiber1[1] & 0xFFFF) << 16
        | (fiber2[1] & 0xFFFF)
    )


def reconcile_frames(
    fiber1: Sequence[T], fiber2: Sequence[T]
) -> Tuple[List[T], List[T]]:
    """
    Trim two frame sequences to equal length.

    Frames are dropped from the front of the longer sequence, assuming any
    loss on the shorter fiber happened at the start of the event.

    Args:
        fiber1: Fiber 1 frames
        fiber2: Fiber 2 frames

    Returns:
        Tuple of (fiber1, fiber2) lists of equal length
    """
    count = min(len(fiber1), len(fiber2))
    return list(fiber1[len(fiber1) - count :]), list(fiber2[len(fiber2) - count :])


class EventAssembler:
    """Builds EventRecords from segmented event words."""

    def __init__(
        self,
        resynchronizer: Optional[FrameResynchronizer] = None,
        nominal_samples: int = 32,
        reporter: Optional[DiagnosticReporter] = None,
    ):
        """
        Initialize assembler.

        Args:
            resynchronizer: Frame resynchronizer (default settings if None)
            nominal_samples: Expected time samples per event (0 disables check)
            reporter: Diagnostic reporter (a private one if None)
        """
        self._reporter = reporter or DiagnosticReporter()
        self._resync = resynchronizer or FrameResynchronizer(reporter=self._reporter)
        self._nominal_samples = nominal_samples

    def _decode_slot(
        self, data: bytes, event_index: int, fiber: int, position: int
    ) -> Optional[FrameRecord]:
        """Decode one frame slot, reporting it if malformed."""
        try:
            return decode_frame(data)
        except MalformedFrame as e:
            self._reporter.stats.malformed_frames += 1
            self._reporter.report(
                DiagnosticKind.MALFORMED_FRAME,
                f"frame {position}: {e}, dropping the time sample on both fibers",
                event_index=event_index,
                fiber=fiber,
                position=position,
                size=e.size,
            )
            return None

    def assemble(
        self, fiber1: Sequence[int], fiber2: Sequence[int], index: int = 0
    ) -> Optional[EventRecord]:
        """
        Decode one event.

        A frame slot that fails to decode on either fiber is dropped from
        both, keeping the two fibers aligned in time.

        Args:
            fiber1: Fiber 1 words, padding removed
            fiber2: Fiber 2 words, padding removed
            index: Event index within the run

        Returns:
            Decoded event, or None if the event is too short to carry a
            timestamp
        """
        stats = self._reporter.stats

        if len(fiber1) < TIMESTAMP_WORDS or len(fiber2) < TIMESTAMP_WORDS:
            stats.events_skipped += 1
            self._reporter.report(
                DiagnosticKind.SHORT_EVENT,
                f"event too short for a timestamp ({len(fiber1)}, "
                f"{len(fiber2)} words)",
                event_index=index,
                fiber1_words=len(fiber1),
                fiber2_words=len(fiber2),
            )
            return None

        timestamp = extract_timestamp(fiber1, fiber2)
        logger.debug("Event %d time: %x", index, timestamp)

        slots1 = self._resync.resync(
            fiber1[TIMESTAMP_WORDS:], event_index=index, fiber=1
        ).frames
        slots2 = self._resync.resync(
            fiber2[TIMESTAMP_WORDS:], event_index=index, fiber=2
        ).frames

        # Reconcile before decoding so malformed frames keep their slot
        if len(slots1) != len(slots2):
            dropped = abs(len(slots1) - len(slots2))
            stats.frame_count_mismatches += 1
            stats.frames_dropped_by_reconciliation += dropped
            self._reporter.report(
                DiagnosticKind.FRAME_COUNT_MISMATCH,
                f"fiber frame counts differ ({len(slots1)} vs {len(slots2)}), "
                f"dropping {dropped} oldest frame(s)",
                event_index=index,
                fiber1_frames=len(slots1),
                fiber2_frames=len(slots2),
                dropped=dropped,
            )
            slots1, slots2 = reconcile_frames(slots1, slots2)

        frames1: List[FrameRecord] = []
        frames2: List[FrameRecord] = []
        for position, (data1, data2) in enumerate(zip(slots1, slots2)):
            record1 = self._decode_slot(data1, index, 1, position)
            record2 = self._decode_slot(data2, index, 2, position)
            if record1 is None or record2 is None:
                continue
            frames1.append(record1)
            frames2.append(record2)
        stats.frames_decoded += len(frames1) + len(frames2)

        if self._nominal_samples and len(frames1) != self._nominal_samples:
            stats.off_nominal_events += 1
            self._reporter.report(
                DiagnosticKind.SAMPLE_COUNT,
                f"{len(frames1)} time samples, expected {self._nominal_samples}",
                event_index=index,
                samples=len(frames1),
                expected=self._nominal_samples,
            )

        stats.events_decoded += 1
        return EventRecord(
            timestamp=timestamp,
            fiber1_frames=tuple(frames1),
            fiber2_frames=tuple(frames2),
            index=index,
            word_counts=(len(fiber1), len(fiber2)),
        )
