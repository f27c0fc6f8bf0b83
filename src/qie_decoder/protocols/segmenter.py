"""
Event segmentation.

Splits the quad stream into acquisition events delimited by sentinel
quads, keeping one word buffer per fiber and dropping padding words.
The same sentinel that closes an event opens the next one.
"""

import logging
from enum import Enum
from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional, Tuple

from ..core.diagnostics import DiagnosticKind, DiagnosticReporter
from .base import PADDING_CHAR
from .demux import Quad, QuadKind

logger = logging.getLogger(__name__)


class SegmenterState(Enum):
    """Segmenter states."""

    PREAMBLE = "preamble"  # Before the first sentinel
    IN_EVENT = "in_event"


class SegmenterAction(Enum):
    """Actions taken on a quad."""

    DISCARD = "discard"  # Pre-run noise
    START_EVENT = "start_event"
    EMIT_EVENT = "emit_event"
    ACCUMULATE = "accumulate"


# (state, quad kind) -> (action, next state)
TRANSITIONS: Dict[
    Tuple[SegmenterState, QuadKind], Tuple[SegmenterAction, SegmenterState]
] = {
    (SegmenterState.PREAMBLE, QuadKind.SENTINEL): (
        SegmenterAction.START_EVENT,
        SegmenterState.IN_EVENT,
    ),
    (SegmenterState.PREAMBLE, QuadKind.PAYLOAD): (
        SegmenterAction.DISCARD,
        SegmenterState.PREAMBLE,
    ),
    (SegmenterState.IN_EVENT, QuadKind.SENTINEL): (
        SegmenterAction.EMIT_EVENT,
        SegmenterState.IN_EVENT,
    ),
    (SegmenterState.IN_EVENT, QuadKind.PAYLOAD): (
        SegmenterAction.ACCUMULATE,
        SegmenterState.IN_EVENT,
    ),
}


class EventWords(NamedTuple):
    """Raw word buffers of one completed event."""

    index: int
    fiber1: List[int]
    fiber2: List[int]


class EventSegmenter:
    """
    Two-state event segmenter.

    Feed classified quads with feed(); completed events are returned as
    they close. Call finish() at end of input to drop the unterminated
    trailing event.
    """

    def __init__(
        self,
        padding_char: int = PADDING_CHAR,
        reporter: Optional[DiagnosticReporter] = None,
    ):
        """
        Initialize segmenter.

        Args:
            padding_char: 16-bit filler word to drop
            reporter: Diagnostic reporter (a private one if None)
        """
        self._padding_char = padding_char
        self._reporter = reporter or DiagnosticReporter()
        self._state = SegmenterState.PREAMBLE
        self._fiber1: List[int] = []
        self._fiber2: List[int] = []
        self._event_count = 0

    @property
    def state(self) -> SegmenterState:
        """Current state."""
        return self._state

    @property
    def event_count(self) -> int:
        """Number of events emitted so far."""
        return self._event_count

    def reset(self) -> None:
        """Return to the preamble state and drop buffered words."""
        self._state = SegmenterState.PREAMBLE
        self._fiber1 = []
        self._fiber2 = []
        self._event_count = 0

    def feed(self, kind: QuadKind, quad: Quad) -> Optional[EventWords]:
        """
        Process one quad.

        Args:
            kind: Quad classification
            quad: (fiber1 A, fiber1 B, fiber2 A, fiber2 B)

        Returns:
            The completed event if this quad closed one, else None
        """
        action, self._state = TRANSITIONS[(self._state, kind)]
        stats = self._reporter.stats

        if action is SegmenterAction.ACCUMULATE:
            f1a, f1b, f2a, f2b = quad
            for word, buffer in (
                (f1a, self._fiber1),
                (f1b, self._fiber1),
                (f2a, self._fiber2),
                (f2b, self._fiber2),
            ):
                if word == self._padding_char:
                    stats.padding_words_dropped += 1
                else:
                    buffer.append(word)
            return None

        if action is SegmenterAction.EMIT_EVENT:
            event = EventWords(self._event_count, self._fiber1, self._fiber2)
            logger.debug(
                "Event %d has %d, %d words",
                event.index,
                len(event.fiber1),
                len(event.fiber2),
            )
            self._fiber1 = []
            self._fiber2 = []
            self._event_count += 1
            stats.events_found += 1
            return event

        if action is SegmenterAction.START_EVENT:
            logger.debug("First event boundary found")
            self._fiber1 = []
            self._fiber2 = []
        else:
            stats.preamble_quads += 1
        return None

    def finish(self) -> None:
        """Handle end of input, discarding any unterminated event."""
        if self._fiber1 or self._fiber2:
            self._reporter.stats.incomplete_events += 1
            self._reporter.report(
                DiagnosticKind.INCOMPLETE_EVENT,
                "discarding trailing event with no closing boundary",
                event_index=self._event_count,
                fiber1_words=len(self._fiber1),
                fiber2_words=len(self._fiber2),
            )
        self._fiber1 = []
        self._fiber2 = []

    def segment(self, quads: Iterable[Tuple[QuadKind, Quad]]) -> Iterator[EventWords]:
        """
        Segment a stream of classified quads.

        Args:
            quads: Iterable of (kind, quad), e.g. a WordDemux

        Yields:
            Completed events in stream order
        """
        for kind, quad in quads:
            event = self.feed(kind, quad)
            if event is not None:
                yield event
        self.finish()
