"""
Decode diagnostics.

Anomalies found while decoding are never raised to the caller. They are
reported as structured Diagnostic records, counted in DecodeStats, logged,
and forwarded to any registered sinks.
"""

import logging
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class DiagnosticKind(Enum):
    """Categories of recoverable decode anomalies."""

    TRUNCATED_STREAM = "truncated_stream"  # Partial quad at end of input
    MALFORMED_FRAME = "malformed_frame"  # Frame buffer not 12 bytes
    FRAME_COUNT_MISMATCH = "frame_count_mismatch"  # Fibers trimmed to match
    INCOMPLETE_EVENT = "incomplete_event"  # Trailing event never closed
    SHORT_EVENT = "short_event"  # Event too short for a timestamp
    PARTIAL_DISCARDED = "partial_discarded"  # Boundary partials did not pair up
    SAMPLE_COUNT = "sample_count"  # Event not at the nominal sample count


@dataclass
class Diagnostic:
    """A single recoverable anomaly."""

    kind: DiagnosticKind
    message: str
    event_index: Optional[int] = None
    fiber: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)


DiagnosticSink = Callable[[Diagnostic], None]


# Log level used for each diagnostic kind
_LOG_LEVELS = {
    DiagnosticKind.TRUNCATED_STREAM: logging.WARNING,
    DiagnosticKind.MALFORMED_FRAME: logging.WARNING,
    DiagnosticKind.FRAME_COUNT_MISMATCH: logging.WARNING,
    DiagnosticKind.INCOMPLETE_EVENT: logging.INFO,
    DiagnosticKind.SHORT_EVENT: logging.WARNING,
    DiagnosticKind.PARTIAL_DISCARDED: logging.DEBUG,
    DiagnosticKind.SAMPLE_COUNT: logging.INFO,
}


@dataclass
class DecodeStats:
    """Running counters for a decode run."""

    quads_read: int = 0
    preamble_quads: int = 0
    padding_words_dropped: int = 0
    events_found: int = 0
    events_decoded: int = 0
    events_skipped: int = 0
    incomplete_events: int = 0
    frames_decoded: int = 0
    malformed_frames: int = 0
    boundary_frames_recovered: int = 0
    partial_frames_discarded: int = 0
    frame_count_mismatches: int = 0
    frames_dropped_by_reconciliation: int = 0
    off_nominal_events: int = 0
    truncated_bytes: int = 0

    def as_dict(self) -> Dict[str, int]:
        """Return counters as a plain dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


class DiagnosticReporter:
    """
    Collects diagnostics for one decode run.

    Every pipeline stage shares a single reporter so that counters
    and sinks see the anomalies of the whole run in stream order.
    """

    def __init__(self, sinks: Optional[List[DiagnosticSink]] = None):
        self._sinks: List[DiagnosticSink] = list(sinks or [])
        self._stats = DecodeStats()

    @property
    def stats(self) -> DecodeStats:
        """Counters accumulated so far."""
        return self._stats

    def add_sink(self, sink: DiagnosticSink) -> None:
        """Register a callable that receives every diagnostic."""
        self._sinks.append(sink)

    def remove_sink(self, sink: DiagnosticSink) -> None:
        """Unregister a sink."""
        if sink in self._sinks:
            self._sinks.remove(sink)

    def reset(self) -> None:
        """Clear counters, keeping registered sinks."""
        self._stats = DecodeStats()

    def report(
        self,
        kind: DiagnosticKind,
        message: str,
        event_index: Optional[int] = None,
        fiber: Optional[int] = None,
        **details: Any,
    ) -> Diagnostic:
        """
        Record an anomaly.

        Args:
            kind: Diagnostic category
            message: Human-readable description
            event_index: Index of the affected event, if any
            fiber: Affected fiber (1 or 2), if any
            **details: Structured values for monitoring

        Returns:
            The diagnostic that was dispatched
        """
        diagnostic = Diagnostic(
            kind=kind,
            message=message,
            event_index=event_index,
            fiber=fiber,
            details=details,
        )

        prefix = ""
        if event_index is not None:
            prefix += f"event {event_index}: "
        if fiber is not None:
            prefix += f"fiber {fiber}: "
        logger.log(_LOG_LEVELS[kind], "%s%s", prefix, message)

        for sink in self._sinks:
            try:
                sink(diagnostic)
            except Exception:
                logger.exception("Diagnostic sink %r failed", sink)

        return diagnostic
