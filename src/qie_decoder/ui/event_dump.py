"""
Event dump sinks.

Human-readable and JSON renderings of decoded events.
"""

import json
import sys
from typing import Any, Dict, List, Optional, TextIO

from ..core.diagnostics import DecodeStats
from ..protocols.base import EventRecord, FrameRecord


def format_frame(frame: FrameRecord) -> str:
    """Render one frame as text."""
    lines = [
        "[[QIE]]",
        f"reserve: {frame.reserve}",
        f"Cap ID: {frame.cap_id}",
        f"error: {frame.cap_id_error}",
        f"BC0: {frame.bc0}",
        "".join(f" ADC {i} : {adc}" for i, adc in enumerate(frame.amplitudes)),
        "".join(f" TDC {i} : {tdc}" for i, tdc in enumerate(frame.phases)),
    ]
    return "\n".join(lines)


def format_event(event: EventRecord) -> str:
    """Render one event, both fibers, as text."""
    lines = [
        "[[TSevent]]",
        f"Time: {event.timestamp:x}",
        f"FIBER1 ({len(event.fiber1_frames)} time samples)",
    ]
    lines.extend(format_frame(frame) for frame in event.fiber1_frames)
    lines.append(f"FIBER2 ({len(event.fiber2_frames)} time samples)")
    lines.extend(format_frame(frame) for frame in event.fiber2_frames)
    return "\n".join(lines)


def frame_to_dict(frame: FrameRecord) -> Dict[str, Any]:
    """Convert a frame to a JSON-serializable dictionary."""
    return {
        "reserve": frame.reserve,
        "cap_id": frame.cap_id,
        "cap_id_error": frame.cap_id_error,
        "bc0": frame.bc0,
        "amplitudes": list(frame.amplitudes),
        "phases": list(frame.phases),
    }


def event_to_dict(event: EventRecord) -> Dict[str, Any]:
    """Convert an event to a JSON-serializable dictionary."""
    return {
        "index": event.index,
        "timestamp": event.timestamp,
        "word_counts": list(event.word_counts),
        "fiber1": [frame_to_dict(f) for f in event.fiber1_frames],
        "fiber2": [frame_to_dict(f) for f in event.fiber2_frames],
    }


def format_stats(stats: DecodeStats) -> str:
    """Render run counters, one per line, skipping zero counters."""
    lines: List[str] = ["[[Diagnostics]]"]
    for name, value in stats.as_dict().items():
        if value:
            lines.append(f"{name}: {value}")
    return "\n".join(lines)


class TextEventSink:
    """Writes each event as text, including its word counts."""

    def __init__(self, stream: Optional[TextIO] = None):
        self._stream = stream or sys.stdout

    def __call__(self, event: EventRecord) -> None:
        words1, words2 = event.word_counts
        print(
            f"Event {event.index} has {words1}, {words2} words", file=self._stream
        )
        print(format_event(event), file=self._stream)


class JsonLinesEventSink:
    """Writes each event as one JSON object per line."""

    def __init__(self, stream: Optional[TextIO] = None):
        self._stream = stream or sys.stdout

    def __call__(self, event: EventRecord) -> None:
        self._stream.write(json.dumps(event_to_dict(event)) + "\n")
