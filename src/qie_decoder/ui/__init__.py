"""
UI module - Text and JSON rendering of decoded events.
"""

from .event_dump import (
    JsonLinesEventSink,
    TextEventSink,
    event_to_dict,
    format_event,
    format_frame,
    format_stats,
    frame_to_dict,
)

__all__ = [
    "format_frame",
    "format_event",
    "format_stats",
    "frame_to_dict",
    "event_to_dict",
    "TextEventSink",
    "JsonLinesEventSink",
]
