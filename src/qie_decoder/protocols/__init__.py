"""
QIE link protocol - Event segmentation, frame resynchronization and unpacking.
"""

from .base import (
    EVENT_BOUNDARY_MARK,
    FRAME_MARKERS,
    FRAME_SIZE,
    PADDING_CHAR,
    DecodeError,
    EventRecord,
    FrameRecord,
    MalformedFrame,
    TruncatedStream,
)
from .assembler import EventAssembler, extract_timestamp, reconcile_frames
from .demux import QuadKind, WordDemux
from .encoder import CaptureEncoder
from .frame import decode_frame, pack_frame
from .resync import FrameResynchronizer, ResyncResult, ResyncState
from .segmenter import EventSegmenter, EventWords, SegmenterState

__all__ = [
    # Constants
    "EVENT_BOUNDARY_MARK",
    "PADDING_CHAR",
    "FRAME_MARKERS",
    "FRAME_SIZE",
    # Errors
    "DecodeError",
    "TruncatedStream",
    "MalformedFrame",
    # Records
    "FrameRecord",
    "EventRecord",
    # Pipeline stages
    "WordDemux",
    "QuadKind",
    "EventSegmenter",
    "EventWords",
    "SegmenterState",
    "FrameResynchronizer",
    "ResyncResult",
    "ResyncState",
    "EventAssembler",
    "extract_timestamp",
    "reconcile_frames",
    "decode_frame",
    "pack_frame",
    "CaptureEncoder",
]
