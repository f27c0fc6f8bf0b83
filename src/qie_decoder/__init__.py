"""
QIE Decoder - Dual-fiber trigger readout telemetry decoder

Decodes raw captures of the dual-fiber QIE readout link into
per-time-sample measurement records.

Capture format:
    - Quads of four little-endian 16-bit words (two per fiber)
    - Events delimited by 0xFFFF boundary quads
    - 0xFBF7 padding words between payload words
    - 12-byte frames starting with 0xBC (or 0xFC at the orbit boundary)

Decoded per frame:
    - Control bits: BC0, CapID, CapID error, reserve
    - 8 ADC amplitudes and 8 TDC phases
"""

__version__ = "0.1.0"
__author__ = "QIE Decoder Team"

from .core.config import ConfigValidationError, DecoderConfig
from .core.decoder import TelemetryDecoder
from .core.diagnostics import DecodeStats, Diagnostic, DiagnosticKind
from .protocols import (
    CaptureEncoder,
    DecodeError,
    EventRecord,
    FrameRecord,
    MalformedFrame,
    TruncatedStream,
    decode_frame,
)

__all__ = [
    # Core
    "TelemetryDecoder",
    "DecoderConfig",
    "ConfigValidationError",
    "DecodeStats",
    "Diagnostic",
    "DiagnosticKind",
    # Protocol
    "EventRecord",
    "FrameRecord",
    "DecodeError",
    "TruncatedStream",
    "MalformedFrame",
    "decode_frame",
    "CaptureEncoder",
    # Version
    "__version__",
]
