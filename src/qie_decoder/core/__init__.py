"""
Core module - Configuration, diagnostics and capture access.
"""

from .capture import CaptureFile
from .config import ConfigValidationError, DecoderConfig
from .diagnostics import (
    DecodeStats,
    Diagnostic,
    DiagnosticKind,
    DiagnosticReporter,
    DiagnosticSink,
)

__all__ = [
    "CaptureFile",
    "DecoderConfig",
    "ConfigValidationError",
    "DecodeStats",
    "Diagnostic",
    "DiagnosticKind",
    "DiagnosticReporter",
    "DiagnosticSink",
]
