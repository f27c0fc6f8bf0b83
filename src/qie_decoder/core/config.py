"""
Configuration management for the QIE decoder.

Handles link constants, decoding options and JSON persistence.
"""

import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Tuple

from ..protocols.base import EVENT_BOUNDARY_MARK, FRAME_MARKERS, PADDING_CHAR

logger = logging.getLogger(__name__)


class ConfigValidationError(ValueError):
    """Raised when configuration values are invalid."""

    pass


@dataclass
class DecoderConfig:
    """Configuration for a decode run."""

    boundary_mark: int = EVENT_BOUNDARY_MARK
    padding_char: int = PADDING_CHAR
    frame_markers: Tuple[int, ...] = FRAME_MARKERS
    nominal_samples: int = 32  # Expected time samples per event
    boundary_correction: bool = True  # Rejoin partial frames split at event edges
    chunk_quads: int = 4096  # Quads read from the source per chunk

    def __post_init__(self) -> None:
        """Validate configuration values after initialization."""
        self.frame_markers = tuple(self.frame_markers)
        self._validate()

    def _validate(self) -> None:
        """Validate all configuration fields."""
        if not (0 <= self.boundary_mark <= 0xFFFF):
            raise ConfigValidationError(
                f"boundary_mark must be a 16-bit value, got {self.boundary_mark}"
            )
        if not (0 <= self.padding_char <= 0xFFFF):
            raise ConfigValidationError(
                f"padding_char must be a 16-bit value, got {self.padding_char}"
            )
        if self.padding_char == self.boundary_mark:
            raise ConfigValidationError(
                "padding_char and boundary_mark must differ"
            )
        if not self.frame_markers:
            raise ConfigValidationError("frame_markers must not be empty")
        for marker in self.frame_markers:
            if not (0 <= marker <= 0xFF):
                raise ConfigValidationError(
                    f"frame markers must be byte values, got {marker}"
                )
        if self.nominal_samples < 0:
            raise ConfigValidationError(
                f"nominal_samples must be non-negative, got {self.nominal_samples}"
            )
        if self.chunk_quads < 1:
            raise ConfigValidationError(
                f"chunk_quads must be at least 1, got {self.chunk_quads}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        data = asdict(self)
        data["frame_markers"] = list(self.frame_markers)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DecoderConfig":
        """Create configuration from dictionary."""
        return cls(**data)

    def save(self, path: str) -> bool:
        """Save configuration to JSON file.

        Args:
            path: File path to save configuration to

        Returns:
            True if saved successfully, False otherwise
        """
        try:
            with open(path, "w") as f:
                json.dump(self.to_dict(), f, indent=2)
            logger.info(f"Configuration saved to {path}")
            return True
        except OSError as e:
            logger.error(f"Failed to save configuration to {path}: {e}")
            return False

    @classmethod
    def load(cls, path: str) -> Optional["DecoderConfig"]:
        """Load configuration from JSON file.

        Args:
            path: File path to load configuration from

        Returns:
            DecoderConfig instance or None if loading failed
        """
        try:
            with open(path, "r") as f:
                data = json.load(f)
            config = cls.from_dict(data)
            logger.info(f"Configuration loaded from {path}")
            return config
        except FileNotFoundError:
            logger.warning(f"Configuration file not found: {path}")
            return None
        except OSError as e:
            logger.error(f"Failed to read configuration from {path}: {e}")
            return None
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in configuration file {path}: {e}")
            return None
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Invalid configuration format in {path}: {e}")
            return None
