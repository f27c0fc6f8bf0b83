"""Shared fixtures for decoder tests."""

import pytest

from qie_decoder.protocols.base import FrameRecord


def _make_frame(seed: int) -> FrameRecord:
    # Every byte except the marker stays below 0x80, so no payload byte can
    # be read as a frame marker and no word can equal the padding character.
    phases = [(seed + ch) % 4 for ch in range(8)]
    phases[3] = seed % 2
    phases[7] = (seed + 1) % 2
    return FrameRecord(
        reserve=seed % 8,
        cap_id=seed % 4,
        cap_id_error=(seed // 4) % 2,
        bc0=1 if seed == 0 else 0,
        amplitudes=(seed % 0x80,)
        + tuple((seed * 8 + ch) % 0x80 for ch in range(1, 8)),
        phases=tuple(phases),
    )


@pytest.fixture
def make_frame():
    """Factory for frame records whose packed bytes are marker-safe."""
    return _make_frame


@pytest.fixture
def make_frames():
    """Factory for a list of distinct marker-safe frame records."""

    def factory(count: int, start: int = 0):
        return [_make_frame(start + i) for i in range(count)]

    return factory
