"""
QIE frame unpacking.

A frame carries one time sample for 8 channels:

    byte 0      frame-start marker (0xBC or 0xFC)
    byte 1      control: bit 0 BC0, bit 1 CapID error,
                bits 2-3 CapID, bits 4-6 reserve
    bytes 2-9   ADC amplitude, one byte per channel
    bytes 10-11 TDC phase word, 2 bits per channel (channel 0 in the LSBs)
"""

from typing import Sequence, Union

from .base import (
    CHANNELS_PER_FRAME,
    FRAME_MARKERS,
    FRAME_SIZE,
    FrameRecord,
    MalformedFrame,
)

FrameBytes = Union[bytes, bytearray, memoryview, Sequence[int]]


def decode_frame(data: FrameBytes) -> FrameRecord:
    """
    Unpack one 12-byte frame.

    Args:
        data: Frame bytes, marker first

    Returns:
        Decoded frame record

    Raises:
        MalformedFrame: If data is not exactly 12 bytes long
    """
    if len(data) != FRAME_SIZE:
        raise MalformedFrame(len(data))

    control = data[1]
    phase_word = (data[10] << 8) | data[11]

    return FrameRecord(
        reserve=(control >> 4) & 0x7,
        cap_id=(control >> 2) & 0x3,
        cap_id_error=(control >> 1) & 0x1,
        bc0=control & 0x1,
        amplitudes=tuple(int(b) for b in data[2 : 2 + CHANNELS_PER_FRAME]),
        phases=tuple(
            (phase_word >> (2 * ch)) & 0x3 for ch in range(CHANNELS_PER_FRAME)
        ),
    )


def pack_frame(record: FrameRecord, marker: int = FRAME_MARKERS[0]) -> bytes:
    """
    Pack a frame record into its 12-byte wire form.

    Args:
        record: Frame to pack
        marker: Frame-start byte to use

    Returns:
        12 frame bytes

    Raises:
        ValueError: If a field does not fit its bit width
    """
    if len(record.amplitudes) != CHANNELS_PER_FRAME:
        raise ValueError(f"expected {CHANNELS_PER_FRAME} amplitudes")
    if len(record.phases) != CHANNELS_PER_FRAME:
        raise ValueError(f"expected {CHANNELS_PER_FRAME} phases")
    if not (0 <= record.reserve <= 7 and 0 <= record.cap_id <= 3):
        raise ValueError("reserve or cap_id out of range")
    if record.cap_id_error not in (0, 1) or record.bc0 not in (0, 1):
        raise ValueError("cap_id_error and bc0 must be 0 or 1")

    control = (
        (record.reserve << 4)
        | (record.cap_id << 2)
        | (record.cap_id_error << 1)
        | record.bc0
    )

    phase_word = 0
    for ch, phase in enumerate(record.phases):
        if not (0 <= phase <= 3):
            raise ValueError(f"phase {phase} on channel {ch} out of range")
        phase_word |= phase << (2 * ch)

    return bytes(
        [marker, control, *record.amplitudes, phase_word >> 8, phase_word & 0xFF]
    )
