"""End-to-end tests for the decoding pipeline."""

import io
import struct

import pytest

from qie_decoder import TelemetryDecoder
from qie_decoder.core import capture as capture_module
from qie_decoder.core.capture import CaptureFile
from qie_decoder.core.config import DecoderConfig
from qie_decoder.core.diagnostics import DiagnosticKind
from qie_decoder.protocols.base import EventRecord
from qie_decoder.protocols.encoder import (
    CaptureEncoder,
    bytes_to_words,
    timestamp_words,
)
from qie_decoder.protocols.frame import pack_frame

SENTINEL = struct.pack("<4H", 0xFFFF, 0xFFFF, 0xFFFF, 0xFFFF)
TIMESTAMP = 0x0123456789ABCDEF


def make_record(frames1, frames2=None, timestamp=TIMESTAMP, index=0):
    """Build an EventRecord for encoding."""
    frames2 = frames1 if frames2 is None else frames2
    return EventRecord(
        timestamp=timestamp,
        fiber1_frames=tuple(frames1),
        fiber2_frames=tuple(frames2),
        index=index,
    )


class TestSingleFrameStream:
    """Decoding a hand-built minimal capture."""

    def test_one_event_one_frame(self, make_frame):
        """Test sentinel, header, one frame per fiber, sentinel."""
        frame1 = pack_frame(make_frame(1))
        frame2 = pack_frame(make_frame(2))
        words1 = bytes_to_words(frame1)
        words2 = bytes_to_words(frame2)

        quads = [struct.pack("<4H", 0x0123, 0x89AB, 0x4567, 0xCDEF)]
        for i in range(0, 6, 2):
            quad = (words1[i], words1[i + 1], words2[i], words2[i + 1])
            quads.append(struct.pack("<4H", *quad))
        raw = SENTINEL + b"".join(quads) + SENTINEL

        events = TelemetryDecoder().decode(raw)

        assert len(events) == 1
        event = events[0]
        assert event.timestamp == TIMESTAMP
        assert len(event.fiber1_frames) == len(event.fiber2_frames) == 1
        assert event.fiber1_frames[0] == make_frame(1)
        assert event.fiber2_frames[0] == make_frame(2)


class TestCaptureEncoder:
    """Tests for the synthetic capture encoder."""

    def test_timestamp_words(self):
        """Test timestamp header word split."""
        assert timestamp_words(TIMESTAMP) == ([0x0123, 0x89AB], [0x4567, 0xCDEF])

    def test_timestamp_out_of_range(self):
        """Test timestamps wider than 64 bits are rejected."""
        with pytest.raises(ValueError):
            timestamp_words(1 << 64)

    def test_sentinels_enclose_events(self, make_frames):
        """Test capture layout is sentinel, event, sentinel."""
        encoder = CaptureEncoder()
        raw = encoder.encode_records([make_record(make_frames(2))])
        assert raw[:8] == SENTINEL
        assert raw[-8:] == SENTINEL
        assert len(raw) % 8 == 0

    def test_uneven_fibers_padded(self):
        """Test the shorter fiber is filled with padding words."""
        encoder = CaptureEncoder()
        body = encoder.encode_event(TIMESTAMP, b"\x01\x02" * 3, b"")
        words = struct.unpack(f"<{len(body) // 2}H", body)
        # Quads: (f1, f1, f2, f2); fiber 2 only has its header
        assert words[6:8] == (0xFBF7, 0xFBF7)
        assert len(body) % 8 == 0

    def test_padding_collision_rejected(self):
        """Test payload words equal to the padding character are refused."""
        encoder = CaptureEncoder()
        with pytest.raises(ValueError):
            encoder.encode_event(TIMESTAMP, b"\xf7\xfb", b"")

    def test_odd_payload_rejected(self):
        """Test payloads must be whole words."""
        with pytest.raises(ValueError):
            bytes_to_words(b"\x01\x02\x03")


class TestTelemetryDecoder:
    """Round-trip tests through CaptureEncoder and TelemetryDecoder."""

    @pytest.fixture
    def decoder(self):
        """Create a decoder with diagnostics recorded."""
        decoder = TelemetryDecoder()
        decoder.diagnostics = []
        decoder.add_diagnostic_sink(decoder.diagnostics.append)
        return decoder

    def test_aligned_events(self, decoder, make_frames):
        """Test aligned events decode back to the encoded frames."""
        records = [
            make_record(make_frames(32), timestamp=TIMESTAMP + i, index=i)
            for i in range(3)
        ]
        raw = CaptureEncoder().encode_records(records)

        events = decoder.decode(raw)

        assert events == records
        assert decoder.diagnostics == []
        assert decoder.stats.events_decoded == 3
        assert decoder.stats.boundary_frames_recovered == 6

    @pytest.mark.parametrize("offset,shift", [(5, 1), (12, 1), (13, 2), (30, 3)])
    def test_misaligned_readout(self, decoder, make_frames, offset, shift):
        """Test a rotated readout buffer loses no frames."""
        frames = make_frames(32)
        raw = CaptureEncoder().encode_records([make_record(frames)], offset=offset)

        events = decoder.decode(raw)

        assert len(events) == 1
        assert list(events[0].fiber1_frames) == frames[shift:] + frames[:shift]
        assert events[0].num_samples == 32
        assert decoder.stats.boundary_frames_recovered == 2

    def test_fiber_count_mismatch(self, decoder, make_frames):
        """Test 32 vs 30 frames keeps the last 30 of fiber 1."""
        frames1 = make_frames(32)
        frames2 = make_frames(30, start=40)
        encoder = CaptureEncoder()
        body = encoder.encode_event(
            TIMESTAMP,
            encoder.fiber_payload(frames1),
            encoder.fiber_payload(frames2),
        )
        raw = encoder.sentinel() + body + encoder.sentinel()

        events = decoder.decode(raw)

        assert len(events) == 1
        event = events[0]
        assert event.timestamp == TIMESTAMP
        assert list(event.fiber1_frames) == frames1[2:]
        assert list(event.fiber2_frames) == frames2
        kinds = [d.kind for d in decoder.diagnostics]
        assert DiagnosticKind.FRAME_COUNT_MISMATCH in kinds
        assert decoder.stats.frame_count_mismatches == 1
        assert decoder.stats.frames_dropped_by_reconciliation == 2

    def test_malformed_frame_on_one_fiber(self, decoder, make_frames):
        """Test a damaged frame on fiber 1 leaves the samples paired."""
        frames = make_frames(32)
        packed = [pack_frame(f) for f in frames]
        # Sample 5 on fiber 1 loses its last 4 bytes
        damaged = b"".join(packed[:5]) + packed[5][:8] + b"".join(packed[6:])
        encoder = CaptureEncoder()
        body = encoder.encode_event(
            TIMESTAMP, damaged, encoder.fiber_payload(frames)
        )

        event = decoder.decode(encoder.sentinel() + body + encoder.sentinel())[0]

        expected = frames[:5] + frames[6:]
        assert list(event.fiber1_frames) == expected
        assert list(event.fiber2_frames) == expected
        assert decoder.stats.malformed_frames == 1
        assert decoder.stats.frame_count_mismatches == 0

    def test_preamble_and_truncation(self, decoder, make_frames):
        """Test pre-run noise and a partial trailing quad are tolerated."""
        records = [make_record(make_frames(32))]
        noise = struct.pack("<4H", 1, 2, 3, 4) * 3
        raw = CaptureEncoder().encode_records(records, preamble=noise) + b"\x00" * 6

        events = decoder.decode(raw)

        assert events == records
        assert decoder.stats.preamble_quads == 3
        assert decoder.stats.truncated_bytes == 6
        assert [d.kind for d in decoder.diagnostics] == [
            DiagnosticKind.TRUNCATED_STREAM
        ]

    def test_unterminated_event_dropped(self, decoder, make_frames):
        """Test an event without a closing sentinel is not returned."""
        encoder = CaptureEncoder()
        raw = encoder.encode_records([make_record(make_frames(32))])
        raw += encoder.encode_record(make_record(make_frames(32)))

        events = decoder.decode(raw)

        assert len(events) == 1
        assert decoder.stats.incomplete_events == 1

    def test_lazy_iteration(self, decoder, make_frames):
        """Test the consumer can stop early."""
        records = [
            make_record(make_frames(32), timestamp=TIMESTAMP + i, index=i)
            for i in range(5)
        ]
        raw = CaptureEncoder().encode_records(records)

        iterator = decoder.iter_events(io.BytesIO(raw))
        first = next(iterator)
        iterator.close()

        assert first == records[0]
        assert decoder.stats.events_decoded == 1

    def test_run_with_sink(self, decoder, make_frames):
        """Test run() passes every event to the sink."""
        records = [make_record(make_frames(32), index=i) for i in range(2)]
        received = []

        stats = decoder.run(CaptureEncoder().encode_records(records), received.append)

        assert received == records
        assert stats.events_decoded == 2

    def test_stats_reset_between_runs(self, decoder, make_frames):
        """Test each run starts with fresh counters."""
        raw = CaptureEncoder().encode_records([make_record(make_frames(32))])
        decoder.decode(raw)
        decoder.decode(raw)
        assert decoder.stats.events_decoded == 1

    def test_boundary_correction_disabled(self, make_frames):
        """Test disabling the rejoin step loses the split frame."""
        decoder = TelemetryDecoder(DecoderConfig(boundary_correction=False))
        raw = CaptureEncoder().encode_records(
            [make_record(make_frames(32))], offset=5
        )

        event = decoder.decode(raw)[0]

        assert event.num_samples == 31
        assert decoder.stats.partial_frames_discarded == 2

    def test_decode_file(self, tmp_path, make_frames):
        """Test decoding from a capture file on disk."""
        records = [make_record(make_frames(32), index=i) for i in range(2)]
        path = tmp_path / "run.bin"
        path.write_bytes(CaptureEncoder().encode_records(records))

        events = list(TelemetryDecoder().decode_file(path))

        assert events == records


class TestCaptureFile:
    """Tests for CaptureFile."""

    def test_properties(self, tmp_path):
        """Test size and quad counts."""
        path = tmp_path / "capture.bin"
        path.write_bytes(b"\x00" * 27)

        with CaptureFile(path) as capture:
            assert capture.size_bytes == 27
            assert capture.total_quads == 3
            assert capture.trailing_bytes == 3
            assert capture.filepath == path
            assert capture.read(8) == b"\x00" * 8

        assert capture.closed

    def test_read_after_close(self, tmp_path):
        """Test reading a closed capture fails."""
        path = tmp_path / "capture.bin"
        path.write_bytes(b"\x00" * 8)
        capture = CaptureFile(path)
        capture.close()
        with pytest.raises(ValueError):
            capture.read(8)

    def test_missing_file(self, tmp_path):
        """Test opening a missing file raises OSError."""
        with pytest.raises(OSError):
            CaptureFile(tmp_path / "missing.bin")

    def test_stat_failure_opens_nothing(self, tmp_path, monkeypatch):
        """Test no file handle is left behind when stat fails."""
        path = tmp_path / "capture.bin"
        path.write_bytes(b"\x00" * 8)

        class UnstatablePath(type(path)):
            def stat(self, *args, **kwargs):
                raise PermissionError("stat denied")

        opened = []
        monkeypatch.setattr(capture_module, "Path", UnstatablePath)
        monkeypatch.setattr(
            capture_module, "open", lambda *a: opened.append(a), raising=False
        )

        with pytest.raises(OSError):
            CaptureFile(path)
        assert opened == []
