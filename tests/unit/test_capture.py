"""Unit tests for ParticipantCapture."""

import asyncio
import os
from unittest.mock import Mock

import pytest

from roomcorder.audio.capture import ParticipantCapture, capture_filename
from roomcorder.models.session import Participant
from roomcorder.transport.base import EndBehavior
from roomcorder.transport.decoder import PcmPassthroughDecoder
from roomcorder.transport.loopback import LoopbackReceiver


async def drain():
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def alice():
    return Participant("u1", "Alice Smith!", "alice")


@pytest.mark.unit
class TestCaptureFilename:

    def test_encodes_id_and_sanitized_name(self, alice):
        assert capture_filename(alice) == "u1_Alice_Smith.pcm"

    def test_empty_name_falls_back(self):
        assert capture_filename(Participant("u9", "???", "x")) == "u9_participant.pcm"


@pytest.mark.unit
class TestParticipantCapture:
    """Test cases for the subscribe/decode/write pipeline."""

    @pytest.mark.asyncio
    async def test_writes_decoded_pcm_in_order(self, alice, temp_data_dir, audio_test_data, clock):
        receiver = LoopbackReceiver()
        capture = ParticipantCapture(alice, receiver, PcmPassthroughDecoder(), temp_data_dir, clock=clock)
        capture.start()

        chunk_a = audio_test_data("sine", 0.02)
        chunk_b = audio_test_data("noise", 0.02)
        receiver.push_audio("u1", chunk_a)
        await drain()
        clock.advance(20)
        receiver.push_audio("u1", chunk_b)
        await drain()

        errors = await capture.close()

        assert errors == []
        with open(capture.filepath, 'rb') as f:
            assert f.read() == chunk_a + chunk_b
        assert capture.bytes_written == len(chunk_a) + len(chunk_b)
        assert [frame.timestamp for frame in capture.frame_index.frames] == [clock.current - 20, clock.current]

    @pytest.mark.asyncio
    async def test_subscribes_with_manual_end(self, alice, temp_data_dir):
        receiver = LoopbackReceiver()
        capture = ParticipantCapture(alice, receiver, PcmPassthroughDecoder(), temp_data_dir)
        capture.start()

        assert receiver.streams["u1"][0].end_behavior is EndBehavior.MANUAL
        await capture.close()

    @pytest.mark.asyncio
    async def test_decode_failure_ends_only_this_pipeline(self, alice, temp_data_dir, audio_test_data):
        receiver = LoopbackReceiver()
        bob = Participant("u2", "Bob", "bob")
        bad = ParticipantCapture(alice, receiver, PcmPassthroughDecoder(), temp_data_dir)
        good = ParticipantCapture(bob, receiver, PcmPassthroughDecoder(), temp_data_dir)
        bad.start()
        good.start()

        receiver.push_audio("u1", b"\x01\x02\x03")  # not frame aligned
        receiver.push_audio("u2", audio_test_data("sine", 0.02))
        await drain()

        assert bad.error is not None
        assert bad.error.code == "DECODE_FAILED"
        assert not bad.is_capturing
        assert good.error is None
        assert good.is_capturing

        assert await bad.close() == []
        await good.close()
        assert good.file_size() > 0
        assert bad.file_size() == 0
        assert bad.get_capture_stats().failed

    @pytest.mark.asyncio
    async def test_close_is_idempotent_and_releases_everything(self, alice, temp_data_dir):
        receiver = LoopbackReceiver()
        decoder = PcmPassthroughDecoder()
        capture = ParticipantCapture(alice, receiver, decoder, temp_data_dir)
        capture.start()

        await capture.close()
        second = await capture.close()

        assert second == []
        assert receiver.streams["u1"][0].destroyed
        assert decoder.destroyed
        assert capture.writer.closed
        assert capture.task.done()

    @pytest.mark.asyncio
    async def test_close_collects_errors(self, alice, temp_data_dir):
        receiver = LoopbackReceiver()
        decoder = Mock(spec=PcmPassthroughDecoder)
        decoder.destroy.side_effect = RuntimeError("decoder busy")
        capture = ParticipantCapture(alice, receiver, decoder, temp_data_dir)
        capture.start()

        errors = await capture.close()

        assert errors == ["decoder: decoder busy"]
        assert capture.writer.closed

    @pytest.mark.asyncio
    async def test_setup_failure_is_recorded(self, alice, temp_data_dir):
        receiver = Mock()
        receiver.subscribe.side_effect = RuntimeError("no such user")
        capture = ParticipantCapture(alice, receiver, PcmPassthroughDecoder(), temp_data_dir)

        capture.start()

        assert capture.error.code == "STREAM_SETUP_FAILED"
        assert capture.task is None
        assert await capture.close() == []

    @pytest.mark.asyncio
    async def test_peak_level_tracked(self, alice, temp_data_dir, audio_test_data):
        receiver = LoopbackReceiver()
        capture = ParticipantCapture(alice, receiver, PcmPassthroughDecoder(), temp_data_dir)
        capture.start()
        receiver.push_audio("u1", audio_test_data("sine", 0.05))
        await drain()
        await capture.close()

        stats = capture.get_capture_stats()
        assert stats.total_chunks == 1
        assert 0.25 < stats.peak_level < 0.35
        assert os.path.basename(capture.filepath) == "u1_Alice_Smith.pcm"
