"""Pytest configuration and fixtures for roomcorder tests."""

import pytest
import tempfile
import logging
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import numpy as np

from roomcorder.audio.ffmpeg import FFmpegRunner
from roomcorder.config import RoomcorderConfig
from roomcorder.models.audio import PcmFormat
from roomcorder.models.session import Participant
from roomcorder.simulation import VirtualClock
from roomcorder.transport.loopback import LoopbackTransport


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    for marker in ("unit", "integration", "slow", "ffmpeg"):
        config.addinivalue_line("markers", f"{marker}: {marker} tests")


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def pcm_format():
    return PcmFormat()


@pytest.fixture
def audio_test_data():
    """Generate 48kHz stereo s16le test audio."""
    def generate_audio(pattern="sine", duration_seconds=1.0, frequency=440.0, pcm_format=PcmFormat()):
        """Generate audio data for testing.

        Args:
            pattern: Type of audio pattern ('sine', 'noise', 'silence')
            duration_seconds: Duration of audio
            frequency: Sine frequency in Hz
            pcm_format: Output layout

        Returns:
            bytes: Interleaved PCM bytes
        """
        samples = int(duration_seconds * pcm_format.sample_rate)

        if pattern == "sine":
            t = np.arange(samples) / pcm_format.sample_rate
            wave_data = 0.3 * np.sin(2 * np.pi * frequency * t)
        elif pattern == "noise":
            wave_data = np.random.default_rng(1234).uniform(-0.3, 0.3, samples)
        elif pattern == "silence":
            wave_data = np.zeros(samples)
        else:
            raise ValueError(f"Unknown pattern: {pattern}")

        audio_data = (wave_data * 32767).astype('<i2')
        return np.repeat(audio_data, pcm_format.channels).tobytes()

    return generate_audio


@pytest.fixture
def write_pcm(temp_data_dir, audio_test_data):
    """Write a PCM file of the given length into the temp dir."""
    def _write(name, duration_seconds=1.0, pattern="sine"):
        path = Path(temp_data_dir) / name
        path.write_bytes(audio_test_data(pattern, duration_seconds))
        return str(path)
    return _write


@pytest.fixture
def participants():
    return [
        Participant("u1", "Alice", "alice"),
        Participant("u2", "Bob Builder", "bob"),
        Participant("bot1", "Recorder", "recorder", bot=True),
    ]


@pytest.fixture
def clock():
    return VirtualClock(start_ms=1_700_000_000_000)


@pytest.fixture
def loopback_transport():
    return LoopbackTransport()


@pytest.fixture
def test_config(temp_data_dir):
    """Configuration rooted in the temp dir, with fast timings."""
    config = RoomcorderConfig()
    config.set('storage.recordings_directory', str(Path(temp_data_dir) / "recordings"))
    config.set('storage.temp_directory', str(Path(temp_data_dir) / "temp"))
    config.set('logging.file_path', str(Path(temp_data_dir) / "logs" / "roomcorder.log"))
    config.set('connection.timeout_seconds', 0.5)
    config.set('connection.retry_delay_seconds', 0.01)
    config.set('capture.flush_grace_ms', 0)
    return config


@pytest.fixture
def mock_runner():
    """FFmpegRunner whose run() writes a small file at the output path."""
    runner = Mock(spec=FFmpegRunner)

    async def fake_run(args, description="ffmpeg"):
        # Output path is always the last argument
        Path(args[-1]).parent.mkdir(parents=True, exist_ok=True)
        Path(args[-1]).write_bytes(b"\xff\xfb" + b"\x00" * 1024)

    runner.run = AsyncMock(side_effect=fake_run)
    runner.probe_duration = AsyncMock(return_value=0.0)
    return runner
