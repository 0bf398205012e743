"""Unit tests for FileManager class."""

import pytest
import os
import json
import time
from pathlib import Path

from roomcorder.models.audio import AudioFrame, ParticipantFile
from roomcorder.models.events import ConsolidatedSegment
from roomcorder.models.results import StopResult
from roomcorder.models.session import Participant
from roomcorder.storage.file_manager import FileManager, recording_id_for


@pytest.fixture
def fm(temp_data_dir):
    return FileManager(os.path.join(temp_data_dir, "recordings"), os.path.join(temp_data_dir, "temp"))


@pytest.fixture
def stop_result(temp_data_dir):
    pcm = os.path.join(temp_data_dir, "u1_Alice.pcm")
    Path(pcm).write_bytes(b"\x00" * 16)
    return StopResult(
        room_id="room/1",
        start_time=1000,
        end_time=9000,
        duration=8000,
        scratch_dir=temp_data_dir,
        participants=[Participant("u1", "Alice", "alice")],
        segments=[ConsolidatedSegment("u1", "Alice", "alice", 2000, 4000, 2000, 1000, 3000)],
        participant_files=[ParticipantFile("u1", "alice", "Alice", pcm, "u1_Alice.pcm", 16,
                                           [AudioFrame(2000, 0, 8), AudioFrame(2020, 8, 8)])],
    )


@pytest.mark.unit
class TestFileManager:
    """Test cases for FileManager class."""

    def test_initialization(self, temp_data_dir):
        """Test FileManager initialization."""
        fm = FileManager(os.path.join(temp_data_dir, "r"), os.path.join(temp_data_dir, "t"))

        assert fm.recordings_dir == Path(temp_data_dir) / "r"
        assert fm.temp_dir == Path(temp_data_dir) / "t"

        # Check directories were created
        assert fm.recordings_dir.exists()
        assert fm.temp_dir.exists()

    def test_create_session_directory(self, fm):
        """Test creating a per-session scratch directory."""
        path = fm.create_session_directory("room 1", 1700000000000)

        assert os.path.basename(path) == "temp_room_1_1700000000000"
        assert os.path.isdir(path)
        assert Path(path).parent == fm.temp_dir

    def test_cleanup_temp_dir(self, fm):
        path = fm.create_session_directory("room", 1)
        Path(path, "u1_A.pcm").write_bytes(b"\x00")

        assert fm.cleanup_temp_dir(path) is True
        assert not os.path.exists(path)
        assert fm.cleanup_temp_dir(path) is False

    def test_recording_id(self, stop_result):
        assert recording_id_for(stop_result) == "recording_room_1_1000"

    def test_save_and_load_segments(self, fm, stop_result):
        """Test segment metadata round trip including frame indexes."""
        path = fm.save_segments(stop_result, "rec1")

        assert path.endswith("rec1_segments.json")
        with open(path) as f:
            data = json.load(f)
        assert data["participant_files"][0]["frames"] == [[2000, 8], [2020, 8]]

        segments, files = fm.load_segments(path)

        assert segments == stop_result.segments
        assert files[0].frames == stop_result.participant_files[0].frames
        assert files[0].filepath == stop_result.participant_files[0].filepath

    def test_load_segments_missing(self, fm, temp_data_dir):
        with pytest.raises(FileNotFoundError):
            fm.load_segments(os.path.join(temp_data_dir, "nope.json"))

    def test_load_segments_invalid(self, fm, temp_data_dir):
        path = Path(temp_data_dir) / "bad_segments.json"
        path.write_text('{"segments": [{"participant_id": "u1"}]}')
        with pytest.raises(ValueError):
            fm.load_segments(str(path))

    def test_list_recordings_newest_first(self, fm):
        old = fm.recordings_dir / "old.mp3"
        new = fm.recordings_dir / "new.mp3"
        old.write_bytes(b"\x00" * 10)
        new.write_bytes(b"\x00" * 20)
        (fm.recordings_dir / "old_segments.json").write_text("{}")
        past = time.time() - 3600
        os.utime(old, (past, past))

        recordings = fm.list_recordings()

        assert [r.recording_id for r in recordings] == ["new", "old"]
        assert fm.get_latest_recording().recording_id == "new"

    def test_get_latest_recording_empty(self, fm):
        assert fm.get_latest_recording() is None

    def test_cleanup_old_files(self, fm):
        """Test age-based cleanup of recordings and temp entries."""
        stale_recording = fm.recordings_dir / "stale.mp3"
        fresh_recording = fm.recordings_dir / "fresh.mp3"
        stale_recording.write_bytes(b"\x00")
        fresh_recording.write_bytes(b"\x00")
        stale_dir = Path(fm.create_session_directory("room", 1))
        (stale_dir / "u1_A.pcm").write_bytes(b"\x00")

        past = time.time() - 48 * 3600
        os.utime(stale_recording, (past, past))
        os.utime(stale_dir, (past, past))

        deleted = fm.cleanup_old_files(max_age_hours=24)

        assert deleted == 2
        assert not stale_recording.exists()
        assert not stale_dir.exists()
        assert fresh_recording.exists()

    def test_get_disk_usage(self, fm):
        (fm.recordings_dir / "a.mp3").write_bytes(b"\x00" * 1024)
        (fm.recordings_dir / "b.mp3").write_bytes(b"\x00" * 2048)

        usage = fm.get_disk_usage()

        assert usage["file_count"] == 2
        assert usage["total_size_bytes"] == 3072
