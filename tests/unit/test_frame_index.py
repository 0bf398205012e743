"""Unit tests for FrameIndex."""

import pytest

from roomcorder.audio.frame_index import FrameIndex


@pytest.mark.unit
class TestFrameIndex:

    def test_offsets_accumulate(self):
        index = FrameIndex()
        index.add_frame(1000, 100)
        index.add_frame(1020, 50)

        assert [(f.offset, f.length) for f in index.frames] == [(0, 100), (100, 50)]
        assert index.total_bytes == 150
        assert len(index) == 2

    def test_empty_chunks_ignored(self):
        index = FrameIndex()
        index.add_frame(1000, 0)
        assert len(index) == 0

    def test_byte_range_covers_window(self):
        index = FrameIndex()
        for i in range(10):
            index.add_frame(1000 + i * 20, 10)

        assert index.byte_range(1040, 1100) == (20, 40)

    def test_byte_range_spans_silent_gaps(self):
        index = FrameIndex()
        index.add_frame(1000, 10)
        index.add_frame(5000, 10)  # nothing arrived in between
        index.add_frame(5020, 10)

        assert index.byte_range(4000, 6000) == (10, 20)
        assert index.byte_range(2000, 3000) is None

    def test_from_frames_rebuilds_offsets(self):
        index = FrameIndex()
        index.add_frame(1, 4)
        index.add_frame(2, 8)

        rebuilt = FrameIndex.from_frames(index.frames)

        assert rebuilt.frames == index.frames
        assert rebuilt.total_bytes == 12
