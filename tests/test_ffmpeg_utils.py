#!/usr/bin/env python3
"""
FFmpeg Utility Tests

Tests for progress parsing, the engine subprocess runner and media probing.
The engine itself is never started: asyncio.create_subprocess_exec is
patched with fake processes.
"""

import asyncio
import pytest
import sys
import os
from unittest.mock import AsyncMock, patch

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backend.ffmpeg_utils import (
    FFmpegProgressTracker,
    format_bytes,
    parse_probe_output,
    probe_media,
    run_ffmpeg,
    time_to_seconds,
)
from core.errors import ExportCancelledError, FFmpegError, MediaNotFoundError
from tests.conftest import make_fake_process, make_hanging_process

PROGRESS_LINE = (
    "frame=  180 fps= 30 q=28.0 size=    1024kB time=00:00:06.00 "
    "bitrate= 139.8kbits/s speed=1.2x"
)


# ============================================================================
# PROGRESS PARSING
# ============================================================================

class TestProgress:

    @pytest.mark.parametrize("value,expected", [
        ("00:00:06.00", 6.0),
        ("01:02:03.5", 3723.5),
        ("00:00:00", 0.0),
    ])
    def test_time_to_seconds(self, value, expected):
        assert time_to_seconds(value) == expected

    def test_time_to_seconds_rejects_garbage(self):
        assert time_to_seconds("N/A") is None

    def test_parse_line(self):
        info = FFmpegProgressTracker(12.0).parse_progress(PROGRESS_LINE)
        assert info["percent"] == 50.0
        assert info["frame"] == 180
        assert info["fps"] == 30.0
        assert info["time"] == 6.0
        assert info["speed"] == 1.2
        assert info["bitrate"] == "139.8kbits/s"
        assert info["size"] == "1024kB"
        assert info["eta_seconds"] == pytest.approx(5.0)

    def test_line_without_time(self):
        assert FFmpegProgressTracker(10).parse_progress("Stream mapping:") is None

    def test_percent_is_capped(self):
        info = FFmpegProgressTracker(3.0).parse_progress("time=00:00:06.00")
        assert info["percent"] == 100.0

    def test_unknown_duration(self):
        assert FFmpegProgressTracker(0).parse_progress(PROGRESS_LINE)["percent"] == 0.0


# ============================================================================
# SUBPROCESS RUNNER
# ============================================================================

class TestRunFFmpeg:

    async def test_success_reports_progress(self):
        process = make_fake_process([PROGRESS_LINE.encode() + b"\r", b"done\n"])
        updates = []
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            await run_ffmpeg(["ffmpeg"], total_duration=12, progress_callback=updates.append, stage_name="Export")
        assert updates[0]["percent"] == 50.0
        assert updates[0]["stage"] == "Export"
        assert updates[-1] == {"percent": 100.0, "time": 12, "stage": "Export", "completed": True}

    async def test_async_callback(self):
        process = make_fake_process([b"time=00:00:01.00\n"])
        callback = AsyncMock()
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            await run_ffmpeg(["ffmpeg"], total_duration=2, progress_callback=callback)
        assert callback.await_count == 2

    async def test_callback_errors_do_not_abort(self):
        process = make_fake_process([b"time=00:00:01.00\n"])

        def broken(_info):
            raise RuntimeError("ui went away")

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            await run_ffmpeg(["ffmpeg"], total_duration=2, progress_callback=broken)

    async def test_nonzero_exit(self):
        process = make_fake_process([b"Invalid filter\nError initializing\n"], returncode=1)
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(FFmpegError) as exc_info:
                await run_ffmpeg(["ffmpeg", "-i", "x"])
        assert exc_info.value.exit_code == 1
        assert exc_info.value.stderr == "Invalid filter\nError initializing"
        assert exc_info.value.command == ["ffmpeg", "-i", "x"]

    async def test_stderr_tail_is_bounded(self):
        lines = b"".join(f"line {i}\n".encode() for i in range(50))
        process = make_fake_process([lines], returncode=1)
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(FFmpegError) as exc_info:
                await run_ffmpeg(["ffmpeg"])
        tail = exc_info.value.stderr.split("\n")
        assert len(tail) == 20
        assert tail[-1] == "line 49"

    async def test_start_failure(self):
        with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=FileNotFoundError("ffmpeg"))):
            with pytest.raises(FFmpegError):
                await run_ffmpeg(["ffmpeg"])

    async def test_cancel_before_spawn(self):
        cancel = asyncio.Event()
        cancel.set()
        spawn = AsyncMock()
        with patch("asyncio.create_subprocess_exec", spawn):
            with pytest.raises(ExportCancelledError):
                await run_ffmpeg(["ffmpeg"], cancel_event=cancel)
        spawn.assert_not_called()

    async def test_cancel_during_run(self):
        process = make_hanging_process()
        cancel = asyncio.Event()

        async def cancel_soon():
            await asyncio.sleep(0.05)
            cancel.set()

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            canceller = asyncio.ensure_future(cancel_soon())
            with pytest.raises(ExportCancelledError):
                await run_ffmpeg(["ffmpeg"], cancel_event=cancel)
            await canceller
        process.terminate.assert_called_once()

    async def test_timeout(self):
        process = make_hanging_process()
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(FFmpegError) as exc_info:
                await run_ffmpeg(["ffmpeg"], timeout=0.05)
        assert "timed out" in str(exc_info.value)
        process.terminate.assert_called_once()


# ============================================================================
# PROBING
# ============================================================================

class TestProbe:

    def test_parse_video(self):
        info = parse_probe_output({
            "streams": [
                {"codec_type": "video", "width": 1080, "height": 1920,
                 "side_data_list": [{"rotation": -90}]},
                {"codec_type": "audio"},
            ],
            "format": {"duration": "12.5"},
        })
        assert info.duration == 12.5
        assert (info.width, info.height) == (1080, 1920)
        assert info.has_audio
        assert info.has_video
        assert info.rotation == -90

    def test_rotate_tag(self):
        info = parse_probe_output({"streams": [{"codec_type": "video", "tags": {"rotate": "90"}}]})
        assert info.rotation == 90
        assert info.duration is None

    def test_audio_only(self):
        info = parse_probe_output({"streams": [{"codec_type": "audio"}], "format": {"duration": "3"}})
        assert not info.has_video
        assert info.width is None
        assert info.duration == 3.0

    async def test_missing_file(self, temp_dir):
        with pytest.raises(MediaNotFoundError):
            await probe_media(str(temp_dir / "nope.mp4"))

    async def test_failed_probe_is_empty(self, media_files):
        process = make_fake_process()
        process.communicate = AsyncMock(return_value=(b"", b"moov atom not found"))
        process.returncode = 1
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            info = await probe_media(media_files["a.mp4"])
        assert info.duration is None

    async def test_probe_json(self, media_files):
        process = make_fake_process()
        process.communicate = AsyncMock(return_value=(
            b'{"streams": [{"codec_type": "video", "width": 640, "height": 360}], "format": {"duration": "4"}}',
            b"",
        ))
        process.returncode = 0
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            info = await probe_media(media_files["a.mp4"])
        assert info.duration == 4.0
        assert (info.width, info.height) == (640, 360)


@pytest.mark.parametrize("size,expected", [
    (512, "512.0 B"),
    (2048, "2.00 KB"),
    (50 * 1024 * 1024, "50.0 MB"),
])
def test_format_bytes(size, expected):
    assert format_bytes(size) == expected
