#!/usr/bin/env python3
"""
Export Pipeline Tests

Load -> compile -> run, with probing and every engine invocation mocked.
"""

import asyncio
import pytest
import sys
import os
from unittest.mock import AsyncMock, patch

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import settings
from core.errors import ExportCancelledError, FFmpegError, GapError, ValidationError
from core.export_pipeline import ExportOptions, ExportPipeline
from core.text_passes import TextPassResult
from models.clips import ImageClip, MediaInfo, VideoClip
from models.project import ProjectOptions

VIDEO_INFO = MediaInfo(duration=10.0, width=1920, height=1080, has_audio=True, has_video=True)

TWO_VIDEOS = [
    {"type": "video", "url": "/media/a.mp4", "duration": 5},
    {"type": "video", "url": "/media/b.mp4", "duration": 5},
]


def make_pipeline(temp_dir, **options):
    return ExportPipeline(ProjectOptions(temp_dir=str(temp_dir), **options), skip_file_checks=True)


def probe_returning(info):
    return patch("core.export_pipeline.probe_media", AsyncMock(return_value=info))


# ============================================================================
# LOADING
# ============================================================================

class TestLoad:

    async def test_load_types_and_probes(self, temp_dir):
        pipeline = make_pipeline(temp_dir)
        with probe_returning(VIDEO_INFO) as probe:
            await pipeline.load(TWO_VIDEOS)
        clips = pipeline.context.clips
        assert all(isinstance(c, VideoClip) for c in clips)
        assert [(c.position, c.end) for c in clips] == [(0, 5), (5, 10)]
        assert clips[0].media_duration == 10.0
        assert probe.await_count == 2

    async def test_input_is_not_mutated(self, temp_dir):
        clips = [dict(c) for c in TWO_VIDEOS]
        with probe_returning(VIDEO_INFO):
            await make_pipeline(temp_dir).load(clips)
        assert clips == TWO_VIDEOS

    async def test_gap_raises_before_probing(self, temp_dir):
        clips = [
            {"type": "video", "url": "/media/a.mp4", "position": 0, "end": 2},
            {"type": "video", "url": "/media/b.mp4", "position": 3, "end": 5},
        ]
        with probe_returning(VIDEO_INFO) as probe:
            with pytest.raises(GapError):
                await make_pipeline(temp_dir).load(clips)
        probe.assert_not_called()

    async def test_fill_gaps(self, temp_dir):
        clips = [
            {"type": "video", "url": "/media/a.mp4", "position": 0, "end": 2},
            {"type": "video", "url": "/media/b.mp4", "position": 3, "end": 5},
        ]
        pipeline = make_pipeline(temp_dir, fill_gaps="black")
        with probe_returning(VIDEO_INFO):
            await pipeline.load(clips)
        kinds = [c.kind for c in sorted(pipeline.context.clips, key=lambda c: c.position)]
        assert kinds == ["video", "color", "video"]

    async def test_cut_from_beyond_source(self, temp_dir):
        clips = [{"type": "video", "url": "/media/a.mp4", "duration": 2, "cutFrom": 10}]
        with probe_returning(VIDEO_INFO):
            with pytest.raises(ValidationError) as exc_info:
                await make_pipeline(temp_dir).load(clips)
        assert exc_info.value.errors[0]["code"] == "INVALID_RANGE"
        assert exc_info.value.errors[0]["path"] == "clips[0].cutFrom"

    async def test_failed_probe_keeps_requested_span(self, temp_dir):
        pipeline = make_pipeline(temp_dir)
        with probe_returning(MediaInfo()):
            await pipeline.load(TWO_VIDEOS[:1])
        clip = pipeline.context.clips[0]
        assert clip.media_duration is None
        assert clip.has_audio

    async def test_gradient_becomes_image(self, temp_dir):
        clips = [{
            "type": "color", "duration": 2,
            "color": {"type": "linear-gradient", "colors": ["red", "blue"]},
        }]
        pipeline = make_pipeline(temp_dir, width=16, height=9)
        await pipeline.load(clips)
        clip = pipeline.context.clips[0]
        assert isinstance(clip, ImageClip)
        assert clip.url.endswith(".ppm")
        assert os.path.exists(clip.url)
        assert pipeline.context.temp_files == [clip.url]
        pipeline.cleanup()
        assert not os.path.exists(clip.url)

    async def test_rotated_video_is_reencoded(self, temp_dir):
        rotated = MediaInfo(duration=10.0, width=1080, height=1920, has_audio=True, has_video=True, rotation=90)
        upright = str(temp_dir / "unrotated.mp4")
        pipeline = make_pipeline(temp_dir)
        with probe_returning(rotated), \
                patch("core.export_pipeline.unrotate_video", AsyncMock(return_value=upright)) as unrotate:
            await pipeline.load(TWO_VIDEOS[:1])
        clip = pipeline.context.clips[0]
        unrotate.assert_awaited_once()
        assert clip.url == upright
        assert (clip.width, clip.height, clip.rotation) == (1920, 1080, 0)
        assert upright in pipeline.context.temp_files

    async def test_failed_load_removes_earlier_reencodes(self, temp_dir):
        rotated = MediaInfo(duration=10.0, width=1080, height=1920, has_audio=True, has_video=True, rotation=90)
        first = temp_dir / "unrotated-a.mp4"

        async def unrotate(url, out_dir, cancel_event=None):
            if url.endswith("a.mp4"):
                first.write_bytes(b"upright")
                return str(first)
            raise FFmpegError("transpose failed", exit_code=1)

        pipeline = make_pipeline(temp_dir)
        with probe_returning(rotated), patch("core.export_pipeline.unrotate_video", side_effect=unrotate):
            with pytest.raises(FFmpegError):
                await pipeline.load(TWO_VIDEOS)
        assert not first.exists()
        assert pipeline.context.temp_files == []


# ============================================================================
# PREVIEW
# ============================================================================

class TestPreview:

    async def test_preview(self, temp_dir):
        pipeline = make_pipeline(temp_dir)
        with probe_returning(VIDEO_INFO):
            await pipeline.load(TWO_VIDEOS)
        result = pipeline.preview(output_path="out.mp4", crf=18)
        assert result["command"][0] == settings.FFMPEG_PATH
        assert result["command"][-1] == "out.mp4"
        assert "-crf 18" in result["command_string"]
        assert "[outv]" in result["filter_complex"]
        assert result["total_duration"] == 10
        assert result["text_passes"] == 0

    async def test_preview_counts_text_passes(self, temp_dir):
        clips = TWO_VIDEOS + [
            {"type": "text", "text": f"line {i}", "position": i, "end": i + 1} for i in range(5)
        ]
        pipeline = make_pipeline(temp_dir)
        with probe_returning(VIDEO_INFO):
            await pipeline.load(clips)
        assert pipeline.preview(text_max_nodes_per_pass=2)["text_passes"] == 3

    async def test_failed_preview_removes_its_ass_files(self, temp_dir):
        clips = TWO_VIDEOS + [{"type": "text", "text": "sing along", "mode": "karaoke", "position": 0, "end": 2}]
        pipeline = make_pipeline(temp_dir)
        with probe_returning(VIDEO_INFO):
            await pipeline.load(clips)
        with patch.object(ExportPipeline, "build_command", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                pipeline.preview()
        assert pipeline.context.temp_files == []
        assert not list(temp_dir.glob("karaoke-*.ass"))

    def test_compile_requires_load(self, temp_dir):
        with pytest.raises(RuntimeError):
            make_pipeline(temp_dir).compile()

    async def test_unknown_option(self, temp_dir):
        pipeline = make_pipeline(temp_dir)
        with probe_returning(VIDEO_INFO):
            await pipeline.load(TWO_VIDEOS)
        with pytest.raises(TypeError):
            pipeline.preview(resolution="720p")

    async def test_invalid_watermark(self, temp_dir):
        pipeline = make_pipeline(temp_dir)
        with probe_returning(VIDEO_INFO):
            await pipeline.load(TWO_VIDEOS)
        with pytest.raises(ValidationError):
            pipeline.preview(watermark={"type": "text"})

    def test_encoding_options(self):
        encoding = ExportOptions(video_bitrate="4M", metadata={"title": "x"}).encoding()
        assert encoding.video_bitrate == "4M"
        assert encoding.metadata == {"title": "x"}


# ============================================================================
# EXPORT
# ============================================================================

class TestExport:

    async def test_export_runs_engine_and_cleans_up(self, temp_dir):
        clips = TWO_VIDEOS + [{
            "type": "color", "duration": 1,
            "color": {"type": "radial-gradient", "colors": ["white", "black"]},
        }]
        pipeline = make_pipeline(temp_dir, width=16, height=9)
        with probe_returning(VIDEO_INFO):
            await pipeline.load(clips)
        gradient = pipeline.context.temp_files[0]
        output = str(temp_dir / "renders" / "final.mp4")

        with patch("core.export_pipeline.run_ffmpeg", AsyncMock()) as engine:
            result = await pipeline.export(output, save_command=str(temp_dir / "cmd.sh"))

        assert result == output
        engine.assert_awaited_once()
        cmd = engine.await_args.args[0]
        assert cmd[-1] == output
        assert engine.await_args.kwargs["stage_name"] == "Export"
        assert engine.await_args.kwargs["total_duration"] == 11
        assert (temp_dir / "renders").is_dir()
        assert (temp_dir / "cmd.sh").exists()
        assert not os.path.exists(gradient)
        with pytest.raises(RuntimeError):
            pipeline.compile()

    async def test_cancel_before_start(self, temp_dir):
        pipeline = make_pipeline(temp_dir)
        with probe_returning(VIDEO_INFO):
            await pipeline.load(TWO_VIDEOS)
        cancel = asyncio.Event()
        cancel.set()
        with patch("core.export_pipeline.run_ffmpeg", AsyncMock()) as engine:
            with pytest.raises(ExportCancelledError):
                await pipeline.export(str(temp_dir / "out.mp4"), cancel_event=cancel)
        engine.assert_not_called()

    async def test_text_passes_follow_main_pass(self, temp_dir):
        clips = TWO_VIDEOS + [
            {"type": "text", "text": f"line {i}", "position": i, "end": i + 1} for i in range(3)
        ]
        pipeline = make_pipeline(temp_dir)
        with probe_returning(VIDEO_INFO):
            await pipeline.load(clips)
        output = str(temp_dir / "out.mp4")
        passes = AsyncMock(return_value=TextPassResult(final_path=output, passes=2))

        with patch("core.export_pipeline.run_ffmpeg", AsyncMock()), \
                patch("core.export_pipeline.run_text_passes", passes):
            await pipeline.export(output, text_max_nodes_per_pass=2)

        passes.assert_awaited_once()
        args, kwargs = passes.await_args
        assert args[0] == output
        assert len(args[1]) == 3
        assert kwargs["batch_size"] == 2
        assert kwargs["temp_dir"] == str(temp_dir)

    async def test_thumbnail(self, temp_dir):
        pipeline = make_pipeline(temp_dir)
        with probe_returning(VIDEO_INFO):
            await pipeline.load(TWO_VIDEOS)
        thumb = str(temp_dir / "thumb.jpg")
        with patch("core.export_pipeline.run_ffmpeg", AsyncMock()) as engine:
            await pipeline.export(str(temp_dir / "out.mp4"), thumbnail={"outputPath": thumb, "time": 2, "width": 320})
        assert engine.await_count == 2
        thumb_cmd = engine.await_args_list[1].args[0]
        assert thumb_cmd[-1] == thumb
        assert engine.await_args_list[1].kwargs["stage_name"] == "Thumbnail"
