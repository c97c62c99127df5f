"""Export Pipeline - Loads a clip list, compiles it and drives the engine"""

import asyncio
import os
import time
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from backend.command_builder import (
    EncodingOptions,
    build_main_command,
    build_thumbnail_command,
    command_to_string,
    resolve_output_size,
    save_command,
)
from backend.ffmpeg_utils import (
    ProgressCallback,
    format_bytes,
    probe_media,
    run_ffmpeg,
    unrotate_video,
)
from backend.gradient import write_gradient_image
from config import settings
from core.errors import ExportCancelledError, ValidationError
from core.gaps import fill_visual_gaps
from core.resolver import resolve_clips
from core.text_passes import run_text_passes
from core.timeline_compiler import CompiledTimeline, TimelineCompiler
from core.validation import (
    ValidationCodes,
    create_issue,
    normalize_fill_gaps,
    validate_clips,
)
from core.watermark import WatermarkConfig, validate_watermark_config
from models.clips import (
    AudioClip,
    ColorClip,
    ImageClip,
    MediaInfo,
    MusicClip,
    VideoClip,
    clip_from_dict,
)
from models.project import CompilationContext, ProjectOptions
from utils.logger import logger


@dataclass
class ExportOptions:
    """Per-export settings (codec, output size, extras)"""
    output_path: str = "output.mp4"
    video_codec: str = settings.DEFAULT_VIDEO_CODEC
    crf: Optional[int] = settings.DEFAULT_CRF
    preset: str = settings.DEFAULT_PRESET
    video_bitrate: Optional[str] = None
    audio_codec: str = settings.DEFAULT_AUDIO_CODEC
    audio_bitrate: str = settings.DEFAULT_AUDIO_BITRATE
    audio_sample_rate: int = settings.DEFAULT_AUDIO_SAMPLE_RATE
    output_resolution: Optional[str] = None
    output_width: Optional[int] = None
    output_height: Optional[int] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    thumbnail: Optional[Dict[str, Any]] = None
    save_command: Optional[str] = None
    watermark: Optional[Dict[str, Any]] = None
    text_max_nodes_per_pass: int = settings.TEXT_MAX_NODES_PER_PASS

    @classmethod
    def from_kwargs(cls, **kwargs) -> 'ExportOptions':
        """
        Raises:
            TypeError: For an unknown option name
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(kwargs) - known)
        if unknown:
            raise TypeError(f"Unknown export option(s): {', '.join(unknown)}")
        return cls(**kwargs)

    def encoding(self) -> EncodingOptions:
        return EncodingOptions(
            video_codec=self.video_codec,
            crf=self.crf,
            preset=self.preset,
            video_bitrate=self.video_bitrate,
            audio_codec=self.audio_codec,
            audio_bitrate=self.audio_bitrate,
            audio_sample_rate=self.audio_sample_rate,
            metadata=dict(self.metadata),
        )


class ExportPipeline:
    """
    Orchestrates one export: resolve -> validate -> probe -> compile -> run.

    A pipeline owns a CompilationContext; temp files it creates are deleted
    when export() settles, so load() again before a second export.
    """

    def __init__(self, options: Optional[ProjectOptions] = None, skip_file_checks: bool = False):
        self.options = options or ProjectOptions()
        self.skip_file_checks = skip_file_checks
        self.context = CompilationContext(options=self.options)
        self._loaded = False

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self, clips: List[Dict[str, Any]], cancel_event: Optional[asyncio.Event] = None) -> 'ExportPipeline':
        """
        Resolve, validate and prepare a clip list.

        Args:
            clips: Raw clip mappings (never mutated)
            cancel_event: Aborts any input re-encoding

        Returns:
            self, ready for preview() or export()

        Raises:
            ValidationError: Aggregated structural problems (GapError for gaps only)
            MediaNotFoundError: If a media file disappears before probing
        """
        opts = self.options
        resolved, resolve_errors = resolve_clips(clips)
        validate_clips(
            resolved,
            mode=opts.validation_mode,
            fill_gaps=opts.fill_gaps,
            skip_file_checks=self.skip_file_checks,
            width=opts.width,
            height=opts.height,
            extra_errors=resolve_errors,
        )

        fill_color, _ = normalize_fill_gaps(opts.fill_gaps)
        if fill_color and fill_color != "none":
            before = len(resolved)
            resolved = fill_visual_gaps(resolved, fill_color)
            if len(resolved) > before:
                logger.info(f"Filled {len(resolved) - before} visual gaps with '{fill_color}'")

        typed = [clip_from_dict(c) for c in resolved]
        try:
            await self._probe(typed)
            await self._unrotate(typed, cancel_event)
            typed = await self._render_gradients(typed)
        except BaseException:
            # Upright re-encodes and gradients written so far belong to no timeline
            self.context.cleanup()
            raise

        self.context.clips = typed
        self._loaded = True
        logger.info(f"Loaded {len(typed)} clips: {self.context.describe()['clips']}")
        return self

    async def _probe(self, clips: List):
        """Probe every distinct media file concurrently, then apply durations"""
        media = [c for c in clips if isinstance(c, (VideoClip, ImageClip, AudioClip, MusicClip)) and c.url]
        paths = sorted({c.url for c in media})
        if not paths:
            return

        results = await asyncio.gather(*(probe_media(p) for p in paths))
        self.context.media_info.update(dict(zip(paths, results)))

        errors = []
        for index, clip in enumerate(clips):
            info: Optional[MediaInfo] = self.context.media_info.get(getattr(clip, "url", None))
            if info is None:
                continue
            if isinstance(clip, ImageClip):
                clip.width = clip.width or info.width
                clip.height = clip.height or info.height
                continue

            if info.duration is None:
                # Probe failed; keep what the clip mapping declared
                logger.warning(f"Unknown duration for {clip.url}; using the requested span")
                continue

            clip.media_duration = info.duration
            if isinstance(clip, VideoClip):
                clip.has_audio = info.has_audio
                clip.width, clip.height, clip.rotation = info.width, info.height, info.rotation
            if clip.cut_from >= info.duration:
                errors.append(create_issue(
                    ValidationCodes.INVALID_RANGE,
                    f"clips[{index}].cutFrom",
                    f"cutFrom ({clip.cut_from}s) is at or beyond the source duration ({info.duration:.3f}s)",
                    clip.cut_from,
                ))
                continue
            available = info.duration - clip.cut_from
            if clip.duration > available + settings.GAP_EPSILON and not getattr(clip, "loop", False):
                logger.warning(
                    f"{clip.kind} {clip.url}: requested {clip.duration:.3f}s but only {available:.3f}s "
                    f"remain after cutFrom; clamping"
                )

        if errors:
            raise ValidationError(
                "Validation failed\n" + "\n".join(f"  [{e['code']}] {e['path']}: {e['message']}" for e in errors),
                errors=errors,
            )

    async def _unrotate(self, clips: List, cancel_event: Optional[asyncio.Event]):
        for clip in clips:
            if not isinstance(clip, VideoClip) or clip.rotation % 360 == 0:
                continue
            logger.info(f"Re-encoding {clip.url} upright (rotation {clip.rotation})")
            path = await unrotate_video(clip.url, self.context.temp_dir, cancel_event)
            clip.url = self.context.register_temp_file(path)
            if abs(clip.rotation) % 180 == 90:
                clip.width, clip.height = clip.height, clip.width
            clip.rotation = 0

    async def _render_gradients(self, clips: List) -> List:
        """Replace gradient color clips with image clips reading a rendered PPM"""
        opts = self.options
        loop = asyncio.get_event_loop()
        result = []
        for clip in clips:
            if isinstance(clip, ColorClip) and clip.is_gradient:
                path = await loop.run_in_executor(
                    None, write_gradient_image, opts.width, opts.height, clip.color, self.context.temp_dir
                )
                self.context.register_temp_file(path)
                clip = ImageClip(
                    position=clip.position,
                    end=clip.end,
                    url=path,
                    transition=clip.transition,
                    width=opts.width,
                    height=opts.height,
                )
            result.append(clip)
        return result

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------

    def compile(self, export_options: Optional[ExportOptions] = None) -> CompiledTimeline:
        """
        Raises:
            RuntimeError: If load() has not run
            ValidationError: For an invalid watermark
            ValueError: For an unknown output resolution
        """
        if not self._loaded:
            raise RuntimeError("No clips loaded; call load() first")
        export_options = export_options or ExportOptions()

        watermark = None
        if export_options.watermark:
            problems = validate_watermark_config(export_options.watermark)
            if problems:
                errors = [create_issue(ValidationCodes.INVALID_VALUE, "watermark", p) for p in problems]
                raise ValidationError("Invalid watermark:\n  " + "\n  ".join(problems), errors=errors)
            watermark = WatermarkConfig.from_dict(export_options.watermark)

        out_w, out_h = resolve_output_size(
            export_options.output_resolution, export_options.output_width, export_options.output_height
        )
        return TimelineCompiler(
            self.context,
            output_width=out_w,
            output_height=out_h,
            watermark=watermark,
            text_max_nodes=export_options.text_max_nodes_per_pass,
        ).compile()

    def build_command(self, compiled: CompiledTimeline, export_options: ExportOptions) -> List[str]:
        return build_main_command(
            compiled.inputs,
            compiled.filter_complex,
            export_options.output_path,
            compiled.video_label,
            compiled.audio_label,
            export_options.encoding(),
        )

    def preview(self, **kwargs) -> Dict[str, Any]:
        """
        Compile without running anything.

        Returns:
            Dict with command (argument list), command_string, filter_complex,
            total_duration and text_passes
        """
        export_options = ExportOptions.from_kwargs(**kwargs)
        written = len(self.context.temp_files)
        try:
            compiled = self.compile(export_options)
            cmd = self.build_command(compiled, export_options)
        except Exception:
            self.context.cleanup(keep=written)
            raise
        batch = export_options.text_max_nodes_per_pass
        return {
            "command": cmd,
            "command_string": command_to_string(cmd),
            "filter_complex": compiled.filter_complex,
            "total_duration": compiled.total_duration,
            "text_passes": -(-len(compiled.deferred_text) // batch) if compiled.deferred_text else 0,
        }

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    async def export(
        self,
        output_path: str,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
        **kwargs,
    ) -> str:
        """
        Render the loaded timeline.

        Args:
            output_path: Destination file
            progress_callback: Receives {percent, frame, fps, time, speed, bitrate, size, ...}
            cancel_event: Setting it terminates the running engine process
            **kwargs: ExportOptions fields

        Returns:
            output_path

        Raises:
            ExportCancelledError: If cancelled before or during a pass
            FFmpegError: If any engine pass fails
        """
        export_options = ExportOptions.from_kwargs(output_path=output_path, **kwargs)
        started = time.time()

        try:
            if cancel_event is not None and cancel_event.is_set():
                raise ExportCancelledError("Export cancelled before it started")

            compiled = self.compile(export_options)
            cmd = self.build_command(compiled, export_options)
            if export_options.save_command:
                save_command(cmd, export_options.save_command)

            Path(output_path).parent.mkdir(parents=True, exist_ok=True)
            logger.info(f"Starting export: {output_path} ({compiled.total_duration:.2f}s)")

            await run_ffmpeg(
                cmd,
                total_duration=compiled.total_duration,
                progress_callback=progress_callback,
                cancel_event=cancel_event,
                stage_name="Export",
                timeout=settings.EXPORT_TIMEOUT,
            )

            passes = 0
            if compiled.needs_text_passes:
                result = await run_text_passes(
                    output_path,
                    compiled.deferred_text,
                    compiled.canvas_width,
                    compiled.canvas_height,
                    batch_size=export_options.text_max_nodes_per_pass,
                    temp_dir=self.context.temp_dir,
                    default_font_file=self.options.font_file,
                    total_duration=compiled.total_duration,
                    progress_callback=progress_callback,
                    cancel_event=cancel_event,
                )
                passes = result.passes

            if export_options.thumbnail:
                await self._thumbnail(output_path, export_options.thumbnail, cancel_event)

            size = format_bytes(os.path.getsize(output_path)) if os.path.exists(output_path) else "?"
            logger.info(f"Output -> {output_path} ({size})")
            logger.info(
                f"Export finished in {time.time() - started:.2f}s "
                f"(visual: {len(self.context.clips_of('video', 'image', 'color'))}, "
                f"audio: {len(self.context.clips_of('audio'))}, "
                f"music: {len(self.context.clips_of('music'))}, text passes: {passes})"
            )
            return output_path
        finally:
            self.context.cleanup()
            self._loaded = False

    async def _thumbnail(self, video_path: str, options: Dict[str, Any], cancel_event: Optional[asyncio.Event]):
        thumb_path = options.get("output_path") or options.get("outputPath")
        if not thumb_path:
            logger.warning("Thumbnail requested without an output path; skipping")
            return
        cmd = build_thumbnail_command(
            video_path,
            thumb_path,
            time=options.get("time", 0.0),
            width=options.get("width"),
            height=options.get("height"),
        )
        await run_ffmpeg(cmd, cancel_event=cancel_event, stage_name="Thumbnail")
        logger.info(f"Thumbnail -> {thumb_path}")

    def cleanup(self):
        """Delete temp files without exporting (e.g. after preview())"""
        self.context.cleanup()
