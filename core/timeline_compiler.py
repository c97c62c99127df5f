"""
Timeline Compiler - Lowers a resolved clip list into one filter graph

Build order (each stage reads the previous stage's label):
    1. Engine inputs
    2. Visual track (normalize, concat / xfade)
    3. Effects
    4. Text windows (inline, or deferred to text passes)
    5. Karaoke and imported subtitles (ASS)
    6. Watermark
    7. Output scaling
    8. Audio: video audio -> standalone audio -> music -> fit to duration
"""

from dataclasses import dataclass, field
from typing import List, Optional

from backend.audio_builder import build_standalone_audio, build_video_audio, fit_audio
from backend.bgm_builder import build_music_mix
from backend.command_builder import InputSpec, InputTable
from backend.effect_builder import build_effects
from backend.filter_graph import FilterGraph, step
from backend.subtitle_utils import SubtitleUtils
from backend.text_renderer import TextWindow, build_text_filters, expand_text_windows, fit_windows
from backend.video_builder import build_video_track, clip_render_duration
from config import settings
from core.transitions import TransitionOffsets
from core.watermark import WatermarkBuilder, WatermarkConfig, WatermarkType
from models.clips import (
    AudioClip,
    ColorClip,
    EffectClip,
    ImageClip,
    MusicClip,
    SubtitleClip,
    TextClip,
    VideoClip,
)
from models.project import CompilationContext
from utils.logger import logger

SCALED_LABEL = "outscaled"


@dataclass
class CompiledTimeline:
    """Everything needed to build and run the engine command"""
    filter_complex: str
    inputs: InputTable
    video_label: Optional[str]
    audio_label: Optional[str]
    total_duration: float
    canvas_width: int
    canvas_height: int
    deferred_text: List[TextWindow] = field(default_factory=list)
    text_window_count: int = 0

    @property
    def needs_text_passes(self) -> bool:
        return bool(self.deferred_text)


class TimelineCompiler:
    """
    Compiles one CompilationContext into a CompiledTimeline.

    Compilation is synchronous; every probe and gradient render must have
    happened before compile() is called.
    """

    def __init__(
        self,
        context: CompilationContext,
        output_width: Optional[int] = None,
        output_height: Optional[int] = None,
        watermark: Optional[WatermarkConfig] = None,
        text_max_nodes: Optional[int] = None,
    ):
        self.context = context
        self.options = context.options
        self.output_width = output_width
        self.output_height = output_height
        self.watermark = watermark
        self.text_max_nodes = text_max_nodes or settings.TEXT_MAX_NODES_PER_PASS

        ordered = sorted(context.clips, key=lambda c: c.position)
        self.visual = [c for c in ordered if isinstance(c, (VideoClip, ImageClip, ColorClip))]
        self.audio = [c for c in ordered if isinstance(c, AudioClip)]
        self.music = [c for c in ordered if isinstance(c, MusicClip)]
        self.text = [c for c in ordered if isinstance(c, TextClip)]
        self.effects = [c for c in ordered if isinstance(c, EffectClip)]
        self.subtitles = [c for c in ordered if isinstance(c, SubtitleClip)]

        self.graph = FilterGraph()
        self.inputs = InputTable()
        self.offsets = TransitionOffsets(self.visual)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _assign_inputs(self):
        for clip in self.visual:
            if isinstance(clip, VideoClip):
                self.inputs.add(InputSpec(clip.url), clip)
            elif isinstance(clip, ImageClip):
                self.inputs.add(InputSpec(clip.url, image_duration=clip_render_duration(clip)), clip)
        for clip in self.audio:
            self.inputs.add(InputSpec(clip.url), clip)
        for clip in self.music:
            self.inputs.add(InputSpec(clip.url, stream_loop=clip.loop), clip)
        if self.watermark and self.watermark.type == WatermarkType.IMAGE:
            self.inputs.add(InputSpec(self.watermark.url), self.watermark)

    def _audio_only_duration(self) -> float:
        ends = [c.end for c in self.audio]
        ends += [c.end for c in self.music if c.end > c.position]
        return max(ends) if ends else 0.0

    def _add_text(self, label: str, duration: float) -> tuple:
        windows = fit_windows(expand_text_windows(self.text), self.offsets, duration)
        if not windows:
            return label, [], 0
        if len(windows) > self.text_max_nodes:
            logger.info(
                f"{len(windows)} text windows exceed {self.text_max_nodes} per pass; "
                f"deferring text to separate passes"
            )
            return label, windows, len(windows)
        out = build_text_filters(
            self.graph, windows, label,
            self.options.width, self.options.height, self.options.font_file,
        )
        return out, [], len(windows)

    def _add_subtitles(self, label: str) -> str:
        documents = []
        width, height = self.options.width, self.options.height
        for clip in self.text:
            if clip.mode == "karaoke":
                documents.append(("karaoke", SubtitleUtils.build_karaoke_ass(clip, width, height, self.offsets.adjust)))
        for clip in self.subtitles:
            documents.append(("subtitles", SubtitleUtils.build_subtitle_ass(clip, width, height, self.offsets.adjust)))

        for prefix, content in documents:
            path = self.context.register_temp_file(
                SubtitleUtils.write_ass(content, self.context.temp_dir, prefix)
            )
            out = self.graph.label("sub")
            self.graph.add(label, SubtitleUtils.ass_filter(path), out)
            label = out
        if documents:
            logger.info(f"Burned {len(documents)} ASS documents")
        return label

    def _output_size(self):
        width = self.output_width or self.options.width
        height = self.output_height or self.options.height
        return width, height

    def _add_output_scale(self, label: str) -> str:
        width, height = self._output_size()
        if (width, height) == (self.options.width, self.options.height):
            return label
        self.graph.add(label, [
            step("scale", width, height, force_original_aspect_ratio="decrease"),
            step("pad", width, height, "(ow-iw)/2", "(oh-ih)/2"),
            step("setsar", 1),
        ], SCALED_LABEL)
        logger.info(f"Scaling output {self.options.width}x{self.options.height} -> {width}x{height}")
        return SCALED_LABEL

    def _add_audio(self, total_duration: float) -> Optional[str]:
        label = build_video_audio(self.graph, self.visual, self.inputs, self.offsets)
        label = build_standalone_audio(self.graph, self.audio, self.inputs, self.offsets, label)
        label = build_music_mix(self.graph, self.music, self.inputs, label, total_duration)
        if label and total_duration > 0:
            label = fit_audio(self.graph, label, total_duration)
        return label

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def compile(self) -> CompiledTimeline:
        """
        Build the filter graph.

        Raises:
            FilterGraphError: On an internal graph invariant violation
        """
        opts = self.options
        logger.info("=" * 60)
        logger.info(
            f"Compiling timeline: {len(self.visual)} visual, {len(self.audio)} audio, "
            f"{len(self.music)} music, {len(self.text)} text, {len(self.effects)} effects, "
            f"{len(self.subtitles)} subtitles @ {opts.width}x{opts.height}/{opts.fps}fps"
        )
        logger.info("=" * 60)

        self._assign_inputs()

        track = build_video_track(self.graph, self.visual, self.inputs, opts.width, opts.height, opts.fps)
        total_duration = track.duration if track.has_video else self._audio_only_duration()
        logger.info(
            f"Visual track: {track.duration:.3f}s rendered (transition overlap {self.offsets.total:.3f}s, "
            f"source shortfall {self.offsets.shortfall:.3f}s)"
        )

        video_label = track.label
        deferred: List[TextWindow] = []
        window_count = 0
        if video_label:
            video_label = build_effects(self.graph, self.effects, video_label, self.offsets)
            video_label, deferred, window_count = self._add_text(video_label, total_duration)
            video_label = self._add_subtitles(video_label)
            if self.watermark:
                builder = WatermarkBuilder(self.watermark, opts.width, opts.height)
                video_label = builder.build(self.graph, self.inputs, video_label, total_duration, self.offsets)
            video_label = self._add_output_scale(video_label)
        elif self.text or self.effects or self.subtitles or self.watermark:
            logger.warning("No visual clips: text, effects, subtitles and watermark are skipped")

        audio_label = self._add_audio(total_duration)

        filter_complex = self.graph.serialize()
        logger.debug(f"Filter graph: {len(self.graph)} chains, {len(filter_complex)} characters")

        width, height = self._output_size()
        return CompiledTimeline(
            filter_complex=filter_complex,
            inputs=self.inputs,
            video_label=video_label,
            audio_label=audio_label,
            total_duration=total_duration,
            canvas_width=width,
            canvas_height=height,
            deferred_text=deferred,
            text_window_count=window_count,
        )


def compile_timeline(context: CompilationContext, **kwargs) -> CompiledTimeline:
    """Convenience wrapper around TimelineCompiler(context, ...).compile()"""
    return TimelineCompiler(context, **kwargs).compile()
