"""
Video Track Builder - Normalizes every visual clip and joins them

Each video/image/color clip becomes one canvas-sized, constant-frame-rate
stream. Streams are then joined by straight concatenation, or by xfade at
boundaries where the incoming clip carries a transition; the builder
returns the final label and the compressed (rendered) duration.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from config import settings
from models.clips import ColorClip, ImageClip, KenBurns, VideoClip
from utils.logger import logger

from .command_builder import InputTable
from .filter_graph import FilterGraph, format_number, step


@dataclass
class VideoTrackResult:
    label: Optional[str]
    duration: float

    @property
    def has_video(self) -> bool:
        return self.label is not None


@dataclass
class KenBurnsMotion:
    """Resolved start/end zoom and crop-origin fractions"""
    start_zoom: float
    end_zoom: float
    start_x: float
    start_y: float
    end_x: float
    end_y: float
    easing: str


def clip_render_duration(clip) -> float:
    """Requested duration, clamped to what the source still has after cutFrom"""
    requested = clip.duration
    media_duration = getattr(clip, "media_duration", None)
    if media_duration is not None:
        available = max(0.0, media_duration - getattr(clip, "cut_from", 0.0))
        return max(0.0, min(requested, available))
    return requested


def easing_expression(easing: str, progress: str) -> str:
    """Closed-form easing curve over a 0..1 progress expression"""
    if easing == "linear":
        return f"({progress})"
    if easing == "ease-in":
        return f"pow({progress},2)"
    if easing == "ease-out":
        return f"(1-pow(1-{progress},2))"
    return f"(0.5-0.5*cos(PI*{progress}))"


def resolve_ken_burns(kb: KenBurns, image_width: Optional[int], image_height: Optional[int],
                      canvas_width: int, canvas_height: int) -> KenBurnsMotion:
    """
    Turn a Ken Burns directive into explicit start/end values.

    Presets fill the defaults, explicit fields override them. When the crop
    origin moves, both zooms are raised to the pan floor so the movement
    stays visible.
    """
    amount = settings.KEN_BURNS_ZOOM_AMOUNT
    pan_zoom = settings.KEN_BURNS_PAN_ZOOM
    sz, ez = 1.0, 1.0
    sx = sy = ex = ey = 0.5

    kb_type = kb.type
    if kb_type == "smart":
        # Pan along the axis the image overflows; anchor picks the starting edge
        horizontal = True
        if image_width and image_height:
            horizontal = image_width / image_height >= canvas_width / canvas_height
        if kb.anchor in ("top", "bottom"):
            horizontal = False
        elif kb.anchor in ("left", "right"):
            horizontal = True
        if horizontal:
            kb_type = "pan-left" if kb.anchor == "right" else "pan-right"
        else:
            kb_type = "pan-up" if kb.anchor == "bottom" else "pan-down"

    if kb_type == "zoom-in":
        sz, ez = 1.0, 1.0 + amount
    elif kb_type == "zoom-out":
        sz, ez = 1.0 + amount, 1.0
    elif kb_type == "pan-left":
        sz = ez = pan_zoom
        sx, ex = 1.0, 0.0
    elif kb_type == "pan-right":
        sz = ez = pan_zoom
        sx, ex = 0.0, 1.0
    elif kb_type == "pan-up":
        sz = ez = pan_zoom
        sy, ey = 1.0, 0.0
    elif kb_type == "pan-down":
        sz = ez = pan_zoom
        sy, ey = 0.0, 1.0

    sz = kb.start_zoom if kb.start_zoom is not None else sz
    ez = kb.end_zoom if kb.end_zoom is not None else ez
    sx = kb.start_x if kb.start_x is not None else sx
    sy = kb.start_y if kb.start_y is not None else sy
    ex = kb.end_x if kb.end_x is not None else ex
    ey = kb.end_y if kb.end_y is not None else ey

    if sx != ex or sy != ey:
        sz = max(sz, pan_zoom)
        ez = max(ez, pan_zoom)

    return KenBurnsMotion(
        start_zoom=sz, end_zoom=ez,
        start_x=sx, start_y=sy, end_x=ex, end_y=ey,
        easing=kb.easing or settings.KEN_BURNS_DEFAULT_EASING,
    )


def _lerp(start: float, end: float, eased: str) -> str:
    if start == end:
        return format_number(start)
    return f"{format_number(start)}+({format_number(end - start)})*{eased}"


def ken_burns_expressions(motion: KenBurnsMotion, frames: int) -> Tuple[str, str, str]:
    """
    Build zoompan z/x/y expressions.

    Every frame is computed from the output frame index `on`, never from
    the previous frame's zoom, so there is no accumulated drift.
    """
    frames_minus_one = max(1, frames - 1)
    progress = f"on/{frames_minus_one}"
    eased = easing_expression(motion.easing, progress)
    z = _lerp(motion.start_zoom, motion.end_zoom, eased)
    x = f"(iw-iw/zoom)*({_lerp(motion.start_x, motion.end_x, eased)})"
    y = f"(ih-ih/zoom)*({_lerp(motion.start_y, motion.end_y, eased)})"
    return z, x, y


def _normalize_steps(width: int, height: int, fps: int) -> list:
    return [
        step("fps", fps),
        step("scale", width, height, force_original_aspect_ratio="decrease"),
        step("pad", width, height, "(ow-iw)/2", "(oh-ih)/2"),
        step("settb", f"1/{fps}"),
    ]


def _add_clip_stream(graph: FilterGraph, clip, inputs: InputTable, duration: float,
                     width: int, height: int, fps: int) -> str:
    label = graph.label("scaled")

    if isinstance(clip, ColorClip):
        # Gradients are rendered to an image input beforehand; flat colors are a graph source
        graph.add(None, [
            step("color", c=clip.color, s=f"{width}x{height}", d=format_number(duration), r=fps),
            step("format", "yuv420p"),
            step("settb", f"1/{fps}"),
        ], label)
        return label

    source = f"{inputs.index_of(clip)}:v"

    if isinstance(clip, ImageClip) and clip.ken_burns is not None:
        frames = max(1, int(round(duration * fps)))
        motion = resolve_ken_burns(clip.ken_burns, clip.width, clip.height, width, height)
        z, x, y = ken_burns_expressions(motion, frames)
        overscan_w = max(width * 3, settings.KEN_BURNS_OVERSCAN_MIN_WIDTH)
        graph.add(source, [
            step("select", "'eq(n,0)'"),
            step("setpts", "PTS-STARTPTS"),
            step("scale", width, height, force_original_aspect_ratio="increase"),
            step("crop", width, height),
            step("setsar", 1),
            step("scale", overscan_w, -1),
            step("zoompan", z=f"'{z}'", x=f"'{x}'", y=f"'{y}'", d=frames, s=f"{width}x{height}", fps=fps),
            step("settb", f"1/{fps}"),
        ], label)
        logger.debug(
            f"Ken Burns {clip.ken_burns.type}: zoom {motion.start_zoom}->{motion.end_zoom}, "
            f"{frames} frames, easing {motion.easing}"
        )
        return label

    cut_from = clip.cut_from if isinstance(clip, VideoClip) else 0
    graph.add(source, [
        step("trim", start=format_number(cut_from), duration=format_number(duration)),
        step("setpts", "PTS-STARTPTS"),
    ] + _normalize_steps(width, height, fps), label)
    return label


def build_video_track(graph: FilterGraph, clips: List, inputs: InputTable,
                      width: int, height: int, fps: int) -> VideoTrackResult:
    """
    Lower the visual track into the graph.

    Args:
        graph: Graph to append to
        clips: Video/image/color clips sorted by position
        inputs: Engine input table (media clips already registered)
        width: Canvas width
        height: Canvas height
        fps: Canvas frame rate

    Returns:
        VideoTrackResult with the final label and compressed duration
    """
    streams = []
    for clip in clips:
        duration = clip_render_duration(clip)
        label = _add_clip_stream(graph, clip, inputs, duration, width, height, fps)
        streams.append((label, clip, duration))

    if not streams:
        return VideoTrackResult(label=None, duration=0.0)

    has_transitions = any(getattr(c, "transition", None) for _, c, _ in streams[1:])
    tail = [step("fps", fps), step("settb", f"1/{fps}")]

    if not has_transitions:
        graph.add([label for label, _, _ in streams], [
            step("concat", n=len(streams), v=1, a=0),
        ] + tail, "outv")
        total = sum(d for _, _, d in streams)
        return VideoTrackResult(label="outv", duration=total)

    current, accumulated = streams[0][0], streams[0][2]
    for label, clip, duration in streams[1:]:
        transition = getattr(clip, "transition", None)
        if transition:
            out = graph.label("vtrans")
            offset = max(0.0, accumulated - transition.duration)
            graph.add([current, label], [
                step(
                    "xfade",
                    transition=transition.type,
                    duration=format_number(transition.duration),
                    offset=format_number(offset),
                ),
            ] + tail, out)
            accumulated = accumulated + duration - transition.duration
        else:
            out = graph.label("vcat")
            graph.add([current, label], [step("concat", n=2, v=1, a=0)] + tail, out)
            accumulated += duration
        current = out

    return VideoTrackResult(label=current, duration=max(0.0, accumulated))
