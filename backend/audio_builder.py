"""
Audio Builders - Audio of video clips and standalone audio clips

Each source is volume-scaled, trimmed to its clip span (cutFrom aware),
re-timed and delayed onto the rendered timeline, then mixed with explicit
equal weights and normalization disabled.
"""

from typing import List, Optional

from models.clips import AudioClip, VideoClip

from .command_builder import InputTable
from .filter_graph import FilterGraph, format_number, step
from .video_builder import clip_render_duration


def mix_weights(count: int, anchor: bool = False) -> str:
    """Quoted amix weights: 1/n per real input, 0 for a leading anchor"""
    weight = format_number(1 / count) if count else "0"
    weights = [weight] * count
    if anchor:
        weights.insert(0, "0")
    return f"'{' '.join(weights)}'"


def add_mix(graph: FilterGraph, labels: List[str], output: str, anchor: Optional[str] = None) -> str:
    """Mix labels (anchor first, weight 0) with duration=longest and normalize=0"""
    inputs = ([anchor] if anchor else []) + labels
    graph.add(inputs, step(
        "amix",
        inputs=len(inputs),
        duration="longest",
        weights=mix_weights(len(labels), anchor=anchor is not None),
        normalize=0,
    ), output)
    return output


def delay_ms(seconds: float) -> int:
    return int(round(max(0.0, seconds) * 1000))


def _add_source(graph: FilterGraph, clip, inputs: InputTable, delay: int, prefix: str) -> str:
    out = graph.label(prefix)
    graph.add(f"{inputs.index_of(clip)}:a", [
        step("volume", format_number(clip.volume)),
        step("atrim", start=format_number(clip.cut_from), duration=format_number(clip_render_duration(clip))),
        step("asetpts", "PTS-STARTPTS"),
        step("adelay", f"{delay}|{delay}"),
    ], out)
    return out


def build_video_audio(graph: FilterGraph, clips: List, inputs: InputTable, offsets) -> Optional[str]:
    """
    Mix the audio streams of video clips.

    Args:
        graph: Graph to append to
        clips: Visual clips sorted by position (non-video and silent clips are skipped)
        inputs: Engine input table
        offsets: TransitionOffsets used to place each clip on the rendered timeline

    Returns:
        Mixed label, or None when no clip has audio
    """
    labels = [
        _add_source(graph, clip, inputs, delay_ms(offsets.adjust(clip.position)), "va")
        for clip in clips
        if isinstance(clip, VideoClip) and clip.has_audio
    ]
    if not labels:
        return None
    return add_mix(graph, labels, "outa")


def build_standalone_audio(graph: FilterGraph, clips: List[AudioClip], inputs: InputTable,
                           offsets, existing_label: Optional[str]) -> Optional[str]:
    """
    Mix standalone audio clips, together with any existing audio.

    Returns:
        Mixed label, or existing_label when there are no audio clips
    """
    labels = [
        _add_source(graph, clip, inputs, delay_ms(offsets.adjust(clip.position)), "a")
        for clip in clips
    ]
    if not labels:
        return existing_label
    if existing_label:
        labels.insert(0, existing_label)
    return add_mix(graph, labels, "mixaudio")


def fit_audio(graph: FilterGraph, label: str, duration: float) -> str:
    """Pad with silence then cut the mix to the rendered duration"""
    graph.add(label, [step("apad"), step("atrim", end=format_number(duration))], "audfit")
    return "audfit"
