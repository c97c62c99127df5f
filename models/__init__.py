"""Data models for clips and projects"""

from .clips import (
    AnyClip,
    AudioClip,
    ClipType,
    ColorClip,
    EffectClip,
    GradientSpec,
    ImageClip,
    KenBurns,
    MediaInfo,
    MusicClip,
    SubtitleClip,
    TextAnimation,
    TextClip,
    TextStyle,
    Transition,
    VideoClip,
    Word,
    clip_from_dict,
)
from .project import PLATFORM_PRESETS, CompilationContext, ProjectOptions

__all__ = [
    "AnyClip",
    "AudioClip",
    "ClipType",
    "ColorClip",
    "CompilationContext",
    "EffectClip",
    "GradientSpec",
    "ImageClip",
    "KenBurns",
    "MediaInfo",
    "MusicClip",
    "PLATFORM_PRESETS",
    "ProjectOptions",
    "SubtitleClip",
    "TextAnimation",
    "TextClip",
    "TextStyle",
    "Transition",
    "VideoClip",
    "Word",
    "clip_from_dict",
]
