"""Clip models - Typed records for every clip kind placed on the timeline"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union

from config import settings


class ClipType(str, Enum):
    """Clip kind discriminator as it appears in the clip schema"""
    VIDEO = "video"
    IMAGE = "image"
    COLOR = "color"
    AUDIO = "audio"
    MUSIC = "music"
    TEXT = "text"
    EFFECT = "effect"
    SUBTITLE = "subtitle"


# Tracks
VISUAL_TYPES = ("video", "image", "color")
AUDIO_TYPES = ("audio",)
MUSIC_TYPES = ("music", "backgroundAudio")
AUTO_SEQUENCE_TYPES = VISUAL_TYPES + AUDIO_TYPES
MEDIA_TYPES = ("video", "image", "audio", "music", "backgroundAudio")
ALL_TYPES = tuple(t.value for t in ClipType) + ("backgroundAudio",)

# Allowed enum values
TRANSITION_TYPES = (
    "fade", "fadeblack", "fadewhite", "fadegrays", "distance", "dissolve", "pixelize",
    "wipeleft", "wiperight", "wipeup", "wipedown",
    "slideleft", "slideright", "slideup", "slidedown",
    "smoothleft", "smoothright", "smoothup", "smoothdown",
    "circlecrop", "rectcrop", "circleclose", "circleopen",
    "horzclose", "horzopen", "vertclose", "vertopen",
    "diagbl", "diagbr", "diagtl", "diagtr",
    "hlslice", "hrslice", "vuslice", "vdslice",
    "radial", "zoomin", "squeezeh", "squeezev",
    "hblur", "coverleft", "coverright", "coverup", "coverdown",
    "revealleft", "revealright", "revealup", "revealdown",
    "wipetl", "wipetr", "wipebl", "wipebr",
)
KEN_BURNS_TYPES = (
    "zoom-in", "zoom-out", "pan-left", "pan-right", "pan-up", "pan-down", "smart", "custom",
)
KEN_BURNS_ANCHORS = ("top", "bottom", "left", "right")
EASING_TYPES = ("linear", "ease-in", "ease-out", "ease-in-out")
TEXT_MODES = ("static", "word-replace", "word-sequential", "karaoke")
TEXT_ANIMATIONS = (
    "none", "fade-in", "fade-out", "fade-in-out", "pop", "pop-bounce",
    "typewriter", "scale-in", "pulse",
)
HIGHLIGHT_STYLES = ("smooth", "instant")
SUBTITLE_EXTENSIONS = (".srt", ".vtt", ".ass", ".ssa")
EFFECT_TYPES = (
    "vignette", "filmGrain", "gaussianBlur", "colorAdjust", "sepia",
    "blackAndWhite", "sharpen", "chromaticAberration", "letterbox",
)
GRADIENT_TYPES = ("linear-gradient", "radial-gradient")


def _num(value: Any, default: Optional[float] = None) -> Optional[float]:
    """Return value if it is a real number (bools excluded), else default"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return value


@dataclass
class MediaInfo:
    """Probe result for one media file"""
    duration: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None
    has_audio: bool = False
    has_video: bool = False
    rotation: int = 0


@dataclass
class Transition:
    """Cross-fade into a clip from the previous clip on the visual track"""
    type: str = "fade"
    duration: float = 0.5

    @classmethod
    def from_value(cls, value: Any) -> Optional['Transition']:
        """Accept either the `{type, duration}` mapping or the bare type shorthand"""
        if value is None or value is False:
            return None
        if isinstance(value, str):
            return cls(type=value, duration=settings.DEFAULT_TRANSITION_DURATION)
        duration = _num(value.get("duration"))
        return cls(
            type=value.get("type") or "fade",
            duration=duration if duration is not None else settings.DEFAULT_TRANSITION_DURATION,
        )

    def to_dict(self) -> dict:
        return {"type": self.type, "duration": self.duration}


@dataclass
class KenBurns:
    """Pan/zoom motion synthesized over a still image"""
    type: str = "zoom-in"
    start_zoom: Optional[float] = None
    end_zoom: Optional[float] = None
    start_x: Optional[float] = None
    start_y: Optional[float] = None
    end_x: Optional[float] = None
    end_y: Optional[float] = None
    anchor: Optional[str] = None
    easing: Optional[str] = None

    @classmethod
    def from_value(cls, value: Any) -> Optional['KenBurns']:
        if not value:
            return None
        if isinstance(value, str):
            return cls(type=value)
        return cls(
            type=value.get("type", "custom"),
            start_zoom=_num(value.get("startZoom")),
            end_zoom=_num(value.get("endZoom")),
            start_x=_num(value.get("startX")),
            start_y=_num(value.get("startY")),
            end_x=_num(value.get("endX")),
            end_y=_num(value.get("endY")),
            anchor=value.get("anchor"),
            easing=value.get("easing"),
        )


@dataclass
class Word:
    """One timed word of a text clip"""
    text: str
    start: float
    end: float


@dataclass
class TextAnimation:
    """Entry/exit/continuous animation of a text clip"""
    type: str = "none"
    in_duration: Optional[float] = None
    out_duration: Optional[float] = None
    intensity: Optional[float] = None
    speed: Optional[float] = None

    @classmethod
    def from_value(cls, value: Any) -> 'TextAnimation':
        if not value:
            return cls()
        if isinstance(value, str):
            return cls(type=value)
        return cls(
            type=value.get("type", "none"),
            in_duration=_num(value.get("in")),
            out_duration=_num(value.get("out")),
            intensity=_num(value.get("intensity")),
            speed=_num(value.get("speed")),
        )


@dataclass
class GradientSpec:
    """Multi-stop gradient fill for a color clip"""
    type: str = "linear-gradient"
    colors: List[str] = field(default_factory=list)
    direction: Union[str, float] = "vertical"


@dataclass
class Clip:
    """Fields common to every clip kind once positions are resolved"""
    kind: ClassVar[str] = ""

    position: float
    end: float

    @property
    def duration(self) -> float:
        return max(0.0, self.end - self.position)


@dataclass
class VideoClip(Clip):
    kind: ClassVar[str] = "video"

    url: str = ""
    cut_from: float = 0.0
    volume: float = 1.0
    transition: Optional[Transition] = None
    media_duration: Optional[float] = None
    has_audio: bool = True
    width: Optional[int] = None
    height: Optional[int] = None
    rotation: int = 0


@dataclass
class ImageClip(Clip):
    kind: ClassVar[str] = "image"

    url: str = ""
    transition: Optional[Transition] = None
    ken_burns: Optional[KenBurns] = None
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass
class ColorClip(Clip):
    """Solid color or gradient filler on the visual track"""
    kind: ClassVar[str] = "color"

    color: Union[str, GradientSpec] = "black"
    transition: Optional[Transition] = None

    @property
    def is_gradient(self) -> bool:
        return isinstance(self.color, GradientSpec)


@dataclass
class AudioClip(Clip):
    kind: ClassVar[str] = "audio"

    url: str = ""
    cut_from: float = 0.0
    volume: float = 1.0
    media_duration: Optional[float] = None


@dataclass
class MusicClip(Clip):
    """Background music, mixed last and never auto-sequenced"""
    kind: ClassVar[str] = "music"

    url: str = ""
    cut_from: float = 0.0
    volume: float = 0.2
    loop: bool = False
    media_duration: Optional[float] = None


@dataclass
class TextStyle:
    """Presentation fields shared by text and imported subtitle clips"""
    font_file: Optional[str] = None
    font_family: Optional[str] = None
    font_size: int = 48
    font_color: str = "#FFFFFF"
    border_color: Optional[str] = None
    border_width: Optional[float] = None
    shadow_color: Optional[str] = None
    shadow_x: Optional[float] = None
    shadow_y: Optional[float] = None
    background_color: Optional[str] = None
    background_opacity: Optional[float] = None
    padding: Optional[float] = None
    opacity: Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'TextStyle':
        size = _num(data.get("fontSize"))
        return cls(
            font_file=data.get("fontFile"),
            font_family=data.get("fontFamily"),
            font_size=size if size is not None else settings.DEFAULT_FONT_SIZE,
            font_color=data.get("fontColor") or settings.DEFAULT_FONT_COLOR,
            border_color=data.get("borderColor"),
            border_width=_num(data.get("borderWidth")),
            shadow_color=data.get("shadowColor"),
            shadow_x=_num(data.get("shadowX")),
            shadow_y=_num(data.get("shadowY")),
            background_color=data.get("backgroundColor"),
            background_opacity=_num(data.get("backgroundOpacity")),
            padding=_num(data.get("padding")),
            opacity=_num(data.get("opacity")),
        )


@dataclass
class TextClip(Clip):
    kind: ClassVar[str] = "text"

    text: str = ""
    mode: str = "static"
    words: List[Word] = field(default_factory=list)
    word_timestamps: List[float] = field(default_factory=list)
    style: TextStyle = field(default_factory=TextStyle)
    x: Optional[float] = None
    y: Optional[float] = None
    x_percent: Optional[float] = None
    y_percent: Optional[float] = None
    x_offset: float = 0.0
    y_offset: float = 0.0
    animation: TextAnimation = field(default_factory=TextAnimation)
    highlight_color: Optional[str] = None
    highlight_style: Optional[str] = None


@dataclass
class EffectClip(Clip):
    kind: ClassVar[str] = "effect"

    effect: str = ""
    fade_in: float = 0.0
    fade_out: float = 0.0
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SubtitleClip(Clip):
    """External subtitle file burned over the rendered video"""
    kind: ClassVar[str] = "subtitle"

    url: str = ""
    style: TextStyle = field(default_factory=TextStyle)


AnyClip = Union[VideoClip, ImageClip, ColorClip, AudioClip, MusicClip, TextClip, EffectClip, SubtitleClip]


def _words_from(value: Any) -> List[Word]:
    words = []
    for w in value or []:
        if isinstance(w, dict) and isinstance(w.get("text"), str):
            start, end = _num(w.get("start")), _num(w.get("end"))
            if start is not None and end is not None:
                words.append(Word(text=w["text"], start=start, end=end))
    return words


def clip_from_dict(data: Dict[str, Any]) -> AnyClip:
    """
    Build the typed clip record for one resolved clip mapping.

    Args:
        data: Clip mapping with `type`, `position` and `end` already resolved

    Returns:
        The matching clip dataclass

    Raises:
        ValueError: If the clip kind is unknown
    """
    kind = data.get("type")
    position = float(data.get("position") or 0)
    end = float(data.get("end") or 0)

    if kind == "video":
        volume = _num(data.get("volume"))
        return VideoClip(
            position=position,
            end=end,
            url=data.get("url", ""),
            cut_from=_num(data.get("cutFrom"), 0.0),
            volume=volume if volume is not None else 1.0,
            transition=Transition.from_value(data.get("transition")),
            media_duration=_num(data.get("mediaDuration")),
            has_audio=data.get("hasAudio", True),
        )
    if kind == "image":
        return ImageClip(
            position=position,
            end=end,
            url=data.get("url", ""),
            transition=Transition.from_value(data.get("transition")),
            ken_burns=KenBurns.from_value(data.get("kenBurns")),
            width=data.get("width"),
            height=data.get("height"),
        )
    if kind == "color":
        color = data.get("color", "black")
        if isinstance(color, dict):
            color = GradientSpec(
                type=color.get("type", "linear-gradient"),
                colors=list(color.get("colors") or []),
                direction=color.get("direction", "vertical"),
            )
        return ColorClip(
            position=position,
            end=end,
            color=color,
            transition=Transition.from_value(data.get("transition")),
        )
    if kind == "audio":
        volume = _num(data.get("volume"))
        return AudioClip(
            position=position,
            end=end,
            url=data.get("url", ""),
            cut_from=_num(data.get("cutFrom"), 0.0),
            volume=volume if volume is not None else 1.0,
            media_duration=_num(data.get("mediaDuration")),
        )
    if kind in MUSIC_TYPES:
        volume = _num(data.get("volume"))
        return MusicClip(
            position=position,
            end=end,
            url=data.get("url", ""),
            cut_from=_num(data.get("cutFrom"), 0.0),
            volume=volume if volume is not None else settings.DEFAULT_BGM_VOLUME,
            loop=bool(data.get("loop", False)),
            media_duration=_num(data.get("mediaDuration")),
        )
    if kind == "text":
        return TextClip(
            position=position,
            end=end,
            text=data.get("text") or "",
            mode=data.get("mode") or "static",
            words=_words_from(data.get("words")),
            word_timestamps=[t for t in (data.get("wordTimestamps") or []) if _num(t) is not None],
            style=TextStyle.from_dict(data),
            x=_num(data.get("x")),
            y=_num(data.get("y")),
            x_percent=_num(data.get("xPercent")),
            y_percent=_num(data.get("yPercent")),
            x_offset=_num(data.get("xOffset"), 0.0),
            y_offset=_num(data.get("yOffset"), 0.0),
            animation=TextAnimation.from_value(data.get("animation")),
            highlight_color=data.get("highlightColor"),
            highlight_style=data.get("highlightStyle"),
        )
    if kind == "effect":
        return EffectClip(
            position=position,
            end=end,
            effect=data.get("effect", ""),
            fade_in=max(0.0, _num(data.get("fadeIn"), 0.0)),
            fade_out=max(0.0, _num(data.get("fadeOut"), 0.0)),
            params=dict(data.get("params") or {}),
        )
    if kind == "subtitle":
        return SubtitleClip(
            position=position,
            end=end,
            url=data.get("url", ""),
            style=TextStyle.from_dict(data),
        )
    raise ValueError(f"Unknown clip type: {kind}")
