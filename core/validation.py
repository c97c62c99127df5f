"""
Clip Validator - Structural checks and visual-gap detection

Every problem is collected as an issue record {code, path, message, received};
nothing fails fast. validate_clips() raises one aggregated ValidationError
(or GapError) listing every violation.
"""

import math
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from config import settings
from models.clips import (
    ALL_TYPES,
    EASING_TYPES,
    EFFECT_TYPES,
    GRADIENT_TYPES,
    HIGHLIGHT_STYLES,
    KEN_BURNS_ANCHORS,
    KEN_BURNS_TYPES,
    MEDIA_TYPES,
    SUBTITLE_EXTENSIONS,
    TEXT_ANIMATIONS,
    TEXT_MODES,
    TRANSITION_TYPES,
    VISUAL_TYPES,
)
from utils.logger import logger

from .errors import GapError, ValidationError
from .gaps import detect_visual_gaps


class ValidationCodes:
    """Issue codes for programmatic handling"""
    INVALID_TYPE = "INVALID_TYPE"
    MISSING_REQUIRED = "MISSING_REQUIRED"
    INVALID_VALUE = "INVALID_VALUE"
    INVALID_RANGE = "INVALID_RANGE"
    INVALID_TIMELINE = "INVALID_TIMELINE"
    TIMELINE_GAP = "TIMELINE_GAP"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    INVALID_FORMAT = "INVALID_FORMAT"
    INVALID_WORD_TIMING = "INVALID_WORD_TIMING"
    OUTSIDE_BOUNDS = "OUTSIDE_BOUNDS"


# X11/CSS color names accepted by the engine
FFMPEG_NAMED_COLORS = frozenset([
    "aliceblue", "antiquewhite", "aqua", "aquamarine", "azure",
    "beige", "bisque", "black", "blanchedalmond", "blue",
    "blueviolet", "brown", "burlywood", "cadetblue", "chartreuse",
    "chocolate", "coral", "cornflowerblue", "cornsilk", "crimson",
    "cyan", "darkblue", "darkcyan", "darkgoldenrod", "darkgray",
    "darkgreen", "darkgrey", "darkkhaki", "darkmagenta", "darkolivegreen",
    "darkorange", "darkorchid", "darkred", "darksalmon", "darkseagreen",
    "darkslateblue", "darkslategray", "darkslategrey", "darkturquoise", "darkviolet",
    "deeppink", "deepskyblue", "dimgray", "dimgrey", "dodgerblue",
    "firebrick", "floralwhite", "forestgreen", "fuchsia", "gainsboro",
    "ghostwhite", "gold", "goldenrod", "gray", "green",
    "greenyellow", "grey", "honeydew", "hotpink", "indianred",
    "indigo", "ivory", "khaki", "lavender", "lavenderblush",
    "lawngreen", "lemonchiffon", "lightblue", "lightcoral", "lightcyan",
    "lightgoldenrodyellow", "lightgray", "lightgreen", "lightgrey", "lightpink",
    "lightsalmon", "lightseagreen", "lightskyblue", "lightslategray", "lightslategrey",
    "lightsteelblue", "lightyellow", "lime", "limegreen", "linen",
    "magenta", "maroon", "mediumaquamarine", "mediumblue", "mediumorchid",
    "mediumpurple", "mediumseagreen", "mediumslateblue", "mediumspringgreen", "mediumturquoise",
    "mediumvioletred", "midnightblue", "mintcream", "mistyrose", "moccasin",
    "navajowhite", "navy", "oldlace", "olive", "olivedrab",
    "orange", "orangered", "orchid", "palegoldenrod", "palegreen",
    "paleturquoise", "palevioletred", "papayawhip", "peachpuff", "peru",
    "pink", "plum", "powderblue", "purple", "red",
    "rosybrown", "royalblue", "saddlebrown", "salmon", "sandybrown",
    "seagreen", "seashell", "sienna", "silver", "skyblue",
    "slateblue", "slategray", "slategrey", "snow", "springgreen",
    "steelblue", "tan", "teal", "thistle", "tomato",
    "turquoise", "violet", "wheat", "white", "whitesmoke",
    "yellow", "yellowgreen",
])

HEX_COLOR_RE = re.compile(
    r"^(#[0-9a-fA-F]{3}|#[0-9a-fA-F]{6}|#[0-9a-fA-F]{8}|0x[0-9a-fA-F]{6}|0x[0-9a-fA-F]{8})$"
)

TEXT_COLOR_PROPS = ("fontColor", "borderColor", "shadowColor", "backgroundColor", "highlightColor")
SUBTITLE_COLOR_PROPS = ("fontColor", "borderColor")
AUDIO_VOLUME_TYPES = ("audio", "music", "backgroundAudio")
# Kinds that must carry an explicit, finite position/end pair after resolution
TIMELINE_TYPES = ("video", "image", "color", "audio", "text", "effect")


def is_valid_ffmpeg_color(value: Any) -> bool:
    """
    Check whether a string is a color the engine accepts.

    Named colors (case-insensitive), #RGB, #RRGGBB, #RRGGBBAA, 0xRRGGBB,
    0xRRGGBBAA and "random", each optionally suffixed with @alpha in [0, 1].
    """
    if not isinstance(value, str) or not value:
        return False

    color = value
    at = value.find("@")
    if at > 0:
        try:
            alpha = float(value[at + 1:])
        except ValueError:
            return False
        if not math.isfinite(alpha) or alpha < 0 or alpha > 1:
            return False
        color = value[:at]

    if color == "random":
        return True
    if HEX_COLOR_RE.match(color):
        return True
    return color.lower() in FFMPEG_NAMED_COLORS


def normalize_fill_gaps(value: Any) -> Tuple[Optional[str], Optional[str]]:
    """
    Normalize the fill_gaps option.

    Returns:
        Tuple of (color or "none", error message or None)
    """
    if value is None or value is False or value in ("none", "off"):
        return "none", None
    if value is True:
        return "black", None
    if not isinstance(value, str):
        return None, f"fill_gaps must be a color string, boolean, or 'none' (got {type(value).__name__})"
    if not is_valid_ffmpeg_color(value):
        return None, (
            f"fill_gaps color '{value}' is not a recognised FFmpeg color. "
            "Use a named color (e.g. 'black', 'navy'), hex (#RRGGBB, 0xRRGGBB), or 'random'."
        )
    return value, None


def create_issue(code: str, path: str, message: str, received: Any = None) -> Dict[str, Any]:
    issue = {"code": code, "path": path, "message": message}
    if received is not None:
        issue["received"] = received
    return issue


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_finite(value: Any) -> bool:
    return _is_number(value) and math.isfinite(value)


@dataclass
class ValidationResult:
    """Aggregated outcome of one validation run"""
    errors: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {"valid": self.valid, "errors": self.errors, "warnings": self.warnings}


class _ClipChecker:
    """Collects issues for one clip"""

    def __init__(self, clip: Dict[str, Any], index: int, skip_file_checks: bool, width: int, height: int):
        self.clip = clip
        self.path = f"clips[{index}]"
        self.skip_file_checks = skip_file_checks
        self.width = width
        self.height = height
        self.errors: List[Dict[str, Any]] = []
        self.warnings: List[Dict[str, Any]] = []

    def error(self, code: str, path: str, message: str, received: Any = None):
        self.errors.append(create_issue(code, path, message, received))

    def warn(self, code: str, path: str, message: str, received: Any = None):
        self.warnings.append(create_issue(code, path, message, received))

    def check_file(self, path: str, file_path: str, label: str = "File"):
        if self.skip_file_checks:
            return
        if not os.path.exists(file_path):
            self.warn(ValidationCodes.FILE_NOT_FOUND, path, f"{label} not found: '{file_path}'", file_path)

    def check_color(self, prop: str):
        value = self.clip.get(prop)
        if isinstance(value, str) and not is_valid_ffmpeg_color(value):
            self.warn(
                ValidationCodes.INVALID_VALUE,
                f"{self.path}.{prop}",
                f"Invalid color '{value}'. Use a named color (e.g. 'white'), hex (#RRGGBB), or color@alpha (e.g. 'black@0.5').",
                value,
            )

    def check_enum(self, value: Any, allowed: tuple, path: str, label: str):
        if value is not None and value not in allowed:
            self.error(
                ValidationCodes.INVALID_VALUE,
                path,
                f"Invalid {label} '{value}'. Expected: {', '.join(allowed)}",
                value,
            )

    def run(self) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        clip = self.clip
        clip_type = clip.get("type")

        if not clip_type:
            self.error(ValidationCodes.MISSING_REQUIRED, f"{self.path}.type", "Clip type is required")
            return self.errors, self.warnings
        if clip_type not in ALL_TYPES:
            self.error(
                ValidationCodes.INVALID_TYPE,
                f"{self.path}.type",
                f"Invalid clip type '{clip_type}'. Expected: {', '.join(ALL_TYPES)}",
                clip_type,
            )
            return self.errors, self.warnings

        self._check_duration()
        self._check_timeline(required=clip_type in TIMELINE_TYPES)

        if clip_type in MEDIA_TYPES:
            self._check_media()
        if clip_type == "text":
            self._check_text()
        elif clip_type == "subtitle":
            self._check_subtitle()
        elif clip_type == "image":
            self._check_ken_burns()
        elif clip_type == "color":
            self._check_color_clip()
        elif clip_type == "effect":
            self._check_effect()

        if clip_type in VISUAL_TYPES:
            self._check_transition()

        return self.errors, self.warnings

    def _check_duration(self):
        duration = self.clip.get("duration")
        if duration is None:
            return
        path = f"{self.path}.duration"
        if not _is_number(duration):
            self.error(ValidationCodes.INVALID_VALUE, path, "Duration must be a number", duration)
        elif not math.isfinite(duration):
            self.error(ValidationCodes.INVALID_VALUE, path, "Duration must be a finite number", duration)
        elif duration <= 0:
            self.error(ValidationCodes.INVALID_RANGE, path, "Duration must be greater than 0", duration)
        if self.clip.get("end") is not None:
            self.error(
                ValidationCodes.INVALID_VALUE,
                self.path,
                "Cannot specify both 'duration' and 'end'. Use one or the other.",
                {"duration": duration, "end": self.clip.get("end")},
            )

    def _check_timeline(self, required: bool):
        position = self.clip.get("position")
        end = self.clip.get("end")

        if position is None or end is None:
            if required and position is None:
                self.error(
                    ValidationCodes.MISSING_REQUIRED, f"{self.path}.position",
                    "Position is required for this clip type",
                )
            if required and end is None:
                self.error(
                    ValidationCodes.MISSING_REQUIRED, f"{self.path}.end",
                    "End time is required for this clip type",
                )

        if position is not None:
            if not _is_number(position):
                self.error(ValidationCodes.INVALID_TYPE, f"{self.path}.position", "Position must be a number", position)
            elif not math.isfinite(position):
                self.error(ValidationCodes.INVALID_VALUE, f"{self.path}.position", "Position must be a finite number", position)
            elif position < 0:
                self.error(ValidationCodes.INVALID_RANGE, f"{self.path}.position", "Position must be >= 0", position)

        if end is not None:
            if not _is_number(end):
                self.error(ValidationCodes.INVALID_TYPE, f"{self.path}.end", "End time must be a number", end)
            elif not math.isfinite(end):
                self.error(ValidationCodes.INVALID_VALUE, f"{self.path}.end", "End time must be a finite number", end)
            elif _is_finite(position) and end <= position:
                self.error(
                    ValidationCodes.INVALID_TIMELINE,
                    f"{self.path}.end",
                    f"End time ({end}) must be greater than position ({position})",
                    end,
                )

    def _check_media(self):
        clip = self.clip
        url = clip.get("url")
        if not isinstance(url, str) or not url:
            self.error(ValidationCodes.MISSING_REQUIRED, f"{self.path}.url", "URL is required for media clips", url)
        else:
            self.check_file(f"{self.path}.url", url)

        cut_from = clip.get("cutFrom")
        if cut_from is not None:
            if not _is_finite(cut_from):
                self.error(ValidationCodes.INVALID_VALUE, f"{self.path}.cutFrom", "cutFrom must be a finite number", cut_from)
            elif cut_from < 0:
                self.error(ValidationCodes.INVALID_RANGE, f"{self.path}.cutFrom", "cutFrom must be >= 0", cut_from)

        volume = clip.get("volume")
        if clip.get("type") in AUDIO_VOLUME_TYPES + ("video",) and volume is not None:
            if not _is_finite(volume):
                self.error(ValidationCodes.INVALID_VALUE, f"{self.path}.volume", "Volume must be a finite number", volume)
            elif volume < 0:
                self.error(ValidationCodes.INVALID_RANGE, f"{self.path}.volume", "Volume must be >= 0", volume)

    def _check_text(self):
        clip = self.clip
        position, end = clip.get("position"), clip.get("end")

        words = clip.get("words")
        if isinstance(words, list):
            for wi, w in enumerate(words):
                self._check_word(w if isinstance(w, dict) else {}, f"{self.path}.words[{wi}]", position, end)

        timestamps = clip.get("wordTimestamps")
        if isinstance(timestamps, list):
            for i in range(1, len(timestamps)):
                prev, cur = timestamps[i - 1], timestamps[i]
                if not _is_number(prev) or not _is_number(cur):
                    self.warn(
                        ValidationCodes.INVALID_VALUE, f"{self.path}.wordTimestamps[{i}]",
                        "Word timestamps must be numbers", cur,
                    )
                    break
                if cur < prev:
                    self.warn(
                        ValidationCodes.INVALID_WORD_TIMING, f"{self.path}.wordTimestamps[{i}]",
                        f"Timestamps must be non-decreasing ({prev} -> {cur})", cur,
                    )
                    break

        font_file = clip.get("fontFile")
        if font_file:
            self.check_file(f"{self.path}.fontFile", font_file, label="Font file")

        mode = clip.get("mode")
        text = clip.get("text")
        if isinstance(text, str) and mode != "karaoke" and ("\n" in text or "\r" in text):
            self.warn(
                ValidationCodes.INVALID_VALUE, f"{self.path}.text",
                "Multiline text is only supported in karaoke mode. Newlines will be replaced with spaces.",
                text,
            )

        self.check_enum(mode, TEXT_MODES, f"{self.path}.mode", "mode")
        if mode == "karaoke":
            self.check_enum(clip.get("highlightStyle"), HIGHLIGHT_STYLES, f"{self.path}.highlightStyle", "highlightStyle")

        animation = clip.get("animation")
        if isinstance(animation, dict):
            self.check_enum(animation.get("type"), TEXT_ANIMATIONS, f"{self.path}.animation.type", "animation type")
        elif isinstance(animation, str):
            self.check_enum(animation, TEXT_ANIMATIONS, f"{self.path}.animation", "animation type")

        for prop in TEXT_COLOR_PROPS:
            self.check_color(prop)

    def _check_word(self, w: Dict[str, Any], path: str, position: Any, end: Any):
        if not isinstance(w.get("text"), str):
            self.error(ValidationCodes.MISSING_REQUIRED, f"{path}.text", "Word text is required", w.get("text"))
        for key in ("start", "end"):
            value = w.get(key)
            if not _is_number(value):
                self.error(ValidationCodes.MISSING_REQUIRED, f"{path}.{key}", f"Word {key} time is required", value)
            elif not math.isfinite(value):
                self.error(ValidationCodes.INVALID_VALUE, f"{path}.{key}", f"Word {key} time must be a finite number", value)

        start, stop = w.get("start"), w.get("end")
        if _is_finite(start) and _is_finite(stop):
            if stop <= start:
                self.error(
                    ValidationCodes.INVALID_WORD_TIMING, f"{path}.end",
                    f"Word end ({stop}) must be greater than start ({start})", stop,
                )
            if _is_number(position) and _is_number(end) and (start < position or stop > end):
                self.warn(
                    ValidationCodes.OUTSIDE_BOUNDS, path,
                    f"Word timing [{start}, {stop}] outside clip bounds [{position}, {end}]",
                    {"start": start, "end": stop},
                )

    def _check_subtitle(self):
        url = self.clip.get("url")
        if not isinstance(url, str) or not url:
            self.error(ValidationCodes.MISSING_REQUIRED, f"{self.path}.url", "URL is required for subtitle clips", url)
        else:
            ext = os.path.splitext(url)[1].lower()
            if ext not in SUBTITLE_EXTENSIONS:
                self.error(
                    ValidationCodes.INVALID_FORMAT, f"{self.path}.url",
                    f"Unsupported subtitle format '{ext or url}'. Expected: {', '.join(SUBTITLE_EXTENSIONS)}",
                    url,
                )
            self.check_file(f"{self.path}.url", url, label="Subtitle file")
        for prop in SUBTITLE_COLOR_PROPS:
            self.check_color(prop)

    def _check_ken_burns(self):
        kb = self.clip.get("kenBurns")
        if not kb:
            return
        path = f"{self.path}.kenBurns"
        kb_type = kb if isinstance(kb, str) else kb.get("type") if isinstance(kb, dict) else None
        self.check_enum(kb_type, KEN_BURNS_TYPES, path, "kenBurns effect")

        if isinstance(kb, dict):
            self.check_enum(kb.get("anchor"), KEN_BURNS_ANCHORS, f"{path}.anchor", "kenBurns anchor")
            self.check_enum(kb.get("easing"), EASING_TYPES, f"{path}.easing", "kenBurns easing")
            for name in ("startZoom", "endZoom", "startX", "startY", "endX", "endY"):
                value = kb.get(name)
                if value is None:
                    continue
                if not _is_finite(value):
                    self.error(ValidationCodes.INVALID_TYPE, f"{path}.{name}", f"kenBurns.{name} must be a finite number", value)
                elif name.endswith("Zoom") and value <= 0:
                    self.error(ValidationCodes.INVALID_RANGE, f"{path}.{name}", f"kenBurns.{name} must be > 0", value)
                elif not name.endswith("Zoom") and (value < 0 or value > 1):
                    self.error(ValidationCodes.INVALID_RANGE, f"{path}.{name}", f"kenBurns.{name} must be between 0 and 1", value)

        img_w, img_h = self.clip.get("width"), self.clip.get("height")
        if _is_number(img_w) and _is_number(img_h) and (img_w < self.width or img_h < self.height):
            self.warn(
                ValidationCodes.INVALID_VALUE, self.path,
                f"Image ({img_w}x{img_h}) will be upscaled to {self.width}x{self.height} for Ken Burns effect. Quality may be reduced.",
                {"width": img_w, "height": img_h},
            )

    def _check_color_clip(self):
        color = self.clip.get("color")
        path = f"{self.path}.color"
        if color is None:
            self.error(ValidationCodes.MISSING_REQUIRED, path, "Color is required for color clips")
        elif isinstance(color, str):
            if not is_valid_ffmpeg_color(color):
                self.error(ValidationCodes.INVALID_VALUE, path, f"Invalid color '{color}'", color)
        elif isinstance(color, dict):
            self.check_enum(color.get("type"), GRADIENT_TYPES, f"{path}.type", "gradient type")
            if color.get("type") is None:
                self.error(ValidationCodes.MISSING_REQUIRED, f"{path}.type", "Gradient type is required")
            colors = color.get("colors")
            if not isinstance(colors, list) or len(colors) < 2:
                self.error(ValidationCodes.INVALID_VALUE, f"{path}.colors", "Gradients need at least 2 colors", colors)
            else:
                for ci, c in enumerate(colors):
                    if not is_valid_ffmpeg_color(c):
                        self.error(ValidationCodes.INVALID_VALUE, f"{path}.colors[{ci}]", f"Invalid color '{c}'", c)
            direction = color.get("direction")
            if direction is not None and direction not in ("vertical", "horizontal") and not _is_finite(direction):
                self.error(
                    ValidationCodes.INVALID_VALUE, f"{path}.direction",
                    "Direction must be 'vertical', 'horizontal' or an angle in degrees", direction,
                )
        else:
            self.error(ValidationCodes.INVALID_TYPE, path, "Color must be a string or a gradient object", color)

    def _check_effect(self):
        clip = self.clip
        effect = clip.get("effect")
        if not effect:
            self.error(ValidationCodes.MISSING_REQUIRED, f"{self.path}.effect", "Effect name is required")
        else:
            self.check_enum(effect, EFFECT_TYPES, f"{self.path}.effect", "effect")
        for key in ("fadeIn", "fadeOut"):
            value = clip.get(key)
            if value is not None and (not _is_finite(value) or value < 0):
                self.error(ValidationCodes.INVALID_RANGE, f"{self.path}.{key}", f"{key} must be a number >= 0", value)
        params = clip.get("params")
        if params is not None and not isinstance(params, dict):
            self.error(ValidationCodes.INVALID_TYPE, f"{self.path}.params", "params must be an object", params)
        elif isinstance(params, dict):
            amount = params.get("amount")
            if amount is not None and not _is_finite(amount):
                self.error(ValidationCodes.INVALID_VALUE, f"{self.path}.params.amount", "amount must be a finite number", amount)

    def _check_transition(self):
        transition = self.clip.get("transition")
        if not transition:
            return
        path = f"{self.path}.transition"
        if isinstance(transition, str):
            self.check_enum(transition, TRANSITION_TYPES, path, "transition type")
            return
        if not isinstance(transition, dict):
            self.error(ValidationCodes.INVALID_TYPE, path, "Transition must be an object or a type name", transition)
            return
        self.check_enum(transition.get("type"), TRANSITION_TYPES, f"{path}.type", "transition type")
        duration = transition.get("duration")
        if duration is None:
            return
        if not _is_finite(duration):
            self.error(ValidationCodes.INVALID_VALUE, f"{path}.duration", "Transition duration must be a finite number", duration)
        elif duration <= 0:
            self.error(ValidationCodes.INVALID_VALUE, f"{path}.duration", "Transition duration must be a positive number", duration)


def validate_timeline_gaps(clips: List[Dict[str, Any]], fill_gaps: str = "none") -> List[Dict[str, Any]]:
    """
    Report every visual gap as a TIMELINE_GAP issue.

    Skipped entirely when gaps are going to be filled.
    """
    if fill_gaps != "none":
        return []
    timed = [
        c for c in clips
        if isinstance(c, dict) and _is_number(c.get("position")) and _is_number(c.get("end"))
    ]
    issues = []
    for gap in detect_visual_gaps(timed):
        where = "at start of timeline" if gap["start"] == 0 else "in timeline"
        issues.append(create_issue(
            ValidationCodes.TIMELINE_GAP,
            "timeline",
            f"Gap {where} [{gap['start']:.3f}s, {gap['end']:.3f}s] - no video/image content. "
            "Use the fill_gaps option (e.g. 'black') to auto-fill.",
            gap,
        ))
    return issues


def validate_config(
    clips: Any,
    fill_gaps: Any = "none",
    skip_file_checks: bool = False,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> ValidationResult:
    """
    Validate resolved clips and return every issue found.

    Args:
        clips: Resolved clip mappings
        fill_gaps: Gap handling option (see normalize_fill_gaps)
        skip_file_checks: Skip file existence checks
        width: Canvas width used for Ken Burns size hints
        height: Canvas height used for Ken Burns size hints

    Returns:
        ValidationResult with errors and warnings
    """
    result = ValidationResult()

    if not isinstance(clips, list):
        result.errors.append(create_issue(ValidationCodes.INVALID_TYPE, "clips", "Clips must be a list", type(clips).__name__))
        return result
    if not clips:
        result.errors.append(create_issue(ValidationCodes.MISSING_REQUIRED, "clips", "At least one clip is required", []))
        return result

    fill_color, fill_error = normalize_fill_gaps(fill_gaps)
    if fill_error:
        result.errors.append(create_issue(ValidationCodes.INVALID_VALUE, "options.fill_gaps", fill_error, fill_gaps))
        fill_color = "none"

    canvas_w = width or settings.DEFAULT_WIDTH
    canvas_h = height or settings.DEFAULT_HEIGHT
    for index, clip in enumerate(clips):
        if not isinstance(clip, dict):
            result.errors.append(create_issue(
                ValidationCodes.INVALID_TYPE, f"clips[{index}]", "Clip must be an object", type(clip).__name__
            ))
            continue
        errors, warnings = _ClipChecker(clip, index, skip_file_checks, canvas_w, canvas_h).run()
        result.errors.extend(errors)
        result.warnings.extend(warnings)

    result.errors.extend(validate_timeline_gaps(clips, fill_color))
    return result


def validate_clips(
    clips: Any,
    mode: str = "warn",
    fill_gaps: Any = "none",
    skip_file_checks: bool = False,
    width: Optional[int] = None,
    height: Optional[int] = None,
    extra_errors: Optional[List[Dict[str, Any]]] = None,
) -> ValidationResult:
    """
    Validate clips and raise on any error.

    In "strict" mode warnings are promoted to errors.

    Raises:
        GapError: If the only errors are timeline gaps
        ValidationError: For any other aggregated errors
    """
    result = validate_config(clips, fill_gaps, skip_file_checks, width, height)
    if extra_errors:
        # Resolver issues come first; drop duplicates the checker also found
        seen = {(e["code"], e["path"]) for e in extra_errors}
        result.errors = list(extra_errors) + [e for e in result.errors if (e["code"], e["path"]) not in seen]

    if mode == "strict" and result.warnings:
        result.errors.extend(result.warnings)
        result.warnings = []

    for warning in result.warnings:
        logger.warning(f"[{warning['code']}] {warning['path']}: {warning['message']}")

    if result.errors:
        message = format_validation_result(result)
        if all(e["code"] == ValidationCodes.TIMELINE_GAP for e in result.errors):
            raise GapError(message, errors=result.errors, warnings=result.warnings)
        raise ValidationError(message, errors=result.errors, warnings=result.warnings)

    return result


def format_validation_result(result: ValidationResult) -> str:
    """Render a validation result as human-readable text"""
    lines = ["Validation passed" if result.valid else "Validation failed"]
    if result.errors:
        lines.append(f"Errors ({len(result.errors)}):")
        lines.extend(f"  [{e['code']}] {e['path']}: {e['message']}" for e in result.errors)
    if result.warnings:
        lines.append(f"Warnings ({len(result.warnings)}):")
        lines.extend(f"  [{w['code']}] {w['path']}: {w['message']}" for w in result.warnings)
    return "\n".join(lines)
