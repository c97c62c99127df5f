"""
Watermark Builder

Overlays a logo image or a line of text on the final video stream.
Supports:
- Position presets with a pixel margin
- Percentage or absolute pixel placement
- Timed visibility on the rendered timeline
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from backend.command_builder import InputTable
from backend.ffmpeg_utils import escape_drawtext_text, escape_filter_path
from backend.filter_graph import FilterGraph, FilterStep, format_number, step
from config import settings
from core.validation import is_valid_ffmpeg_color
from utils.logger import logger

WATERMARK_LABEL = "outwm"


class WatermarkPosition(Enum):
    """Watermark position preset"""
    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"
    CENTER = "center"


class WatermarkType(Enum):
    """Type of watermark"""
    IMAGE = "image"
    TEXT = "text"


@dataclass
class WatermarkConfig:
    """Configuration for watermark"""
    type: WatermarkType = WatermarkType.IMAGE
    url: Optional[str] = None
    text: str = ""
    position: WatermarkPosition = WatermarkPosition.BOTTOM_RIGHT
    x_percent: Optional[float] = None
    y_percent: Optional[float] = None
    x: Optional[float] = None
    y: Optional[float] = None
    margin: float = 20
    scale: float = 0.15  # fraction of canvas width
    opacity: float = 1.0
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    font_file: Optional[str] = None
    font_family: Optional[str] = None
    font_size: int = 24
    font_color: str = "#FFFFFF"
    border_color: Optional[str] = None
    border_width: Optional[float] = None
    shadow_color: Optional[str] = None
    shadow_x: Optional[float] = None
    shadow_y: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WatermarkConfig':
        """Build from the camelCase export option (call validate_watermark_config first)"""
        config = cls(
            type=WatermarkType(data.get("type") or "image"),
            url=data.get("url"),
            text=data.get("text") or "",
            margin=data.get("margin", 20),
            scale=data.get("scale", 0.15),
            opacity=data.get("opacity", 1.0),
            start_time=data.get("startTime"),
            end_time=data.get("endTime"),
            font_file=data.get("fontFile"),
            font_family=data.get("fontFamily"),
            font_size=data.get("fontSize", 24),
            font_color=data.get("fontColor") or "#FFFFFF",
            border_color=data.get("borderColor"),
            border_width=data.get("borderWidth"),
            shadow_color=data.get("shadowColor"),
            shadow_x=data.get("shadowX"),
            shadow_y=data.get("shadowY"),
        )
        position = data.get("position")
        if isinstance(position, str):
            config.position = WatermarkPosition(position)
        elif isinstance(position, dict):
            config.x_percent = position.get("xPercent")
            config.y_percent = position.get("yPercent")
            config.x = position.get("x")
            config.y = position.get("y")
        return config


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_watermark_config(data: Optional[Dict[str, Any]]) -> List[str]:
    """
    Check a watermark export option.

    Returns:
        List of error messages (empty when valid or absent)
    """
    if not data:
        return []
    if not isinstance(data, dict):
        return ["watermark must be an object"]

    errors = []
    wm_type = data.get("type") or "image"
    if wm_type not in ("image", "text"):
        errors.append(f"watermark.type must be 'image' or 'text', got '{wm_type}'")

    if wm_type == "image":
        if not isinstance(data.get("url"), str) or not data.get("url"):
            errors.append("watermark.url is required for image watermarks")
        scale = data.get("scale")
        if scale is not None and (not _is_number(scale) or scale <= 0 or scale > 1):
            errors.append("watermark.scale must be between 0 and 1")

    if wm_type == "text" and (not isinstance(data.get("text"), str) or not data.get("text")):
        errors.append("watermark.text is required for text watermarks")

    for prop in ("fontColor", "borderColor", "shadowColor"):
        value = data.get(prop)
        if value is not None and not is_valid_ffmpeg_color(value):
            errors.append(f'watermark.{prop} "{value}" is not a valid FFmpeg color')

    opacity = data.get("opacity")
    if opacity is not None and (not _is_number(opacity) or not 0 <= opacity <= 1):
        errors.append("watermark.opacity must be between 0 and 1")

    margin = data.get("margin")
    if margin is not None and (not _is_number(margin) or margin < 0):
        errors.append("watermark.margin must be >= 0")

    start, end = data.get("startTime"), data.get("endTime")
    if start is not None and (not _is_number(start) or start < 0):
        errors.append("watermark.startTime must be >= 0")
    if _is_number(start) and _is_number(end) and end <= start:
        errors.append("watermark.endTime must be > startTime")

    position = data.get("position")
    if isinstance(position, str):
        valid = [p.value for p in WatermarkPosition]
        if position not in valid:
            errors.append(f"watermark.position must be one of {', '.join(valid)}, got '{position}'")
    elif isinstance(position, dict):
        has_percent = _is_number(position.get("xPercent")) and _is_number(position.get("yPercent"))
        has_pixels = _is_number(position.get("x")) and _is_number(position.get("y"))
        if not (has_percent or has_pixels):
            errors.append("watermark.position needs {xPercent, yPercent} or {x, y}")
    elif position is not None:
        errors.append("watermark.position must be a preset name or an object")

    return errors


class WatermarkBuilder:
    """Lowers a WatermarkConfig into overlay (image) or drawtext (text) nodes"""

    def __init__(self, config: WatermarkConfig, canvas_width: int, canvas_height: int):
        self.config = config
        self.width = canvas_width
        self.height = canvas_height

    def _get_position(self, text: bool) -> Tuple[str, str]:
        """
        x/y expressions for the watermark.

        drawtext measures itself with tw/th against the literal canvas size;
        overlay uses w/h against W/H.
        """
        config = self.config
        margin = format_number(config.margin)
        w_var, h_var = ("tw", "th") if text else ("w", "h")
        W, H = (str(self.width), str(self.height)) if text else ("W", "H")

        if config.x_percent is not None and config.y_percent is not None:
            return (
                f"{format_number(config.x_percent * self.width)}-{w_var}/2",
                f"{format_number(config.y_percent * self.height)}-{h_var}/2",
            )
        if config.x is not None and config.y is not None:
            return format_number(config.x), format_number(config.y)

        positions = {
            WatermarkPosition.TOP_LEFT: (margin, margin),
            WatermarkPosition.TOP_RIGHT: (f"{W}-{w_var}-{margin}", margin),
            WatermarkPosition.BOTTOM_LEFT: (margin, f"{H}-{h_var}-{margin}"),
            WatermarkPosition.BOTTOM_RIGHT: (f"{W}-{w_var}-{margin}", f"{H}-{h_var}-{margin}"),
            WatermarkPosition.CENTER: (f"({W}-{w_var})/2", f"({H}-{h_var})/2"),
        }
        return positions[config.position]

    def _enable(self, total_duration: float, offsets=None) -> Optional[str]:
        """enable expression, or None when the watermark spans the whole video"""
        start = self.config.start_time or 0.0
        end = self.config.end_time if self.config.end_time is not None else total_duration
        if offsets is not None:
            start = offsets.adjust(start)
            if self.config.end_time is not None:
                end = offsets.adjust(end)
        if start <= 0 and end >= total_duration:
            return None
        return f"'between(t,{format_number(start)},{format_number(end)})'"

    @staticmethod
    def _color_with_opacity(color: str, opacity: float) -> str:
        if opacity >= 1 or "@" in color:
            return color
        return f"{color}@{format_number(opacity)}"

    def build_image_filter(self, graph: FilterGraph, input_index: int, video_label: str,
                           total_duration: float, offsets=None) -> str:
        config = self.config
        scaled_width = int(round(self.width * config.scale))
        steps = [step("scale", scaled_width, -1)]
        if config.opacity < 1:
            steps.append(step("format", "rgba"))
            steps.append(step("colorchannelmixer", aa=format_number(config.opacity)))
        graph.add(f"{input_index}:v", steps, "wm_scaled")

        x, y = self._get_position(text=False)
        options = [("x", x), ("y", y)]
        enable = self._enable(total_duration, offsets)
        if enable:
            options.append(("enable", enable))
        graph.add([video_label, "wm_scaled"], FilterStep(name="overlay", options=options), WATERMARK_LABEL)
        return WATERMARK_LABEL

    def build_text_step(self, total_duration: float, offsets=None) -> FilterStep:
        config = self.config
        options = [("text", f"'{escape_drawtext_text(config.text)}'")]
        if config.font_file:
            options.append(("fontfile", f"'{escape_filter_path(config.font_file)}'"))
        else:
            options.append(("font", f"'{escape_drawtext_text(config.font_family or settings.DEFAULT_FONT_FAMILY)}'"))
        options.append(("fontsize", format_number(config.font_size)))
        options.append(("fontcolor", self._color_with_opacity(config.font_color, config.opacity)))

        x, y = self._get_position(text=True)
        options.extend([("x", x), ("y", y)])

        if config.border_color:
            options.append(("bordercolor", self._color_with_opacity(config.border_color, config.opacity)))
        if config.border_width is not None:
            options.append(("borderw", format_number(config.border_width)))
        if config.shadow_color:
            options.append(("shadowcolor", config.shadow_color))
            if config.shadow_x is not None:
                options.append(("shadowx", format_number(config.shadow_x)))
            if config.shadow_y is not None:
                options.append(("shadowy", format_number(config.shadow_y)))

        enable = self._enable(total_duration, offsets)
        if enable:
            options.append(("enable", enable))
        return FilterStep(name="drawtext", options=options)

    def build(self, graph: FilterGraph, inputs: InputTable, video_label: str,
              total_duration: float, offsets=None) -> str:
        """
        Append the watermark to the graph.

        Image watermarks must already be registered in `inputs` with this
        builder's config as owner.

        Returns:
            Label of the watermarked stream
        """
        if self.config.type == WatermarkType.TEXT:
            graph.add(video_label, self.build_text_step(total_duration, offsets), WATERMARK_LABEL)
            logger.info(f"Text watermark: '{self.config.text}'")
            return WATERMARK_LABEL

        index = inputs.index_of(self.config)
        logger.info(f"Image watermark: {self.config.url} (input {index})")
        return self.build_image_filter(graph, index, video_label, total_duration, offsets)
