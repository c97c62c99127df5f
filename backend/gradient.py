"""Gradient image generator - writes binary PPM (P6) files the engine reads natively"""

import math
import re
import uuid
from pathlib import Path
from typing import List, Sequence, Tuple, Union

import numpy as np

from models.clips import GradientSpec
from utils.logger import logger

RGB = Tuple[int, int, int]

NAMED_COLORS = {
    "aliceblue": (240, 248, 255), "antiquewhite": (250, 235, 215), "aqua": (0, 255, 255),
    "aquamarine": (127, 255, 212), "azure": (240, 255, 255), "beige": (245, 245, 220),
    "bisque": (255, 228, 196), "black": (0, 0, 0), "blanchedalmond": (255, 235, 205),
    "blue": (0, 0, 255), "blueviolet": (138, 43, 226), "brown": (165, 42, 42),
    "burlywood": (222, 184, 135), "cadetblue": (95, 158, 160), "chartreuse": (127, 255, 0),
    "chocolate": (210, 105, 30), "coral": (255, 127, 80), "cornflowerblue": (100, 149, 237),
    "cornsilk": (255, 248, 220), "crimson": (220, 20, 60), "cyan": (0, 255, 255),
    "darkblue": (0, 0, 139), "darkcyan": (0, 139, 139), "darkgoldenrod": (184, 134, 11),
    "darkgray": (169, 169, 169), "darkgreen": (0, 100, 0), "darkgrey": (169, 169, 169),
    "darkkhaki": (189, 183, 107), "darkmagenta": (139, 0, 139), "darkolivegreen": (85, 107, 47),
    "darkorange": (255, 140, 0), "darkorchid": (153, 50, 204), "darkred": (139, 0, 0),
    "darksalmon": (233, 150, 122), "darkseagreen": (143, 188, 143), "darkslateblue": (72, 61, 139),
    "darkslategray": (47, 79, 79), "darkslategrey": (47, 79, 79), "darkturquoise": (0, 206, 209),
    "darkviolet": (148, 0, 211), "deeppink": (255, 20, 147), "deepskyblue": (0, 191, 255),
    "dimgray": (105, 105, 105), "dimgrey": (105, 105, 105), "dodgerblue": (30, 144, 255),
    "firebrick": (178, 34, 34), "floralwhite": (255, 250, 240), "forestgreen": (34, 139, 34),
    "fuchsia": (255, 0, 255), "gainsboro": (220, 220, 220), "ghostwhite": (248, 248, 255),
    "gold": (255, 215, 0), "goldenrod": (218, 165, 32), "gray": (128, 128, 128),
    "green": (0, 128, 0), "greenyellow": (173, 255, 47), "grey": (128, 128, 128),
    "honeydew": (240, 255, 240), "hotpink": (255, 105, 180), "indianred": (205, 92, 92),
    "indigo": (75, 0, 130), "ivory": (255, 255, 240), "khaki": (240, 230, 140),
    "lavender": (230, 230, 250), "lavenderblush": (255, 240, 245), "lawngreen": (124, 252, 0),
    "lemonchiffon": (255, 250, 205), "lightblue": (173, 216, 230), "lightcoral": (240, 128, 128),
    "lightcyan": (224, 255, 255), "lightgoldenrodyellow": (250, 250, 210),
    "lightgray": (211, 211, 211), "lightgreen": (144, 238, 144), "lightgrey": (211, 211, 211),
    "lightpink": (255, 182, 193), "lightsalmon": (255, 160, 122), "lightseagreen": (32, 178, 170),
    "lightskyblue": (135, 206, 250), "lightslategray": (119, 136, 153),
    "lightslategrey": (119, 136, 153), "lightsteelblue": (176, 196, 222),
    "lightyellow": (255, 255, 224), "lime": (0, 255, 0), "limegreen": (50, 205, 50),
    "linen": (250, 240, 230), "magenta": (255, 0, 255), "maroon": (128, 0, 0),
    "mediumaquamarine": (102, 205, 170), "mediumblue": (0, 0, 205),
    "mediumorchid": (186, 85, 211), "mediumpurple": (147, 112, 219),
    "mediumseagreen": (60, 179, 113), "mediumslateblue": (123, 104, 238),
    "mediumspringgreen": (0, 250, 154), "mediumturquoise": (72, 209, 204),
    "mediumvioletred": (199, 21, 133), "midnightblue": (25, 25, 112),
    "mintcream": (245, 255, 250), "mistyrose": (255, 228, 225), "moccasin": (255, 228, 181),
    "navajowhite": (255, 222, 173), "navy": (0, 0, 128), "oldlace": (253, 245, 230),
    "olive": (128, 128, 0), "olivedrab": (107, 142, 35), "orange": (255, 165, 0),
    "orangered": (255, 69, 0), "orchid": (218, 112, 214), "palegoldenrod": (238, 232, 170),
    "palegreen": (152, 251, 152), "paleturquoise": (175, 238, 238),
    "palevioletred": (219, 112, 147), "papayawhip": (255, 239, 213),
    "peachpuff": (255, 218, 185), "peru": (205, 133, 63), "pink": (255, 192, 203),
    "plum": (221, 160, 221), "powderblue": (176, 224, 230), "purple": (128, 0, 128),
    "red": (255, 0, 0), "rosybrown": (188, 143, 143), "royalblue": (65, 105, 225),
    "saddlebrown": (139, 69, 19), "salmon": (250, 128, 114), "sandybrown": (244, 164, 96),
    "seagreen": (46, 139, 87), "seashell": (255, 245, 238), "sienna": (160, 82, 45),
    "silver": (192, 192, 192), "skyblue": (135, 206, 235), "slateblue": (106, 90, 205),
    "slategray": (112, 128, 144), "slategrey": (112, 128, 144), "snow": (255, 250, 250),
    "springgreen": (0, 255, 127), "steelblue": (70, 130, 180), "tan": (210, 180, 140),
    "teal": (0, 128, 128), "thistle": (216, 191, 216), "tomato": (255, 99, 71),
    "turquoise": (64, 224, 208), "violet": (238, 130, 238), "wheat": (245, 222, 179),
    "white": (255, 255, 255), "whitesmoke": (245, 245, 245), "yellow": (255, 255, 0),
    "yellowgreen": (154, 205, 50),
}

_HEX3 = re.compile(r"^#([0-9a-fA-F]{3})$")
_HEX6 = re.compile(r"^(?:#|0x)([0-9a-fA-F]{6})(?:[0-9a-fA-F]{2})?$")


def parse_color(value: str) -> RGB:
    """
    Parse an engine color string into an (r, g, b) tuple.

    Unknown values fall back to black; any @alpha suffix is ignored.
    """
    if not isinstance(value, str) or not value:
        return (0, 0, 0)
    color = value.split("@", 1)[0] if value.find("@") > 0 else value

    named = NAMED_COLORS.get(color.lower())
    if named:
        return named

    match = _HEX3.match(color)
    if match:
        r, g, b = (int(ch * 2, 16) for ch in match.group(1))
        return (r, g, b)

    match = _HEX6.match(color)
    if match:
        digits = match.group(1)
        return (int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))

    logger.warning(f"Unrecognised gradient color '{value}', using black")
    return (0, 0, 0)


def _color_ramp(colors: Sequence[RGB], t: np.ndarray) -> np.ndarray:
    """Map positions t (0..1) onto evenly spaced stops; returns uint8 RGB with a trailing axis"""
    stops = np.linspace(0.0, 1.0, len(colors))
    table = np.asarray(colors, dtype=np.float64)
    t = np.clip(t, 0.0, 1.0)
    channels = [np.interp(t, stops, table[:, c]) for c in range(3)]
    return np.rint(np.stack(channels, axis=-1)).astype(np.uint8)


def interpolate_colors(colors: Sequence[RGB], t: float) -> RGB:
    """Color at position t (0..1) with evenly spaced stops"""
    r, g, b = _color_ramp(colors, np.asarray([t], dtype=np.float64))[0]
    return (int(r), int(g), int(b))


def _direction_vector(direction: Union[str, float]) -> Tuple[float, float]:
    if direction == "horizontal":
        return 1.0, 0.0
    if isinstance(direction, (int, float)) and not isinstance(direction, bool):
        rad = math.radians(direction)
        return math.cos(rad), math.sin(rad)
    return 0.0, 1.0


def _axis(size: int) -> np.ndarray:
    # a single pixel sits in the middle of the ramp
    return np.linspace(0.0, 1.0, size) if size > 1 else np.full(1, 0.5)


def _linear_pixels(width: int, height: int, colors: List[RGB], direction: Union[str, float]) -> np.ndarray:
    dx, dy = _direction_vector(direction)
    t = _axis(width)[np.newaxis, :] * dx + _axis(height)[:, np.newaxis] * dy
    return _color_ramp(colors, t)


def _radial_pixels(width: int, height: int, colors: List[RGB]) -> np.ndarray:
    cx = (width - 1) / 2
    cy = (height - 1) / 2
    max_dist = math.hypot(cx, cy) or 1.0
    yy, xx = np.mgrid[0:height, 0:width]
    return _color_ramp(colors, np.hypot(xx - cx, yy - cy) / max_dist)


def generate_gradient_ppm(width: int, height: int, spec: GradientSpec) -> bytes:
    """
    Render a gradient as PPM bytes.

    Args:
        width: Image width in pixels
        height: Image height in pixels
        spec: Gradient type, color stops (2+) and direction for linear gradients

    Returns:
        Complete P6 file contents
    """
    colors = [parse_color(c) for c in spec.colors] or [(0, 0, 0)]
    if spec.type == "radial-gradient":
        pixels = _radial_pixels(width, height, colors)
    else:
        pixels = _linear_pixels(width, height, colors, spec.direction or "vertical")
    header = f"P6\n{width} {height}\n255\n".encode("ascii")
    return header + pixels.tobytes()


def write_gradient_image(width: int, height: int, spec: GradientSpec, temp_dir: str) -> str:
    """Write a gradient PPM into temp_dir and return its path"""
    out_dir = Path(temp_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / f"gradient-{uuid.uuid4()}.ppm"
    path.write_bytes(generate_gradient_ppm(width, height, spec))
    logger.debug(f"Generated {spec.type} {width}x{height} -> {path}")
    return str(path)
