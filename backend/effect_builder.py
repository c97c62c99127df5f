"""
Effect Builder - Timed full-frame effects composited over the video stream

Every effect splits the current stream into a passthrough copy and a
processed copy. The processed copy gets an alpha envelope (amount times
optional fades, so it blends toward the untouched frame rather than black)
and is overlaid back onto the passthrough inside its time window.
"""

import math
from typing import Any, Dict, List, Optional, Tuple

from core.errors import FilterGraphError
from models.clips import EffectClip

from .filter_graph import FilterGraph, FilterStep, format_number, step


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def _param(params: Dict[str, Any], key: str, default: float) -> float:
    value = params.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return value


def effect_amount(clip: EffectClip) -> float:
    """Blend strength in [0, 1] (defaults to 1)"""
    return _clamp(_param(clip.params, "amount", 1.0), 0.0, 1.0)


def effect_steps(clip: EffectClip) -> List[FilterStep]:
    """
    Filters applied to the processed copy of the stream.

    Raises:
        FilterGraphError: For an unknown effect name
    """
    params = clip.params
    effect = clip.effect

    if effect == "vignette":
        angle = _param(params, "angle", math.pi / 5)
        return [step("vignette", angle=format_number(angle), eval="frame")]

    if effect == "filmGrain":
        strength = _clamp(_param(params, "strength", _param(params, "amount", 0.35)) * 100, 0, 100)
        flags = "u" if params.get("temporal") is False else "t+u"
        return [step("noise", alls=format_number(strength, 3), allf=flags)]

    if effect == "gaussianBlur":
        sigma = _clamp(_param(params, "sigma", _param(params, "amount", 0.5) * 20), 0, 100)
        return [step("gblur", sigma=format_number(sigma, 4))]

    if effect == "colorAdjust":
        return [step(
            "eq",
            brightness=format_number(_param(params, "brightness", 0), 4),
            contrast=format_number(_param(params, "contrast", 1), 4),
            saturation=format_number(_param(params, "saturation", 1), 4),
            gamma=format_number(_param(params, "gamma", 1), 4),
        )]

    if effect == "sepia":
        return [step(
            "colorchannelmixer",
            rr=0.393, rg=0.769, rb=0.189,
            gr=0.349, gg=0.686, gb=0.168,
            br=0.272, bg=0.534, bb=0.131,
        )]

    if effect == "blackAndWhite":
        contrast = _param(params, "contrast", 1)
        steps = [step("hue", s=0)]
        if contrast != 1:
            steps.append(step("eq", contrast=format_number(contrast, 4)))
        return steps

    if effect == "sharpen":
        strength = _clamp(_param(params, "strength", 1.0), 0, 5)
        return [step("unsharp", "5", "5", format_number(strength, 4), "5", "5", "0")]

    if effect == "chromaticAberration":
        shift = int(round(_clamp(_param(params, "shift", 4), 0, 100)))
        return [step("rgbashift", rh=shift, bh=-shift)]

    if effect == "letterbox":
        size = _clamp(_param(params, "size", 0.12), 0, 0.5)
        color = params.get("color") or "black"
        bar = f"ih*{format_number(size, 4)}"
        return [
            step("drawbox", x=0, y=0, w="iw", h=bar, color=color, t="fill"),
            step("drawbox", x=0, y=f"ih-{bar}", w="iw", h=bar, color=color, t="fill"),
        ]

    raise FilterGraphError(f"Unknown effect '{effect}'")


def _alpha_envelope(clip: EffectClip, start: float, end: float) -> List[FilterStep]:
    steps = [
        step("format", "rgba"),
        step("colorchannelmixer", aa=format_number(effect_amount(clip), 4)),
    ]
    if clip.fade_in > 0:
        steps.append(step("fade", t="in", st=format_number(start, 4),
                          d=format_number(clip.fade_in, 4), alpha=1))
    if clip.fade_out > 0:
        fade_out_start = max(start, end - clip.fade_out)
        steps.append(step("fade", t="out", st=format_number(fade_out_start, 4),
                          d=format_number(clip.fade_out, 4), alpha=1))
    return steps


def build_effects(graph: FilterGraph, clips: List[EffectClip], input_label: str,
                  offsets=None) -> str:
    """
    Chain every effect onto the video stream.

    Args:
        graph: Graph to append to
        clips: Effect clips (ordered here by position, then end)
        input_label: Current video label
        offsets: Optional TransitionOffsets mapping windows onto rendered time

    Returns:
        Label of the composited stream (input_label when there are no effects)
    """
    ordered = sorted(clips, key=lambda c: (c.position, c.end))
    current = input_label

    for clip in ordered:
        start, end = clip.position, clip.end
        if offsets is not None:
            start, end = offsets.adjust(start), offsets.adjust(end)

        base = graph.label("fxbase")
        source = graph.label("fxsrc")
        raw = graph.label("fxraw")
        alpha = graph.label("fxa")
        out = graph.label("fxout")

        graph.add(current, step("split", 2), [base, source])
        graph.add(source, effect_steps(clip), raw)
        graph.add(raw, _alpha_envelope(clip, start, end), alpha)
        graph.add([base, alpha], step(
            "overlay",
            shortest=1,
            eof_action="pass",
            enable=f"'between(t,{format_number(start, 4)},{format_number(end, 4)})'",
        ), out)
        current = out

    return current
