"""
Text Renderer - Expands text clips into windows and windows into drawtext nodes

A window is one interval showing one rendered state (a word, a prefix of
the word list, a typewriter prefix). Each window becomes exactly one
drawtext operation gated by enable='between(t,start,end)'.
"""

import re
from dataclasses import dataclass
from typing import List, Optional

from config import settings
from models.clips import TextClip

from .ffmpeg_utils import escape_drawtext_text, escape_filter_path
from .filter_graph import FilterGraph, FilterStep, format_number

FINAL_TEXT_LABEL = "outVideoAndText"


@dataclass
class TextWindow:
    text: str
    start: float
    end: float
    clip: TextClip
    index: Optional[int] = None  # position in the word list for word modes


def split_words(text: str) -> List[str]:
    return [w for w in re.split(r"\s+", text or "") if w]


def compute_word_windows(clip: TextClip, words: List[str]) -> List[TextWindow]:
    """
    Time each word of a word-mode clip.

    Explicit `words` win; otherwise `wordTimestamps` with N+1 entries are
    boundaries and N entries are starts (the last word ends at the clip
    end); otherwise words are spaced evenly.
    """
    start_base, end_base = clip.position, clip.end
    windows: List[TextWindow] = []

    if clip.words:
        for i, w in enumerate(clip.words):
            start = max(start_base, w.start)
            end = min(end_base, w.end)
            if end > start:
                windows.append(TextWindow(w.text, start, end, clip, i))
        return windows

    if clip.word_timestamps:
        ts = sorted(min(end_base, max(start_base, t)) for t in clip.word_timestamps)
        if len(ts) == len(words) + 1:
            for i, word in enumerate(words):
                if ts[i + 1] > ts[i]:
                    windows.append(TextWindow(word, ts[i], ts[i + 1], clip, i))
            return windows
        if len(ts) == len(words):
            for i, word in enumerate(words):
                end = ts[i + 1] if i + 1 < len(ts) else end_base
                if end > ts[i]:
                    windows.append(TextWindow(word, ts[i], end, clip, i))
            return windows

    total = max(0.0, end_base - start_base)
    if not words or total <= 0:
        return windows
    step_size = total / len(words)
    for i, word in enumerate(words):
        start = start_base + i * step_size
        end = end_base if i == len(words) - 1 else start_base + (i + 1) * step_size
        windows.append(TextWindow(word, start, end, clip, i))
    return windows


def typewriter_windows(clip: TextClip, text: str) -> List[TextWindow]:
    """One window per character prefix, one character every 1/speed seconds"""
    speed = clip.animation.speed or settings.DEFAULT_TYPEWRITER_SPEED
    interval = 1.0 / speed
    windows = []
    for i in range(len(text)):
        start = clip.position + i * interval
        if start >= clip.end:
            break
        end = clip.end if i == len(text) - 1 else min(clip.end, start + interval)
        windows.append(TextWindow(text[:i + 1], start, end, clip))
    if windows:
        # The last visible prefix stays until the clip ends
        windows[-1].end = clip.end
    return windows


def _flatten(text: str) -> str:
    return re.sub(r"\r\n|\r|\n", " ", text or "")


def expand_text_windows(clips: List[TextClip]) -> List[TextWindow]:
    """
    Expand non-karaoke text clips into windows on the authored timeline.

    Karaoke clips are rendered as a subtitle document instead and are skipped.
    """
    windows: List[TextWindow] = []
    for clip in clips:
        mode = clip.mode or "static"
        if mode == "karaoke":
            continue
        text = _flatten(clip.text)

        if mode == "word-replace" or mode == "word-sequential":
            words = [w.text for w in clip.words] if clip.words else split_words(text)
            word_windows = compute_word_windows(clip, words)
            if mode == "word-replace":
                windows.extend(word_windows)
            else:
                for w in word_windows:
                    windows.append(TextWindow(" ".join(words[:w.index + 1]), w.start, w.end, clip, w.index))
            continue

        if clip.animation.type == "typewriter":
            windows.extend(typewriter_windows(clip, text))
            continue

        windows.append(TextWindow(text, clip.position, clip.end, clip))
    return windows


def fit_windows(windows: List[TextWindow], offsets, duration: float) -> List[TextWindow]:
    """
    Move windows onto the rendered timeline and clamp them to its length.

    Windows starting at or after `duration` are dropped.
    """
    fitted = []
    for w in windows:
        start = offsets.adjust(w.start) if offsets is not None else w.start
        end = offsets.adjust(w.end) if offsets is not None else w.end
        if start >= duration:
            continue
        end = min(end, duration)
        if end <= start:
            continue
        fitted.append(TextWindow(w.text, start, end, w.clip, w.index))
    return fitted


def _with_offset(expr: str, offset: float) -> str:
    if not offset:
        return expr
    sign = "+" if offset > 0 else "-"
    return f"{expr}{sign}{format_number(abs(offset))}"


def x_expression(clip: TextClip, canvas_width: int) -> str:
    if clip.x_percent is not None:
        expr = f"{format_number(clip.x_percent * canvas_width)}-text_w/2"
    elif clip.x is not None:
        expr = format_number(clip.x)
    else:
        expr = f"({canvas_width}-text_w)/2"
    return _with_offset(expr, clip.x_offset)


def y_expression(clip: TextClip, canvas_height: int) -> str:
    if clip.y_percent is not None:
        expr = f"{format_number(clip.y_percent * canvas_height)}-text_h/2"
    elif clip.y is not None:
        expr = format_number(clip.y)
    else:
        expr = f"({canvas_height}-text_h)/2"
    return _with_offset(expr, clip.y_offset)


def alpha_expression(clip: TextClip, start: float, end: float) -> Optional[str]:
    """Alpha ramp for fade animations, scaled by the clip opacity"""
    anim = clip.animation
    fade_in = anim.in_duration if anim.in_duration is not None else settings.DEFAULT_TEXT_ANIM_IN
    fade_out = anim.out_duration if anim.out_duration is not None else settings.DEFAULT_TEXT_ANIM_OUT
    s, e = format_number(start), format_number(end)

    expr = None
    if anim.type == "fade-in" and fade_in > 0:
        expr = (
            f"if(lt(t,{s}),0,if(lt(t,{format_number(start + fade_in)}),"
            f"(t-{s})/{format_number(fade_in)},1))"
        )
    elif anim.type == "fade-out" and fade_out > 0:
        out_start = format_number(max(start, end - fade_out))
        expr = f"if(lt(t,{out_start}),1,if(lt(t,{e}),({e}-t)/{format_number(fade_out)},0))"
    elif anim.type == "fade-in-out" and (fade_in > 0 or fade_out > 0):
        fade_in = fade_in or 0.001
        fade_out = fade_out or 0.001
        out_start = format_number(max(start, end - fade_out))
        expr = (
            f"if(lt(t,{s}),0,if(lt(t,{format_number(start + fade_in)}),(t-{s})/{format_number(fade_in)},"
            f"if(lt(t,{out_start}),1,if(lt(t,{e}),({e}-t)/{format_number(fade_out)},0))))"
        )

    opacity = clip.style.opacity
    if opacity is not None and opacity < 1:
        return f"{format_number(opacity)}*{expr}" if expr else format_number(opacity)
    return expr


def fontsize_expression(clip: TextClip, start: float) -> str:
    """Base size, or a size curve for pop/scale-in/pulse animations"""
    anim = clip.animation
    base = clip.style.font_size
    b = format_number(base)
    entry = anim.in_duration if anim.in_duration is not None else settings.DEFAULT_TEXT_ANIM_IN
    intensity = anim.intensity if anim.intensity is not None else settings.DEFAULT_TEXT_ANIM_INTENSITY
    s = format_number(start)
    entry_end = format_number(start + entry)
    entry_s = format_number(entry)

    if anim.type in ("pop", "pop-bounce") and entry > 0:
        swing = 0.4 if anim.type == "pop-bounce" else 0.3
        return (
            f"if(lt(t,{entry_end}),{format_number(base * 0.7, 3)}+{format_number(base * swing, 3)}"
            f"*sin(PI/2*(t-{s})/{entry_s}),{b})"
        )
    if anim.type == "scale-in" and entry > 0:
        origin = base * (1 - intensity)
        return (
            f"if(lt(t,{entry_end}),{format_number(origin, 3)}+{format_number(base - origin, 3)}"
            f"*(t-{s})/{entry_s},{b})"
        )
    if anim.type == "pulse":
        speed = anim.speed or settings.DEFAULT_PULSE_SPEED
        return f"{b}+{format_number(base * intensity * 0.5, 3)}*sin(2*PI*{format_number(speed)}*(t-{s}))"
    return b


def _quoted(expr: str) -> str:
    return f"'{expr}'" if re.search(r"[(),]", expr) else expr


def drawtext_step(window: TextWindow, canvas_width: int, canvas_height: int,
                  default_font_file: Optional[str] = None) -> FilterStep:
    """One drawtext operation for one window"""
    clip = window.clip
    style = clip.style
    options = [("text", f"'{escape_drawtext_text(window.text)}'")]

    font_file = style.font_file or default_font_file
    if font_file:
        options.append(("fontfile", f"'{escape_filter_path(font_file)}'"))
    else:
        options.append(("font", f"'{escape_drawtext_text(style.font_family or settings.DEFAULT_FONT_FAMILY)}'"))

    options.append(("fontsize", _quoted(fontsize_expression(clip, window.start))))
    options.append(("fontcolor", style.font_color))
    options.append(("x", _quoted(x_expression(clip, canvas_width))))
    options.append(("y", _quoted(y_expression(clip, canvas_height))))

    alpha = alpha_expression(clip, window.start, window.end)
    if alpha:
        options.append(("alpha", _quoted(alpha)))

    if style.border_color:
        options.append(("bordercolor", style.border_color))
    if style.border_width:
        options.append(("borderw", format_number(style.border_width)))
    if style.shadow_color:
        options.append(("shadowcolor", style.shadow_color))
    if style.shadow_x:
        options.append(("shadowx", format_number(style.shadow_x)))
    if style.shadow_y:
        options.append(("shadowy", format_number(style.shadow_y)))
    if style.background_color:
        box_color = style.background_color
        if style.background_opacity is not None and "@" not in box_color:
            box_color = f"{box_color}@{format_number(style.background_opacity)}"
        options.append(("box", 1))
        options.append(("boxcolor", box_color))
    if style.padding:
        options.append(("boxborderw", format_number(style.padding)))

    options.append(("enable", f"'between(t,{format_number(window.start)},{format_number(window.end)})'"))
    return FilterStep(name="drawtext", options=options)


def build_text_filters(graph: FilterGraph, windows: List[TextWindow], input_label: str,
                       canvas_width: int, canvas_height: int,
                       default_font_file: Optional[str] = None,
                       label_prefix: str = "vtext") -> str:
    """
    Chain one drawtext per window onto input_label.

    Returns:
        "outVideoAndText" when any window was drawn, else input_label
    """
    current = input_label
    for window in windows:
        out = graph.label(label_prefix)
        graph.add(current, drawtext_step(window, canvas_width, canvas_height, default_font_file), out)
        current = out

    if current == input_label:
        return input_label
    graph.add(current, FilterStep(name="null"), FINAL_TEXT_LABEL)
    return FINAL_TEXT_LABEL
