"""Subtitle utilities - ASS documents for karaoke text and imported subtitle files"""

import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from config import settings
from models.clips import SubtitleClip, TextClip, TextStyle
from utils.logger import logger

from .ffmpeg_utils import escape_filter_path
from .filter_graph import FilterStep, step
from .gradient import parse_color

Adjust = Callable[[float], float]


@dataclass
class Dialogue:
    """One ASS event line"""
    start: float
    end: float
    text: str
    style: str = "Default"


@dataclass
class KaraokeWord:
    text: str
    start: float
    end: float
    line_break: bool = False


class SubtitleUtils:
    """Builds ASS subtitle documents burned with the engine's ass filter"""

    STYLE_FORMAT = (
        "Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, "
        "BackColour, Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, "
        "BorderStyle, Outline, Shadow, Alignment, MarginL, MarginR, MarginV, Encoding"
    )
    EVENT_FORMAT = "Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text"

    # Imported subtitles sit bottom-center
    IMPORT_ALIGNMENT = 2
    IMPORT_MARGIN_V = 30

    @staticmethod
    def hex_to_ass_color(color: str, opacity: float = 1.0) -> str:
        """
        Convert an engine color (#RRGGBB, #RGB, 0xRRGGBB or a name) to &HAABBGGRR.

        ASS alpha is inverted: 00 is opaque, FF is transparent.
        """
        r, g, b = parse_color(color)
        opacity = min(1.0, max(0.0, opacity))
        alpha = int(round((1 - opacity) * 255))
        return f"&H{alpha:02X}{b:02X}{g:02X}{r:02X}"

    @staticmethod
    def _format_ass_time(seconds: float) -> str:
        """Format seconds to ASS timestamp (H:MM:SS.cc)"""
        centis = int(round(max(0.0, seconds) * 100))
        hours, centis = divmod(centis, 360000)
        minutes, centis = divmod(centis, 6000)
        secs, centis = divmod(centis, 100)
        return f"{hours}:{minutes:02d}:{secs:02d}.{centis:02d}"

    @staticmethod
    def _parse_srt_time(time_str: str) -> float:
        """Parse an SRT/VTT timestamp (HH:MM:SS,mmm, HH:MM:SS.mmm or MM:SS.mmm) to seconds"""
        parts = time_str.strip().replace(',', '.').split(':')
        seconds = float(parts[-1])
        minutes = int(parts[-2]) if len(parts) >= 2 else 0
        hours = int(parts[-3]) if len(parts) >= 3 else 0
        return hours * 3600 + minutes * 60 + seconds

    @staticmethod
    def escape_ass_text(text: str) -> str:
        return (
            text.replace('\\', '\\\\')
            .replace('{', '\\{')
            .replace('}', '\\}')
            .replace('\n', '\\N')
        )

    @staticmethod
    def header(width: int, height: int, title: str) -> str:
        return (
            "[Script Info]\n"
            f"Title: {title}\n"
            "ScriptType: v4.00+\n"
            "WrapStyle: 0\n"
            "ScaledBorderAndShadow: yes\n"
            "YCbCr Matrix: TV.709\n"
            f"PlayResX: {width}\n"
            f"PlayResY: {height}\n\n"
        )

    @staticmethod
    def style_line(
        name: str,
        font_family: str,
        font_size: float,
        primary_color: str,
        secondary_color: str = "#FFFF00",
        outline_color: str = "#000000",
        outline: float = 2,
        shadow: float = 0,
        alignment: int = 5,
        margin_v: int = 20,
        opacity: float = 1.0,
    ) -> str:
        fields = [
            name,
            font_family,
            _fmt(font_size),
            SubtitleUtils.hex_to_ass_color(primary_color, opacity),
            SubtitleUtils.hex_to_ass_color(secondary_color, opacity),
            SubtitleUtils.hex_to_ass_color(outline_color, 1.0),
            SubtitleUtils.hex_to_ass_color("#000000", 0.5),
            "0", "0", "0", "0",        # bold, italic, underline, strikeout
            "100", "100", "0", "0",    # scale x/y, spacing, angle
            "1",                       # outline + drop shadow
            _fmt(outline),
            _fmt(shadow),
            str(alignment),
            "20", "20", str(margin_v),
            "1",
        ]
        return "Style: " + ",".join(fields)

    @staticmethod
    def styles_section(style_lines: List[str]) -> str:
        return "[V4+ Styles]\n" + SubtitleUtils.STYLE_FORMAT + "\n" + "\n".join(style_lines) + "\n\n"

    @staticmethod
    def events_section(dialogues: List[Dialogue]) -> str:
        lines = ["[Events]", SubtitleUtils.EVENT_FORMAT]
        for d in dialogues:
            lines.append(
                f"Dialogue: 0,{SubtitleUtils._format_ass_time(d.start)},"
                f"{SubtitleUtils._format_ass_time(d.end)},{d.style},,0,0,0,,{d.text}"
            )
        return "\n".join(lines) + "\n"

    # ------------------------------------------------------------------
    # Karaoke
    # ------------------------------------------------------------------

    @staticmethod
    def karaoke_words(clip: TextClip) -> List[KaraokeWord]:
        """Time every karaoke word, keeping authored line breaks"""
        if clip.words:
            return [KaraokeWord(w.text, w.start, w.end) for w in clip.words]

        words: List[str] = []
        breaks = set()
        lines = (clip.text or "").split("\n")
        for index, line in enumerate(lines):
            words.extend(w for w in line.split() if w)
            if index < len(lines) - 1 and words:
                breaks.add(len(words) - 1)

        if not words:
            return []

        if clip.word_timestamps:
            ts = clip.word_timestamps
            result = []
            for i, word in enumerate(words):
                start = ts[i] if i < len(ts) else clip.position
                end = ts[i + 1] if i + 1 < len(ts) else clip.end
                result.append(KaraokeWord(word, start, end, i in breaks))
            return result

        span = (clip.end - clip.position) / len(words)
        return [
            KaraokeWord(word, clip.position + i * span, clip.position + (i + 1) * span, i in breaks)
            for i, word in enumerate(words)
        ]

    @staticmethod
    def karaoke_layout(clip: TextClip, canvas_height: int) -> Tuple[int, int]:
        """ASS (alignment, marginV) derived from the vertical placement"""
        alignment, margin_v = 5, 20
        if clip.y_percent is not None:
            if clip.y_percent < 0.33:
                alignment = 8
            elif clip.y_percent > 0.66:
                alignment = 2
            if clip.y_percent < 0.5:
                margin_v = int(round(clip.y_percent * canvas_height))
            else:
                margin_v = int(round((1 - clip.y_percent) * canvas_height))
        elif clip.y is not None:
            margin_v = int(round(clip.y))
        return alignment, margin_v

    @staticmethod
    def karaoke_directives(clip: TextClip, width: int, height: int) -> str:
        """Override tags for the dialogue line: \\pos when placed explicitly, \\fad for fade animations"""
        tags = ""
        if clip.x is not None or clip.y is not None or clip.x_percent is not None:
            if clip.x is not None:
                x = clip.x
            elif clip.x_percent is not None:
                x = clip.x_percent * width
            else:
                x = width / 2
            if clip.y is not None:
                y = clip.y
            elif clip.y_percent is not None:
                y = clip.y_percent * height
            else:
                y = height / 2
            x, y = int(round(x + clip.x_offset)), int(round(y + clip.y_offset))
            tags += f"\\pos({x},{y})"

        animation = clip.animation
        if animation.type in ("fade-in", "fade-out", "fade-in-out"):
            fade_in = fade_out = 0.0
            if animation.type != "fade-out":
                fade_in = animation.in_duration if animation.in_duration is not None else settings.DEFAULT_TEXT_ANIM_IN
            if animation.type != "fade-in":
                fade_out = animation.out_duration if animation.out_duration is not None else settings.DEFAULT_TEXT_ANIM_OUT
            tags += f"\\fad({int(round(fade_in * 1000))},{int(round(fade_out * 1000))})"

        return f"{{{tags}}}" if tags else ""

    @staticmethod
    def build_karaoke_ass(clip: TextClip, width: int, height: int,
                          adjust: Optional[Adjust] = None) -> str:
        """
        Render one karaoke text clip as a complete ASS document.

        Word highlight durations use \\kf (smooth fill) or \\k (instant) in
        centiseconds, measured on the rendered timeline.
        """
        adjust = adjust or (lambda t: t)
        style = clip.style
        alignment, margin_v = SubtitleUtils.karaoke_layout(clip, height)

        style_line = SubtitleUtils.style_line(
            name="Karaoke",
            font_family=style.font_family or settings.DEFAULT_FONT_FAMILY,
            font_size=style.font_size,
            primary_color=style.font_color,
            secondary_color=clip.highlight_color or settings.DEFAULT_KARAOKE_HIGHLIGHT,
            outline_color=style.border_color or "#000000",
            outline=style.border_width if style.border_width is not None else 2,
            shadow=1 if style.shadow_color else 0,
            alignment=alignment,
            margin_v=margin_v,
            opacity=style.opacity if style.opacity is not None else 1.0,
        )

        highlight = clip.highlight_style or settings.DEFAULT_KARAOKE_HIGHLIGHT_STYLE
        tag = "\\k" if highlight == "instant" else "\\kf"
        words = SubtitleUtils.karaoke_words(clip)

        parts = []
        for i, word in enumerate(words):
            centis = int(round((adjust(word.end) - adjust(word.start)) * 100))
            parts.append(f"{{{tag}{max(0, centis)}}}{SubtitleUtils.escape_ass_text(word.text)}")
            if i < len(words) - 1:
                parts.append("\\N" if word.line_break else " ")

        text = SubtitleUtils.karaoke_directives(clip, width, height) + "".join(parts)
        dialogue = Dialogue(adjust(clip.position), adjust(clip.end), text, style="Karaoke")
        return (
            SubtitleUtils.header(width, height, "Karaoke")
            + SubtitleUtils.styles_section([style_line])
            + SubtitleUtils.events_section([dialogue])
        )

    # ------------------------------------------------------------------
    # Imported subtitle files
    # ------------------------------------------------------------------

    _CUE_TIME = re.compile(
        r'((?:\d{1,2}:)?\d{2}:\d{2}[,.]\d{3})\s*-->\s*((?:\d{1,2}:)?\d{2}:\d{2}[,.]\d{3})'
    )
    _HTML_TAG = re.compile(r'<[^>]+>')

    @staticmethod
    def _parse_cues(content: str) -> List[Dialogue]:
        dialogues = []
        blocks = re.split(r'\n\s*\n', content.replace('\r\n', '\n').strip())
        for block in blocks:
            lines = block.split('\n')
            for index, line in enumerate(lines):
                match = SubtitleUtils._CUE_TIME.search(line)
                if match:
                    break
            else:
                continue

            start = SubtitleUtils._parse_srt_time(match.group(1))
            end = SubtitleUtils._parse_srt_time(match.group(2))
            text_lines = [SubtitleUtils._HTML_TAG.sub('', t) for t in lines[index + 1:]]
            text = "\\N".join(SubtitleUtils.escape_ass_text(t) for t in text_lines)
            if text.replace("\\N", "").strip():
                dialogues.append(Dialogue(start, end, text))
        return dialogues

    @staticmethod
    def parse_srt(content: str) -> List[Dialogue]:
        """Parse SRT cues into dialogue records (HTML tags stripped, lines joined with \\N)"""
        return SubtitleUtils._parse_cues(content)

    @staticmethod
    def parse_vtt(content: str) -> List[Dialogue]:
        """Parse WebVTT cues; the WEBVTT header block is skipped"""
        content = content.replace('\r\n', '\n').lstrip('\ufeff')
        if content.startswith("WEBVTT"):
            content = content.split('\n\n', 1)[1] if '\n\n' in content else ""
        return SubtitleUtils._parse_cues(content)

    @staticmethod
    def build_subtitle_ass(clip: SubtitleClip, width: int, height: int,
                           adjust: Optional[Adjust] = None) -> str:
        """
        Load a subtitle clip as an ASS document.

        .ass/.ssa files are returned verbatim. SRT/VTT cues are shifted by the
        clip position, moved onto the rendered timeline and styled from the clip.

        Raises:
            ValueError: For an unsupported extension
        """
        adjust = adjust or (lambda t: t)
        ext = Path(clip.url).suffix.lower()
        with open(clip.url, 'r', encoding='utf-8') as f:
            content = f.read()

        if ext in (".ass", ".ssa"):
            return content
        if ext == ".srt":
            dialogues = SubtitleUtils.parse_srt(content)
        elif ext == ".vtt":
            dialogues = SubtitleUtils.parse_vtt(content)
        else:
            raise ValueError(f"Unsupported subtitle format: {ext}")

        shifted = []
        for d in dialogues:
            start = adjust(d.start + clip.position)
            end = adjust(d.end + clip.position)
            if clip.end > clip.position and start >= adjust(clip.end):
                continue
            if end > start:
                shifted.append(Dialogue(start, end, d.text, d.style))

        style: TextStyle = clip.style
        style_line = SubtitleUtils.style_line(
            name="Default",
            font_family=style.font_family or settings.DEFAULT_FONT_FAMILY,
            font_size=style.font_size,
            primary_color=style.font_color,
            outline_color=style.border_color or "#000000",
            outline=style.border_width if style.border_width is not None else 2,
            alignment=SubtitleUtils.IMPORT_ALIGNMENT,
            margin_v=SubtitleUtils.IMPORT_MARGIN_V,
            opacity=style.opacity if style.opacity is not None else 1.0,
        )
        logger.info(f"Imported {len(shifted)} subtitle cues from {clip.url}")
        return (
            SubtitleUtils.header(width, height, "Imported Subtitles")
            + SubtitleUtils.styles_section([style_line])
            + SubtitleUtils.events_section(shifted)
        )

    @staticmethod
    def write_ass(content: str, temp_dir: str, prefix: str = "subtitles") -> str:
        """Write an ASS document into temp_dir and return its path"""
        Path(temp_dir).mkdir(parents=True, exist_ok=True)
        path = str(Path(temp_dir) / f"{prefix}-{uuid.uuid4().hex[:12]}.ass")
        with open(path, 'w', encoding='utf-8') as f:
            f.write(content)
        return path

    @staticmethod
    def ass_filter(path: str) -> FilterStep:
        """ass='<escaped path>' burning one document onto the video"""
        return step("ass", f"'{escape_filter_path(path)}'")


def _fmt(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"
