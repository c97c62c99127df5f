"""Command Builder - Engine inputs and the final argument lists"""

import shlex
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from config import settings
from utils.logger import logger

from .filter_graph import format_number, sanitize_filter_graph

OUTPUT_RESOLUTIONS: Dict[str, Tuple[int, int]] = {
    "480p": (854, 480),
    "720p": (1280, 720),
    "1080p": (1920, 1080),
    "1440p": (2560, 1440),
    "4k": (3840, 2160),
}


@dataclass
class InputSpec:
    """One `-i` input and the flags that precede it"""
    path: str
    image_duration: Optional[float] = None
    stream_loop: bool = False

    def to_args(self) -> List[str]:
        args: List[str] = []
        if self.image_duration is not None:
            args += ["-loop", "1", "-t", format_number(self.image_duration)]
        if self.stream_loop:
            args += ["-stream_loop", "-1"]
        args += ["-i", self.path]
        return args


class InputTable:
    """Assigns engine input indices to clips in insertion order"""

    def __init__(self):
        self.inputs: List[InputSpec] = []
        self._by_clip: Dict[int, int] = {}

    def add(self, spec: InputSpec, owner: object = None) -> int:
        index = len(self.inputs)
        self.inputs.append(spec)
        if owner is not None:
            self._by_clip[id(owner)] = index
        return index

    def index_of(self, clip: object) -> int:
        try:
            return self._by_clip[id(clip)]
        except KeyError:
            raise KeyError(f"No engine input registered for clip {clip!r}") from None

    def has(self, clip: object) -> bool:
        return id(clip) in self._by_clip

    def to_args(self) -> List[str]:
        args: List[str] = []
        for spec in self.inputs:
            args += spec.to_args()
        return args

    def __len__(self) -> int:
        return len(self.inputs)


@dataclass
class EncodingOptions:
    """Codec and container flags for the main export"""
    video_codec: str = settings.DEFAULT_VIDEO_CODEC
    crf: Optional[int] = settings.DEFAULT_CRF
    preset: str = settings.DEFAULT_PRESET
    video_bitrate: Optional[str] = None
    audio_codec: str = settings.DEFAULT_AUDIO_CODEC
    audio_bitrate: str = settings.DEFAULT_AUDIO_BITRATE
    audio_sample_rate: int = settings.DEFAULT_AUDIO_SAMPLE_RATE
    metadata: Dict[str, str] = field(default_factory=dict)
    faststart: bool = True
    shortest: bool = True


def resolve_output_size(
    resolution: Optional[str] = None,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> Tuple[Optional[int], Optional[int]]:
    """
    Resolve the export scaling target.

    Raises:
        ValueError: If the resolution preset is unknown
    """
    if resolution:
        if resolution not in OUTPUT_RESOLUTIONS:
            raise ValueError(
                f"Unknown output resolution '{resolution}'. Available: {', '.join(OUTPUT_RESOLUTIONS)}"
            )
        return OUTPUT_RESOLUTIONS[resolution]
    return width, height


def build_main_command(
    inputs: InputTable,
    filter_complex: str,
    output_path: str,
    video_label: Optional[str],
    audio_label: Optional[str],
    encoding: Optional[EncodingOptions] = None,
) -> List[str]:
    """
    Assemble the full engine argument list for the main pass.

    Returns:
        Argument list starting with the engine path
    """
    enc = encoding or EncodingOptions()
    has_video = bool(video_label)
    has_audio = bool(audio_label)

    cmd = [settings.FFMPEG_PATH, "-y"]
    cmd += inputs.to_args()
    graph = sanitize_filter_graph(filter_complex)
    if graph:
        cmd += ["-filter_complex", graph]
    if has_video:
        cmd += ["-map", f"[{video_label}]"]
    if has_audio:
        cmd += ["-map", f"[{audio_label}]"]

    if has_video:
        cmd += ["-c:v", enc.video_codec, "-preset", enc.preset]
        if enc.video_bitrate:
            cmd += ["-b:v", enc.video_bitrate]
        elif enc.crf is not None:
            cmd += ["-crf", str(enc.crf)]
    if has_audio:
        cmd += ["-c:a", enc.audio_codec, "-b:a", enc.audio_bitrate, "-ar", str(enc.audio_sample_rate)]
    if has_video and has_audio and enc.shortest:
        cmd.append("-shortest")
    if enc.faststart:
        cmd += ["-movflags", "+faststart"]
    for key, value in enc.metadata.items():
        cmd += ["-metadata", f"{key}={value}"]
    cmd.append(output_path)
    return cmd


def build_text_batch_command(
    input_path: str,
    batch_graph: str,
    output_path: str,
    video_codec: str = settings.INTERMEDIATE_VIDEO_CODEC,
    preset: str = settings.INTERMEDIATE_PRESET,
    crf: int = settings.INTERMEDIATE_CRF,
) -> List[str]:
    """
    Build one text-overlay pass that re-reads the previous pass output.

    The batch graph must read [invid] and end at [outVideoAndText].
    """
    graph = sanitize_filter_graph(f"[0:v]null[invid];{batch_graph}")
    return [
        settings.FFMPEG_PATH, "-y",
        "-i", input_path,
        "-filter_complex", graph,
        "-map", "[outVideoAndText]",
        "-map", "0:a?",
        "-c:v", video_codec,
        "-preset", preset,
        "-crf", str(crf),
        "-c:a", "copy",
        "-movflags", "+faststart",
        output_path,
    ]


def build_thumbnail_command(
    input_path: str,
    output_path: str,
    time: float = 0.0,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> List[str]:
    """Grab a single frame from the finished output"""
    cmd = [settings.FFMPEG_PATH, "-y", "-ss", format_number(time), "-i", input_path, "-frames:v", "1"]
    if width or height:
        cmd += ["-vf", f"scale={width or -2}:{height or -2}"]
    cmd.append(output_path)
    return cmd


def command_to_string(cmd: List[str]) -> str:
    """Shell-quoted rendering for logs, previews and saved commands"""
    return shlex.join(cmd)


def save_command(cmd: List[str], path: str):
    with open(path, "w", encoding="utf-8") as f:
        f.write(command_to_string(cmd) + "\n")
    logger.info(f"FFmpeg command saved to {path}")
