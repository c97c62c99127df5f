"""FFmpeg utilities - Escaping, progress parsing, subprocess execution and probing"""

import asyncio
import json
import os
import re
import shlex
import time
import uuid
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from config import settings
from core.errors import ExportCancelledError, FFmpegError, MediaNotFoundError
from models.clips import MediaInfo
from utils.logger import logger

ProgressCallback = Callable[[dict], Union[None, Awaitable[None]]]

# Lines of stderr kept for error reports
STDERR_TAIL_LINES = 20
_STDERR_BUFFER_LINES = 200


def escape_filter_value(value: str) -> str:
    """
    Escape a string for use inside a single-quoted filter option value.

    The engine unescapes option values twice (graph level, then option
    level), so:
    - backslash becomes \\\\
    - an apostrophe closes the quote, emits an escaped backslash plus an
      escaped quote, and reopens the quote: '\\\\\\''
    - colon becomes \\: so the option parser keeps it

    Args:
        value: Raw value (no surrounding quotes)

    Returns:
        Escaped value, to be wrapped as '<escaped>'
    """
    escaped = value.replace("\\", "\\\\")
    escaped = escaped.replace("'", "'\\\\\\''")
    escaped = escaped.replace(":", "\\:")
    return escaped


def escape_drawtext_text(text: Any) -> str:
    """
    Escape overlay text for drawtext's text='...' option.

    Newlines are flattened to spaces (multi-line text is karaoke-only).
    Non-string input yields an empty string.
    """
    if not isinstance(text, str):
        return ""
    flattened = text.replace("\r\n", " ").replace("\n", " ").replace("\r", " ")
    return escape_filter_value(flattened)


def escape_filter_path(path: str) -> str:
    """
    Escape a file path for a quoted filter option (ass=, fontfile=, movie=).

    Backslashes are converted to forward slashes first, which the engine
    accepts on every platform, so Windows drive colons are the only
    separator left to escape.
    """
    if not path:
        return path
    return escape_filter_value(str(path).replace("\\", "/"))


def time_to_seconds(value: str) -> Optional[float]:
    """Convert an engine HH:MM:SS.ms timestamp to seconds"""
    match = re.match(r"^\s*(-?\d+):(\d{2}):(\d{2}(?:\.\d+)?)\s*$", value or "")
    if not match:
        return None
    hours, minutes, seconds = int(match.group(1)), int(match.group(2)), float(match.group(3))
    total = abs(hours) * 3600 + minutes * 60 + seconds
    return -total if match.group(1).startswith("-") else total


class FFmpegProgressTracker:
    """
    Tracks FFmpeg progress by parsing stderr output.

    FFmpeg outputs progress information like:
    frame=  180 fps= 30 q=28.0 size=    1024kB time=00:00:06.00 bitrate= 139.8kbits/s speed=1.2x

    The 'time' field drives the percentage; the other fields are passed through.
    """

    FRAME_RE = re.compile(r"frame=\s*(\d+)")
    FPS_RE = re.compile(r"fps=\s*([\d.]+)")
    TIME_RE = re.compile(r"time=\s*(-?\d+:\d{2}:\d{2}(?:\.\d+)?)")
    SPEED_RE = re.compile(r"speed=\s*([\d.]+)x")
    BITRATE_RE = re.compile(r"bitrate=\s*(N/A|[\d.]+\s*\w+/s)")
    SIZE_RE = re.compile(r"size=\s*(N/A|\d+\s*\w+)")

    def __init__(self, total_duration: float):
        self.total_duration = total_duration
        self.current_time = 0.0
        self.start_time = time.time()
        self.speed = 1.0

    def parse_progress(self, line: str) -> Optional[dict]:
        """Parse one stderr line; returns None unless it carries time="""
        time_match = self.TIME_RE.search(line)
        if not time_match:
            return None
        current = time_to_seconds(time_match.group(1))
        if current is None:
            return None
        self.current_time = max(0.0, current)

        speed_match = self.SPEED_RE.search(line)
        if speed_match:
            self.speed = float(speed_match.group(1))

        frame_match = self.FRAME_RE.search(line)
        fps_match = self.FPS_RE.search(line)
        bitrate_match = self.BITRATE_RE.search(line)
        size_match = self.SIZE_RE.search(line)

        if self.total_duration > 0:
            percent = min(100.0, round(self.current_time / self.total_duration * 100, 2))
        else:
            percent = 0.0

        remaining = max(0.0, self.total_duration - self.current_time)
        eta_seconds = remaining / self.speed if self.speed > 0 else 0.0

        return {
            "percent": percent,
            "frame": int(frame_match.group(1)) if frame_match else None,
            "fps": float(fps_match.group(1)) if fps_match else None,
            "time": self.current_time,
            "speed": self.speed if speed_match else None,
            "bitrate": bitrate_match.group(1).replace(" ", "") if bitrate_match else None,
            "size": size_match.group(1).replace(" ", "") if size_match else None,
            "eta_seconds": eta_seconds,
            "elapsed_seconds": time.time() - self.start_time,
        }


async def _notify(callback: Optional[ProgressCallback], info: dict):
    if callback is None:
        return
    try:
        if asyncio.iscoroutinefunction(callback):
            await callback(info)
        else:
            callback(info)
    except Exception as e:
        logger.warning(f"Progress callback error: {e}")


async def _terminate(process):
    """Stop a running process, escalating to kill if it ignores SIGTERM"""
    if process.returncode is not None:
        return
    try:
        process.terminate()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(process.wait(), timeout=5)
    except asyncio.TimeoutError:
        logger.warning(f"FFmpeg (pid={process.pid}) ignored SIGTERM, killing")
        process.kill()
        await process.wait()


async def run_ffmpeg(
    cmd: List[str],
    total_duration: float = 0.0,
    progress_callback: Optional[ProgressCallback] = None,
    cancel_event: Optional[asyncio.Event] = None,
    stage_name: str = "Processing",
    timeout: Optional[float] = None,
) -> None:
    """
    Run an FFmpeg command, streaming progress from stderr.

    Args:
        cmd: Full argument list (engine path first)
        total_duration: Expected output duration in seconds (for percentages)
        progress_callback: Sync or async callable receiving progress dicts
        cancel_event: Setting this event terminates the process
        stage_name: Label used in logs and progress records
        timeout: Optional wall-clock limit in seconds

    Raises:
        ExportCancelledError: If cancel_event is set before or during the run
        FFmpegError: If the process cannot start, times out or exits non-zero
    """
    if cancel_event is not None and cancel_event.is_set():
        raise ExportCancelledError(f"{stage_name} cancelled before FFmpeg started")

    logger.debug(f"FFmpeg [{stage_name}]: {shlex.join(cmd)}")

    try:
        # start_new_session keeps terminal signals away from the child
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    except OSError as e:
        logger.error(f"Failed to start FFmpeg for {stage_name}: {e}")
        raise FFmpegError(f"Failed to start FFmpeg: {e}", stderr=str(e), command=cmd) from e

    tracker = FFmpegProgressTracker(total_duration)
    stderr_lines: List[str] = []

    async def handle_line(line: str):
        line = line.strip()
        if not line:
            return
        stderr_lines.append(line)
        if len(stderr_lines) > _STDERR_BUFFER_LINES:
            del stderr_lines[:-_STDERR_BUFFER_LINES]
        info = tracker.parse_progress(line)
        if info is not None:
            info["stage"] = stage_name
            await _notify(progress_callback, info)

    async def read_stderr():
        # Progress lines end in \r, diagnostics in \n
        pending = ""
        while True:
            chunk = await process.stderr.read(4096)
            if not chunk:
                break
            pending += chunk.decode("utf-8", errors="ignore")
            parts = re.split(r"[\r\n]", pending)
            pending = parts.pop()
            for part in parts:
                await handle_line(part)
        if pending:
            await handle_line(pending)

    reader = asyncio.ensure_future(read_stderr())
    cancel_waiter = asyncio.ensure_future(cancel_event.wait()) if cancel_event is not None else None
    waiters = {reader} if cancel_waiter is None else {reader, cancel_waiter}

    try:
        done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)

        if cancel_waiter is not None and cancel_waiter in done:
            logger.info(f"Cancelling FFmpeg ({stage_name})")
            await _terminate(process)
            raise ExportCancelledError(f"{stage_name} was cancelled")

        if not done:
            logger.error(f"FFmpeg timed out after {timeout} seconds ({stage_name})")
            await _terminate(process)
            raise FFmpegError(
                f"FFmpeg timed out after {timeout} seconds",
                stderr="\n".join(stderr_lines[-STDERR_TAIL_LINES:]),
                command=cmd,
            )

        await reader
        returncode = await process.wait()
    finally:
        for task in (reader, cancel_waiter):
            if task is not None and not task.done():
                task.cancel()

    if returncode != 0:
        tail = "\n".join(stderr_lines[-STDERR_TAIL_LINES:])
        logger.error(f"FFmpeg {stage_name} failed with exit code {returncode}:\n{tail}")
        raise FFmpegError(
            f"FFmpeg exited with code {returncode}",
            stderr=tail,
            command=cmd,
            exit_code=returncode,
        )

    if total_duration > 0:
        await _notify(progress_callback, {
            "percent": 100.0,
            "time": total_duration,
            "stage": stage_name,
            "completed": True,
        })


def parse_probe_output(data: Dict[str, Any]) -> MediaInfo:
    """Build MediaInfo from ffprobe -show_streams -show_format JSON"""
    streams = data.get("streams") or []
    video = next((s for s in streams if s.get("codec_type") == "video"), None)
    has_audio = any(s.get("codec_type") == "audio" for s in streams)

    duration = None
    for raw in ((data.get("format") or {}).get("duration"), (video or {}).get("duration")):
        try:
            duration = float(raw)
            break
        except (TypeError, ValueError):
            continue

    rotation = 0
    if video:
        for side_data in video.get("side_data_list") or []:
            if "rotation" in side_data:
                rotation = int(float(side_data["rotation"]))
                break
        else:
            rotate_tag = (video.get("tags") or {}).get("rotate")
            if rotate_tag is not None:
                try:
                    rotation = int(float(rotate_tag))
                except ValueError:
                    rotation = 0

    return MediaInfo(
        duration=duration,
        width=video.get("width") if video else None,
        height=video.get("height") if video else None,
        has_audio=has_audio,
        has_video=video is not None,
        rotation=rotation,
    )


async def probe_media(path: str, timeout: Optional[float] = None) -> MediaInfo:
    """
    Read duration, dimensions, audio presence and rotation of a media file.

    Raises:
        MediaNotFoundError: If the file does not exist

    Returns:
        MediaInfo; empty metadata (with a warning logged) when probing fails
    """
    if not os.path.exists(path):
        raise MediaNotFoundError(f"Media file not found: {path}", path=path)

    cmd = [settings.FFPROBE_PATH, "-v", "error", "-show_streams", "-show_format", "-of", "json", path]
    limit = timeout or settings.PROBE_TIMEOUT
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    except OSError as e:
        logger.warning(f"Could not run ffprobe for {path}: {e}")
        return MediaInfo()

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=limit)
    except asyncio.TimeoutError:
        logger.warning(f"Timeout probing media: {path}")
        process.kill()
        await process.wait()
        return MediaInfo()

    if process.returncode != 0:
        message = stderr.decode("utf-8", errors="ignore").strip() if stderr else ""
        logger.warning(f"ffprobe failed for {path}: {message}")
        return MediaInfo()

    try:
        data = json.loads(stdout.decode("utf-8", errors="ignore") or "{}")
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse ffprobe JSON for {path}: {e}")
        return MediaInfo()

    info = parse_probe_output(data)
    logger.debug(
        f"Probed {path}: duration={info.duration}, {info.width}x{info.height}, "
        f"audio={info.has_audio}, rotation={info.rotation}"
    )
    return info


async def unrotate_video(
    input_path: str,
    temp_dir: Optional[str] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> str:
    """
    Re-encode a video upright so rotation metadata no longer applies.

    Returns:
        Path of the new temporary file (caller owns cleanup)

    Raises:
        FFmpegError: If the re-encode fails or times out
    """
    out_dir = Path(temp_dir or settings.TEMP_DIR)
    out_dir.mkdir(parents=True, exist_ok=True)
    output = str(out_dir / f"unrotated-{uuid.uuid4()}.mp4")
    cmd = [settings.FFMPEG_PATH, "-y", "-i", input_path, output]
    try:
        await run_ffmpeg(
            cmd,
            cancel_event=cancel_event,
            stage_name="Unrotate",
            timeout=settings.UNROTATE_TIMEOUT,
        )
    except (FFmpegError, ExportCancelledError):
        # Partial output is useless
        if os.path.exists(output):
            try:
                os.remove(output)
            except OSError as e:
                logger.warning(f"Could not remove partial unrotated file {output}: {e}")
        raise
    return output


def format_bytes(size: float) -> str:
    """Human-readable file size"""
    units = ["B", "KB", "MB", "GB", "TB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{value:.2f} {units[index]}" if index > 0 and value < 10 else f"{value:.1f} {units[index]}"
