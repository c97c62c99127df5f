"""
Text Pass Orchestrator

When a compile has more drawtext windows than one engine invocation should
carry, the main pass renders everything except text and the windows are
burned in afterwards, one batch per extra pass. Each pass re-reads the
previous pass output; the last output replaces the requested file.
"""

import math
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from backend.command_builder import build_text_batch_command, command_to_string
from backend.ffmpeg_utils import ProgressCallback, run_ffmpeg
from backend.filter_graph import FilterGraph
from backend.text_renderer import TextWindow, build_text_filters
from config import settings
from utils.logger import logger


@dataclass
class TextPassResult:
    final_path: str
    passes: int = 0
    temp_outputs: List[str] = field(default_factory=list)


def plan_batches(windows: List[TextWindow], batch_size: int) -> List[List[TextWindow]]:
    """Split windows into ceil(N / batch_size) consecutive batches"""
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    return [windows[i:i + batch_size] for i in range(0, len(windows), batch_size)]


def needs_text_passes(window_count: int, batch_size: Optional[int] = None) -> bool:
    return window_count > (batch_size or settings.TEXT_MAX_NODES_PER_PASS)


def pass_count(window_count: int, batch_size: int) -> int:
    return math.ceil(window_count / batch_size) if window_count else 0


def build_batch_graph(batch: List[TextWindow], canvas_width: int, canvas_height: int,
                      default_font_file: Optional[str] = None) -> str:
    """drawtext chain for one batch, reading [invid] and ending at [outVideoAndText]"""
    graph = FilterGraph()
    build_text_filters(graph, batch, "invid", canvas_width, canvas_height, default_font_file)
    return graph.serialize()


def _remove_quietly(path: str):
    try:
        if os.path.exists(path):
            os.remove(path)
    except OSError as e:
        logger.warning(f"Failed to remove intermediate {path}: {e}")


async def run_text_passes(
    base_output_path: str,
    windows: List[TextWindow],
    canvas_width: int,
    canvas_height: int,
    batch_size: Optional[int] = None,
    temp_dir: Optional[str] = None,
    default_font_file: Optional[str] = None,
    total_duration: float = 0.0,
    progress_callback: Optional[ProgressCallback] = None,
    cancel_event=None,
) -> TextPassResult:
    """
    Burn text windows onto an already rendered file in sequential passes.

    Args:
        base_output_path: Output of the main pass; also the final destination
        windows: Windows on the rendered timeline
        canvas_width: Width of the rendered video
        canvas_height: Height of the rendered video
        batch_size: Windows per pass (defaults to TEXT_MAX_NODES_PER_PASS)
        temp_dir: Directory for intermediates (defaults to the output directory)
        default_font_file: Font used when a text clip names none
        total_duration: Rendered duration, for progress reporting
        progress_callback: Receives progress dicts for every pass
        cancel_event: asyncio.Event that aborts the active pass

    Returns:
        TextPassResult with the final path and pass count

    Raises:
        FFmpegError: On the first failing pass (later passes do not run)
        ExportCancelledError: If cancelled
    """
    batch_size = batch_size or settings.TEXT_MAX_NODES_PER_PASS
    batches = plan_batches(windows, batch_size)
    if not batches:
        return TextPassResult(final_path=base_output_path)

    intermediate_dir = Path(temp_dir) if temp_dir else Path(base_output_path).parent
    intermediate_dir.mkdir(parents=True, exist_ok=True)
    basename = Path(base_output_path).name

    result = TextPassResult(final_path=base_output_path)
    current_input = base_output_path

    logger.info(f"Rendering {len(windows)} text windows in {len(batches)} passes of up to {batch_size}")

    try:
        for index, batch in enumerate(batches):
            output = str(intermediate_dir / f"textpass_{index}_{basename}")
            result.temp_outputs.append(output)

            cmd = build_text_batch_command(
                current_input,
                build_batch_graph(batch, canvas_width, canvas_height, default_font_file),
                output,
            )
            logger.debug(f"Text pass {index + 1}/{len(batches)}: {command_to_string(cmd)}")

            await run_ffmpeg(
                cmd,
                total_duration=total_duration,
                progress_callback=progress_callback,
                cancel_event=cancel_event,
                stage_name=f"Text pass {index + 1}/{len(batches)}",
            )
            current_input = output
            result.passes += 1
    except Exception:
        for path in result.temp_outputs:
            _remove_quietly(path)
        raise

    shutil.move(current_input, base_output_path)
    for path in result.temp_outputs[:-1]:
        _remove_quietly(path)

    logger.info(f"Text passes complete: {result.passes} passes -> {base_output_path}")
    return result
