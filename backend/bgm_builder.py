"""
Background Music Builder - Mixed last, after every foreground source

Music is placed on the authored timeline (never transition-adjusted) so a
track starting at 0 always has a 0 ms delay. When foreground audio exists,
a silent anullsrc anchor spanning the whole project is the first mixer
input (weight 0); it pins the mixer's alignment to time zero so music that
starts before the foreground is not cut.
"""

from typing import List, Optional

from models.clips import MusicClip
from utils.logger import logger

from .audio_builder import add_mix, delay_ms
from .command_builder import InputTable
from .filter_graph import FilterGraph, format_number, step

ANCHOR_LABEL = "_bgmpad"
MIN_ANCHOR_DURATION = 0.1


def music_end(clip: MusicClip, project_duration: float) -> float:
    """Explicit end, or the end of the project for open-ended music"""
    return clip.end if clip.end > clip.position else project_duration


def build_music_mix(graph: FilterGraph, clips: List[MusicClip], inputs: InputTable,
                    existing_label: Optional[str], project_duration: float) -> Optional[str]:
    """
    Add background music on top of existing audio.

    Args:
        graph: Graph to append to
        clips: Music clips
        inputs: Engine input table
        existing_label: Foreground mix label, if any
        project_duration: Rendered project length, used for the anchor and open-ended tracks

    Returns:
        Final audio label (existing_label when there is no music)
    """
    labels = []
    for clip in clips:
        end = music_end(clip, project_duration)
        if end <= clip.position:
            logger.warning(f"Skipping music {clip.url}: starts at {clip.position}s, after the project ends")
            continue
        delay = delay_ms(clip.position)
        out = graph.label("bg")
        graph.add(f"{inputs.index_of(clip)}:a", [
            step("volume", format_number(clip.volume)),
            step("atrim", start=format_number(clip.cut_from),
                 end=format_number(clip.cut_from + (end - clip.position))),
            step("asetpts", "PTS-STARTPTS"),
            step("adelay", f"{delay}|{delay}"),
        ], out)
        labels.append(out)

    if not labels:
        return existing_label

    if existing_label:
        anchor_duration = max(project_duration, MIN_ANCHOR_DURATION)
        graph.add(None, [
            step("anullsrc", cl="stereo"),
            step("atrim", end=format_number(anchor_duration)),
        ], ANCHOR_LABEL)
        return add_mix(graph, [existing_label] + labels, "finalaudio", anchor=ANCHOR_LABEL)

    return add_mix(graph, labels, "finalaudio")
