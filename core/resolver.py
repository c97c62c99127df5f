"""
Clip Resolver - Turns shorthand clip mappings into canonical {position, end} form

Two shorthands are handled before validation runs:
- `duration` becomes `end = position + duration` and is removed
- a video/image/color/audio clip without `position` is placed right after
  the previous clip on its track (visual or audio), starting at 0

Clips are shallow-copied; the caller's mappings are never mutated.
"""

from typing import Any, Dict, List, Tuple

from models.clips import AUDIO_TYPES, AUTO_SEQUENCE_TYPES, VISUAL_TYPES


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def resolve_clips(clips: List[Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """
    Resolve a raw clip list.

    Args:
        clips: Raw clip mappings as supplied by the caller

    Returns:
        Tuple of (new list of resolved clip mappings, list of structural issues)
    """
    if not isinstance(clips, list):
        return clips, []

    errors: List[Dict[str, Any]] = []
    last_visual_end = 0.0
    last_audio_end = 0.0
    resolved = []

    for index, clip in enumerate(clips):
        if not isinstance(clip, dict):
            resolved.append(clip)
            continue

        c = dict(clip)
        path = f"clips[{index}]"

        if c.get("duration") is not None and c.get("end") is not None:
            errors.append({
                "code": "INVALID_VALUE",
                "path": path,
                "message": "Cannot specify both 'duration' and 'end'. Use one or the other.",
                "received": {"duration": c["duration"], "end": c["end"]},
            })
            # Left as-is; validation reports the remaining problems
            resolved.append(c)
            continue

        clip_type = c.get("type")
        is_visual = clip_type in VISUAL_TYPES
        is_audio = clip_type in AUDIO_TYPES

        if clip_type in AUTO_SEQUENCE_TYPES and c.get("position") is None:
            c["position"] = last_visual_end if is_visual else last_audio_end

        if c.get("duration") is not None and c.get("end") is None:
            if _is_number(c.get("position")) and _is_number(c["duration"]):
                c["end"] = c["position"] + c["duration"]
            del c["duration"]

        if _is_number(c.get("end")):
            if is_visual:
                last_visual_end = c["end"]
            elif is_audio:
                last_audio_end = c["end"]

        resolved.append(c)

    return resolved, errors
