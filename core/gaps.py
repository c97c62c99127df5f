"""Visual gap detection and gap filling for the video/image/color track"""

from typing import Any, Dict, List, Optional

from config import settings
from models.clips import VISUAL_TYPES


def _visual_spans(clips: List[Dict[str, Any]]) -> List[Dict[str, float]]:
    spans = [
        {"position": c.get("position") or 0, "end": c.get("end") or 0}
        for c in clips
        if isinstance(c, dict) and c.get("type") in VISUAL_TYPES
    ]
    spans.sort(key=lambda s: s["position"])
    return spans


def detect_visual_gaps(
    clips: List[Dict[str, Any]],
    epsilon: Optional[float] = None,
    timeline_end: Optional[float] = None,
) -> List[Dict[str, float]]:
    """
    Find uncovered intervals on the visual track.

    Overlapping clips (cross-fades) are never reported.

    Args:
        clips: Resolved clip mappings
        epsilon: Tolerance in seconds (defaults to settings.GAP_EPSILON)
        timeline_end: Optional desired end; a trailing gap is reported past the last clip

    Returns:
        List of {start, end, duration} records in timeline order
    """
    eps = settings.GAP_EPSILON if epsilon is None else epsilon
    visual = _visual_spans(clips)
    gaps = []

    if not visual:
        if timeline_end is not None and timeline_end > eps:
            gaps.append({"start": 0, "end": timeline_end, "duration": timeline_end})
        return gaps

    if visual[0]["position"] > eps:
        gaps.append({
            "start": 0,
            "end": visual[0]["position"],
            "duration": visual[0]["position"],
        })

    # Track the furthest end seen so a long clip covering later ones hides no gap
    covered_until = visual[0]["end"]
    for span in visual[1:]:
        if span["position"] - covered_until > eps:
            gaps.append({
                "start": covered_until,
                "end": span["position"],
                "duration": span["position"] - covered_until,
            })
        covered_until = max(covered_until, span["end"])

    if timeline_end is not None and timeline_end - covered_until > eps:
        gaps.append({
            "start": covered_until,
            "end": timeline_end,
            "duration": timeline_end - covered_until,
        })

    return gaps


def visual_timeline_end(clips: List[Dict[str, Any]]) -> float:
    """End of the last visual clip, or 0 when there is none"""
    visual = _visual_spans(clips)
    if not visual:
        return 0.0
    return max(s["end"] for s in visual)


def fill_visual_gaps(clips: List[Dict[str, Any]], color: str) -> List[Dict[str, Any]]:
    """
    Insert flat color clips over every visual gap, including the leading one.

    Args:
        clips: Resolved clip mappings
        color: Engine color used for the filler

    Returns:
        New clip list with filler clips appended
    """
    gaps = detect_visual_gaps(clips)
    if not gaps:
        return list(clips)
    fillers = [
        {
            "type": "color",
            "color": color,
            "position": gap["start"],
            "end": gap["end"],
            "_gapFill": True,
        }
        for gap in gaps
    ]
    return list(clips) + fillers
