"""
Transition Offset Calculator

Cross-fades overlap adjacent visual clips, so the rendered timeline is
shorter than the authored one. A clip whose source runs out before its
span ends shortens it too. Every authoring-time timestamp that must
line up with rendered output goes through adjust().
"""

from typing import List, Optional

from backend.video_builder import clip_render_duration
from config import settings
from models.clips import VISUAL_TYPES
from utils.logger import logger


class TransitionOffsets:
    """Cumulative transition overlap over the ordered visual track"""

    def __init__(self, visual_clips: List):
        """
        Args:
            visual_clips: Video/image/color clips (any order; sorted by position here)
        """
        ordered = sorted(
            (c for c in visual_clips if c.kind in VISUAL_TYPES),
            key=lambda c: c.position,
        )
        # The first clip has nothing to fade from, so its transition never renders
        self._points = [
            (c.position, c.transition.duration if c.transition and i > 0 else 0.0)
            for i, c in enumerate(ordered)
        ]
        # A clip clamped to a short source ends early and pulls everything after it forward
        self._shortfalls = []
        for c in ordered:
            missing = c.duration - clip_render_duration(c)
            if missing > settings.GAP_EPSILON:
                logger.warning(
                    f"{c.kind} at {c.position:.3f}s renders {missing:.3f}s short of its span; "
                    f"later timestamps shift back by that much"
                )
                self._shortfalls.append((c.end, missing))

    def offset_at(self, timestamp: float) -> float:
        """Transition overlap and source shortfall accumulated at or before timestamp"""
        overlap = sum(duration for position, duration in self._points if position <= timestamp)
        return overlap + sum(missing for end, missing in self._shortfalls if end <= timestamp)

    def adjust(self, timestamp: Optional[float]) -> Optional[float]:
        """Map an authoring-time timestamp onto the rendered timeline"""
        if timestamp is None:
            return None
        return timestamp - self.offset_at(timestamp)

    @property
    def total(self) -> float:
        return sum(duration for _, duration in self._points)

    @property
    def shortfall(self) -> float:
        return sum(missing for _, missing in self._shortfalls)

    @property
    def has_transitions(self) -> bool:
        return any(duration > 0 for _, duration in self._points)


def compressed_duration(visual_clips: List) -> float:
    """
    Rendered visual duration: sum of clip durations minus every transition
    strictly between adjacent clips (a transition on the first clip is ignored).
    """
    ordered = sorted(visual_clips, key=lambda c: c.position)
    total = sum(c.duration for c in ordered)
    overlap = sum(c.transition.duration for c in ordered[1:] if c.transition)
    return max(0.0, total - overlap)
