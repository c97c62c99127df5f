#!/usr/bin/env python3
"""
Clip Resolution Tests

Tests for the shorthand expansion that runs before validation:
- duration -> end conversion
- Auto-sequencing of visual and audio tracks
- Idempotence on already-resolved input
"""

import pytest
import sys
import os
import copy

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.resolver import resolve_clips


# ============================================================================
# TEST CONFIGURATION
# ============================================================================

EPSILON = 0.001


def assert_close(actual, expected, msg=""):
    """Assert two values are close within tolerance"""
    assert abs(actual - expected) < EPSILON, f"{msg}: Expected {expected}, got {actual}"


# ============================================================================
# DURATION SHORTHAND
# ============================================================================

class TestDurationShorthand:
    """duration becomes end = position + duration"""

    def test_duration_becomes_end(self):
        resolved, errors = resolve_clips([
            {"type": "video", "url": "a.mp4", "position": 2, "duration": 3},
        ])
        assert errors == []
        assert_close(resolved[0]["end"], 5)
        assert "duration" not in resolved[0]

    @pytest.mark.parametrize("clip_type", ["video", "image", "audio", "text", "effect", "music"])
    def test_every_kind_drops_duration(self, clip_type):
        resolved, _ = resolve_clips([{"type": clip_type, "position": 1.5, "duration": 2.25}])
        assert_close(resolved[0]["end"], 3.75, clip_type)
        assert "duration" not in resolved[0]

    def test_duration_and_end_is_reported(self):
        resolved, errors = resolve_clips([
            {"type": "video", "url": "a.mp4", "position": 0, "duration": 3, "end": 4},
        ])
        assert len(errors) == 1
        assert errors[0]["code"] == "INVALID_VALUE"
        assert errors[0]["path"] == "clips[0]"
        # Left untouched for the validator
        assert resolved[0]["duration"] == 3
        assert resolved[0]["end"] == 4

    def test_input_is_not_mutated(self):
        clips = [{"type": "video", "url": "a.mp4", "duration": 3}]
        original = copy.deepcopy(clips)
        resolve_clips(clips)
        assert clips == original


# ============================================================================
# AUTO-SEQUENCING
# ============================================================================

class TestAutoSequence:
    """Clips without a position follow the previous clip on their track"""

    def test_visual_positions_are_cumulative(self):
        durations = [3, 2.5, 4, 1]
        clips = [
            {"type": "video" if i % 2 == 0 else "image", "url": f"m{i}", "duration": d}
            for i, d in enumerate(durations)
        ]
        resolved, errors = resolve_clips(clips)
        assert errors == []
        for i, clip in enumerate(resolved):
            assert_close(clip["position"], sum(durations[:i]), f"clip {i} position")
            assert_close(clip["end"], sum(durations[:i + 1]), f"clip {i} end")

    def test_audio_track_is_independent(self):
        resolved, _ = resolve_clips([
            {"type": "video", "url": "a.mp4", "duration": 5},
            {"type": "audio", "url": "v.mp3", "duration": 2},
            {"type": "video", "url": "b.mp4", "duration": 5},
            {"type": "audio", "url": "w.mp3", "duration": 2},
        ])
        assert [c["position"] for c in resolved] == [0, 0, 5, 2]

    def test_explicit_position_resets_the_cursor(self):
        resolved, _ = resolve_clips([
            {"type": "video", "url": "a.mp4", "duration": 2},
            {"type": "video", "url": "b.mp4", "position": 10, "end": 12},
            {"type": "color", "color": "black", "duration": 1},
        ])
        assert resolved[2]["position"] == 12
        assert resolved[2]["end"] == 13

    def test_text_and_music_are_not_sequenced(self):
        resolved, _ = resolve_clips([
            {"type": "video", "url": "a.mp4", "duration": 2},
            {"type": "text", "text": "hi", "duration": 1},
            {"type": "music", "url": "m.mp3"},
        ])
        assert "position" not in resolved[1]
        assert "position" not in resolved[2]

    def test_first_clip_starts_at_zero(self):
        resolved, _ = resolve_clips([{"type": "image", "url": "x.jpg", "duration": 4}])
        assert resolved[0]["position"] == 0


# ============================================================================
# IDEMPOTENCE
# ============================================================================

class TestIdempotence:

    def test_resolved_list_is_unchanged(self):
        clips = [
            {"type": "video", "url": "a.mp4", "position": 0, "end": 3},
            {"type": "video", "url": "b.mp4", "position": 3, "end": 6, "transition": {"type": "fade", "duration": 1}},
            {"type": "audio", "url": "v.mp3", "position": 1, "end": 4},
            {"type": "text", "text": "hi", "position": 0, "end": 2},
        ]
        resolved, errors = resolve_clips(clips)
        assert errors == []
        assert resolved == clips

    def test_resolving_twice_is_stable(self):
        clips = [
            {"type": "video", "url": "a.mp4", "duration": 3},
            {"type": "image", "url": "b.jpg", "duration": 2},
        ]
        once, _ = resolve_clips(clips)
        twice, _ = resolve_clips(once)
        assert once == twice

    def test_non_list_passes_through(self):
        resolved, errors = resolve_clips("not a list")
        assert resolved == "not a list"
        assert errors == []
