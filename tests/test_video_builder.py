#!/usr/bin/env python3
"""
Video Track Builder Tests

Tests for per-clip normalization, concat/xfade joining, cutFrom clamping
and Ken Burns motion.
"""

import pytest
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backend.command_builder import InputSpec, InputTable
from backend.filter_graph import FilterGraph
from backend.video_builder import (
    build_video_track,
    clip_render_duration,
    easing_expression,
    ken_burns_expressions,
    resolve_ken_burns,
)
from config import settings
from models.clips import KenBurns
from tests.conftest import make_color, make_image, make_video

EPSILON = 0.001


def assert_close(actual, expected, msg=""):
    """Assert two values are close within tolerance"""
    assert abs(actual - expected) < EPSILON, f"{msg}: Expected {expected}, got {actual}"


def build(clips, width=1920, height=1080, fps=30):
    graph = FilterGraph()
    inputs = InputTable()
    for clip in clips:
        if hasattr(clip, "url"):
            inputs.add(InputSpec(clip.url), clip)
    track = build_video_track(graph, clips, inputs, width, height, fps)
    return track, graph.serialize()


# ============================================================================
# JOINING
# ============================================================================

class TestJoining:

    def test_concat_without_transitions(self):
        track, text = build([make_video(0, 3, url="a.mp4"), make_video(3, 5, url="b.mp4")])
        assert track.label == "outv"
        assert_close(track.duration, 5)
        assert "[scaled0][scaled1]concat=n=2:v=1:a=0,fps=30,settb=1/30[outv]" in text

    def test_single_clip(self):
        track, text = build([make_video(0, 3)])
        assert track.label == "outv"
        assert "[scaled0]concat=n=1:v=1:a=0" in text

    def test_xfade_offsets(self):
        clips = [
            make_video(0, 5, url="a.mp4"),
            make_video(5, 10, url="b.mp4", transition=1),
            make_video(10, 15, url="c.mp4", transition=1),
        ]
        track, text = build(clips)
        assert track.label == "vtrans1"
        assert_close(track.duration, 13)
        assert "[scaled0][scaled1]xfade=transition=fade:duration=1:offset=4" in text
        assert "[vtrans0][scaled2]xfade=transition=fade:duration=1:offset=8" in text

    def test_mixed_concat_and_xfade(self):
        clips = [
            make_video(0, 4, url="a.mp4"),
            make_video(4, 8, url="b.mp4"),
            make_video(8, 12, url="c.mp4", transition=2),
        ]
        track, text = build(clips)
        assert "[scaled0][scaled1]concat=n=2:v=1:a=0" in text
        assert "[vcat0][scaled2]xfade=transition=fade:duration=2:offset=6" in text
        assert_close(track.duration, 10)

    def test_empty_track(self):
        track, text = build([])
        assert not track.has_video
        assert track.duration == 0
        assert text == ""


# ============================================================================
# PER-CLIP STREAMS
# ============================================================================

class TestClipStreams:

    def test_video_trim_and_normalize(self):
        _, text = build([make_video(0, 3, cut_from=1.5)])
        assert (
            "[0:v]trim=start=1.5:duration=3,setpts=PTS-STARTPTS,fps=30,"
            "scale=1920:1080:force_original_aspect_ratio=decrease,"
            "pad=1920:1080:(ow-iw)/2:(oh-ih)/2,settb=1/30[scaled0]"
        ) in text

    def test_color_source(self):
        _, text = build([make_color(0, 2, color="navy")])
        assert "color=c=navy:s=1920x1080:d=2:r=30,format=yuv420p,settb=1/30[scaled0]" in text

    def test_cut_from_clamps_duration(self):
        clip = make_video(0, 10, cut_from=4, media_duration=8)
        assert_close(clip_render_duration(clip), 4)
        track, _ = build([clip])
        assert_close(track.duration, 4)

    def test_unknown_media_duration_keeps_request(self):
        assert_close(clip_render_duration(make_video(2, 7)), 5)

    def test_image_without_motion_is_trimmed(self):
        _, text = build([make_image(0, 4)])
        assert "[0:v]trim=start=0:duration=4" in text


# ============================================================================
# KEN BURNS
# ============================================================================

class TestKenBurns:

    def test_zoom_in_preset(self):
        motion = resolve_ken_burns(KenBurns("zoom-in"), 4000, 3000, 1920, 1080)
        assert_close(motion.start_zoom, 1.0)
        assert_close(motion.end_zoom, 1.0 + settings.KEN_BURNS_ZOOM_AMOUNT)
        assert motion.easing == settings.KEN_BURNS_DEFAULT_EASING

    def test_pan_left_moves_right_to_left(self):
        motion = resolve_ken_burns(KenBurns("pan-left"), None, None, 1920, 1080)
        assert (motion.start_x, motion.end_x) == (1.0, 0.0)
        assert_close(motion.start_zoom, settings.KEN_BURNS_PAN_ZOOM)

    def test_smart_picks_axis_from_aspect(self):
        wide = resolve_ken_burns(KenBurns("smart"), 4000, 1000, 1920, 1080)
        tall = resolve_ken_burns(KenBurns("smart"), 1000, 4000, 1920, 1080)
        assert wide.start_x != wide.end_x and wide.start_y == wide.end_y
        assert tall.start_y != tall.end_y and tall.start_x == tall.end_x

    def test_smart_anchor_overrides_axis(self):
        motion = resolve_ken_burns(KenBurns("smart", anchor="bottom"), 4000, 1000, 1920, 1080)
        assert (motion.start_y, motion.end_y) == (1.0, 0.0)
        assert motion.start_x == motion.end_x

    def test_custom_fields_override_preset(self):
        kb = KenBurns("zoom-out", start_zoom=2.0, easing="linear")
        motion = resolve_ken_burns(kb, None, None, 1920, 1080)
        assert_close(motion.start_zoom, 2.0)
        assert_close(motion.end_zoom, 1.0)
        assert motion.easing == "linear"

    def test_pan_raises_zoom_floor(self):
        kb = KenBurns("custom", start_zoom=1.0, end_zoom=1.0, start_x=0.0, end_x=1.0)
        motion = resolve_ken_burns(kb, None, None, 1920, 1080)
        assert_close(motion.start_zoom, settings.KEN_BURNS_PAN_ZOOM)
        assert_close(motion.end_zoom, settings.KEN_BURNS_PAN_ZOOM)

    def test_expressions_use_frame_index(self):
        motion = resolve_ken_burns(KenBurns("zoom-in", easing="linear"), None, None, 1920, 1080)
        z, x, y = ken_burns_expressions(motion, 91)
        assert z == "1+(0.15)*(on/90)"
        assert x == "(iw-iw/zoom)*(0.5)"
        assert y == "(ih-ih/zoom)*(0.5)"
        assert "zoom+" not in z

    @pytest.mark.parametrize("easing,expected", [
        ("linear", "(p)"),
        ("ease-in", "pow(p,2)"),
        ("ease-out", "(1-pow(1-p,2))"),
        ("ease-in-out", "(0.5-0.5*cos(PI*p))"),
    ])
    def test_easing(self, easing, expected):
        assert easing_expression(easing, "p") == expected

    def test_zoompan_node(self):
        image = make_image(0, 3, ken_burns=KenBurns("zoom-in"), width=4000, height=3000)
        _, text = build([image])
        assert "[0:v]select='eq(n,0)',setpts=PTS-STARTPTS" in text
        assert "scale=5760:-1,zoompan=z='" in text
        assert ":d=90:s=1920x1080:fps=30" in text
