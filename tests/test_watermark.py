#!/usr/bin/env python3
"""
Watermark Tests

Tests for watermark option validation, placement and the overlay /
drawtext nodes.
"""

import pytest
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backend.command_builder import InputSpec, InputTable
from backend.filter_graph import FilterGraph
from core.transitions import TransitionOffsets
from core.watermark import (
    WATERMARK_LABEL,
    WatermarkBuilder,
    WatermarkConfig,
    WatermarkPosition,
    WatermarkType,
    validate_watermark_config,
)
from tests.conftest import make_video


class TestValidation:

    def test_absent_is_valid(self):
        assert validate_watermark_config(None) == []

    def test_image_needs_url(self):
        assert validate_watermark_config({"type": "image"}) == ["watermark.url is required for image watermarks"]

    def test_text_needs_text(self):
        assert validate_watermark_config({"type": "text"}) == ["watermark.text is required for text watermarks"]

    def test_collects_every_problem(self):
        errors = validate_watermark_config({
            "type": "image", "url": "logo.png", "scale": 2, "opacity": 1.5,
            "position": "middle", "startTime": 5, "endTime": 2,
        })
        assert len(errors) == 4

    def test_position_object(self):
        assert validate_watermark_config({"type": "text", "text": "x", "position": {"xPercent": 0.5}}) == [
            "watermark.position needs {xPercent, yPercent} or {x, y}"
        ]


class TestConfig:

    def test_from_dict(self):
        config = WatermarkConfig.from_dict({
            "type": "text", "text": "(c) me", "position": "top-left",
            "fontSize": 30, "opacity": 0.5, "startTime": 1,
        })
        assert config.type == WatermarkType.TEXT
        assert config.position == WatermarkPosition.TOP_LEFT
        assert config.font_size == 30
        assert config.start_time == 1

    def test_percent_position(self):
        config = WatermarkConfig.from_dict({"url": "logo.png", "position": {"xPercent": 0.5, "yPercent": 0.1}})
        assert config.type == WatermarkType.IMAGE
        assert (config.x_percent, config.y_percent) == (0.5, 0.1)


class TestPlacement:

    @pytest.mark.parametrize("position,expected", [
        (WatermarkPosition.TOP_LEFT, ("20", "20")),
        (WatermarkPosition.TOP_RIGHT, ("W-w-20", "20")),
        (WatermarkPosition.BOTTOM_LEFT, ("20", "H-h-20")),
        (WatermarkPosition.BOTTOM_RIGHT, ("W-w-20", "H-h-20")),
        (WatermarkPosition.CENTER, ("(W-w)/2", "(H-h)/2")),
    ])
    def test_image_presets(self, position, expected):
        builder = WatermarkBuilder(WatermarkConfig(url="logo.png", position=position), 1920, 1080)
        assert builder._get_position(text=False) == expected

    def test_text_uses_canvas_numbers(self):
        config = WatermarkConfig(type=WatermarkType.TEXT, text="x", margin=10)
        builder = WatermarkBuilder(config, 1280, 720)
        assert builder._get_position(text=True) == ("1280-tw-10", "720-th-10")

    def test_percent(self):
        config = WatermarkConfig(url="logo.png", x_percent=0.5, y_percent=0.25)
        assert WatermarkBuilder(config, 1920, 1080)._get_position(text=False) == ("960-w/2", "270-h/2")


class TestNodes:

    def test_image_overlay(self):
        config = WatermarkConfig(url="logo.png", scale=0.1, opacity=0.5)
        graph, inputs = FilterGraph(), InputTable()
        inputs.add(InputSpec("a.mp4"))
        inputs.add(InputSpec(config.url), config)
        out = WatermarkBuilder(config, 1920, 1080).build(graph, inputs, "outv", 10)
        text = graph.serialize()
        assert out == WATERMARK_LABEL
        assert "[1:v]scale=192:-1,format=rgba,colorchannelmixer=aa=0.5[wm_scaled]" in text
        assert "[outv][wm_scaled]overlay=x=W-w-20:y=H-h-20[outwm]" in text

    def test_timed_window_is_adjusted(self):
        config = WatermarkConfig(url="logo.png", start_time=6, end_time=8)
        graph, inputs = FilterGraph(), InputTable()
        inputs.add(InputSpec(config.url), config)
        offsets = TransitionOffsets([make_video(0, 5), make_video(5, 10, transition=1)])
        WatermarkBuilder(config, 1920, 1080).build(graph, inputs, "outv", 9, offsets)
        assert "enable='between(t,5,7)'" in graph.serialize()

    def test_full_span_has_no_enable(self):
        config = WatermarkConfig(type=WatermarkType.TEXT, text="x", start_time=0)
        graph = FilterGraph()
        WatermarkBuilder(config, 1920, 1080).build(graph, InputTable(), "outv", 10)
        assert "enable" not in graph.serialize()

    def test_text_watermark(self):
        config = WatermarkConfig(type=WatermarkType.TEXT, text="it's mine", opacity=0.5, font_color="white")
        graph = FilterGraph()
        out = WatermarkBuilder(config, 1920, 1080).build(graph, InputTable(), "outv", 10)
        text = graph.serialize()
        assert out == WATERMARK_LABEL
        assert text.startswith("[outv]drawtext=text='it'\\\\\\''s mine':font='Sans':fontsize=24:fontcolor=white@0.5")
        assert text.endswith("x=1920-tw-20:y=1080-th-20[outwm]")
