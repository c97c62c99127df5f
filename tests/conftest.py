#!/usr/bin/env python3
"""
Pytest Configuration and Shared Fixtures

Provides shared fixtures and configuration for all tests.
"""

import pytest
import asyncio
import tempfile
import sys
import os
from pathlib import Path
from unittest.mock import MagicMock, AsyncMock

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.clips import (
    AudioClip,
    ColorClip,
    EffectClip,
    ImageClip,
    MusicClip,
    TextClip,
    Transition,
    VideoClip,
)
from models.project import CompilationContext, ProjectOptions


# ============================================================================
# ASYNCIO CONFIGURATION
# ============================================================================
# Note: pytest-asyncio is configured with asyncio_mode = "auto" in pyproject.toml
# The event loop is automatically managed per-function by default


# ============================================================================
# TEMPORARY DIRECTORIES
# ============================================================================

@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def media_files(temp_dir):
    """Empty placeholder media files (probing is mocked)"""
    files = {}
    for name in ("a.mp4", "b.mp4", "c.mp4", "still.jpg", "voice.mp3", "music.mp3", "logo.png"):
        path = temp_dir / name
        path.write_bytes(b"\x00")
        files[name] = str(path)
    return files


# ============================================================================
# CLIP FACTORIES
# ============================================================================

def make_video(position, end, url="/media/a.mp4", transition=None, **kwargs):
    """Typed video clip; `transition` is a duration in seconds"""
    return VideoClip(
        position=position,
        end=end,
        url=url,
        transition=Transition("fade", transition) if transition else None,
        **kwargs,
    )


def make_image(position, end, url="/media/still.jpg", **kwargs):
    return ImageClip(position=position, end=end, url=url, **kwargs)


def make_color(position, end, color="black", transition=None):
    return ColorClip(
        position=position,
        end=end,
        color=color,
        transition=Transition("fade", transition) if transition else None,
    )


def make_audio(position, end, url="/media/voice.mp3", **kwargs):
    return AudioClip(position=position, end=end, url=url, **kwargs)


def make_music(position, end, url="/media/music.mp3", **kwargs):
    return MusicClip(position=position, end=end, url=url, **kwargs)


def make_text(position, end, text="Hello", **kwargs):
    return TextClip(position=position, end=end, text=text, **kwargs)


def make_effect(position, end, effect="vignette", **kwargs):
    return EffectClip(position=position, end=end, effect=effect, **kwargs)


@pytest.fixture
def context(temp_dir):
    """Empty 1920x1080 compilation context writing into temp_dir"""
    return CompilationContext(options=ProjectOptions(temp_dir=str(temp_dir)))


# ============================================================================
# FAKE ENGINE PROCESS
# ============================================================================

def make_fake_process(stderr_chunks=None, returncode=0):
    """
    Fake asyncio subprocess.

    stderr.read() yields each chunk once, then b"" (EOF).
    """
    chunks = list(stderr_chunks or []) + [b""]
    process = MagicMock()
    process.pid = 4242
    process.returncode = None
    process.stderr = MagicMock()
    process.stderr.read = AsyncMock(side_effect=chunks + [b""] * 10)

    async def wait():
        process.returncode = returncode
        return returncode

    process.wait = AsyncMock(side_effect=wait)
    process.terminate = MagicMock()
    process.kill = MagicMock()
    return process


def make_hanging_process():
    """Fake process whose stderr never reaches EOF until terminated"""
    process = MagicMock()
    process.pid = 4343
    process.returncode = None
    stopped = asyncio.Event()

    async def read(_size):
        await stopped.wait()
        return b""

    async def wait():
        await stopped.wait()
        process.returncode = -15
        return -15

    def terminate():
        stopped.set()

    process.stderr = MagicMock()
    process.stderr.read = AsyncMock(side_effect=read)
    process.wait = AsyncMock(side_effect=wait)
    process.terminate = MagicMock(side_effect=terminate)
    process.kill = MagicMock(side_effect=terminate)
    return process


@pytest.fixture
def fake_process():
    return make_fake_process


# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================

def pytest_configure(config):
    """Configure pytest markers"""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (may take several seconds)"
    )
