"""Configuration management using Pydantic settings"""

import platform
import shutil
import tempfile
from pathlib import Path
from pydantic import field_validator
from pydantic_settings import BaseSettings
from typing import Optional


def get_ffmpeg_paths() -> tuple[str, str]:
    """
    Locate the ffmpeg/ffprobe binaries.

    Returns:
        Tuple of (ffmpeg_path, ffprobe_path). Falls back to the bare command
        names when nothing is found on PATH.
    """
    system = platform.system()
    ffmpeg_name = "ffmpeg.exe" if system == "Windows" else "ffmpeg"
    ffprobe_name = "ffprobe.exe" if system == "Windows" else "ffprobe"

    ffmpeg_system = shutil.which(ffmpeg_name)
    ffprobe_system = shutil.which(ffprobe_name)

    if ffmpeg_system and ffprobe_system:
        return ffmpeg_system, ffprobe_system

    # Default to command names (will fail at spawn time if not in PATH)
    return ffmpeg_name, ffprobe_name


def get_default_temp_dir() -> str:
    """Get the directory used for generated intermediates (gradients, ASS files, unrotated inputs)"""
    return str(Path(tempfile.gettempdir()) / "clipweave")


class Settings(BaseSettings):
    """Application settings"""

    # FFmpeg settings - auto-detect system FFmpeg
    _ffmpeg_paths = get_ffmpeg_paths()
    FFMPEG_PATH: str = _ffmpeg_paths[0]
    FFPROBE_PATH: str = _ffmpeg_paths[1]

    # Scratch space
    TEMP_DIR: str = get_default_temp_dir()

    # Canvas defaults
    DEFAULT_WIDTH: int = 1920
    DEFAULT_HEIGHT: int = 1080
    DEFAULT_FPS: int = 30
    DEFAULT_VALIDATION_MODE: str = "warn"

    # Export settings
    DEFAULT_VIDEO_CODEC: str = "libx264"
    DEFAULT_CRF: int = 23
    DEFAULT_PRESET: str = "medium"
    DEFAULT_AUDIO_CODEC: str = "aac"
    DEFAULT_AUDIO_BITRATE: str = "192k"
    DEFAULT_AUDIO_SAMPLE_RATE: int = 48000

    # Multi-pass text rendering
    TEXT_MAX_NODES_PER_PASS: int = 75
    INTERMEDIATE_VIDEO_CODEC: str = "libx264"
    INTERMEDIATE_CRF: int = 18
    INTERMEDIATE_PRESET: str = "veryfast"

    # Timeline constants (empirical, kept configurable)
    GAP_EPSILON: float = 1e-3
    DEFAULT_TRANSITION_DURATION: float = 0.5
    KEN_BURNS_ZOOM_AMOUNT: float = 0.15
    KEN_BURNS_PAN_ZOOM: float = 1.12
    KEN_BURNS_OVERSCAN_MIN_WIDTH: int = 4000
    KEN_BURNS_DEFAULT_EASING: str = "ease-in-out"

    # Text defaults
    DEFAULT_FONT_FAMILY: str = "Sans"
    DEFAULT_FONT_SIZE: int = 48
    DEFAULT_FONT_COLOR: str = "#FFFFFF"
    DEFAULT_TEXT_ANIM_IN: float = 0.25
    DEFAULT_TEXT_ANIM_OUT: float = 0.25
    DEFAULT_TEXT_ANIM_INTENSITY: float = 0.3
    DEFAULT_TYPEWRITER_SPEED: float = 20.0  # characters per second
    DEFAULT_PULSE_SPEED: float = 1.0  # cycles per second
    DEFAULT_KARAOKE_HIGHLIGHT: str = "#FFFF00"
    DEFAULT_KARAOKE_HIGHLIGHT_STYLE: str = "smooth"

    # Audio mixing
    DEFAULT_BGM_VOLUME: float = 0.2

    # Subprocess timeouts (seconds)
    PROBE_TIMEOUT: int = 30
    UNROTATE_TIMEOUT: int = 300
    EXPORT_TIMEOUT: Optional[int] = None

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @field_validator("DEFAULT_VALIDATION_MODE")
    @classmethod
    def _check_validation_mode(cls, value: str) -> str:
        if value not in ("warn", "strict"):
            raise ValueError(f"DEFAULT_VALIDATION_MODE must be 'warn' or 'strict', got '{value}'")
        return value

    @field_validator("LOG_LEVEL")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown LOG_LEVEL '{value}'")
        return level

    def create_directories(self):
        """Create necessary directories"""
        Path(self.TEMP_DIR).mkdir(parents=True, exist_ok=True)


# Global settings instance
settings = Settings()
