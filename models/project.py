"""Project model - Canvas options and the per-compile context"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from config import settings
from utils.logger import logger

from .clips import AnyClip, MediaInfo


# Platform presets (all 30 fps)
PLATFORM_PRESETS: Dict[str, Dict[str, int]] = {
    # Vertical 9:16
    "tiktok": {"width": 1080, "height": 1920},
    "youtube-short": {"width": 1080, "height": 1920},
    "instagram-reel": {"width": 1080, "height": 1920},
    "instagram-story": {"width": 1080, "height": 1920},
    "snapchat": {"width": 1080, "height": 1920},
    # Square 1:1
    "instagram-post": {"width": 1080, "height": 1080},
    "instagram-square": {"width": 1080, "height": 1080},
    # Landscape 16:9
    "youtube": {"width": 1920, "height": 1080},
    "twitter": {"width": 1920, "height": 1080},
    "facebook": {"width": 1920, "height": 1080},
    "landscape": {"width": 1920, "height": 1080},
    # Portrait 4:5
    "twitter-portrait": {"width": 1080, "height": 1350},
    "instagram-portrait": {"width": 1080, "height": 1350},
}


@dataclass
class ProjectOptions:
    """
    Canvas and compile options for one project.

    fill_gaps is "none" (gaps are errors), True/"black", or any engine color
    used to synthesize filler clips over visual gaps.
    """
    width: int = settings.DEFAULT_WIDTH
    height: int = settings.DEFAULT_HEIGHT
    fps: int = settings.DEFAULT_FPS
    validation_mode: str = settings.DEFAULT_VALIDATION_MODE
    fill_gaps: Union[str, bool, None] = "none"
    font_file: Optional[str] = None
    temp_dir: Optional[str] = None

    @classmethod
    def from_preset(cls, name: str, **overrides) -> 'ProjectOptions':
        """
        Create options for a platform preset.

        Args:
            name: Preset name (e.g. "tiktok", "youtube", "instagram-post")
            **overrides: Explicit fields that win over the preset

        Returns:
            ProjectOptions sized for the platform

        Raises:
            ValueError: If the preset is unknown
        """
        preset = PLATFORM_PRESETS.get(name)
        if preset is None:
            available = ", ".join(sorted(PLATFORM_PRESETS))
            raise ValueError(f"Unknown platform preset '{name}'. Available: {available}")
        values = {**preset, "fps": 30}
        values.update(overrides)
        return cls(**values)

    def to_dict(self) -> dict:
        return {
            "width": self.width,
            "height": self.height,
            "fps": self.fps,
            "validation_mode": self.validation_mode,
            "fill_gaps": self.fill_gaps,
            "font_file": self.font_file,
            "temp_dir": self.temp_dir,
        }


@dataclass
class CompilationContext:
    """
    Everything one compile owns: the resolved clips, probe results and the
    temp files it must delete once the export settles.
    """
    options: ProjectOptions
    clips: List[AnyClip] = field(default_factory=list)
    media_info: Dict[str, MediaInfo] = field(default_factory=dict)
    temp_files: List[str] = field(default_factory=list)

    @property
    def temp_dir(self) -> str:
        return self.options.temp_dir or settings.TEMP_DIR

    def register_temp_file(self, path: str) -> str:
        """Track a generated file for cleanup and return its path"""
        self.temp_files.append(path)
        return path

    def cleanup(self, keep: int = 0):
        """Delete registered temp files (best-effort), newest first, leaving the oldest `keep`"""
        while len(self.temp_files) > keep:
            path = self.temp_files.pop()
            try:
                if os.path.exists(path):
                    os.remove(path)
                    logger.debug(f"Cleaned up temp file: {path}")
            except OSError as e:
                logger.warning(f"Failed to clean up temp file {path}: {e}")

    def clips_of(self, *kinds: str) -> List[AnyClip]:
        return [c for c in self.clips if c.kind in kinds]

    def describe(self) -> Dict[str, Any]:
        counts: Dict[str, int] = {}
        for clip in self.clips:
            counts[clip.kind] = counts.get(clip.kind, 0) + 1
        return {"options": self.options.to_dict(), "clips": counts}
