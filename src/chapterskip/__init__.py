"""Chapterskip core package.

The chapterskip package is organized into focused modules:

- **skipper**: The chapter skip decision algorithm and per-session skip state
- **session_monitor**: Polls Jellyfin sessions and emits playback progress/stopped events
- **config_source**: Live configuration with change notification and file watching
- **commands**: Command sinks that deliver seek and notification commands
- **jellyfin_client**: Thin HTTP client for the Jellyfin session endpoints
- **jellyfin_models** / **jellyfin_adapter**: Jellyfin response models and their conversion to dataclasses
- **cli**: Command line entry point wiring everything together

The main entry point is the ``ChapterSkipController`` class.
"""

from .skipper import ChapterSkipController
from .version import __version__

__all__ = [
    "__version__",
    "ChapterSkipController",
]
