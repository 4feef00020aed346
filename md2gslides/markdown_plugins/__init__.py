"""markdown-it-py plugins for slide-specific syntax."""
from .speaker_notes import speaker_notes_plugin
from .video import video_plugin

__all__ = ["speaker_notes_plugin", "video_plugin"]
