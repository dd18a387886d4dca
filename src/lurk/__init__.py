"""Lurk: ephemeral anonymous image-board with live chat and a video room."""

__version__ = "0.1.0"
