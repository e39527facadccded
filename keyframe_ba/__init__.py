"""Keyframe and landmark bookkeeping for keyframe-based bundle adjustment."""

__version__ = "0.1.0"