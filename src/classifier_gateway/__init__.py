"""Batch classification gateway in front of an OpenAI-compatible vision model."""

__version__ = "0.1.0"
