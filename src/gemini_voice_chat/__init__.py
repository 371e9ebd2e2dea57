"""Gemini chat front-end core with voice capture and spoken replies."""

__version__ = "0.1.0"
