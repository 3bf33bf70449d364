"""Notification and digest summaries."""

from notizen.core.summarizer.summarizer import Summarizer

__all__ = ["Summarizer"]
