"""
CLI tools for the quadratic voting platform.
"""

from tools.export_events import load_events_frame, summarize_votes

__all__ = [
    "load_events_frame",
    "summarize_votes",
]
