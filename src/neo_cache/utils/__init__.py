"""Utility helpers for neo-cache."""

from .clock import Clock, now_ms, seconds_until
from .masking import mask_url

__all__ = ["Clock", "now_ms", "seconds_until", "mask_url"]
