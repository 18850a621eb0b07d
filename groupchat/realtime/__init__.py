"""Realtime delivery of group messages."""

from .bus import FanoutBus, Subscriber

__all__ = ["FanoutBus", "Subscriber"]
