# Monitors module
from .base import BaseMonitor
from .calendar import AlertLatch, CalendarMonitor

__all__ = [
    "AlertLatch",
    "BaseMonitor",
    "CalendarMonitor",
]
