# Calendar providers module
from .base import CalendarProvider
from .file import FileCalendarProvider
from .macos import MacCalendarProvider
from .memory import MemoryCalendarProvider

__all__ = [
    "CalendarProvider",
    "FileCalendarProvider",
    "MacCalendarProvider",
    "MemoryCalendarProvider",
]
