# Notifiers module
from .alert import AlertContent, AlertPresenter, AlertSurface, SurfaceBackend
from .console import ConsoleNotifier
from .desktop import DesktopNotifier

__all__ = [
    "AlertContent",
    "AlertPresenter",
    "AlertSurface",
    "ConsoleNotifier",
    "DesktopNotifier",
    "SurfaceBackend",
]
