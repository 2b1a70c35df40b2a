"""
Full-screen alert windows, one per connected screen.

Each window covers its whole screen and stays on top. It shows the event
title, the "starts in" line and two buttons:
- Join Call: opens the meeting link and closes the alert everywhere
- Dismiss: closes the alert everywhere (Escape does the same)

Qt events are pumped from the running asyncio loop while a window is open,
so the daemon keeps its single event loop.
"""

import asyncio
import logging
from collections.abc import Callable

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QKeyEvent, QScreen
from PyQt6.QtWidgets import (
    QApplication,
    QFrame,
    QHBoxLayout,
    QLabel,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from .alert import AlertContent, AlertSurface, SurfaceBackend

logger = logging.getLogger(__name__)

PUMP_INTERVAL_SECONDS = 0.05

STYLE = """
QWidget#backdrop { background-color: rgba(0, 0, 0, 190); }
QFrame#card { background-color: #1a1a2e; border-radius: 28px; }
QLabel { color: white; }
QLabel#caption { color: #9a9ab0; font-size: 14px; font-weight: 600; letter-spacing: 1px; }
QLabel#title { font-size: 40px; font-weight: bold; }
QLabel#headline { font-size: 22px; }
QPushButton { font-size: 18px; padding: 12px 24px; border-radius: 22px; }
QPushButton#join { background-color: #2f6fed; color: white; }
QPushButton#dismiss { background-color: #3a3a4e; color: #dddddd; }
"""


class AlertWindow(QWidget):
    """Frameless top-most window covering one screen."""

    def __init__(
        self,
        screen: QScreen,
        content: AlertContent,
        on_dismiss: Callable[[], None],
        on_join: Callable[[], None],
    ):
        super().__init__(
            None,
            Qt.WindowType.FramelessWindowHint | Qt.WindowType.WindowStaysOnTopHint,
        )
        self.on_dismiss = on_dismiss
        self.setObjectName("backdrop")
        self.setAttribute(Qt.WidgetAttribute.WA_StyledBackground)
        self.setStyleSheet(STYLE)
        self.setWindowTitle(f"Upcoming meeting: {content.title}")
        self.setScreen(screen)
        self.setGeometry(screen.geometry())

        card = QFrame(self)
        card.setObjectName("card")
        card_layout = QVBoxLayout(card)
        card_layout.setContentsMargins(40, 40, 40, 40)
        card_layout.setSpacing(12)

        caption = QLabel("UPCOMING MEETING")
        caption.setObjectName("caption")
        self.title_label = QLabel(content.title)
        self.title_label.setObjectName("title")
        self.title_label.setWordWrap(True)
        self.headline_label = QLabel(content.headline)
        self.headline_label.setObjectName("headline")
        for label in (caption, self.title_label, self.headline_label):
            label.setAlignment(Qt.AlignmentFlag.AlignCenter)
            card_layout.addWidget(label)

        buttons = QHBoxLayout()
        buttons.setSpacing(16)
        self.join_button: QPushButton | None = None
        if content.meeting_url:
            self.join_button = QPushButton("Join Call")
            self.join_button.setObjectName("join")
            self.join_button.setToolTip(content.meeting_url)
            self.join_button.clicked.connect(lambda *_: on_join())
            buttons.addWidget(self.join_button)
        self.dismiss_button = QPushButton("Dismiss")
        self.dismiss_button.setObjectName("dismiss")
        self.dismiss_button.clicked.connect(lambda *_: on_dismiss())
        buttons.addWidget(self.dismiss_button)
        card_layout.addSpacing(24)
        card_layout.addLayout(buttons)

        layout = QVBoxLayout(self)
        layout.addStretch()
        layout.addWidget(card, alignment=Qt.AlignmentFlag.AlignCenter)
        layout.addStretch()

    def keyPressEvent(self, event: QKeyEvent):
        if event.key() == Qt.Key.Key_Escape:
            self.on_dismiss()
            return
        super().keyPressEvent(event)


class WindowSurface(AlertSurface):
    def __init__(self, window: AlertWindow, backend: "FullScreenNotifier"):
        self.window = window
        self.backend = backend

    def close(self):
        if self.window in self.backend.windows:
            self.backend.windows.remove(self.window)
        self.window.close()
        self.window.deleteLater()


class FullScreenNotifier(SurfaceBackend):
    """
    Qt backend that covers every connected screen.

    The QApplication is created on first use so importing this module never
    needs a display.
    """

    name = "fullscreen"
    interactive = True

    def __init__(self, app: QApplication | None = None):
        self._app = app
        self._screens: dict[str, QScreen] = {}
        self.windows: list[AlertWindow] = []
        self._pump_task: asyncio.Task | None = None

    @property
    def app(self) -> QApplication:
        if self._app is None:
            self._app = QApplication.instance() or QApplication(["fullfocus"])
            self._app.setQuitOnLastWindowClosed(False)
        return self._app

    def displays(self) -> list[str]:
        self._screens = {
            f"{index}:{screen.name()}": screen
            for index, screen in enumerate(self.app.screens())
        }
        logger.debug(f"Found {len(self._screens)} screen(s)")
        return list(self._screens)

    def open(
        self,
        display: str,
        content: AlertContent,
        on_dismiss: Callable[[], None],
        on_join: Callable[[], None],
    ) -> WindowSurface:
        screen = self._screens.get(display) or self.app.primaryScreen()
        window = AlertWindow(screen, content, on_dismiss, on_join)
        window.show()
        window.raise_()
        window.activateWindow()
        self.windows.append(window)
        logger.debug(f"Alert window shown on screen {display}")

        self._ensure_pump()
        return WindowSurface(window, self)

    def _ensure_pump(self):
        if self._pump_task is not None and not self._pump_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.app.processEvents()
            return
        self._pump_task = loop.create_task(self._pump())

    async def _pump(self):
        while self.windows:
            self.app.processEvents()
            await asyncio.sleep(PUMP_INTERVAL_SECONDS)
        # let Qt finish closing the last windows
        self.app.processEvents()
