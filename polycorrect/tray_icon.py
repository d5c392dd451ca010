"""System tray icon manager."""
from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Optional

import pystray
from PIL import Image, ImageDraw

from .logger import get_logger

logger = get_logger(__name__)

APP_TITLE = "PolyCorrect"
ICON_SIZE = 64

# Quadrant colors follow the provider slot order
QUADRANT_COLORS = ("#10a37f", "#d97706", "#4285f4", "#7c3aed")


class TrayIcon:
    """Manages the system tray icon and its menu."""

    def __init__(
        self,
        on_show_gui: Optional[Callable[[], None]] = None,
        on_correct: Optional[Callable[[], None]] = None,
        on_cancel: Optional[Callable[[], None]] = None,
        on_exit: Optional[Callable[[], None]] = None,
    ):
        self.on_show_gui = on_show_gui
        self.on_correct = on_correct
        self.on_cancel = on_cancel
        self.on_exit = on_exit
        self.busy = False

        self._image_cache: Dict[bool, Any] = {}
        self.icon: Optional[pystray.Icon] = None
        self._running = False

    def create_icon_image(self, busy: bool = False) -> Any:
        """Draw the tray icon: four provider quadrants, dimmed while busy."""
        if busy in self._image_cache:
            return self._image_cache[busy]

        image = Image.new('RGBA', (ICON_SIZE, ICON_SIZE), (255, 255, 255, 0))
        draw = ImageDraw.Draw(image)
        padding = 6
        box = [padding, padding, ICON_SIZE - padding, ICON_SIZE - padding]
        for index, color in enumerate(QUADRANT_COLORS):
            start = -90 + index * 90
            draw.pieslice(box, start, start + 90, fill=color)
        draw.ellipse(box, outline='#111827', width=2)
        if busy:
            overlay = Image.new('RGBA', image.size, (17, 24, 39, 110))
            image = Image.alpha_composite(image, overlay)

        self._image_cache[busy] = image
        return image

    def create_menu(self) -> pystray.Menu:
        return pystray.Menu(
            pystray.MenuItem("Show", self._on_show_gui, default=True),
            pystray.MenuItem("Correct clipboard", self._on_correct),
            pystray.MenuItem("Cancel", self._on_cancel, enabled=lambda item: self.busy),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem("Exit", self._on_exit),
        )

    def _title(self) -> str:
        return f"{APP_TITLE} - {'Correcting...' if self.busy else 'Ready'}"

    def start(self) -> None:
        """Start the tray icon on its own daemon thread."""
        if self._running:
            return

        self._running = True
        self.icon = pystray.Icon(APP_TITLE, self.create_icon_image(self.busy), self._title(), self.create_menu())

        thread = threading.Thread(target=self._run_icon, name="TrayIcon", daemon=True)
        thread.start()
        logger.info("System tray icon started")

    def _run_icon(self) -> None:
        try:
            self.icon.run()
        except Exception as e:
            logger.error(f"Tray icon error: {e}")
            self._running = False

    def stop(self) -> None:
        if self.icon and self._running:
            self.icon.stop()
            self._running = False
            logger.info("System tray icon stopped")

    def update_status(self, busy: bool) -> None:
        """Reflect whether a correction session is running."""
        self.busy = busy
        if self.icon:
            self.icon.icon = self.create_icon_image(busy)
            self.icon.title = self._title()
            self.icon.update_menu()

    def show_notification(self, title: str, message: str) -> None:
        if self.icon and self._running:
            try:
                self.icon.notify(message, title)
                return
            except Exception as e:
                logger.warning(f"Failed to show notification: {e}")
        logger.info(f"{title}: {message}")

    def _on_show_gui(self, icon, item) -> None:
        if self.on_show_gui:
            self.on_show_gui()

    def _on_correct(self, icon, item) -> None:
        if self.on_correct:
            self.on_correct()

    def _on_cancel(self, icon, item) -> None:
        if self.on_cancel:
            self.on_cancel()

    def _on_exit(self, icon, item) -> None:
        if self.on_exit:
            self.on_exit()
        self.stop()
