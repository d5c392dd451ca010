"""System clipboard access.

On Windows the clipboard is driven through ``win32clipboard`` with a short
retry loop, because another process may hold it open for a moment. Elsewhere
the Tk clipboard of the application window is used.
"""
from __future__ import annotations

import sys
import time
from typing import Any, Optional

from .logger import get_logger

logger = get_logger(__name__)

MAX_CLIPBOARD_RETRIES = 5
CLIPBOARD_RETRY_DELAY = 0.05
CF_UNICODETEXT = 13


class ClipboardError(Exception):
    """Base class for clipboard failures."""


class ClipboardAccessError(ClipboardError):
    """The clipboard could not be opened or no backend is available."""


class ClipboardReadError(ClipboardError):
    """The clipboard was opened but its text could not be read."""


class ClipboardWriteError(ClipboardError):
    """The clipboard was opened but the text could not be stored."""


class Win32ClipboardBackend:
    """Unicode text clipboard through pywin32."""

    def __init__(self, clipboard_module: Any = None, retries: int = MAX_CLIPBOARD_RETRIES,
                 retry_delay: float = CLIPBOARD_RETRY_DELAY):
        if clipboard_module is None:
            import win32clipboard as clipboard_module
        self._clipboard = clipboard_module
        self._retries = max(1, retries)
        self._retry_delay = retry_delay

    def _open(self) -> None:
        last_error: Optional[Exception] = None
        for attempt in range(self._retries):
            try:
                self._clipboard.OpenClipboard()
                return
            except Exception as error:
                last_error = error
                logger.debug(f"Clipboard open attempt {attempt + 1} failed: {error}")
                time.sleep(self._retry_delay)
        raise ClipboardAccessError(f"Could not open clipboard: {last_error}")

    def read_text(self) -> str:
        self._open()
        try:
            if not self._clipboard.IsClipboardFormatAvailable(CF_UNICODETEXT):
                return ""
            data = self._clipboard.GetClipboardData(CF_UNICODETEXT)
        except Exception as error:
            raise ClipboardReadError(f"Could not read clipboard: {error}") from error
        finally:
            self._clipboard.CloseClipboard()
        return data or ""

    def write_text(self, text: str) -> None:
        self._open()
        try:
            self._clipboard.EmptyClipboard()
            self._clipboard.SetClipboardData(CF_UNICODETEXT, text)
        except Exception as error:
            raise ClipboardWriteError(f"Could not write clipboard: {error}") from error
        finally:
            self._clipboard.CloseClipboard()


class TkClipboardBackend:
    """Clipboard of a Tk root window. Must be used from the Tk thread."""

    def __init__(self, root: Any):
        import tkinter

        self._root = root
        self._tcl_error = tkinter.TclError

    def read_text(self) -> str:
        try:
            return self._root.clipboard_get()
        except self._tcl_error as error:
            # Tk raises when the clipboard is empty or holds no text
            logger.debug(f"Tk clipboard has no text: {error}")
            return ""

    def write_text(self, text: str) -> None:
        try:
            self._root.clipboard_clear()
            self._root.clipboard_append(text)
            self._root.update()
        except self._tcl_error as error:
            raise ClipboardWriteError(f"Could not write clipboard: {error}") from error


_backend: Any = None


def set_backend(backend: Any) -> None:
    """Install the clipboard backend used by ``read_text``/``write_text``."""
    global _backend
    _backend = backend


def use_tk_root(root: Any) -> None:
    """Use the Tk clipboard of ``root`` unless a Windows backend applies."""
    if sys.platform != "win32":
        set_backend(TkClipboardBackend(root))


def _get_backend() -> Any:
    global _backend
    if _backend is None:
        if sys.platform != "win32":
            raise ClipboardAccessError("No clipboard backend available (GUI window not created)")
        _backend = Win32ClipboardBackend()
    return _backend


def read_text() -> str:
    """Return the clipboard text ("" when it holds no text)."""
    return _get_backend().read_text()


def write_text(text: str) -> None:
    _get_backend().write_text(text)
    logger.debug(f"Copied {len(text)} chars to clipboard")
