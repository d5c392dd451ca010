"""Global hotkey that triggers a clipboard correction."""
from __future__ import annotations

import threading
from typing import Callable, Optional

import keyboard

from .logger import get_logger

logger = get_logger(__name__)

PRIMARY_HOTKEY = "ctrl+shift+c"
FALLBACK_HOTKEY = "ctrl+shift+alt+c"

MODIFIER_ALIASES = {
    'control': 'ctrl',
    'ctrl_l': 'ctrl',
    'ctrl_r': 'ctrl',
    'control_l': 'ctrl',
    'control_r': 'ctrl',
    'option': 'alt',
    'alt_l': 'alt',
    'alt_r': 'alt',
    'shift_l': 'shift',
    'shift_r': 'shift',
    'win': 'windows',
    'super': 'windows',
}

MODIFIER_ORDER = ('ctrl', 'shift', 'alt', 'windows')


def normalize_hotkey(raw: Optional[str]) -> Optional[str]:
    """
    Normalize a combo such as "Control + Shift + C" into the canonical form
    understood by ``keyboard`` ("ctrl+shift+c"). Returns None when the input
    has no non-modifier key.
    """
    if raw is None:
        return None

    parts = [part.strip().lower() for part in raw.split('+') if part.strip()]
    modifiers = []
    keys = []
    for part in parts:
        part = MODIFIER_ALIASES.get(part, part)
        if part in MODIFIER_ORDER:
            if part not in modifiers:
                modifiers.append(part)
        else:
            keys.append(part)

    if len(keys) != 1:
        return None

    ordered = [modifier for modifier in MODIFIER_ORDER if modifier in modifiers]
    return '+'.join(ordered + keys)


class HotkeyListener:
    """
    Registers the correction hotkey with the ``keyboard`` hook.

    The configured combo is tried first; if it cannot be registered the
    fallback combo is used. The callback runs on the keyboard hook thread and
    is handed to a short-lived worker thread so the hook is never blocked.
    """

    def __init__(
        self,
        on_trigger: Callable[[], None],
        hotkey: str = PRIMARY_HOTKEY,
        fallback: Optional[str] = FALLBACK_HOTKEY,
    ) -> None:
        self._on_trigger = on_trigger
        self._hotkey = normalize_hotkey(hotkey) or PRIMARY_HOTKEY
        self._fallback = normalize_hotkey(fallback) if fallback else None
        self._handle = None
        self._active_combo: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def active_combo(self) -> Optional[str]:
        return self._active_combo

    @property
    def is_running(self) -> bool:
        return self._handle is not None

    def start(self) -> bool:
        """Register the hotkey. Returns False when no combo could be registered."""
        with self._lock:
            if self._handle is not None:
                return True

            candidates = [self._hotkey]
            if self._fallback and self._fallback != self._hotkey:
                candidates.append(self._fallback)

            for combo in candidates:
                try:
                    self._handle = keyboard.add_hotkey(combo, self._fire, suppress=False)
                except (ImportError, OSError, ValueError) as error:
                    logger.warning(f"Failed to register hotkey {combo}: {error}")
                    continue
                self._active_combo = combo
                logger.info(f"Global hotkey {combo} registered")
                return True

            logger.error("Failed to register any hotkey - use the window or tray instead")
            return False

    def stop(self) -> None:
        with self._lock:
            if self._handle is None:
                return
            try:
                keyboard.remove_hotkey(self._handle)
            except (KeyError, ValueError) as error:
                logger.debug(f"Hotkey already removed: {error}")
            self._handle = None
            self._active_combo = None

    def _fire(self) -> None:
        logger.debug(f"Hotkey {self._active_combo} triggered")
        threading.Thread(target=self._run_callback, name="HotkeyTrigger", daemon=True).start()

    def _run_callback(self) -> None:
        try:
            self._on_trigger()
        except Exception:
            logger.exception("Hotkey callback failed")
