"""Main window: four provider panels fed by the dispatch engine."""
from __future__ import annotations

import queue
import threading
import tkinter as tk
from tkinter import ttk, messagebox
from typing import Callable, Dict, List, Optional, TYPE_CHECKING

from .. import clipboard
from ..diff import CachedDiff, DELETE, INSERT
from ..dispatch import DispatchEngine, ProviderResult, ResultSink, SlotState
from ..hotkey import HotkeyListener
from ..logger import get_logger
from ..prompts import CorrectionStyle, get_style_options
from ..providers import Provider
from ..session import SessionCoordinator

if TYPE_CHECKING:
    from ..config_manager import ConfigManager
    from ..tray_icon import TrayIcon

logger = get_logger(__name__)

_ACTIVE_ROOT: Optional[tk.Tk] = None
_UI_COMMANDS: "queue.Queue[Callable[[], None]]" = queue.Queue()
_UI_READY = threading.Event()
UI_POLL_MS = 40

COLORS = {
    'bg_primary': '#FFFFFF',
    'bg_secondary': '#F8F9FA',
    'accent_primary': '#6366F1',
    'accent_hover': '#4F46E5',
    'text_primary': '#1F2937',
    'text_secondary': '#6B7280',
    'text_light': '#9CA3AF',
    'border': '#E5E7EB',
    'success': '#10B981',
    'warning': '#F59E0B',
    'error': '#EF4444',
    'diff_insert_bg': '#D1FAE5',
    'diff_delete_bg': '#FEE2E2',
}

STATE_BADGES = {
    SlotState.IDLE: ("Idle", COLORS['text_light']),
    SlotState.PENDING: ("Waiting", COLORS['warning']),
    SlotState.STREAMING: ("Streaming", COLORS['accent_primary']),
    SlotState.DONE: ("Done", COLORS['success']),
    SlotState.ERROR: ("Error", COLORS['error']),
    SlotState.CANCELLED: ("Cancelled", COLORS['text_secondary']),
}

REASONING_EFFORT_OPTIONS = ("minimal", "low", "medium", "high")
VERBOSITY_OPTIONS = ("low", "medium", "high")


def post_ui(task: Callable[[], None]) -> None:
    """Run ``task`` on the GUI thread at the next queue drain."""
    _UI_COMMANDS.put(task)


def focus_existing_window() -> bool:
    """Bring the existing window to front if it is already open."""
    if not (_ACTIVE_ROOT and _UI_READY.is_set()):
        return False

    def _focus():
        try:
            if _ACTIVE_ROOT and _ACTIVE_ROOT.winfo_exists():
                _ACTIVE_ROOT.deiconify()
                _ACTIVE_ROOT.lift()
                _ACTIVE_ROOT.focus_force()
        except tk.TclError:
            pass

    post_ui(_focus)
    return True


def _drain_ui_queue(window: tk.Misc) -> None:
    """Process queued UI callbacks on the GUI thread."""
    while True:
        try:
            task = _UI_COMMANDS.get_nowait()
        except queue.Empty:
            break
        try:
            task()
        except Exception:
            logger.exception("UI task failed")
    try:
        window.after(UI_POLL_MS, lambda: _drain_ui_queue(window))
    except tk.TclError:
        _reset_ui_channel()


def _reset_ui_channel() -> None:
    _UI_READY.clear()
    while True:
        try:
            _UI_COMMANDS.get_nowait()
        except queue.Empty:
            break


class GuiResultSink(ResultSink):
    """
    Marshals engine events onto the Tk thread.

    Every event carries the session it was produced for and is re-checked
    against that session when the GUI thread runs it, so callbacks still
    waiting in the UI queue never leak into a newer session's panels.
    """

    def __init__(self, coordinator: SessionCoordinator, panels: Dict[Provider, "ResultPanel"],
                 on_idle: Callable[[int], None]):
        self._coordinator = coordinator
        self._panels = panels
        self._on_idle = on_idle

    def _post(self, session_id: int, provider: Optional[Provider], task: Callable[[], None]) -> None:
        def _guarded() -> None:
            if provider is None:
                if self._coordinator.is_current(session_id):
                    task()
            elif self._coordinator.should_continue(session_id, provider.index):
                task()

        post_ui(_guarded)

    def on_chunk(self, session_id: int, provider: Provider, text: str) -> None:
        self._post(session_id, provider, lambda: self._panels[provider].append_chunk(text))

    def on_complete(self, session_id: int, provider: Provider, result: ProviderResult) -> None:
        self._post(session_id, provider, lambda: self._panels[provider].show_result(result))

    def on_idle(self, session_id: int) -> None:
        self._post(session_id, None, lambda: self._on_idle(session_id))


class ModernButton(tk.Button):
    """A flat button with hover color."""

    PALETTES = {
        "primary": (COLORS['accent_primary'], '#FFFFFF', COLORS['accent_hover']),
        "secondary": (COLORS['bg_secondary'], COLORS['text_primary'], COLORS['border']),
        "danger": (COLORS['error'], '#FFFFFF', '#DC2626'),
    }

    def __init__(self, parent, text="", command=None, style="primary", **kwargs):
        bg, fg, hover_bg = self.PALETTES.get(style, self.PALETTES["secondary"])
        kwargs.setdefault('padx', 16)
        kwargs.setdefault('pady', 6)
        super().__init__(
            parent,
            text=text,
            command=command,
            bg=bg,
            fg=fg,
            font=('Segoe UI', 10, 'normal'),
            relief='flat',
            cursor='hand2',
            borderwidth=0,
            activebackground=hover_bg,
            **kwargs
        )
        self.default_bg = bg
        self.hover_bg = hover_bg
        self.bind('<Enter>', lambda e: self.configure(bg=self.hover_bg))
        self.bind('<Leave>', lambda e: self.configure(bg=self.default_bg))


class ResultPanel(tk.Frame):
    """One provider's output: header with state badge and buttons, text body."""

    def __init__(self, parent, provider: Provider, *, on_copy: Callable[[Provider], None],
                 on_cancel: Callable[[Provider], None], highlight_diffs: Callable[[], bool]):
        super().__init__(parent, bg=COLORS['bg_primary'], highlightthickness=1,
                         highlightbackground=COLORS['border'])
        self.provider = provider
        self.state = SlotState.IDLE
        self.result: Optional[ProviderResult] = None
        self.original_text = ""
        self._highlight_diffs = highlight_diffs
        self._diff = CachedDiff()

        tk.Frame(self, bg=provider.color.hex, height=4).pack(fill="x")

        header = tk.Frame(self, bg=COLORS['bg_primary'])
        header.pack(fill="x", padx=10, pady=(8, 4))

        tk.Label(header, text=provider.display_name, font=('Segoe UI', 12, 'bold'),
                 fg=provider.color.hex, bg=COLORS['bg_primary']).pack(side="left")

        self._badge = tk.Label(header, font=('Segoe UI', 9, 'bold'), fg='#FFFFFF', padx=8, pady=2)
        self._badge.pack(side="left", padx=(10, 0))

        self._elapsed_var = tk.StringVar(value="")
        tk.Label(header, textvariable=self._elapsed_var, font=('Segoe UI', 9),
                 fg=COLORS['text_secondary'], bg=COLORS['bg_primary']).pack(side="left", padx=(8, 0))

        self._copy_btn = ModernButton(header, text="Copy", style="primary",
                                      command=lambda: on_copy(provider))
        self._copy_btn.pack(side="right")
        self._cancel_btn = ModernButton(header, text="Cancel", style="secondary",
                                        command=lambda: on_cancel(provider))
        self._cancel_btn.pack(side="right", padx=(0, 6))

        body = tk.Frame(self, bg=COLORS['bg_primary'])
        body.pack(fill="both", expand=True, padx=10, pady=(0, 10))
        self._text = tk.Text(body, wrap="word", height=10, font=('Segoe UI', 10), relief='flat',
                             bg=COLORS['bg_secondary'], fg=COLORS['text_primary'], padx=8, pady=6)
        scrollbar = ttk.Scrollbar(body, orient="vertical", command=self._text.yview)
        self._text.configure(yscrollcommand=scrollbar.set)
        scrollbar.pack(side="right", fill="y")
        self._text.pack(side="left", fill="both", expand=True)

        self._text.tag_configure(INSERT, background=COLORS['diff_insert_bg'])
        self._text.tag_configure(DELETE, background=COLORS['diff_delete_bg'], overstrike=True)
        self._text.tag_configure("error", foreground=COLORS['error'])
        self._text.configure(state="disabled")

        self.set_state(SlotState.IDLE)

    def set_state(self, state: SlotState) -> None:
        self.state = state
        label, color = STATE_BADGES[state]
        self._badge.configure(text=label, bg=color)
        running = state in (SlotState.PENDING, SlotState.STREAMING)
        self._cancel_btn.configure(state="normal" if running else "disabled")
        copyable = state is SlotState.DONE and self.result is not None and self.result.ok
        self._copy_btn.configure(state="normal" if copyable else "disabled")

    def _replace_text(self, text: str = "", tag: Optional[str] = None) -> None:
        self._text.configure(state="normal")
        self._text.delete("1.0", "end")
        if text:
            self._text.insert("end", text, tag or ())
        self._text.configure(state="disabled")

    def reset(self, original_text: str) -> None:
        self.original_text = original_text
        self.result = None
        self._elapsed_var.set("")
        self._replace_text()
        self.set_state(SlotState.PENDING)

    def append_chunk(self, text: str) -> None:
        if self.state.is_terminal:
            return
        if self.state is not SlotState.STREAMING:
            self.set_state(SlotState.STREAMING)
        self._text.configure(state="normal")
        self._text.insert("end", text)
        self._text.see("end")
        self._text.configure(state="disabled")

    def show_result(self, result: ProviderResult) -> None:
        if self.state is SlotState.CANCELLED:
            return
        self.result = result
        self._elapsed_var.set(f"{result.elapsed:.1f}s")
        if not result.ok:
            self._replace_text(result.display_text, "error")
            self.set_state(SlotState.ERROR)
            return
        self.render_result()
        self.set_state(SlotState.DONE)

    def render_result(self) -> None:
        """Redraw the final text, with word highlights when enabled."""
        if self.result is None or not self.result.ok:
            return
        if not self._highlight_diffs():
            self._replace_text(self.result.text or "")
            return
        self._text.configure(state="normal")
        self._text.delete("1.0", "end")
        for change in self._diff.get_or_update(self.original_text, self.result.text or ""):
            self._text.insert("end", change.text, change.tag if change.tag in (INSERT, DELETE) else ())
        self._text.configure(state="disabled")

    def mark_cancelled(self) -> None:
        if self.state in (SlotState.PENDING, SlotState.STREAMING):
            self.set_state(SlotState.CANCELLED)


def notify_if_hidden(window: tk.Misc, tray: Optional["TrayIcon"], title: str, message: str) -> bool:
    """Show a tray notification when the window is withdrawn to the tray."""
    if tray is None:
        return False
    try:
        hidden = window.state() == "withdrawn"
    except tk.TclError:
        return False
    if hidden:
        tray.show_notification(title, message)
    return hidden


def _start_tray(**callbacks) -> Optional["TrayIcon"]:
    """Start the tray icon; the window still works when the tray is unavailable."""
    try:
        from ..tray_icon import TrayIcon
    except ImportError as tray_error:
        logger.warning(f"System tray unavailable: {tray_error}")
        return None
    tray = TrayIcon(**callbacks)
    tray.start()
    return tray


def open_settings_dialog(parent: tk.Misc, config: "ConfigManager") -> None:
    """API keys, models and AI options."""
    dialog = tk.Toplevel(parent)
    dialog.title("PolyCorrect - Settings")
    dialog.configure(bg=COLORS['bg_primary'])
    dialog.transient(parent)
    dialog.resizable(False, False)

    form = tk.Frame(dialog, bg=COLORS['bg_primary'])
    form.pack(fill="both", padx=20, pady=16)

    key_vars: Dict[Provider, tk.StringVar] = {}
    model_vars: Dict[Provider, tk.StringVar] = {}

    for column, heading in enumerate(("Provider", "API key", "Model")):
        tk.Label(form, text=heading, font=('Segoe UI', 10, 'bold'), fg=COLORS['text_primary'],
                 bg=COLORS['bg_primary']).grid(row=0, column=column, sticky="w", padx=4, pady=(0, 6))

    for row, provider in enumerate(Provider, start=1):
        tk.Label(form, text=provider.display_name, font=('Segoe UI', 10), fg=provider.color.hex,
                 bg=COLORS['bg_primary']).grid(row=row, column=0, sticky="w", padx=4, pady=3)
        key_vars[provider] = tk.StringVar(value=config.get_api_key(provider) or "")
        ttk.Entry(form, textvariable=key_vars[provider], show="●", width=42).grid(row=row, column=1, padx=4, pady=3)
        model_vars[provider] = tk.StringVar(value=config.get_model(provider))
        ttk.Entry(form, textvariable=model_vars[provider], width=28).grid(row=row, column=2, padx=4, pady=3)

    options = tk.Frame(dialog, bg=COLORS['bg_primary'])
    options.pack(fill="x", padx=20)

    streaming_var = tk.BooleanVar(value=config.is_streaming())
    tk.Checkbutton(options, text="Stream responses", variable=streaming_var, bg=COLORS['bg_primary'],
                   activebackground=COLORS['bg_primary']).grid(row=0, column=0, sticky="w")
    startup_var = tk.BooleanVar(value=config.is_auto_startup())
    tk.Checkbutton(options, text="Start with system", variable=startup_var, bg=COLORS['bg_primary'],
                   activebackground=COLORS['bg_primary']).grid(row=0, column=1, sticky="w", padx=(12, 0))

    tk.Label(options, text="Reasoning effort", bg=COLORS['bg_primary']).grid(row=1, column=0, sticky="w", pady=(8, 0))
    effort_var = tk.StringVar(value=config.get_ai_setting("reasoning_effort", "high"))
    ttk.Combobox(options, textvariable=effort_var, values=REASONING_EFFORT_OPTIONS, state="readonly",
                 width=12).grid(row=1, column=1, sticky="w", pady=(8, 0), padx=(12, 0))

    tk.Label(options, text="Verbosity", bg=COLORS['bg_primary']).grid(row=2, column=0, sticky="w", pady=(4, 0))
    verbosity_var = tk.StringVar(value=config.get_ai_setting("verbosity", "medium"))
    ttk.Combobox(options, textvariable=verbosity_var, values=VERBOSITY_OPTIONS, state="readonly",
                 width=12).grid(row=2, column=1, sticky="w", pady=(4, 0), padx=(12, 0))

    def save_settings() -> None:
        for provider in Provider:
            config.set_api_key(provider, key_vars[provider].get())
            model = model_vars[provider].get().strip()
            if model:
                config.set_model(provider, model)
        config.set_setting("streaming", streaming_var.get())
        config.set_ai_setting("reasoning_effort", effort_var.get())
        config.set_ai_setting("verbosity", verbosity_var.get())
        if startup_var.get() != config.is_auto_startup():
            config.set_auto_startup(startup_var.get())
        logger.info("Settings saved")
        dialog.destroy()

    buttons = tk.Frame(dialog, bg=COLORS['bg_primary'])
    buttons.pack(fill="x", padx=20, pady=16)
    ModernButton(buttons, text="Save", command=save_settings, style="primary").pack(side="right")
    ModernButton(buttons, text="Close", command=dialog.destroy, style="secondary").pack(side="right", padx=(0, 8))

    dialog.grab_set()


def launch_app(
    *,
    config: "ConfigManager",
    start_hidden: bool = False,
    on_close: Optional[Callable[[], None]] = None,
) -> None:
    """Build the window, start the engine, hotkey and tray, and run the Tk loop."""
    global _ACTIVE_ROOT

    _reset_ui_channel()

    base_root = tk.Tk()
    base_root.withdraw()

    window = tk.Toplevel(base_root)
    _ACTIVE_ROOT = window
    window.title("PolyCorrect - Multi-LLM Text Correction")
    window.minsize(900, 620)
    window.geometry("1180x780")
    window.configure(bg=COLORS['bg_secondary'])

    clipboard.use_tk_root(base_root)

    session_state = {"busy": False, "original": ""}
    panels: Dict[Provider, ResultPanel] = {}

    # ====================== TOOLBAR ======================
    toolbar = tk.Frame(window, bg=COLORS['bg_secondary'])
    toolbar.pack(fill="x", padx=16, pady=(14, 8))

    tk.Label(toolbar, text="Style", font=('Segoe UI', 10, 'bold'), fg=COLORS['text_primary'],
             bg=COLORS['bg_secondary']).pack(side="left")

    style_options: List[Dict[str, str]] = get_style_options()
    style_labels = [f"{option['icon']} {option['label']}" for option in style_options]
    label_to_key = dict(zip(style_labels, (option["key"] for option in style_options)))
    default_style = config.get_default_style()
    style_var = tk.StringVar(value=f"{default_style.icon} {default_style.label}")
    style_combo = ttk.Combobox(toolbar, textvariable=style_var, values=style_labels, state="readonly", width=28)
    style_combo.pack(side="left", padx=(8, 16))

    def selected_style() -> CorrectionStyle:
        return CorrectionStyle.from_str(label_to_key.get(style_var.get()))

    def on_style_selected(_event=None) -> None:
        config.set_setting("default_style", selected_style().value)

    style_combo.bind("<<ComboboxSelected>>", on_style_selected)

    highlight_var = tk.BooleanVar(value=config.should_highlight_diffs())

    def toggle_highlight() -> None:
        config.set_setting("highlight_diffs", highlight_var.get())
        for panel in panels.values():
            panel.render_result()

    tk.Checkbutton(toolbar, text="Highlight changes", variable=highlight_var, command=toggle_highlight,
                   bg=COLORS['bg_secondary'], activebackground=COLORS['bg_secondary']).pack(side="left")

    # ====================== PANELS ======================
    grid = tk.Frame(window, bg=COLORS['bg_secondary'])
    grid.pack(fill="both", expand=True, padx=16)
    for index in range(2):
        grid.grid_columnconfigure(index, weight=1, uniform="panels")
        grid.grid_rowconfigure(index, weight=1, uniform="panels")

    status_var = tk.StringVar(value="Copy some text and press Correct clipboard")

    def set_busy(busy: bool) -> None:
        session_state["busy"] = busy
        correct_btn.configure(state="disabled" if busy else "normal")
        cancel_all_btn.configure(state="normal" if busy else "disabled")
        if tray is not None:
            tray.update_status(busy)

    def copy_result(provider: Provider) -> None:
        panel = panels[provider]
        if panel.result is None or not panel.result.ok:
            return
        try:
            clipboard.write_text(panel.result.text or "")
        except clipboard.ClipboardError as clip_error:
            logger.error(f"Failed to copy {provider} result: {clip_error}")
            status_var.set(f"Could not copy: {clip_error}")
            return
        status_var.set(f"Copied the {provider.display_name} result to the clipboard")
        if config.should_minimize_to_tray() and tray is not None:
            window.withdraw()

    def cancel_provider(provider: Provider) -> None:
        engine.cancel_one(provider)
        panels[provider].mark_cancelled()

    for provider in Provider:
        panel = ResultPanel(grid, provider, on_copy=copy_result, on_cancel=cancel_provider,
                            highlight_diffs=highlight_var.get)
        panel.grid(row=provider.index // 2, column=provider.index % 2, sticky="nsew", padx=6, pady=6)
        panels[provider] = panel

    def on_session_idle(session_id: int) -> None:
        failed = sum(1 for panel in panels.values() if panel.state is SlotState.ERROR)
        set_busy(False)
        if failed == len(panels):
            status_var.set("All providers failed - check API keys in Settings")
        else:
            status_var.set("Done - pick a result to copy")
        notify_if_hidden(window, tray, "PolyCorrect", status_var.get())
        logger.debug(f"Session {session_id} displayed")

    coordinator = SessionCoordinator(len(Provider))
    sink = GuiResultSink(coordinator, panels, on_session_idle)
    engine = DispatchEngine(sink, config, coordinator=coordinator)
    engine.start()

    # ====================== ACTIONS ======================
    def start_correction() -> None:
        try:
            text = clipboard.read_text()
        except clipboard.ClipboardError as clip_error:
            logger.error(f"Clipboard read failed: {clip_error}")
            status_var.set(f"Could not read the clipboard: {clip_error}")
            return
        if not text.strip():
            status_var.set("Clipboard is empty - copy some text first")
            return

        session_state["original"] = text
        for panel in panels.values():
            panel.reset(text)
        session_id = engine.dispatch(text, selected_style())
        set_busy(True)
        status_var.set(f"Correcting {len(text)} characters ({selected_style().label})...")
        logger.info(f"Session {session_id}: correcting {len(text)} chars")

    def cancel_all() -> None:
        engine.cancel_all()
        for panel in panels.values():
            panel.mark_cancelled()
        set_busy(False)
        status_var.set("Cancelled")

    def show_window() -> None:
        window.deiconify()
        window.lift()
        window.focus_force()

    def trigger_from_anywhere() -> None:
        def _run() -> None:
            show_window()
            start_correction()
        post_ui(_run)

    actions = tk.Frame(window, bg=COLORS['bg_secondary'])
    actions.pack(fill="x", padx=16, pady=(8, 4))

    correct_btn = ModernButton(actions, text="Correct clipboard", command=start_correction, style="primary")
    correct_btn.pack(side="left")
    cancel_all_btn = ModernButton(actions, text="Cancel all", command=cancel_all, style="danger")
    cancel_all_btn.pack(side="left", padx=(8, 0))
    ModernButton(actions, text="Settings", command=lambda: open_settings_dialog(window, config),
                 style="secondary").pack(side="right")

    tk.Label(window, textvariable=status_var, font=('Segoe UI', 9), fg=COLORS['text_secondary'],
             bg=COLORS['bg_secondary'], anchor="w").pack(fill="x", padx=18, pady=(0, 10))

    # ====================== HOTKEY & TRAY ======================
    hotkey = HotkeyListener(trigger_from_anywhere, hotkey=config.get_hotkey())
    if hotkey.start():
        status_var.set(f"Press {hotkey.active_combo.upper()} anywhere to correct the clipboard")

    shutdown_once = threading.Event()

    def shutdown() -> None:
        global _ACTIVE_ROOT
        if shutdown_once.is_set():
            return
        shutdown_once.set()
        hotkey.stop()
        engine.stop()
        if tray is not None:
            tray.stop()
        _ACTIVE_ROOT = None
        _reset_ui_channel()
        if on_close:
            on_close()
        try:
            window.destroy()
            base_root.destroy()
        except tk.TclError:
            pass

    tray = _start_tray(
        on_show_gui=lambda: post_ui(show_window),
        on_correct=trigger_from_anywhere,
        on_cancel=lambda: post_ui(cancel_all),
        on_exit=lambda: post_ui(shutdown),
    )

    set_busy(False)

    def on_closing() -> None:
        if tray is not None and config.should_minimize_to_tray():
            window.withdraw()
            return
        if session_state["busy"] and not messagebox.askokcancel("Quit", "A correction is running. Exit anyway?"):
            return
        shutdown()

    window.protocol("WM_DELETE_WINDOW", on_closing)

    if start_hidden and tray is not None:
        window.withdraw()

    _UI_READY.set()
    window.after(UI_POLL_MS, lambda: _drain_ui_queue(window))
    try:
        base_root.mainloop()
    finally:
        shutdown()
