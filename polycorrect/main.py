"""Application entry point: GUI with tray and hotkey, or a one-shot console run."""
from __future__ import annotations

import argparse
import logging
import sys
import threading
from pathlib import Path
from typing import Dict, Optional

from . import clipboard
from .config_manager import ConfigManager
from .dispatch import DispatchEngine, ProviderResult, ResultSink
from .logger import PolyCorrectLogger, get_logger
from .prompts import CorrectionStyle
from .providers import Provider

logger = get_logger(__name__)

CONSOLE_TIMEOUT = 180.0


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="PolyCorrect - correct clipboard text with four LLM providers at once")
    parser.add_argument("--no-gui", action="store_true", help="Correct once in the console and exit")
    parser.add_argument("--text", type=str, default=None, help="Text to correct in console mode (default: clipboard)")
    parser.add_argument(
        "--style",
        type=str,
        default=None,
        choices=[style.value for style in CorrectionStyle],
        help="Correction style (default: the configured default style)",
    )
    parser.add_argument("--minimized", action="store_true", help="Start hidden in the system tray")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose debug output")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress all console output except errors")
    parser.add_argument("--log-file", type=str, default=None, help="Write logs to specified file")
    return parser.parse_args(argv)


class ConsoleSink(ResultSink):
    """Prints each provider's final result as it arrives."""

    def __init__(self, stream=None):
        self._stream = stream or sys.stdout
        self._lock = threading.Lock()
        self.results: Dict[Provider, ProviderResult] = {}
        self.done = threading.Event()

    def on_complete(self, session_id: int, provider: Provider, result: ProviderResult) -> None:
        with self._lock:
            self.results[provider] = result
            status = "OK" if result.ok else "FAILED"
            self._stream.write(f"\n=== {provider.display_name} [{status}] ({result.elapsed:.2f}s) ===\n")
            self._stream.write(result.display_text + "\n")
            self._stream.flush()

    def on_idle(self, session_id: int) -> None:
        self.done.set()


def _read_console_text(args: argparse.Namespace) -> Optional[str]:
    if args.text is not None:
        return args.text

    if sys.platform != "win32":
        import tkinter as tk

        try:
            root = tk.Tk()
        except tk.TclError as tk_error:
            logger.error(f"Cannot open the clipboard without a display: {tk_error}")
            return None
        root.withdraw()
        clipboard.use_tk_root(root)
        try:
            return clipboard.read_text()
        finally:
            root.destroy()

    try:
        return clipboard.read_text()
    except clipboard.ClipboardError as clip_error:
        logger.error(f"Clipboard read failed: {clip_error}")
        return None


def run_console(args: argparse.Namespace, config: ConfigManager) -> int:
    """Correct the given text (or the clipboard) once and print every result."""
    text = _read_console_text(args)
    if text is None:
        return 1
    if not text.strip():
        logger.error("Nothing to correct - the text is empty")
        return 1

    sink = ConsoleSink()
    engine = DispatchEngine(sink, config)
    engine.start()
    try:
        engine.dispatch(text, args.style)
        if not engine.wait_idle(CONSOLE_TIMEOUT):
            logger.error("Timed out waiting for providers")
            engine.cancel_all()
            return 1
    except KeyboardInterrupt:
        logger.info("Interrupted - cancelling")
        engine.cancel_all()
        return 130
    finally:
        engine.stop()

    succeeded = sum(1 for result in sink.results.values() if result.ok)
    logger.info(f"{succeeded}/{len(Provider)} providers succeeded")
    return 0 if succeeded else 1


def main(argv: Optional[list] = None) -> int:
    """Main application entry point."""
    args = parse_args(argv)

    log_level = logging.ERROR if args.quiet else (logging.DEBUG if args.verbose else logging.INFO)
    log_file = Path(args.log_file) if args.log_file else None
    PolyCorrectLogger.setup(
        level=log_level,
        log_file=log_file,
        console=not args.quiet
    )
    if log_file:
        logger.info(f"Writing logs to: {log_file}")

    config = ConfigManager()
    logger.info(f"Configuration loaded from: {config.config_file}")
    missing = [provider.display_name for provider in Provider if not config.get_api_key(provider)]
    if missing:
        logger.warning(f"No API key for: {', '.join(missing)} - those panels will report an error")

    if args.no_gui:
        return run_console(args, config)

    from .gui.app_gui import launch_app

    try:
        launch_app(config=config, start_hidden=args.minimized)
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt detected")
    except Exception:
        logger.exception("Application error")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
