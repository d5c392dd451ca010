"""Concurrent dispatch of one correction to every provider.

The engine owns an asyncio event loop running on a daemon thread. Each
dispatch spawns one task per provider plus a relay task; provider tasks push
``Chunk``/``Complete`` events into a queue and the relay forwards them to the
``ResultSink`` as long as the session they belong to is still current and the
provider has not been cancelled.
"""
from __future__ import annotations

import asyncio
import concurrent.futures
import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Union

from .errors import ApiError, ApiResponseError
from .logger import get_logger
from .prompts import CorrectionStyle, get_system_prompt
from .providers import CorrectionRequest, HttpTransport, Provider, ProviderAdapter, get_adapter
from .session import SessionCoordinator

if TYPE_CHECKING:
    from .config_manager import ConfigManager

logger = get_logger(__name__)

LOOP_START_TIMEOUT = 5.0
STOP_TIMEOUT = 5.0


class SlotState(Enum):
    IDLE = "idle"
    PENDING = "pending"
    STREAMING = "streaming"
    DONE = "done"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (SlotState.DONE, SlotState.ERROR, SlotState.CANCELLED)


@dataclass(frozen=True)
class ProviderResult:
    """Final outcome of one provider for one session."""

    provider: Provider
    text: Optional[str] = None
    error: Optional[ApiError] = None
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def display_text(self) -> str:
        if self.error is not None:
            return str(self.error)
        return self.text or ""


@dataclass(frozen=True)
class Chunk:
    provider: Provider
    session_id: int
    text: str


@dataclass(frozen=True)
class Complete:
    provider: Provider
    session_id: int
    result: ProviderResult


StreamEvent = Union[Chunk, Complete]


@dataclass(frozen=True)
class _TaskFinished:
    provider: Provider


class ResultSink:
    """
    Receives the events of the current session.

    Callbacks run on the engine's loop thread and carry the id of the session
    the event belongs to. A provider may deliver zero chunks before its result,
    and after a cancel no further events arrive for the cancelled providers.
    """

    def on_chunk(self, session_id: int, provider: Provider, text: str) -> None:
        pass

    def on_complete(self, session_id: int, provider: Provider, result: ProviderResult) -> None:
        pass

    def on_idle(self, session_id: int) -> None:
        pass


class DispatchEngine:
    """Runs correction sessions against all providers concurrently."""

    def __init__(
        self,
        sink: ResultSink,
        config: Optional["ConfigManager"] = None,
        *,
        coordinator: Optional[SessionCoordinator] = None,
        transport: Optional[HttpTransport] = None,
        adapters: Optional[Mapping[Provider, ProviderAdapter]] = None,
    ) -> None:
        self._sink = sink
        self._config = config
        self._coordinator = coordinator or SessionCoordinator(len(Provider))
        self._transport = transport or HttpTransport()
        if adapters is None:
            adapters = {provider: get_adapter(provider, self._transport) for provider in Provider}
        self._adapters: Dict[Provider, ProviderAdapter] = dict(adapters)

        self._slots: Dict[Provider, SlotState] = {provider: SlotState.IDLE for provider in Provider}
        self._slot_session = 0
        self._slots_lock = threading.Lock()

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()

        self._active_sessions = 0
        self._idle = threading.Event()
        self._idle.set()
        self._active_lock = threading.Lock()

    @property
    def coordinator(self) -> SessionCoordinator:
        return self._coordinator

    @property
    def is_running(self) -> bool:
        return self._loop is not None and self._loop.is_running()

    @property
    def is_idle(self) -> bool:
        return self._idle.is_set()

    # ── Loop thread ───────────────────────────────────────────

    def start(self) -> None:
        """Start the background event loop thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._ready.clear()
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_loop, name="DispatchLoop", daemon=True)
        self._thread.start()
        if not self._ready.wait(LOOP_START_TIMEOUT):
            raise RuntimeError("Dispatch event loop did not start")
        logger.info("Dispatch engine started")

    def _run_loop(self) -> None:
        loop = self._loop
        asyncio.set_event_loop(loop)
        loop.call_soon(self._ready.set)
        try:
            loop.run_forever()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.close()
            logger.debug("Dispatch event loop closed")

    def stop(self, timeout: float = STOP_TIMEOUT) -> None:
        """Silence the current session, close the HTTP clients and stop the loop."""
        loop = self._loop
        if loop is None:
            return

        self._coordinator.cancel_all()
        if loop.is_running():
            future = asyncio.run_coroutine_threadsafe(self._transport.aclose(), loop)
            try:
                future.result(timeout)
            except concurrent.futures.TimeoutError:
                logger.warning("Timed out closing HTTP clients")
            loop.call_soon_threadsafe(loop.stop)

        if self._thread is not None:
            self._thread.join(timeout)
        self._thread = None
        self._loop = None
        logger.info("Dispatch engine stopped")

    # ── Dispatch ──────────────────────────────────────────────

    def build_requests(self, text: str, style: Any = None) -> Dict[Provider, CorrectionRequest]:
        """Build one immutable request per provider from the config store."""
        config = self._config
        if style is None and config is not None:
            style = config.get_setting("default_style", CorrectionStyle.NORMAL.value)
        style = CorrectionStyle.from_str(style)

        template = CorrectionRequest(
            text=text,
            instruction_prompt=style.instruction,
            system_prompt=get_system_prompt(style),
            model="",
            api_key="",
            streaming=config.is_streaming() if config is not None else True,
            reasoning_effort=config.get_ai_setting("reasoning_effort") if config is not None else None,
            verbosity=config.get_ai_setting("verbosity") if config is not None else None,
        )
        if config is None:
            return {provider: template for provider in Provider}

        return {
            provider: replace(
                template,
                model=config.get_model(provider),
                api_key=config.get_api_key(provider) or "",
            )
            for provider in Provider
        }

    def dispatch(self, text: str, style: Any = None) -> int:
        """Start a session for ``text`` on every provider and return its id.

        Safe to call from any thread. A running session is superseded.
        """
        return self.submit(self.build_requests(text, style))

    def submit(self, requests: Mapping[Provider, CorrectionRequest]) -> int:
        loop = self._loop
        if loop is None or not loop.is_running():
            raise RuntimeError("Dispatch engine is not running")

        session_id = self._coordinator.begin_session()
        self._claim_slots(session_id)

        with self._active_lock:
            self._active_sessions += 1
            self._idle.clear()

        asyncio.run_coroutine_threadsafe(self._run_tracked(session_id, dict(requests)), loop)
        logger.info(f"Dispatched session {session_id} to {len(requests)} providers")
        return session_id

    async def _run_tracked(self, session_id: int, requests: Dict[Provider, CorrectionRequest]) -> None:
        try:
            await self.run_session(session_id, requests)
        except Exception:
            logger.exception(f"Session {session_id} failed")
        finally:
            with self._active_lock:
                self._active_sessions -= 1
                if self._active_sessions == 0:
                    self._idle.set()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no session is running. Returns False on timeout."""
        return self._idle.wait(timeout)

    async def run_session(self, session_id: int, requests: Mapping[Provider, CorrectionRequest]) -> None:
        """Run one provider task per request plus the relay, until all finish."""
        self._claim_slots(session_id)
        queue: asyncio.Queue = asyncio.Queue()

        tasks: List[asyncio.Task] = [
            asyncio.create_task(
                self._provider_task(provider, request, session_id, queue),
                name=f"{provider.display_name}-{session_id}",
            )
            for provider, request in requests.items()
        ]
        relay = asyncio.create_task(self._relay(session_id, queue, len(tasks)), name=f"relay-{session_id}")

        await asyncio.gather(*tasks, relay)
        logger.debug(f"Session {session_id} finished")

    async def _provider_task(
        self,
        provider: Provider,
        request: CorrectionRequest,
        session_id: int,
        queue: asyncio.Queue,
    ) -> None:
        index = provider.index
        try:
            if not self._coordinator.should_continue(session_id, index):
                self._set_slot(session_id, provider, SlotState.CANCELLED)
                return

            def on_event(fragment: str) -> None:
                if self._coordinator.should_continue(session_id, index):
                    self._set_slot(session_id, provider, SlotState.STREAMING)
                    queue.put_nowait(Chunk(provider, session_id, fragment))

            started = time.perf_counter()
            try:
                text = await self._adapters[provider].correct(request, on_event)
                result = ProviderResult(provider, text=text, elapsed=time.perf_counter() - started)
            except ApiError as error:
                result = ProviderResult(provider, error=error, elapsed=time.perf_counter() - started)
            except Exception as error:
                logger.exception(f"{provider}: unexpected failure")
                result = ProviderResult(
                    provider,
                    error=ApiResponseError(f"Unexpected error: {error}"),
                    elapsed=time.perf_counter() - started,
                )

            if not self._coordinator.should_continue(session_id, index):
                logger.debug(f"{provider}: dropping result of session {session_id}")
                self._set_slot(session_id, provider, SlotState.CANCELLED)
                return

            if result.ok:
                logger.info(f"{provider}: completed in {result.elapsed:.2f}s")
                self._set_slot(session_id, provider, SlotState.DONE)
            else:
                logger.warning(f"{provider}: {result.error}")
                self._set_slot(session_id, provider, SlotState.ERROR)
            queue.put_nowait(Complete(provider, session_id, result))
        finally:
            queue.put_nowait(_TaskFinished(provider))

    async def _relay(self, session_id: int, queue: asyncio.Queue, expected: int) -> None:
        finished = 0
        while finished < expected:
            event = await queue.get()
            if isinstance(event, _TaskFinished):
                finished += 1
                continue
            if not self._coordinator.should_continue(session_id, event.provider.index):
                continue
            if isinstance(event, Chunk):
                self._notify(self._sink.on_chunk, event.session_id, event.provider, event.text)
            else:
                self._notify(self._sink.on_complete, event.session_id, event.provider, event.result)

        if self._coordinator.is_current(session_id):
            self._notify(self._sink.on_idle, session_id)

    @staticmethod
    def _notify(callback: Callable[..., None], *args: Any) -> None:
        try:
            callback(*args)
        except Exception:
            logger.exception("Result sink callback failed")

    # ── Cancellation ──────────────────────────────────────────

    def cancel_all(self) -> None:
        self._coordinator.cancel_all()
        with self._slots_lock:
            for provider, state in self._slots.items():
                if state in (SlotState.PENDING, SlotState.STREAMING):
                    self._slots[provider] = SlotState.CANCELLED
        logger.info("Cancelled all providers")

    def cancel_one(self, provider: Provider) -> None:
        self._coordinator.cancel_one(provider.index)
        with self._slots_lock:
            if self._slots[provider] in (SlotState.PENDING, SlotState.STREAMING):
                self._slots[provider] = SlotState.CANCELLED
        logger.info(f"Cancelled {provider}")

    # ── Slot state ────────────────────────────────────────────

    def slot_state(self, provider: Provider) -> SlotState:
        with self._slots_lock:
            return self._slots[provider]

    def _claim_slots(self, session_id: int) -> None:
        with self._slots_lock:
            if session_id <= self._slot_session:
                return
            self._slot_session = session_id
            for provider in self._slots:
                self._slots[provider] = SlotState.PENDING

    def _set_slot(self, session_id: int, provider: Provider, state: SlotState) -> None:
        with self._slots_lock:
            if session_id != self._slot_session:
                return
            current = self._slots[provider]
            if current is SlotState.CANCELLED and state is not SlotState.CANCELLED:
                return
            self._slots[provider] = state
