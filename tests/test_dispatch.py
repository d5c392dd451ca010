"""Unit tests for the dispatch engine."""
from __future__ import annotations

import asyncio
import tempfile
import threading
import unittest
from dataclasses import replace
from pathlib import Path
from unittest.mock import patch

import httpx

from polycorrect.config_manager import ConfigManager
from polycorrect.dispatch import DispatchEngine, ProviderResult, ResultSink, SlotState
from polycorrect.errors import ApiConnectionError, ApiResponseError
from polycorrect.prompts import CorrectionStyle, get_system_prompt
from polycorrect.providers import HttpTransport, Provider


class RecordingSink(ResultSink):
    """Collects every event forwarded by the engine."""

    def __init__(self):
        self.events = []
        self.sessions = set()
        self.idle = threading.Event()

    def on_chunk(self, session_id, provider, text):
        self.sessions.add(session_id)
        self.events.append(("chunk", provider, text))

    def on_complete(self, session_id, provider, result):
        self.sessions.add(session_id)
        self.events.append(("complete", provider, result))

    def on_idle(self, session_id):
        self.events.append(("idle", session_id))
        self.idle.set()

    def for_provider(self, provider):
        return [event for event in self.events if event[0] != "idle" and event[1] is provider]

    def results(self):
        return {event[1]: event[2] for event in self.events if event[0] == "complete"}


class ScriptedAdapter:
    """Stands in for a provider adapter: emits chunks, then returns or raises."""

    def __init__(self, chunks=(), text="ok", error=None, gate=None):
        self.chunks = list(chunks)
        self.text = text
        self.error = error
        self.gate = gate
        self.calls = 0
        self.started = None
        self.finished = False

    async def correct(self, request, on_event=None):
        self.calls += 1
        if self.started is not None:
            self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        for chunk in self.chunks:
            if on_event is not None:
                on_event(chunk)
            await asyncio.sleep(0)
        self.finished = True
        if self.error is not None:
            raise self.error
        return self.text


class DispatchTestCase(unittest.IsolatedAsyncioTestCase):

    def make_engine(self, adapters=None, **kwargs):
        self.sink = RecordingSink()
        engine = DispatchEngine(self.sink, adapters=adapters, **kwargs)
        return engine

    def scripted(self, gate=None, overrides=None):
        adapters = {provider: ScriptedAdapter(text=f"{provider.display_name} text", gate=gate) for provider in Provider}
        for provider, adapter in (overrides or {}).items():
            adapters[provider] = adapter
        for adapter in adapters.values():
            adapter.started = asyncio.Event()
        return adapters

    async def wait_started(self, adapters):
        await asyncio.wait_for(asyncio.gather(*(adapter.started.wait() for adapter in adapters.values())), 2)


class TestRunSession(DispatchTestCase):
    """Event flow of a single session."""

    async def test_all_providers_complete_then_idle(self):
        adapters = self.scripted()
        engine = self.make_engine(adapters)
        session_id = engine.coordinator.begin_session()

        await engine.run_session(session_id, engine.build_requests("text"))

        results = self.sink.results()
        self.assertEqual(set(results), set(Provider))
        for provider, result in results.items():
            self.assertTrue(result.ok)
            self.assertEqual(result.text, f"{provider.display_name} text")
            self.assertIs(engine.slot_state(provider), SlotState.DONE)
        self.assertEqual(self.sink.sessions, {session_id})
        self.assertEqual(self.sink.events[-1], ("idle", session_id))
        self.assertTrue(all(adapter.calls == 1 for adapter in adapters.values()))

    async def test_chunks_precede_complete(self):
        """Per provider, chunks arrive in order before the final result."""
        adapters = self.scripted(overrides={Provider.OPENAI: ScriptedAdapter(chunks=["Hel", "lo"], text="Hello")})
        engine = self.make_engine(adapters)
        session_id = engine.coordinator.begin_session()

        await engine.run_session(session_id, engine.build_requests("text"))

        events = self.sink.for_provider(Provider.OPENAI)
        self.assertEqual([event[0] for event in events], ["chunk", "chunk", "complete"])
        self.assertEqual([event[2] for event in events[:2]], ["Hel", "lo"])
        self.assertEqual(events[2][2].text, "Hello")
        self.assertEqual(events[2][2].text, "".join(event[2] for event in events[:2]).strip())

    async def test_errors_are_per_slot(self):
        adapters = self.scripted(overrides={
            Provider.GEMINI: ScriptedAdapter(error=ApiConnectionError("refused")),
            Provider.DEEPSEEK: ScriptedAdapter(error=ApiResponseError("HTTP 500: boom")),
        })
        engine = self.make_engine(adapters)
        session_id = engine.coordinator.begin_session()

        await engine.run_session(session_id, engine.build_requests("text"))

        results = self.sink.results()
        self.assertTrue(results[Provider.OPENAI].ok)
        self.assertEqual(results[Provider.GEMINI].error, ApiConnectionError("refused"))
        self.assertEqual(results[Provider.GEMINI].display_text, "Connection error: refused")
        self.assertIs(engine.slot_state(Provider.GEMINI), SlotState.ERROR)
        self.assertIs(engine.slot_state(Provider.DEEPSEEK), SlotState.ERROR)
        self.assertIn(("idle", session_id), self.sink.events)

    async def test_all_failing_still_reaches_idle(self):
        adapters = {provider: ScriptedAdapter(error=ApiResponseError("API key is empty")) for provider in Provider}
        engine = self.make_engine(adapters)
        session_id = engine.coordinator.begin_session()

        await engine.run_session(session_id, engine.build_requests("text"))

        self.assertEqual(len(self.sink.results()), 4)
        self.assertFalse(any(result.ok for result in self.sink.results().values()))
        self.assertEqual(self.sink.events[-1], ("idle", session_id))

    async def test_unexpected_exception_becomes_response_error(self):
        adapters = self.scripted(overrides={Provider.ANTHROPIC: ScriptedAdapter(error=RuntimeError("boom"))})
        engine = self.make_engine(adapters)
        session_id = engine.coordinator.begin_session()

        with self.assertLogs("PolyCorrect.dispatch", level="ERROR"):
            await engine.run_session(session_id, engine.build_requests("text"))

        result = self.sink.results()[Provider.ANTHROPIC]
        self.assertIsInstance(result.error, ApiResponseError)
        self.assertIn("boom", result.error.message)

    async def test_failing_sink_does_not_stop_relay(self):
        adapters = self.scripted(overrides={Provider.OPENAI: ScriptedAdapter(chunks=["a"], text="a")})
        engine = self.make_engine(adapters)

        def broken_chunk(session_id, provider, text):
            raise ValueError("sink broke")

        self.sink.on_chunk = broken_chunk
        session_id = engine.coordinator.begin_session()

        with self.assertLogs("PolyCorrect.dispatch", level="ERROR"):
            await engine.run_session(session_id, engine.build_requests("text"))

        self.assertEqual(len(self.sink.results()), 4)
        self.assertIn(("idle", session_id), self.sink.events)


class TestCancellation(DispatchTestCase):
    """Cancelled or superseded work never reaches the sink."""

    async def test_cancel_all_suppresses_every_event(self):
        gate = asyncio.Event()
        adapters = self.scripted(gate=gate)
        adapters[Provider.OPENAI].chunks = ["Hel", "lo"]
        engine = self.make_engine(adapters)
        session_id = engine.coordinator.begin_session()

        task = asyncio.create_task(engine.run_session(session_id, engine.build_requests("text")))
        await self.wait_started(adapters)
        engine.cancel_all()
        gate.set()
        await asyncio.wait_for(task, 2)

        self.assertEqual(self.sink.events, [])
        self.assertTrue(all(adapter.finished for adapter in adapters.values()))
        for provider in Provider:
            self.assertIs(engine.slot_state(provider), SlotState.CANCELLED)

    async def test_cancel_before_start_skips_network(self):
        adapters = self.scripted()
        engine = self.make_engine(adapters)
        session_id = engine.coordinator.begin_session()
        engine.cancel_all()

        await engine.run_session(session_id, engine.build_requests("text"))

        self.assertEqual(self.sink.events, [])
        self.assertTrue(all(adapter.calls == 0 for adapter in adapters.values()))

    async def test_cancel_one_provider(self):
        gate = asyncio.Event()
        adapters = self.scripted(gate=gate)
        engine = self.make_engine(adapters)
        session_id = engine.coordinator.begin_session()

        task = asyncio.create_task(engine.run_session(session_id, engine.build_requests("text")))
        await self.wait_started(adapters)
        engine.cancel_one(Provider.GEMINI)
        self.assertIs(engine.slot_state(Provider.GEMINI), SlotState.CANCELLED)
        gate.set()
        await asyncio.wait_for(task, 2)

        self.assertEqual(self.sink.for_provider(Provider.GEMINI), [])
        self.assertEqual(set(self.sink.results()), {Provider.OPENAI, Provider.ANTHROPIC, Provider.DEEPSEEK})
        self.assertIs(engine.slot_state(Provider.GEMINI), SlotState.CANCELLED)
        self.assertIs(engine.slot_state(Provider.OPENAI), SlotState.DONE)
        self.assertEqual(self.sink.events[-1], ("idle", session_id))

    async def test_new_session_supersedes_running_one(self):
        gate = asyncio.Event()
        adapters = self.scripted(gate=gate)
        engine = self.make_engine(adapters)
        stale_id = engine.coordinator.begin_session()

        task = asyncio.create_task(engine.run_session(stale_id, engine.build_requests("old text")))
        await self.wait_started(adapters)
        current_id = engine.coordinator.begin_session()
        gate.set()
        await asyncio.wait_for(task, 2)

        self.assertGreater(current_id, stale_id)
        self.assertEqual(self.sink.events, [])

    async def test_sink_receives_the_events_own_session(self):
        adapters = self.scripted(overrides={Provider.OPENAI: ScriptedAdapter(chunks=["Hel", "lo"], text="Hello")})
        engine = self.make_engine(adapters)
        session_id = engine.coordinator.begin_session()
        received = []

        def chunk_then_new_session(chunk_session, provider, text):
            received.append((chunk_session, engine.coordinator.current))
            engine.coordinator.begin_session()

        self.sink.on_chunk = chunk_then_new_session
        await engine.run_session(session_id, engine.build_requests("text"))

        self.assertEqual(received[0], (session_id, session_id))
        self.assertEqual(len(received), 1)
        self.assertEqual(self.sink.results(), {})


class TestRealAdapters(DispatchTestCase):
    """The engine with the real adapters over a mocked HTTP transport."""

    async def test_three_invalid_keys_one_valid(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"choices": [{"message": {"content": "Hello world"}}]})

        transport = HttpTransport(transport=httpx.MockTransport(handler))
        engine = self.make_engine(transport=transport)
        requests = engine.build_requests("helo wrld")
        requests = {
            provider: replace(
                request,
                streaming=False,
                model="gpt-4o" if provider is Provider.OPENAI else "some-model",
                api_key="sk-test" if provider is Provider.OPENAI else "",
            )
            for provider, request in requests.items()
        }
        session_id = engine.coordinator.begin_session()

        await engine.run_session(session_id, requests)
        await transport.aclose()

        results = self.sink.results()
        self.assertEqual(len(calls), 1)
        self.assertEqual(results[Provider.OPENAI], ProviderResult(
            Provider.OPENAI, text="Hello world", elapsed=results[Provider.OPENAI].elapsed,
        ))
        failed = [provider for provider, result in results.items() if not result.ok]
        self.assertEqual(set(failed), {Provider.ANTHROPIC, Provider.GEMINI, Provider.DEEPSEEK})
        for provider in failed:
            self.assertEqual(results[provider].error, ApiResponseError("API key is empty"))
            self.assertIs(engine.slot_state(provider), SlotState.ERROR)


class TestBuildRequests(unittest.TestCase):
    """Per-provider requests built from the config store."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        with patch.dict("os.environ", {}, clear=True):
            self.config = ConfigManager(config_dir=Path(self._tmp.name))
        self.engine = DispatchEngine(RecordingSink(), self.config, adapters={})

    def test_requests_use_config_keys_and_models(self):
        self.config.set_api_key(Provider.OPENAI, "sk-openai")
        self.config.set_model(Provider.GEMINI, "gemini-2.5-pro")

        with patch.dict("os.environ", {}, clear=True):
            requests = self.engine.build_requests("tekst", "professional")

        self.assertEqual(set(requests), set(Provider))
        self.assertEqual(requests[Provider.OPENAI].api_key, "sk-openai")
        self.assertEqual(requests[Provider.ANTHROPIC].api_key, "")
        self.assertEqual(requests[Provider.GEMINI].model, "gemini-2.5-pro")
        self.assertEqual(requests[Provider.OPENAI].model, "gpt-5-mini")
        for request in requests.values():
            self.assertEqual(request.text, "tekst")
            self.assertEqual(request.instruction_prompt, CorrectionStyle.PROFESSIONAL.instruction)
            self.assertEqual(request.system_prompt, get_system_prompt("professional"))
            self.assertEqual(request.reasoning_effort, "high")
            self.assertEqual(request.verbosity, "medium")
            self.assertTrue(request.streaming)

    def test_default_style_from_config(self):
        self.config.set_setting("default_style", "summary")
        requests = self.engine.build_requests("tekst")
        self.assertEqual(requests[Provider.DEEPSEEK].instruction_prompt, CorrectionStyle.SUMMARY.instruction)

    def test_streaming_setting(self):
        self.config.set_setting("streaming", False)
        requests = self.engine.build_requests("tekst")
        self.assertFalse(any(request.streaming for request in requests.values()))


class TestEngineThread(unittest.TestCase):
    """dispatch() from a foreign thread onto the engine's loop thread."""

    def test_dispatch_and_wait_idle(self):
        sink = RecordingSink()
        adapters = {provider: ScriptedAdapter(chunks=["x"], text="x") for provider in Provider}
        engine = DispatchEngine(sink, adapters=adapters)
        engine.start()
        self.addCleanup(engine.stop)

        session_id = engine.dispatch("some text", "normal")

        self.assertTrue(engine.wait_idle(5))
        self.assertTrue(sink.idle.wait(5))
        self.assertEqual(len(sink.results()), 4)
        self.assertIn(("idle", session_id), sink.events)
        self.assertTrue(engine.is_idle)

    def test_dispatch_requires_running_engine(self):
        engine = DispatchEngine(RecordingSink(), adapters={})
        with self.assertRaises(RuntimeError):
            engine.dispatch("text")

    def test_stop_is_idempotent(self):
        engine = DispatchEngine(RecordingSink(), adapters={})
        engine.start()
        self.assertTrue(engine.is_running)
        engine.stop()
        engine.stop()
        self.assertFalse(engine.is_running)


if __name__ == "__main__":
    unittest.main()
