from __future__ import annotations

import asyncio
import logging
import unittest
from typing import Callable

from novel_translator.app.translation.backends.base import TranslationBackend, TranslationBackendError
from novel_translator.app.translation.client import ModelFallbackClient
from novel_translator.app.translation.config import TranslatorConfig
from novel_translator.app.translation.orchestrator import ReaderPhase, TranslationOrchestrator
from novel_translator.app.translation.selection import ReadingSurface
from novel_translator.app.translation.types import (
    FAILED_TO_TRANSLATE_MESSAGE,
    PanelState,
    PanelStatus,
    Selection,
    TranslationOutcome,
)


class _GatedBackend(TranslationBackend):
    """Each call blocks on its own gate and then returns the scripted reply."""

    def __init__(self, replies: list[str | Exception]) -> None:
        self._replies = replies
        self.prompts: list[str] = []
        self.gates = [asyncio.Event() for _ in replies]

    @property
    def name(self) -> str:
        return "gated"

    async def generate(self, prompt: str) -> str:
        index = len(self.prompts)
        self.prompts.append(prompt)
        await self.gates[index].wait()
        reply = self._replies[index]
        if isinstance(reply, Exception):
            raise reply
        return reply


class _ExplodingClient(ModelFallbackClient):
    async def translate(self, source_text: str, target_language: str) -> TranslationOutcome:
        raise RuntimeError("unexpected")


async def _until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0)

    await asyncio.wait_for(_poll(), timeout=timeout)


class Phase3OrchestratorTest(unittest.IsolatedAsyncioTestCase):
    def _build(
        self,
        replies: list[str | Exception],
        secondary: TranslationBackend | None = None,
    ) -> tuple[TranslationOrchestrator, _GatedBackend, ReadingSurface]:
        backend = _GatedBackend(replies)
        logger = logging.getLogger("novel_translator.test.orchestrator")
        client = ModelFallbackClient(
            config=TranslatorConfig(
                api_key="test-key",
                primary_model="primary",
                fallback_model="fallback",
            ),
            logger=logger,
            primary=backend,
            secondary=secondary,
        )
        surface = ReadingSurface()
        orchestrator = TranslationOrchestrator(
            client=client,
            logger=logger,
            default_language="French",
            selection_source=surface,
        )
        return orchestrator, backend, surface

    async def test_selection_moves_to_loading_before_network_resolves(self) -> None:
        orchestrator, backend, _ = self._build(["Bonjour"])
        self.assertEqual(orchestrator.phase, ReaderPhase.CLOSED)

        request = await orchestrator.handle_selection(Selection(text="Hello"))

        self.assertIsNotNone(request)
        self.assertEqual(orchestrator.phase, ReaderPhase.LOADING)
        self.assertEqual(orchestrator.panel.status, PanelStatus.LOADING)
        self.assertTrue(orchestrator.panel.visible)
        self.assertEqual(orchestrator.panel.source_text, "Hello")

        backend.gates[0].set()
        await orchestrator.wait_for_pending()

        self.assertEqual(orchestrator.phase, ReaderPhase.SHOWN)
        self.assertEqual(orchestrator.panel.translated_text, "Bonjour")
        self.assertEqual(orchestrator.panel.target_language, "French")

    async def test_late_result_from_superseded_selection_is_discarded(self) -> None:
        orchestrator, backend, _ = self._build(["first", "second"])

        first = await orchestrator.handle_selection(Selection(text="one"))
        second = await orchestrator.handle_selection(Selection(text="two"))
        assert first is not None and second is not None
        self.assertNotEqual(first.request_id, second.request_id)
        self.assertEqual(orchestrator.current_request, second)

        backend.gates[0].set()
        await _until(lambda: orchestrator.snapshot()["results_discarded"] == 1)
        self.assertEqual(orchestrator.panel.status, PanelStatus.LOADING)
        self.assertEqual(orchestrator.panel.source_text, "two")

        backend.gates[1].set()
        await orchestrator.wait_for_pending()
        self.assertEqual(orchestrator.panel.status, PanelStatus.SUCCESS)
        self.assertEqual(orchestrator.panel.translated_text, "second")

    async def test_out_of_order_completion_keeps_newest_result(self) -> None:
        orchestrator, backend, _ = self._build(["first", "second"])

        await orchestrator.handle_selection(Selection(text="one"))
        await orchestrator.handle_selection(Selection(text="two"))

        backend.gates[1].set()
        await _until(lambda: orchestrator.panel.status is PanelStatus.SUCCESS)
        backend.gates[0].set()
        await orchestrator.wait_for_pending()

        self.assertEqual(orchestrator.panel.translated_text, "second")
        self.assertEqual(orchestrator.snapshot()["results_discarded"], 1)

    async def test_language_change_retranslates_same_source(self) -> None:
        orchestrator, backend, _ = self._build(["Bonjour", "Hallo", "Bonjour"])
        for gate in backend.gates:
            gate.set()

        await orchestrator.handle_selection(Selection(text="Hello"))
        await orchestrator.wait_for_pending()

        request = await orchestrator.change_language("German")
        assert request is not None
        self.assertEqual(request.source_text, "Hello")
        self.assertEqual(orchestrator.panel.status, PanelStatus.LOADING)
        await orchestrator.wait_for_pending()
        self.assertEqual(orchestrator.panel.translated_text, "Hallo")
        self.assertEqual(orchestrator.panel.target_language, "German")

        await orchestrator.change_language("French")
        await orchestrator.wait_for_pending()

        self.assertEqual(len(backend.prompts), 3)
        self.assertEqual(orchestrator.panel.status, PanelStatus.SUCCESS)
        self.assertEqual(orchestrator.panel.translated_text, "Bonjour")
        self.assertEqual(orchestrator.panel.source_text, "Hello")

    async def test_reselecting_same_language_dispatches_again(self) -> None:
        orchestrator, backend, _ = self._build(["Bonjour", "Bonjour"])
        for gate in backend.gates:
            gate.set()

        await orchestrator.handle_selection(Selection(text="Hello"))
        await orchestrator.wait_for_pending()
        await orchestrator.change_language("French")
        await orchestrator.wait_for_pending()

        self.assertEqual(len(backend.prompts), 2)
        self.assertEqual(orchestrator.snapshot()["requests_dispatched"], 2)

    async def test_language_change_while_closed_dispatches_nothing(self) -> None:
        orchestrator, backend, _ = self._build(["Hola"])
        revision = orchestrator.revision

        request = await orchestrator.change_language("Spanish")

        self.assertIsNone(request)
        self.assertEqual(orchestrator.phase, ReaderPhase.CLOSED)
        self.assertEqual(orchestrator.panel, PanelState())
        self.assertEqual(orchestrator.revision, revision)
        self.assertEqual(backend.prompts, [])
        self.assertEqual(orchestrator.preferred_language, "Spanish")

        backend.gates[0].set()
        await orchestrator.handle_selection(Selection(text="Hello"))
        await orchestrator.wait_for_pending()
        self.assertIn("into Spanish.", backend.prompts[0])

    async def test_close_clears_panel_selection_and_ignores_late_result(self) -> None:
        orchestrator, backend, surface = self._build(["Bonjour"])
        surface.report("Hello")
        await orchestrator.handle_selection(Selection(text="Hello"))

        await orchestrator.close()

        self.assertEqual(orchestrator.phase, ReaderPhase.CLOSED)
        self.assertFalse(orchestrator.panel.visible)
        self.assertEqual(orchestrator.panel.source_text, "")
        self.assertEqual(orchestrator.panel.target_language, "")
        self.assertIsNone(orchestrator.current_request)
        self.assertEqual(surface.read_selection(), "")
        self.assertEqual(surface.clear_count, 1)

        backend.gates[0].set()
        await orchestrator.wait_for_pending()
        self.assertEqual(orchestrator.phase, ReaderPhase.CLOSED)
        self.assertEqual(orchestrator.snapshot()["results_discarded"], 1)

    async def test_close_from_shown_and_errored(self) -> None:
        orchestrator, backend, surface = self._build(
            ["Bonjour", TranslationBackendError("quota exhausted")]
        )
        for gate in backend.gates:
            gate.set()

        await orchestrator.handle_selection(Selection(text="Hello"))
        await orchestrator.wait_for_pending()
        self.assertEqual(orchestrator.phase, ReaderPhase.SHOWN)
        await orchestrator.close()
        self.assertEqual(orchestrator.phase, ReaderPhase.CLOSED)

        await orchestrator.handle_selection(Selection(text="Hello"))
        await orchestrator.wait_for_pending()
        self.assertEqual(orchestrator.phase, ReaderPhase.ERRORED)
        await orchestrator.close()
        self.assertEqual(orchestrator.phase, ReaderPhase.CLOSED)
        self.assertEqual(surface.clear_count, 2)

    async def test_close_while_closed_is_noop(self) -> None:
        orchestrator, _, surface = self._build([])

        await orchestrator.close()

        self.assertEqual(surface.clear_count, 0)
        self.assertEqual(orchestrator.revision, 0)

    async def test_failure_message_is_surfaced_verbatim(self) -> None:
        secondary = _GatedBackend([TranslationBackendError("fallback quota exhausted")])
        secondary.gates[0].set()
        orchestrator, backend, _ = self._build(
            [TranslationBackendError("primary quota exhausted")], secondary=secondary
        )
        backend.gates[0].set()

        await orchestrator.handle_selection(Selection(text="Hello"))
        await orchestrator.wait_for_pending()

        self.assertEqual(orchestrator.phase, ReaderPhase.ERRORED)
        self.assertEqual(orchestrator.panel.error_message, "fallback quota exhausted")
        self.assertEqual(orchestrator.panel.translated_text, "")
        self.assertEqual(orchestrator.snapshot()["failures"], 1)

    async def test_fallback_success_reaches_panel(self) -> None:
        secondary = _GatedBackend(["Bonjour"])
        secondary.gates[0].set()
        orchestrator, backend, _ = self._build(
            [TranslationBackendError("429 quota")], secondary=secondary
        )
        backend.gates[0].set()

        await orchestrator.handle_selection(Selection(text="Hello"))
        await orchestrator.wait_for_pending()

        self.assertEqual(orchestrator.phase, ReaderPhase.SHOWN)
        self.assertEqual(orchestrator.panel.translated_text, "Bonjour")

    async def test_unexpected_client_error_is_contained(self) -> None:
        logger = logging.getLogger("novel_translator.test.orchestrator")
        client = _ExplodingClient(
            config=TranslatorConfig(api_key="k", primary_model="p", fallback_model="f"),
            logger=logger,
        )
        orchestrator = TranslationOrchestrator(
            client=client, logger=logger, default_language="French"
        )

        await orchestrator.handle_selection(Selection(text="Hello"))
        await orchestrator.wait_for_pending()

        self.assertEqual(orchestrator.phase, ReaderPhase.ERRORED)
        self.assertEqual(orchestrator.panel.error_message, FAILED_TO_TRANSLATE_MESSAGE)

    async def test_whitespace_selection_is_ignored(self) -> None:
        orchestrator, backend, _ = self._build([])

        request = await orchestrator.handle_selection(Selection(text=" \n\t "))

        self.assertIsNone(request)
        self.assertEqual(orchestrator.phase, ReaderPhase.CLOSED)
        self.assertEqual(backend.prompts, [])

    async def test_state_handlers_see_every_transition_in_order(self) -> None:
        orchestrator, backend, _ = self._build(["Bonjour"])
        seen: list[tuple[str, int]] = []

        async def _record(panel: PanelState, revision: int) -> None:
            seen.append((panel.status.value, revision))

        orchestrator.register_state_handler(_record)
        backend.gates[0].set()

        await orchestrator.handle_selection(Selection(text="Hello"))
        await orchestrator.wait_for_pending()
        await orchestrator.close()

        self.assertEqual(seen, [("loading", 1), ("success", 2), ("idle", 3)])

    async def test_stop_cancels_pending_requests(self) -> None:
        orchestrator, _, _ = self._build(["never"])

        await orchestrator.handle_selection(Selection(text="Hello"))
        await orchestrator.stop()

        self.assertEqual(orchestrator.snapshot()["pending_requests"], 0)
        self.assertEqual(orchestrator.panel.status, PanelStatus.LOADING)


if __name__ == "__main__":
    unittest.main()
