from __future__ import annotations

import asyncio
import hashlib
import re

from novel_translator.app.translation.backends.base import TranslationBackend

_LANGUAGE_PATTERN = re.compile(r"into (?P<language>.+?)\.", re.IGNORECASE)
_TEXT_PATTERN = re.compile(r'Text to translate:\s*"(?P<text>.*)"\s*$', re.DOTALL)


class MockBackend(TranslationBackend):
    """Offline backend that echoes the quoted source text tagged with the target language."""

    def __init__(self, label: str = "mock", delay_seconds: float = 0.0) -> None:
        self._label = label
        self._delay_seconds = max(0.0, delay_seconds)

    @property
    def name(self) -> str:
        return f"mock:{self._label}"

    async def generate(self, prompt: str) -> str:
        if self._delay_seconds > 0:
            await asyncio.sleep(self._delay_seconds)

        language_match = _LANGUAGE_PATTERN.search(prompt)
        text_match = _TEXT_PATTERN.search(prompt)
        language = language_match.group("language") if language_match else "unknown"
        text = text_match.group("text").strip() if text_match else prompt.strip()
        digest = hashlib.sha256(f"{language}:{text}".encode("utf-8")).hexdigest()[:6]
        return f"[{language}#{digest}] {text}"
