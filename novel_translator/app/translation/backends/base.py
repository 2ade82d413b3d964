from __future__ import annotations

from abc import ABC, abstractmethod


class TranslationBackendError(Exception):
    """Raised when a text-generation backend call fails outright."""


class TranslationBackend(ABC):
    @property
    @abstractmethod
    def name(self) -> str:
        raise NotImplementedError

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Return the backend's response text. An empty string is a valid response."""
        raise NotImplementedError
