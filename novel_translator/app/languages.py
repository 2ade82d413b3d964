from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Language:
    code: str
    name: str

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "name": self.name}


LANGUAGES: tuple[Language, ...] = (
    Language(code="bn", name="চলমান বাংলা ভাষার"),
    Language(code="es", name="Spanish"),
    Language(code="fr", name="French"),
    Language(code="de", name="German"),
    Language(code="hi", name="Hindi"),
    Language(code="ja", name="Japanese"),
    Language(code="ko", name="Korean"),
    Language(code="zh", name="Chinese (Simplified)"),
    Language(code="ru", name="Russian"),
    Language(code="ar", name="Arabic"),
    Language(code="pt", name="Portuguese"),
    Language(code="it", name="Italian"),
    Language(code="en", name="English"),
)


def find_language(value: str) -> Language | None:
    """Look a language up by display name or by code."""
    needle = value.strip()
    if not needle:
        return None
    for language in LANGUAGES:
        if language.name == needle or language.code == needle.lower():
            return language
    return None
