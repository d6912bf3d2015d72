from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from .logger import get_logger

logger = get_logger(__name__)

FALLBACK_LANGUAGE = "en"


class Translator:
    """
    Resolves section titles and category names per language.

    Lookup order: requested language, English, the first language listed for
    the key, and finally the key itself.
    """

    def __init__(self, translations: Optional[Dict[str, Dict[str, str]]] = None) -> None:
        self._translations: Dict[str, Dict[str, str]] = dict(translations or {})

    def translate(self, key: str, language: str = FALLBACK_LANGUAGE) -> str:
        entries = self._translations.get(key)
        if entries:
            if entries.get(language):
                return entries[language]

            if language != FALLBACK_LANGUAGE and entries.get(FALLBACK_LANGUAGE):
                logger.debug(f"Translation fallback to English: key={key!r} language={language}")
                return entries[FALLBACK_LANGUAGE]

            for fallback_language, text in entries.items():
                if text:
                    logger.debug(
                        f"Translation fallback to first available: key={key!r} "
                        f"language={language} fallback={fallback_language}"
                    )
                    return text

        logger.debug(f"No translation found, using key: key={key!r} language={language}")
        return key

    def has_translation(self, key: str, language: str = FALLBACK_LANGUAGE) -> bool:
        return bool(self._translations.get(key, {}).get(language))

    def available_languages(self, key: str) -> List[str]:
        return list(self._translations.get(key, {}))

    def all_translations(self, key: str) -> Dict[str, str]:
        return dict(self._translations.get(key, {}))

    def all_keys(self) -> List[str]:
        return list(self._translations)

    def all_supported_languages(self) -> List[str]:
        languages: List[str] = []
        for entries in self._translations.values():
            for language in entries:
                if language not in languages:
                    languages.append(language)
        return languages

    def translate_multiple(self, keys: Iterable[str], language: str = FALLBACK_LANGUAGE) -> Dict[str, str]:
        return {key: self.translate(key, language) for key in keys}

    def translate_with_fallback_chain(self, key: str, languages: Iterable[str]) -> str:
        """Try e.g. ``["de-CH", "de"]`` in order before the regular English fallback."""
        for language in languages:
            if self.has_translation(key, language):
                return self.translate(key, language)
        return self.translate(key, FALLBACK_LANGUAGE)
