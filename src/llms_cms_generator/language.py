from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .config import LanguageDetectionConfig
from .logger import get_logger
from .matcher import wildcard_to_regex
from .model import Node
from .url_utils import strip_port

logger = get_logger(__name__)

VALID_STRATEGIES = ("path", "domain", "header", "auto")

_ACCEPT_LANGUAGE_RE = re.compile(r"^([a-zA-Z-]+)(?:\s*;\s*q=([0-9.]+))?$")


@dataclass
class Request:
    """The parts of an HTTP request the resolver and service look at."""

    path: str = "/"
    host: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    query: Dict[str, str] = field(default_factory=dict)

    def header(self, name: str) -> Optional[str]:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


def parse_accept_language(value: str) -> List[Tuple[str, float]]:
    """
    ``"de-CH,de;q=0.9,en;q=0.8"`` -> ``[("de-ch", 1.0), ("de", 0.9), ("en", 0.8)]``.
    Malformed entries are skipped.
    """
    languages: List[Tuple[str, float]] = []
    for part in value.split(","):
        part = part.strip()
        m = _ACCEPT_LANGUAGE_RE.match(part)
        if not m:
            continue
        try:
            quality = float(m.group(2)) if m.group(2) else 1.0
        except ValueError:
            continue
        languages.append((m.group(1).lower(), quality))
    # stable: equal qualities keep header order
    languages.sort(key=lambda item: -item[1])
    return languages


class LanguageResolver:
    def __init__(self, config: LanguageDetectionConfig) -> None:
        self.config = config

    @property
    def default_language(self) -> str:
        return self.config.default_language or "en"

    def detect_from_request(self, request: Optional[Request]) -> str:
        default = self.default_language
        if request is None:
            logger.debug(f"No request available, using default language {default}")
            return default

        strategy = self.config.strategy
        try:
            if strategy == "path":
                return self.detect_from_path(request) or default
            if strategy == "domain":
                return self.detect_from_domain(request) or default
            if strategy == "header":
                return self.detect_from_header(request) or default
            if strategy == "auto":
                return (
                    self.detect_from_path(request)
                    or self.detect_from_domain(request)
                    or self.detect_from_header(request)
                    or default
                )
            logger.warning(f"Unknown language detection strategy '{strategy}', using {default}")
            return default
        except Exception as e:  # noqa: BLE001
            logger.error(f"Error in language detection (strategy={strategy}): {e}")
            return default

    def detect_from_node(self, node: Node) -> str:
        values = node.language.values
        return values[0] if values else self.default_language

    def detect_from_path(self, request: Request) -> Optional[str]:
        path = request.path or "/"
        for language, patterns in self.config.path_patterns.items():
            for pattern in patterns:
                if path.startswith(pattern) or path == pattern.rstrip("/"):
                    logger.debug(f"Language detected from path: {language} (pattern={pattern} path={path})")
                    return language
        return None

    def detect_from_domain(self, request: Request) -> Optional[str]:
        host = strip_port(request.host or "")
        if not host:
            return None
        mappings = self.config.domain_mappings
        if host in mappings:
            return mappings[host]
        for pattern, language in mappings.items():
            if "*" in pattern and wildcard_to_regex(pattern).match(host):
                logger.debug(f"Language detected from domain pattern: {language} (pattern={pattern})")
                return language
        return None

    def detect_from_header(self, request: Request) -> Optional[str]:
        accept_language = request.header("Accept-Language")
        if not accept_language:
            return None
        mappings = self.config.header_mappings
        for tag, _quality in parse_accept_language(accept_language):
            if tag in mappings:
                return mappings[tag]
            short = tag[:2]
            if short in mappings:
                return mappings[short]
        return None

    def dimensions_for_request(self, request: Optional[Request]) -> Dict[str, List[str]]:
        return {"language": [self.detect_from_request(request)]}

    def all_configured_languages(self) -> List[str]:
        languages: List[str] = []
        candidates = [
            *self.config.path_patterns.keys(),
            *self.config.domain_mappings.values(),
            *self.config.header_mappings.values(),
            self.default_language,
        ]
        for language in candidates:
            if language not in languages:
                languages.append(language)
        return languages

    def validate_configuration(self) -> List[str]:
        errors: List[str] = []
        strategy = self.config.strategy
        if strategy not in VALID_STRATEGIES:
            errors.append(
                f"Invalid language detection strategy: {strategy}. "
                f"Valid options: {', '.join(VALID_STRATEGIES)}"
            )
        if not self.config.default_language:
            errors.append("Default language is not configured")
        if strategy in ("path", "auto") and not self.config.path_patterns:
            errors.append(
                f"Path patterns are required for '{strategy}' strategy but none are configured"
            )
        return errors
