from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from typing import Callable, Dict, Mapping, Optional

from .generator import LLMGenerator
from .language import LanguageResolver, Request
from .logger import get_logger
from .model import Site
from .store import ALL_DIMENSIONS, ARTIFACTS, DimensionSelector
from .url_utils import strip_port

logger = get_logger(__name__)

FORCE_PARAMETERS = ("force", "regenerate")


@dataclass
class ArtifactResponse:
    status: int
    body: str
    headers: Dict[str, str] = field(default_factory=dict)


class ArtifactService:
    """
    Serves ``/llms.txt`` and ``/llms-full.txt`` from the store, generating them
    on a cache miss or when ``?force`` / ``?regenerate`` is present.
    """

    def __init__(
        self,
        generator: LLMGenerator,
        resolver: Optional[LanguageResolver] = None,
        *,
        max_age: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.generator = generator
        self.resolver = resolver or LanguageResolver(generator.config.language_detection)
        self.max_age = generator.config.serving.max_age if max_age is None else max_age
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def find_site(self, host: Optional[str]) -> Optional[Site]:
        """Exact host, host without port, first active domain, first site."""
        sites = self.generator.sites
        host = (host or "").strip().lower()
        for candidate in (host, strip_port(host)):
            if not candidate:
                continue
            for site in sites:
                if any(d.hostname == candidate for d in site.domains):
                    return site
        for site in sites:
            if any(d.active for d in site.domains):
                return site
        if sites:
            logger.info(f"Using first available site: {sites[0].node_name}")
            return sites[0]
        return None

    def dimensions_for(self, request: Request) -> DimensionSelector:
        if self.generator.config.generation.mode != "per_language":
            return {ALL_DIMENSIONS: True}
        code = self.resolver.detect_from_request(request)
        language = self.generator.language_by_code(code)
        if language is None:
            logger.warning(f"Detected language {code} is not configured, serving consolidated files")
            return {ALL_DIMENSIONS: True}
        return language.selector()

    def _headers(self) -> Dict[str, str]:
        expires = self.clock() + timedelta(seconds=self.max_age)
        return {
            "Content-Type": "text/plain; charset=UTF-8",
            "Cache-Control": f"public, max-age={self.max_age}",
            "Pragma": "public",
            "Expires": format_datetime(expires, usegmt=True),
        }

    def serve(
        self,
        path: str,
        host: Optional[str] = None,
        query: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[ArtifactResponse]:
        """Return ``None`` for any path other than the two artifacts."""
        filename = path.lstrip("/")
        if filename not in ARTIFACTS:
            return None

        logger.info(f"Handling LLMS file request: {path}")
        site = self.find_site(host)
        if site is None:
            raise RuntimeError("No site found in the system")

        query = dict(query or {})
        request = Request(path=path, host=host or "", headers=dict(headers or {}), query=query)
        dimensions = self.dimensions_for(request)
        force = any(p in query for p in FORCE_PARAMETERS)

        content: Optional[str] = None
        if not force:
            content = self.generator.get_content(filename, site.node_name, dimensions)

        if content is None:
            logger.info(f"Content not found or regeneration forced, generating ({filename}, {site.node_name})")
            self.generator.generate_all(strip_port(host or "") or None)
            content = self.generator.get_content(filename, site.node_name, dimensions)

        if content is None:
            raise RuntimeError(f"Failed to generate or retrieve {filename} for site {site.node_name}")

        return ArtifactResponse(status=200, body=content, headers=self._headers())

    def regenerate(self, host: Optional[str] = None) -> Dict[str, object]:
        """Clear stored hashes and regenerate everything; returns a small status payload."""
        request_host = strip_port(host or "") or None
        cleared = self.generator.store.clear_all()
        self.generator.generate_all(request_host)
        return {
            "success": True,
            "message": "LLMS files regenerated successfully",
            "cleared": cleared,
            "host": request_host,
        }
