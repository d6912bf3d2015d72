from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from .logger import get_logger
from .model import Domain, Node, Site, node_path

logger = get_logger(__name__)


class UrlResolutionError(RuntimeError):
    """No host could be found for a page URL."""


def strip_port(host: str) -> str:
    host = (host or "").strip().lower()
    if host.startswith("["):
        # IPv6 literal, e.g. [::1]:8080
        end = host.find("]")
        return host[: end + 1] if end != -1 else host
    return host.split(":", 1)[0]


def is_absolute_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class UrlResolver:
    """
    Builds absolute page URLs: ``scheme://host/{language}{path}``.

    Host order: request host override, the site's first domain, the first
    active domain of any site, the configured fallback domain.
    """

    def __init__(
        self,
        sites: Sequence[Site],
        homepage_types: Iterable[str] = ("homepage",),
        fallback_domain: Optional[str] = None,
    ) -> None:
        self.sites = list(sites)
        self.homepage_types: List[str] = list(homepage_types)
        self.fallback_domain = (fallback_domain or "").strip() or None

    def resolve_host(self, site: Optional[Site], request_host: Optional[str] = None) -> Tuple[str, str]:
        """Return ``(scheme, host)`` or raise :class:`UrlResolutionError`."""
        if request_host:
            return "https", request_host

        if site is not None and site.domains:
            domain = site.domains[0]
            return domain.scheme or "https", domain.hostname

        active = self._first_active_domain()
        if active is not None:
            logger.debug(f"Using fallback domain from site list: {active.hostname}")
            return "https", active.hostname

        if self.fallback_domain:
            logger.warning(f"No domain available, using configured fallback: {self.fallback_domain}")
            return "https", self.fallback_domain

        raise UrlResolutionError(
            "No domain available and no fallback_domain configured. "
            "Configure fallback_domain or add a domain to the site."
        )

    def _first_active_domain(self) -> Optional[Domain]:
        for site in self.sites:
            for domain in site.domains:
                if domain.active:
                    return domain
        return None

    def node_path(self, node: Node) -> str:
        path = node_path(node, self.homepage_types)
        segment = node.language.uri_segment
        if not segment:
            return path
        return f"/{segment}" if path == "/" else f"/{segment}{path}"

    def node_url(self, node: Node, site: Optional[Site], request_host: Optional[str] = None) -> str:
        scheme, host = self.resolve_host(site, request_host)
        url = f"{scheme}://{host}{self.node_path(node)}"
        logger.debug(f"Generated URL for node {node.identifier}: {url}")
        return url

    def try_node_url(
        self, node: Node, site: Optional[Site], request_host: Optional[str] = None
    ) -> Optional[str]:
        """Like :meth:`node_url` but logs and returns ``None`` on failure."""
        try:
            return self.node_url(node, site, request_host)
        except UrlResolutionError as e:
            logger.warning(
                f"Failed to generate URL for node {node.identifier} "
                f"(language={node.language.key}): {e}"
            )
            return None

    def shortcut_target(
        self, shortcut: Node, site: Optional[Site], request_host: Optional[str] = None
    ) -> Optional[str]:
        """``target_node`` (resolved to its URL) wins over ``target_uri``."""
        target_id = shortcut.get_property("target_node")
        if target_id:
            target = shortcut.tree.node(str(target_id), shortcut.language)
            if target is not None:
                return self.try_node_url(target, site, request_host)
            logger.warning(f"Shortcut {shortcut.identifier} points to unknown node {target_id}")

        target_uri = shortcut.get_property("target_uri") or shortcut.get_property("target")
        if not target_uri:
            return None
        target_uri = str(target_uri).strip()
        if not is_absolute_url(target_uri) and target_uri.startswith("/"):
            if site is not None and site.domains:
                domain = site.domains[0]
                return f"{domain.scheme or 'https'}://{domain.hostname}{target_uri}"
        return target_uri
