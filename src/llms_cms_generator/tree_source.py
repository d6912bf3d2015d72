from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests
import yaml

from .logger import get_logger
from .model import ContentTree, Domain, NodeTypeRegistry, Page, Site

logger = get_logger(__name__)


def _fetch_text(url: str, session: requests.Session, timeout: int) -> str:
    resp = session.get(url, timeout=timeout)
    resp.raise_for_status()
    return resp.text


def _parse_document(text: str, source: str) -> Dict[str, Any]:
    """Parse a YAML or JSON export; JSON is valid YAML but is tried first for speed."""
    stripped = text.lstrip()
    data: Any
    if stripped.startswith("{"):
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            data = yaml.safe_load(text)
    else:
        data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError(f"Content export root must be a mapping: {source}")
    return data


def _parse_domains(raw: Any) -> List[Domain]:
    domains: List[Domain] = []
    for entry in raw or []:
        if isinstance(entry, str):
            domains.append(Domain(hostname=entry.strip().lower()))
        elif isinstance(entry, dict) and entry.get("hostname"):
            domains.append(
                Domain(
                    hostname=str(entry["hostname"]).strip().lower(),
                    scheme=str(entry.get("scheme") or "https"),
                    active=bool(entry.get("active", True)),
                )
            )
    return domains


def _add_page(
    tree: ContentTree,
    raw: Dict[str, Any],
    parent_id: Optional[str],
    id_prefix: str,
) -> None:
    name = str(raw.get("name") or "")
    if not name:
        raise ValueError(f"Page without a name below {id_prefix or 'root'}")
    path_id = f"{id_prefix}/{name}" if id_prefix else name
    identifier = str(raw.get("id") or path_id)

    properties: Dict[str, Dict[str, Any]] = {}
    for language, bag in (raw.get("properties") or {}).items():
        if isinstance(bag, dict):
            properties[str(language)] = dict(bag)

    page = Page(
        identifier=identifier,
        name=name,
        node_type=str(raw.get("type") or "page"),
        properties=properties,
        hidden=bool(raw.get("hidden", False)),
        removed=bool(raw.get("removed", False)),
    )
    tree.add(page, parent_id)
    for child in raw.get("children") or []:
        if isinstance(child, dict):
            _add_page(tree, child, identifier, path_id)


def build_sites(data: Dict[str, Any]) -> List[Site]:
    """
    Build sites from a parsed content export::

        node_types:
          landing_page: [homepage]
        sites:
          - node_name: example
            name: Example
            domains: [{hostname: example.com, scheme: https}]
            root: {name: example, type: homepage, properties: {en: {...}}, children: [...]}
    """
    types = NodeTypeRegistry()
    for type_name, supertypes in (data.get("node_types") or {}).items():
        if isinstance(supertypes, str):
            supertypes = [supertypes]
        types.declare(str(type_name), [str(s) for s in supertypes or []])

    sites: List[Site] = []
    for raw_site in data.get("sites") or []:
        root = raw_site.get("root")
        node_name = str(raw_site.get("node_name") or (root or {}).get("name") or "")
        if not node_name or not isinstance(root, dict):
            logger.warning(f"Skipping site without node_name/root: {raw_site!r:.200}")
            continue
        tree = ContentTree(types)
        _add_page(tree, root, None, "")
        sites.append(
            Site(
                node_name=node_name,
                name=str(raw_site.get("name") or node_name),
                tree=tree,
                domains=_parse_domains(raw_site.get("domains")),
            )
        )
    return sites


def load_sites(
    source: str,
    session: Optional[requests.Session] = None,
    timeout: int = 20,
) -> List[Site]:
    """Load sites from a local YAML/JSON export or an http(s) URL."""
    if source.startswith(("http://", "https://")):
        session = session or requests.Session()
        logger.info(f"Fetching content export from {source}")
        text = _fetch_text(source, session, timeout)
    else:
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"Content export not found: {source}")
        text = path.read_text(encoding="utf-8")

    sites = build_sites(_parse_document(text, source))
    logger.info(f"Loaded {len(sites)} site(s) from {source}")
    return sites
