"""
Content tree model.

Pages live in an arena (:class:`ContentTree`) keyed by identifier; parents
are referenced by id only. A :class:`Node` is a page seen through one
:class:`LanguageDimension`, which is what every selection rule works on.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional

# Built-in node types
DOCUMENT_TYPE = "document"
PAGE_TYPE = "page"
SITE_TYPE = "site"
HOMEPAGE_TYPE = "homepage"
SHORTCUT_TYPE = "shortcut"
CONTENT_TYPE = "content"
CONTENT_COLLECTION_TYPE = "content_collection"
TEXT_TYPE = "text"
HEADLINE_TYPE = "headline"

_BUILTIN_TYPES: Dict[str, List[str]] = {
    DOCUMENT_TYPE: [],
    PAGE_TYPE: [DOCUMENT_TYPE],
    SITE_TYPE: [DOCUMENT_TYPE],
    HOMEPAGE_TYPE: [PAGE_TYPE],
    SHORTCUT_TYPE: [DOCUMENT_TYPE],
    CONTENT_TYPE: [],
    CONTENT_COLLECTION_TYPE: [CONTENT_TYPE],
    TEXT_TYPE: [CONTENT_TYPE],
    HEADLINE_TYPE: [CONTENT_TYPE],
}

# Known page properties
TITLE = "title"
URI_PATH_SEGMENT = "uri_path_segment"
META_DESCRIPTION = "meta_description"
META_ROBOTS_NOINDEX = "meta_robots_noindex"
LLM_DESCRIPTION = "llm_description"
LLM_CONTEXT = "llm_context"
LLM_EXCLUDE_FROM_FULL_CONTENT = "llm_exclude_from_full_content"
LLM_INCLUDE_IN_FULL_CONTENT = "llm_include_in_full_content"
LLM_INCLUDE_IN_OPTIONAL = "llm_include_in_optional"
LLM_INCLUDE_SHORTCUT = "llm_include_shortcut"
LLM_SHORTCUT_DESCRIPTION = "llm_shortcut_description"
TARGET_NODE = "target_node"
TARGET_URI = "target_uri"
TEXT = "text"

# Property bag shared by all languages
SHARED_PROPERTIES = "*"


class NodeTypeRegistry:
    """Open type system with multiple inheritance; ``is_of_type`` is transitive."""

    def __init__(self, declarations: Optional[Dict[str, Iterable[str]]] = None) -> None:
        self._supertypes: Dict[str, List[str]] = {
            name: list(parents) for name, parents in _BUILTIN_TYPES.items()
        }
        for name, parents in (declarations or {}).items():
            self.declare(name, parents)

    def declare(self, name: str, supertypes: Iterable[str] = ()) -> None:
        existing = self._supertypes.setdefault(name, [])
        for parent in supertypes:
            if parent not in existing:
                existing.append(parent)

    def supertypes(self, name: str) -> List[str]:
        return list(self._supertypes.get(name, []))

    def is_of_type(self, type_name: str, other: str) -> bool:
        seen = set()
        stack = [type_name]
        while stack:
            current = stack.pop()
            if current == other:
                return True
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self._supertypes.get(current, []))
        return False


@dataclass
class LanguageDimension:
    key: str
    label: str = ""
    # raw locale values, in lookup order (e.g. ["de", "en"])
    values: List[str] = field(default_factory=list)
    uri_segment: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.values:
            self.values = [self.key]
        if not self.label:
            self.label = self.key.upper()
        if not self.uri_segment:
            self.uri_segment = self.key

    def selector(self) -> Dict[str, List[str]]:
        return {"language": list(self.values)}


@dataclass
class Page:
    identifier: str
    name: str
    node_type: str
    parent_id: Optional[str] = None
    children: List[str] = field(default_factory=list)
    # language value (or "*") -> property name -> value
    properties: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    hidden: bool = False
    removed: bool = False


@dataclass
class Domain:
    hostname: str
    scheme: str = "https"
    active: bool = True


class ContentTree:
    """Arena of pages belonging to one site; the first page added is the root."""

    def __init__(self, types: Optional[NodeTypeRegistry] = None) -> None:
        self.types = types or NodeTypeRegistry()
        self.pages: Dict[str, Page] = {}
        self.root_id: Optional[str] = None

    def add(self, page: Page, parent_id: Optional[str] = None) -> Page:
        if page.identifier in self.pages:
            raise ValueError(f"Duplicate page identifier: {page.identifier}")
        if parent_id is not None:
            parent = self.pages.get(parent_id)
            if parent is None:
                raise ValueError(f"Unknown parent identifier: {parent_id}")
            page.parent_id = parent_id
            parent.children.append(page.identifier)
        elif self.root_id is None:
            self.root_id = page.identifier
        else:
            raise ValueError("Content tree already has a root page")
        self.pages[page.identifier] = page
        return page

    def get(self, identifier: str) -> Optional[Page]:
        return self.pages.get(identifier)

    def root(self, language: LanguageDimension) -> Optional["Node"]:
        if self.root_id is None:
            return None
        return self.node(self.root_id, language)

    def node(self, identifier: str, language: LanguageDimension) -> Optional["Node"]:
        page = self.pages.get(identifier)
        if page is None:
            return None
        node = Node(self, page, language)
        return node if node.exists_in_language() else None


class Node:
    """A page seen through one language dimension."""

    __slots__ = ("tree", "page", "language")

    def __init__(self, tree: ContentTree, page: Page, language: LanguageDimension) -> None:
        self.tree = tree
        self.page = page
        self.language = language

    def __repr__(self) -> str:
        return f"Node({self.page.identifier!r}, {self.language.key!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        return (
            self.tree is other.tree
            and self.page.identifier == other.page.identifier
            and self.language.key == other.language.key
        )

    def __hash__(self) -> int:
        return hash((self.page.identifier, self.language.key))

    @property
    def identifier(self) -> str:
        return self.page.identifier

    @property
    def name(self) -> str:
        return self.page.name

    @property
    def node_type(self) -> str:
        return self.page.node_type

    @property
    def hidden(self) -> bool:
        return self.page.hidden

    @property
    def removed(self) -> bool:
        return self.page.removed

    @property
    def is_root(self) -> bool:
        return self.page.identifier == self.tree.root_id

    def is_of_type(self, type_name: str) -> bool:
        return self.tree.types.is_of_type(self.page.node_type, type_name)

    def exists_in_language(self) -> bool:
        keys = [k for k in self.page.properties if k != SHARED_PROPERTIES]
        if not keys:
            return True
        return any(value in self.page.properties for value in self.language.values)

    # -- tree navigation ---------------------------------------------------

    @property
    def parent(self) -> Optional["Node"]:
        if self.page.parent_id is None:
            return None
        parent = self.tree.get(self.page.parent_id)
        return Node(self.tree, parent, self.language) if parent else None

    def ancestors(self) -> Iterator["Node"]:
        current = self.parent
        while current is not None:
            yield current
            current = current.parent

    def children(self, type_filter: Optional[str] = None) -> List["Node"]:
        result: List[Node] = []
        for child_id in self.page.children:
            child = self.tree.node(child_id, self.language)
            if child is None:
                continue
            if type_filter and not child.is_of_type(type_filter):
                continue
            result.append(child)
        return result

    def child(self, name: str) -> Optional["Node"]:
        for child in self.children():
            if child.name == name:
                return child
        return None

    # -- properties --------------------------------------------------------

    def get_property(self, name: str, default: Any = None) -> Any:
        for value in self.language.values:
            bag = self.page.properties.get(value)
            if bag and name in bag:
                return bag[name]
        shared = self.page.properties.get(SHARED_PROPERTIES)
        if shared and name in shared:
            return shared[name]
        return default

    def _text(self, name: str) -> Optional[str]:
        value = self.get_property(name)
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    def _flag(self, name: str) -> bool:
        # editor flags count only when explicitly true
        return self.get_property(name) is True

    @property
    def title(self) -> Optional[str]:
        return self._text(TITLE)

    @property
    def label(self) -> str:
        return self.title or self.page.name

    @property
    def uri_path_segment(self) -> Optional[str]:
        return self._text(URI_PATH_SEGMENT)

    @property
    def description(self) -> Optional[str]:
        """``llm_description`` if set, else ``meta_description``."""
        return self._text(LLM_DESCRIPTION) or self._text(META_DESCRIPTION)

    @property
    def llm_context(self) -> Optional[str]:
        return self._text(LLM_CONTEXT)

    @property
    def shortcut_description(self) -> Optional[str]:
        return self._text(LLM_SHORTCUT_DESCRIPTION)

    @property
    def exclude_from_full_content(self) -> bool:
        return self._flag(LLM_EXCLUDE_FROM_FULL_CONTENT)

    @property
    def include_in_full_content(self) -> bool:
        return self._flag(LLM_INCLUDE_IN_FULL_CONTENT)

    @property
    def include_in_optional(self) -> bool:
        return self._flag(LLM_INCLUDE_IN_OPTIONAL)

    @property
    def include_shortcut(self) -> bool:
        return self._flag(LLM_INCLUDE_SHORTCUT)

    @property
    def noindex(self) -> bool:
        return self._flag(META_ROBOTS_NOINDEX)


@dataclass
class Site:
    node_name: str
    name: str
    tree: ContentTree
    domains: List[Domain] = field(default_factory=list)

    def root(self, language: LanguageDimension) -> Optional[Node]:
        return self.tree.root(language)


def is_homepage(node: Node, homepage_types: Iterable[str]) -> bool:
    return any(node.is_of_type(t) for t in homepage_types)


def _skips_segment(node: Node, homepage_types: Iterable[str]) -> bool:
    return node.is_root or node.is_of_type(SITE_TYPE) or is_homepage(node, homepage_types)


def node_path(node: Node, homepage_types: Iterable[str]) -> str:
    """
    Root-relative path such as ``/features/a``; the tree root and
    homepage-typed nodes contribute no segment.
    """
    homepage_types = list(homepage_types)
    segments: List[str] = []
    for current in [node, *node.ancestors()]:
        if _skips_segment(current, homepage_types):
            continue
        segments.append(current.uri_path_segment or current.name)
    segments.reverse()
    return "/" + "/".join(segments) if segments else "/"


def node_depth(node: Node, homepage_types: Iterable[str]) -> int:
    """Number of ancestors that are neither the root nor homepage-typed."""
    homepage_types = list(homepage_types)
    return sum(1 for a in node.ancestors() if not _skips_segment(a, homepage_types))
