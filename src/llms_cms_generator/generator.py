from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .categorization import Categorizer
from .config import AppConfig
from .exclusion import ExclusionFilter
from .html_text import extract_page_content
from .logger import get_logger
from .matcher import Matcher
from .model import (
    DOCUMENT_TYPE,
    SHORTCUT_TYPE,
    SITE_TYPE,
    LanguageDimension,
    Node,
    Site,
    is_homepage,
)
from .store import ARTIFACT_FULL, ARTIFACT_INDEX, ALL_DIMENSIONS, ArtifactStore, DimensionSelector
from .translation import FALLBACK_LANGUAGE, Translator
from .url_utils import UrlResolver

logger = get_logger(__name__)

MAIN_PAGES = "Main Pages"
ADDITIONAL_RESOURCES = "Additional Resources"

GENERATION_MODES = ("consolidated", "per_language", "both")
LIVE_WORKSPACE = "live"


@dataclass
class TreeItem:
    node: Node
    children: List["TreeItem"] = field(default_factory=list)


def _split_description(description: str) -> Tuple[str, str]:
    """First paragraph (joined into one line) and the rest of the text."""
    first: List[str] = []
    extended: List[str] = []
    in_extended = False
    for line in description.strip().splitlines():
        stripped = line.strip()
        if not stripped and not in_extended and first:
            in_extended = True
            continue
        if in_extended:
            extended.append(line)
        elif stripped:
            first.append(stripped)
    return " ".join(first), "\n".join(extended).strip()


def _list_entry(title: str, url: Optional[str], description: Optional[str], indent: str = "") -> str:
    line = f"{indent}- [{title}]({url})" if url else f"{indent}- {title}"
    if description:
        line += f": {description}"
    return line + "\n"


class LLMGenerator:
    """
    Builds llms.txt / llms-full.txt for every site and hands them to the store.

    ``request_host`` is passed down explicitly through every render call; no
    per-run state is kept on the instance.
    """

    def __init__(
        self,
        config: AppConfig,
        sites: Sequence[Site],
        store: ArtifactStore,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config
        self.sites: List[Site] = list(sites)
        self.store = store
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.homepage_types: List[str] = list(config.homepage_types)

        self.translator = Translator(config.translations)
        self.matcher = Matcher(self.homepage_types)
        self.categorizer = Categorizer(
            config.categorization,
            config.full_content_grouping,
            self.matcher,
            self.translator,
        )
        self.exclusion = ExclusionFilter(config.full_content_exclusions, self.homepage_types)
        self.urls = UrlResolver(self.sites, self.homepage_types, config.fallback_domain)

    # -- page selection ----------------------------------------------------

    def is_accessible(self, node: Node) -> bool:
        """Node and every ancestor below the tree root are neither hidden nor removed."""
        if node.hidden or node.removed:
            return False
        for ancestor in node.ancestors():
            if ancestor.is_root:
                break
            if ancestor.hidden or ancestor.removed:
                return False
        return True

    def is_excluded_page_type(self, node: Node) -> bool:
        name = node.name.lower()
        if "footer" in name:
            return True
        if "404" in name:
            return True
        return node.noindex

    def _is_home(self, node: Node) -> bool:
        return node.is_root or node.is_of_type(SITE_TYPE) or is_homepage(node, self.homepage_types)

    def build_tree(
        self,
        root: Node,
        max_depth: Optional[int] = None,
        include_root: bool = False,
        depth: int = 0,
    ) -> List[TreeItem]:
        if max_depth is None:
            max_depth = self.config.generation.max_depth

        forest: List[TreeItem] = []
        if include_root and depth == 0 and self.is_accessible(root):
            forest.append(TreeItem(root))

        if depth > max_depth:
            return forest

        for child in root.children(DOCUMENT_TYPE):
            if child.is_of_type(SHORTCUT_TYPE):
                logger.debug(f"Skipping shortcut node: {child.identifier}")
                continue
            if child.include_in_optional:
                logger.debug(f"Skipping optional node: {child.identifier}")
                continue
            if not self.is_accessible(child):
                logger.debug(f"Skipping inaccessible node: {child.identifier}")
                continue
            if self.is_excluded_page_type(child):
                logger.debug(f"Excluding page from llms.txt: {child.identifier} ({child.name})")
                continue
            forest.append(TreeItem(child, self.build_tree(child, max_depth, False, depth + 1)))
        return forest

    def collect_optional_pages(self, root: Node) -> List[Node]:
        pages: List[Node] = []

        def visit(node: Node) -> None:
            if (
                node.is_of_type(DOCUMENT_TYPE)
                and not node.is_of_type(SHORTCUT_TYPE)
                and node.include_in_optional
            ):
                pages.append(node)
            for child in node.children(DOCUMENT_TYPE):
                visit(child)

        visit(root)
        return pages

    def collect_shortcuts(self, root: Node) -> List[Node]:
        shortcuts: List[Node] = []

        def visit(node: Node) -> None:
            if node.is_of_type(SHORTCUT_TYPE) and node.include_shortcut:
                shortcuts.append(node)
            for child in node.children(DOCUMENT_TYPE):
                visit(child)

        visit(root)
        return shortcuts

    def collect_full_content_pages(self, root: Node) -> List[Node]:
        """
        Pages for llms-full.txt, depth-first. An excluded page takes its whole
        subtree with it; inaccessible or excluded-type pages only drop out
        themselves.
        """
        opt_in = self.config.full_content.opt_in
        pages: List[Node] = []

        def visit(node: Node) -> None:
            if node.is_of_type(DOCUMENT_TYPE) and not node.is_of_type(SHORTCUT_TYPE):
                if self.exclusion.is_excluded(node):
                    return
                if (
                    not self.is_excluded_page_type(node)
                    and self.is_accessible(node)
                    and (not opt_in or node.include_in_full_content)
                ):
                    pages.append(node)
            for child in node.children(DOCUMENT_TYPE):
                visit(child)

        visit(root)
        return pages

    # -- text helpers ------------------------------------------------------

    def home_page_title(self, language: str) -> str:
        titles = self.config.fallbacks.home_page_title
        return titles.get(language) or titles.get(FALLBACK_LANGUAGE) or "Homepage"

    def site_description(self, language: str, node_description: Optional[str] = None) -> str:
        descriptions = self.config.site_descriptions
        if descriptions.get(language):
            return descriptions[language]
        if language != FALLBACK_LANGUAGE and descriptions.get(FALLBACK_LANGUAGE):
            return descriptions[FALLBACK_LANGUAGE]
        if self.config.site_description:
            return self.config.site_description
        return node_description or self.config.fallbacks.site_description

    def _timestamp(self) -> str:
        return self.clock().strftime("%Y-%m-%d %H:%M:%S %Z").strip()

    def _site_header(
        self, site: Site, language: Optional[LanguageDimension]
    ) -> Tuple[str, Optional[str], Optional[str]]:
        """(title, node description, llm context) of the site root."""
        languages = [language] if language else self.config.languages
        for candidate in languages:
            root = site.root(candidate)
            if root is not None:
                return root.title or site.name, root.description, root.llm_context
        return site.name, None, None

    def _render_description(self, description: str) -> str:
        first, extended = _split_description(description)
        content = ""
        if first:
            content += f"> {first}\n\n"
        if extended:
            content += f"{extended}\n\n"
        return content

    def _render_sections(self, sections: Dict[str, str]) -> str:
        return "".join(f"## {title}\n\n{body}\n\n" for title, body in sections.items())

    # -- llms.txt ----------------------------------------------------------

    def render_tree(
        self,
        forest: List[TreeItem],
        site: Site,
        language: LanguageDimension,
        heading_level: int = 2,
        request_host: Optional[str] = None,
    ) -> str:
        lang = language.key
        home_item: Optional[TreeItem] = None
        sections: Dict[str, List[TreeItem]] = {}
        uncategorized: List[TreeItem] = []

        for item in forest:
            if self._is_home(item.node):
                home_item = item
                continue
            category = self.categorizer.categorize_node(item.node, lang)
            if category is None:
                uncategorized.append(item)
            else:
                sections.setdefault(category, []).append(item)

        heading = "#" * heading_level
        content = ""

        if home_item is not None:
            main_title = self.translator.translate(MAIN_PAGES, lang)
            content += f"{heading} {main_title}\n\n"
            node = home_item.node
            content += _list_entry(
                node.title or self.home_page_title(lang),
                self.urls.try_node_url(node, site, request_host),
                node.description,
            )
            content += self._render_children(home_item, site, request_host)
            for item in sections.pop(main_title, []):
                content += self._render_item(item, site, request_host)
            content += "\n"

        for title, items in sections.items():
            content += f"{heading} {title}\n\n"
            for item in items:
                content += self._render_item(item, site, request_host)
            content += "\n"

        if uncategorized:
            title = self.translator.translate(ADDITIONAL_RESOURCES, lang)
            content += f"{heading} {title}\n\n"
            for item in uncategorized:
                content += self._render_item(item, site, request_host)
            content += "\n"

        return content

    def _render_item(self, item: TreeItem, site: Site, request_host: Optional[str]) -> str:
        node = item.node
        url = self.urls.try_node_url(node, site, request_host)
        return _list_entry(node.label, url, node.description) + self._render_children(item, site, request_host)

    def _render_children(self, item: TreeItem, site: Site, request_host: Optional[str]) -> str:
        # only one nested level is shown
        content = ""
        for child in item.children:
            node = child.node
            url = self.urls.try_node_url(node, site, request_host)
            content += _list_entry(node.label, url, node.description, indent="  ")
        return content

    def _render_optional(self, pages: List[Node], site: Site, request_host: Optional[str]) -> str:
        content = ""
        for page in pages:
            url = self.urls.try_node_url(page, site, request_host)
            content += _list_entry(page.label, url, page.description)
        return content

    def _render_shortcuts(self, shortcuts: List[Node], site: Site, request_host: Optional[str]) -> str:
        content = ""
        for shortcut in shortcuts:
            target = self.urls.shortcut_target(shortcut, site, request_host)
            if not target:
                logger.warning(f"Shortcut {shortcut.identifier} has no resolvable target, skipping")
                continue
            content += _list_entry(shortcut.label, target, shortcut.shortcut_description)
        return content

    def generate_llms_txt(self, site: Site, request_host: Optional[str] = None) -> str:
        """Consolidated llms.txt: one ``## {label}`` section per configured language."""
        title, node_description, context = self._site_header(site, None)

        content = f"# {title}\n\n"
        content += self._render_description(self.site_description(FALLBACK_LANGUAGE, node_description))
        if context:
            content += f"{context}\n\n"
        content += self._render_sections(self.config.additional_content.simple)

        language_sections: List[Tuple[LanguageDimension, str]] = []
        optional: List[Tuple[LanguageDimension, List[Node]]] = []
        shortcuts: List[Tuple[LanguageDimension, List[Node]]] = []

        for language in self.config.languages:
            root = site.root(language)
            if root is None:
                logger.info(f"Site {site.node_name} has no root in language {language.key}")
                continue
            forest = self.build_tree(root, include_root=True)
            logger.info(f"Built page tree for {site.node_name} [{language.label}]: {len(forest)} top-level entries")
            if forest:
                language_sections.append(
                    (language, self.render_tree(forest, site, language, 3, request_host))
                )
            optional_pages = self.collect_optional_pages(root)
            if optional_pages:
                optional.append((language, optional_pages))
            language_shortcuts = self.collect_shortcuts(root)
            if language_shortcuts:
                shortcuts.append((language, language_shortcuts))

        for language, body in language_sections:
            content += f"## {language.label}\n\n"
            language_description = self.config.site_descriptions.get(language.key)
            if language_description and language.key != FALLBACK_LANGUAGE:
                content += f"{language_description}\n\n"
            content += body

        if optional:
            content += "## Optional\n\n"
            for language, pages in optional:
                content += f"### {language.label}\n\n"
                content += self._render_optional(pages, site, request_host) + "\n"

        if shortcuts:
            rendered = [
                (language, self._render_shortcuts(items, site, request_host))
                for language, items in shortcuts
            ]
            rendered = [(language, body) for language, body in rendered if body]
            if rendered:
                content += "## External Resources\n\n"
                for language, body in rendered:
                    content += f"### {language.label}\n\n{body}\n"

        content += "---\n"
        content += f"Generated: {self._timestamp()}\n"
        return content

    def generate_language_llms_txt(
        self,
        site: Site,
        language: LanguageDimension,
        request_host: Optional[str] = None,
    ) -> Optional[str]:
        root = site.root(language)
        if root is None:
            return None
        title, node_description, context = self._site_header(site, language)

        content = f"# {title}\n\n"
        content += self._render_description(self.site_description(language.key, node_description))
        if context:
            content += f"{context}\n\n"
        content += self._render_sections(self.config.additional_content.simple)

        forest = self.build_tree(root, include_root=True)
        content += self.render_tree(forest, site, language, 2, request_host)

        optional_pages = self.collect_optional_pages(root)
        if optional_pages:
            content += "## Optional\n\n"
            content += self._render_optional(optional_pages, site, request_host) + "\n"

        shortcut_body = self._render_shortcuts(self.collect_shortcuts(root), site, request_host)
        if shortcut_body:
            content += f"## External Resources\n\n{shortcut_body}\n"

        content += "---\n"
        content += f"Generated: {self._timestamp()}\n"
        return content

    # -- llms-full.txt -----------------------------------------------------

    def group_pages(self, pages: List[Node], language: str) -> Dict[str, List[Node]]:
        grouped: Dict[str, List[Node]] = {}
        for page in pages:
            group = self.categorizer.group_node(page, language)
            if group:
                grouped.setdefault(group, []).append(page)
        return grouped

    def _render_full_page(self, page: Node, site: Site, request_host: Optional[str]) -> str:
        url = self.urls.try_node_url(page, site, request_host)
        title = page.label
        content = f"### [{title}]({url})\n\n" if url else f"### {title}\n\n"
        if page.description:
            content += f"{page.description}\n\n"
        if page.llm_context:
            content += f"{page.llm_context}\n\n"
        body = extract_page_content(page)
        if body:
            content += f"{body}\n\n"
        content += "---\n\n"
        return content

    def _render_full_language(
        self,
        root: Node,
        site: Site,
        language: LanguageDimension,
        request_host: Optional[str],
    ) -> str:
        pages = self.collect_full_content_pages(root)
        content = ""
        for group, group_pages in self.group_pages(pages, language.key).items():
            content += f"## {group}\n\n"
            for page in group_pages:
                content += self._render_full_page(page, site, request_host)
        return content

    def _full_header(self, site: Site, language: Optional[LanguageDimension], scope: str) -> str:
        title, node_description, context = self._site_header(site, language)
        lang = language.key if language else FALLBACK_LANGUAGE
        content = f"# {title}\n\n"
        content += self._render_description(self.site_description(lang, node_description))
        if context:
            content += f"{context}\n\n"
        content += f"This file contains detailed content for key pages on the {title or 'website'}{scope}.\n\n"
        content += self._render_sections(self.config.additional_content.full)
        return content

    def generate_llms_full_txt(self, site: Site, request_host: Optional[str] = None) -> str:
        """Consolidated llms-full.txt: ``# Content in {label}`` per language that has pages."""
        content = self._full_header(site, None, " in all available languages")
        for language in self.config.languages:
            root = site.root(language)
            if root is None:
                continue
            body = self._render_full_language(root, site, language, request_host)
            if not body:
                continue
            content += f"# Content in {language.label}\n\n{body}"
        content += f"Generated: {self._timestamp()}\n"
        return content

    def generate_language_llms_full_txt(
        self,
        site: Site,
        language: LanguageDimension,
        request_host: Optional[str] = None,
    ) -> Optional[str]:
        root = site.root(language)
        if root is None:
            return None
        content = self._full_header(site, language, "")
        content += self._render_full_language(root, site, language, request_host)
        content += f"Generated: {self._timestamp()}\n"
        return content

    # -- generation runs ---------------------------------------------------

    def generate_site(self, site: Site, request_host: Optional[str] = None) -> None:
        mode = self.config.generation.mode
        if mode not in GENERATION_MODES:
            logger.warning(f"Unknown generation mode '{mode}', using consolidated")
            mode = "consolidated"

        logger.info(f"Generating files for site {site.node_name} (mode={mode})")
        if mode in ("consolidated", "both"):
            index = self.generate_llms_txt(site, request_host)
            full = self.generate_llms_full_txt(site, request_host)
            logger.info(f"Generated consolidated content: llms.txt={len(index)} llms-full.txt={len(full)}")
            self.store.store(ARTIFACT_INDEX, index, site.node_name, {ALL_DIMENSIONS: True})
            self.store.store(ARTIFACT_FULL, full, site.node_name, {ALL_DIMENSIONS: True})

        if mode in ("per_language", "both"):
            for language in self.config.languages:
                index = self.generate_language_llms_txt(site, language, request_host)
                full = self.generate_language_llms_full_txt(site, language, request_host)
                if index is None or full is None:
                    logger.info(f"Site {site.node_name} has no root in language {language.key}, skipping")
                    continue
                self.store.store(ARTIFACT_INDEX, index, site.node_name, language.selector())
                self.store.store(ARTIFACT_FULL, full, site.node_name, language.selector())

    def generate_all(self, request_host: Optional[str] = None) -> None:
        if not self.sites:
            logger.error("No sites found")
            raise RuntimeError("No sites found")
        logger.info(f"Found {len(self.sites)} site(s)")
        for site in self.sites:
            try:
                self.generate_site(site, request_host)
            except Exception as e:
                logger.error(f"Failed to generate files for site {site.node_name}: {e}")
                raise

    # -- retrieval ---------------------------------------------------------

    def get_content(
        self, filename: str, site_name: str, dimensions: Optional[DimensionSelector] = None
    ) -> Optional[str]:
        return self.store.fetch(filename, site_name, dimensions)

    def get_content_hash(
        self, filename: str, site_name: str, dimensions: Optional[DimensionSelector] = None
    ) -> Optional[str]:
        return self.store.get_hash(filename, site_name, dimensions)

    def language_by_code(self, code: str) -> Optional[LanguageDimension]:
        for language in self.config.languages:
            if language.key == code:
                return language
        for language in self.config.languages:
            if code in language.values:
                return language
        return None

    # -- publish hook ------------------------------------------------------

    def site_for_node(self, node_id: str) -> Optional[Site]:
        for site in self.sites:
            if site.tree.get(node_id) is not None:
                return site
        return None

    def handle_node_published(self, node_id: str, workspace_name: str = LIVE_WORKSPACE) -> None:
        if workspace_name != LIVE_WORKSPACE:
            return

        logger.info(f"Node published, regenerating LLMS files (node={node_id})")
        try:
            site = self.site_for_node(node_id)
            if site is not None:
                self.store.invalidate_site(site.node_name)
            else:
                logger.warning(f"No site found for published node {node_id}")
            self.generate_all()
            logger.info("LLMS files regenerated after node publishing")
        except Exception as e:  # noqa: BLE001
            logger.error(f"Failed to regenerate LLMS files after publishing node {node_id}: {e}")
