from __future__ import annotations

from typing import Dict, List, Optional

from .config import CategorizationConfig, CategoryConfig, GroupingConfig
from .logger import get_logger
from .matcher import Matcher
from .model import Node
from .translation import Translator

logger = get_logger(__name__)


def sort_by_priority(buckets: List[CategoryConfig]) -> List[CategoryConfig]:
    """Lower number wins; ``sorted`` is stable so ties keep declaration order."""
    return sorted(buckets, key=lambda b: b.priority)


class Categorizer:
    """
    Assigns nodes to llms.txt categories and llms-full.txt groups.

    Both bucket lists are sorted once at construction; each lookup is a pure
    function of the node.
    """

    def __init__(
        self,
        categorization: CategorizationConfig,
        grouping: GroupingConfig,
        matcher: Matcher,
        translator: Translator,
    ) -> None:
        self.matcher = matcher
        self.translator = translator
        self.default_category = categorization.default_category
        self.default_group = grouping.default_group
        self._categories = sort_by_priority(categorization.categories)
        self._groups = sort_by_priority(grouping.groups)
        if not self._categories:
            logger.warning("No categorization configuration found, using default category")

    def _first_match(self, node: Node, buckets: List[CategoryConfig]) -> Optional[CategoryConfig]:
        for bucket in buckets:
            # OR across the bucket's matchers
            if any(self.matcher.matches(node, rule) for rule in bucket.matchers):
                return bucket
        return None

    def categorize_node(self, node: Node, language: str = "en") -> Optional[str]:
        bucket = self._first_match(node, self._categories)
        if bucket is not None:
            logger.debug(
                f"Node categorized: node={node.identifier} category={bucket.name} language={language}"
            )
            return self.translator.translate(bucket.name, language)

        if not self.default_category:
            return None
        logger.debug(
            f"Node using default category: node={node.identifier} "
            f"category={self.default_category} language={language}"
        )
        return self.translator.translate(self.default_category, language)

    def group_node(self, node: Node, language: str = "en") -> Optional[str]:
        bucket = self._first_match(node, self._groups)
        if bucket is not None:
            logger.debug(f"Node grouped: node={node.identifier} group={bucket.name} language={language}")
            return self.translator.translate(bucket.name, language)
        if self.default_group:
            return self.translator.translate(self.default_group, language)
        return None

    def all_categories(self, language: str = "en") -> Dict[str, str]:
        result = {c.name: self.translator.translate(c.name, language) for c in self._categories}
        if self.default_category:
            result[self.default_category] = self.translator.translate(self.default_category, language)
        return result

    def all_groups(self, language: str = "en") -> Dict[str, str]:
        result = {g.name: self.translator.translate(g.name, language) for g in self._groups}
        if self.default_group:
            result[self.default_group] = self.translator.translate(self.default_group, language)
        return result

    def is_category_configured(self, name: str) -> bool:
        return any(c.name == name for c in self._categories)

    def is_group_configured(self, name: str) -> bool:
        return any(g.name == name for g in self._groups)
