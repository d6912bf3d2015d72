from __future__ import annotations

from typing import List

from .config import ExclusionConfig
from .logger import get_logger
from .matcher import wildcard_to_regex
from .model import Node, node_path

logger = get_logger(__name__)


class ExclusionFilter:
    """Decides whether a page is barred from llms-full.txt."""

    def __init__(self, config: ExclusionConfig, homepage_types: List[str]) -> None:
        self.config = config
        self.homepage_types = list(homepage_types)

    def is_excluded(self, node: Node) -> bool:
        # Editor override always wins
        if node.exclude_from_full_content:
            logger.debug(f"Node excluded by explicit property: {node.identifier} ({node.name})")
            return True
        if self._excluded_by_path(node):
            return True
        if self._excluded_by_node_type(node):
            return True
        if self.config.exclude_hidden and node.hidden:
            logger.debug(f"Node excluded because it is hidden: {node.identifier} ({node.name})")
            return True
        if self.config.exclude_footer_pages and "footer" in node.name.lower():
            logger.debug(f"Node excluded because it is a footer page: {node.identifier} ({node.name})")
            return True
        return False

    def _excluded_by_path(self, node: Node) -> bool:
        if not self.config.path_patterns:
            return False
        path = node_path(node, self.homepage_types)
        for pattern in self.config.path_patterns:
            if "*" in pattern:
                matched = wildcard_to_regex(pattern).match(path) is not None
            else:
                matched = path == pattern
            if matched:
                logger.debug(
                    f"Node excluded by path pattern: {node.identifier} path={path} pattern={pattern}"
                )
                return True
        return False

    def _excluded_by_node_type(self, node: Node) -> bool:
        for node_type in self.config.node_types:
            if node.is_of_type(node_type):
                logger.debug(
                    f"Node excluded by node type: {node.identifier} "
                    f"type={node.node_type} excluded={node_type}"
                )
                return True
        return False

    def validate_configuration(self) -> List[str]:
        errors: List[str] = []
        if not isinstance(self.config.path_patterns, list):
            errors.append("full_content_exclusions.path_patterns must be a list")
        if not isinstance(self.config.node_types, list):
            errors.append("full_content_exclusions.node_types must be a list")
        return errors
