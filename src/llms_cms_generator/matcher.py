from __future__ import annotations

import re
from typing import Any, Iterable, List

from .config import MatcherRule
from .logger import get_logger
from .model import Node, node_depth, node_path

logger = get_logger(__name__)

MATCHER_TYPES = ("path", "node_type", "property", "parent_relation", "always", "never")
PROPERTY_OPERATORS = ("exists", "equals", "contains", "in")
PARENT_RELATIONS = ("direct_child", "has_parent", "depth")
DEPTH_OPERATORS = ("equals", "greater_than", "less_than")


def wildcard_to_regex(pattern: str) -> "re.Pattern[str]":
    """``/features/*`` -> case-insensitive, fully anchored regex."""
    parts = [re.escape(p) for p in pattern.split("*")]
    return re.compile("^" + ".*".join(parts) + "$", re.IGNORECASE)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ("", "0", "false", "no", "off")
    return bool(value)


def _loose_equal(a: Any, b: Any) -> bool:
    if a == b:
        return True
    if a is None or b is None:
        return not a and not b
    if isinstance(a, bool) or isinstance(b, bool):
        return _as_bool(a) == _as_bool(b)
    try:
        return float(a) == float(b)
    except (TypeError, ValueError):
        pass
    return str(a) == str(b)


def _strict_equal(a: Any, b: Any) -> bool:
    return type(a) is type(b) and a == b


class Matcher:
    """Evaluates one matcher rule against a node. Never raises."""

    def __init__(self, homepage_types: Iterable[str] = ("homepage",)) -> None:
        self.homepage_types: List[str] = list(homepage_types)

    def matches(self, node: Node, rule: MatcherRule) -> bool:
        rule_type = getattr(rule, "type", None)
        try:
            if rule_type == "path":
                return self._matches_path(node, rule.patterns)
            if rule_type == "node_type":
                return self._matches_node_type(node, rule.types)
            if rule_type == "property":
                return self._matches_property(node, rule)
            if rule_type == "parent_relation":
                return self._matches_parent_relation(node, rule)
            if rule_type == "always":
                return True
            if rule_type == "never":
                return False
            logger.warning(f"Unknown matcher type '{rule_type}' (node {node.identifier})")
            return False
        except Exception as e:  # noqa: BLE001
            logger.error(
                f"Error in matcher evaluation: type={rule_type} node={node.identifier} "
                f"language={node.language.key}: {e}"
            )
            return False

    def _matches_path(self, node: Node, patterns: List[str]) -> bool:
        if not patterns:
            return False
        path = node_path(node, self.homepage_types)
        lowered = path.lower()
        for pattern in patterns:
            if "*" in pattern:
                if wildcard_to_regex(pattern).match(path):
                    return True
            elif pattern.lower() in lowered:
                return True
        return False

    def _matches_node_type(self, node: Node, types: List[str]) -> bool:
        return any(node.is_of_type(t) for t in types)

    def _matches_property(self, node: Node, rule: MatcherRule) -> bool:
        if not rule.property:
            return False
        operator = rule.operator or "in"
        value = node.get_property(rule.property)

        if operator == "exists":
            return value is not None and value != ""
        if operator == "equals":
            return any(_strict_equal(value, v) for v in rule.values)
        if operator == "contains":
            if not isinstance(value, str):
                return False
            lowered = value.lower()
            return any(str(v).lower() in lowered for v in rule.values)
        if operator != "in":
            logger.warning(
                f"Unknown property operator '{operator}', using 'in' (node {node.identifier})"
            )
        return any(_loose_equal(value, v) for v in rule.values)

    def _matches_parent_relation(self, node: Node, rule: MatcherRule) -> bool:
        relation = rule.relation or ""

        if relation == "direct_child":
            parent = node.parent
            if parent is None:
                return False
            return parent.is_root or any(parent.is_of_type(t) for t in self.homepage_types)

        if relation == "has_parent":
            for ancestor in node.ancestors():
                if any(ancestor.is_of_type(t) for t in rule.parent_types):
                    return True
            return False

        if relation == "depth":
            target = int(rule.depth)
            depth = node_depth(node, self.homepage_types)
            operator = rule.operator or "equals"
            if operator == "greater_than":
                return depth > target
            if operator == "less_than":
                return depth < target
            return depth == target

        logger.warning(f"Unknown parent relation '{relation}' (node {node.identifier})")
        return False
