"""
分类 / 分组测试
"""
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from llms_cms_generator.categorization import Categorizer, sort_by_priority
from llms_cms_generator.config import CategoryConfig, MatcherRule, config_from_dict
from llms_cms_generator.matcher import Matcher
from llms_cms_generator.model import LanguageDimension
from llms_cms_generator.translation import Translator
from llms_cms_generator.tree_source import build_sites

from sample_data import page

EN = LanguageDimension("en")


def _node(name):
    export = {
        "sites": [
            {
                "node_name": "example",
                "root": page(
                    "example",
                    type="homepage",
                    children=[
                        page("features", children=[page("a", title="A")]),
                        page("pricing"),
                    ],
                ),
            }
        ]
    }
    tree = build_sites(export)[0].tree
    for p in tree.pages.values():
        if p.name == name:
            return tree.node(p.identifier, EN)
    raise KeyError(name)


def _categorizer(raw):
    config = config_from_dict(raw)
    return Categorizer(
        config.categorization,
        config.full_content_grouping,
        Matcher(config.homepage_types),
        Translator(config.translations),
    )


def test_sort_is_stable_for_equal_priorities():
    buckets = [
        CategoryConfig("B", 50),
        CategoryConfig("A", 10),
        CategoryConfig("C", 50),
        CategoryConfig("D", 10),
    ]
    assert [b.name for b in sort_by_priority(buckets)] == ["A", "D", "B", "C"]


def test_lower_priority_number_wins():
    categorizer = _categorizer(
        {
            "categorization": {
                "categories": {
                    "Everything": {"priority": 100, "matchers": [{"type": "always"}]},
                    "Features": {
                        "priority": 5,
                        "matchers": [{"type": "path", "patterns": ["/features/*"]}],
                    },
                }
            }
        }
    )
    assert categorizer.categorize_node(_node("a")) == "Features"
    assert categorizer.categorize_node(_node("pricing")) == "Everything"


def test_ties_keep_declaration_order():
    categorizer = _categorizer(
        {
            "categorization": {
                "categories": {
                    "First": {"matchers": [{"type": "always"}]},
                    "Second": {"matchers": [{"type": "always"}]},
                }
            }
        }
    )
    node = _node("a")
    results = {categorizer.categorize_node(node) for _ in range(20)}
    assert results == {"First"}


def test_rules_are_or_combined():
    categorizer = _categorizer(
        {
            "categorization": {
                "categories": {
                    "Commercial": {
                        "matchers": [
                            {"type": "never"},
                            {"type": "path", "patterns": ["/pricing"]},
                        ]
                    }
                }
            }
        }
    )
    assert categorizer.categorize_node(_node("pricing")) == "Commercial"


def test_default_category_is_translated():
    categorizer = _categorizer(
        {
            "categorization": {"default_category": "Misc", "categories": {}},
            "translations": {"Misc": {"en": "Miscellaneous", "de": "Sonstiges"}},
        }
    )
    assert categorizer.categorize_node(_node("a"), "de") == "Sonstiges"
    assert categorizer.categorize_node(_node("a"), "fr") == "Miscellaneous"


def test_no_default_category_means_uncategorized():
    categorizer = _categorizer({"categorization": {"default_category": None}})
    assert categorizer.categorize_node(_node("a")) is None


def test_category_name_translated():
    categorizer = _categorizer(
        {
            "categorization": {
                "categories": {"Features": {"matchers": [{"type": "path", "patterns": ["features"]}]}}
            },
            "translations": {"Features": {"en": "Features", "de": "Funktionen"}},
        }
    )
    assert categorizer.categorize_node(_node("a"), "de") == "Funktionen"


def test_group_node_returns_none_without_default():
    categorizer = _categorizer(
        {
            "full_content_grouping": {
                "Core Features": {"matchers": [{"type": "path", "patterns": ["/features/*"]}]}
            }
        }
    )
    assert categorizer.group_node(_node("a")) == "Core Features"
    assert categorizer.group_node(_node("pricing")) is None


def test_group_node_default_group():
    categorizer = _categorizer(
        {
            "full_content_grouping": {
                "default_group": "Other",
                "Core Features": {"matchers": [{"type": "path", "patterns": ["/features/*"]}]},
            }
        }
    )
    assert categorizer.group_node(_node("pricing")) == "Other"
    assert categorizer.is_group_configured("Core Features")
    assert not categorizer.is_group_configured("default_group")


def test_category_listing():
    categorizer = _categorizer(
        {
            "categorization": {
                "categories": {
                    "Features": {"priority": 20, "matchers": [{"type": "always"}]},
                    "API": {"priority": 10, "matchers": [{"type": "never"}]},
                }
            },
            "translations": {"API": {"de": "API-Dokumentation"}},
        }
    )
    assert list(categorizer.all_categories("de")) == ["API", "Features", "Other Resources"]
    assert categorizer.all_categories("de")["API"] == "API-Dokumentation"
    assert categorizer.is_category_configured("API")
    assert not categorizer.is_category_configured("Other Resources")


def test_direct_rule_objects():
    config = config_from_dict({})
    config.categorization.categories = [
        CategoryConfig("Top level", 1, [MatcherRule(type="parent_relation", relation="direct_child")])
    ]
    categorizer = Categorizer(
        config.categorization, config.full_content_grouping, Matcher(), Translator()
    )
    assert categorizer.categorize_node(_node("features")) == "Top level"
    assert categorizer.categorize_node(_node("a")) == "Other Resources"
