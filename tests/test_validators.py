"""
配置验证 + 配置加载测试
"""
import sys
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from llms_cms_generator.config import load_config, snake_case
from llms_cms_generator.validators import (
    collect_config_warnings,
    validate_config_basic,
    validate_domain,
    validate_language_code,
    validate_url,
)


class TestFieldValidators:
    def test_validate_url(self):
        assert validate_url("https://cms.example.com/export.yml") == (True, "")
        assert validate_url("")[0] is False
        assert validate_url("ftp://example.com")[0] is False
        assert validate_url("example.com")[0] is False

    def test_validate_domain(self):
        assert validate_domain("example.com")[0] is True
        assert validate_domain("localhost.test:8080")[0] is True
        assert validate_domain("https://example.com")[0] is False
        assert validate_domain("example.com/path")[0] is False
        assert validate_domain("localhost")[0] is False

    def test_validate_language_code(self):
        assert validate_language_code("en")[0] is True
        assert validate_language_code("de-CH")[0] is True
        assert validate_language_code("en_US")[0] is True
        assert validate_language_code("e")[0] is False
        assert validate_language_code("english")[0] is False
        assert validate_language_code("e1")[0] is False


class TestBasicValidation:
    def test_empty_config_is_valid(self):
        assert validate_config_basic({}) == []

    def test_root_must_be_mapping(self):
        assert validate_config_basic(["a"]) == ["配置文件必须是 YAML 字典格式"]

    def test_section_types(self):
        errors = validate_config_basic({"categorization": ["Features"], "storage": "sqlite"})
        assert len(errors) == 2

    def test_bucket_structure(self):
        errors = validate_config_basic(
            {
                "categorization": {
                    "categories": {
                        "Features": {"priority": "high", "matchers": [{"patterns": ["/x"]}]},
                        "Docs": {"matchers": "path"},
                    }
                },
                "full_content_grouping": {"default_group": "Other", "Core": {"matchers": ["path"]}},
            }
        )
        assert any("priority" in e for e in errors)
        assert any("matchers[0].type" in e for e in errors)
        assert any("Docs.matchers" in e for e in errors)
        assert any("full_content_grouping.Core.matchers[0]" in e for e in errors)
        assert len(errors) == 4

    def test_value_checks(self):
        errors = validate_config_basic(
            {
                "fallback_domain": "http://example.com",
                "language_detection": {"default_language": "english"},
                "generation": {"max_depth": -1},
                "storage": {"backend": "s3"},
                "serving": {"max_age": "1h"},
                "full_content_exclusions": {"path_patterns": "/legal/*"},
                "dimensions": {"language": {"presets": {"de": {"values": "de"}}}},
            }
        )
        assert len(errors) == 7

    def test_exclusion_flags_must_be_booleans(self):
        errors = validate_config_basic(
            {"full_content_exclusions": {"exclude_hidden": "false", "exclude_footer_pages": 0}}
        )
        assert len(errors) == 2
        assert any("exclude_hidden" in e for e in errors)
        assert validate_config_basic(
            {"full_content_exclusions": {"exclude_hidden": False, "exclude_footer_pages": True}}
        ) == []

    def test_valid_full_config(self):
        raw = {
            "content": {"source": "https://cms.example.com/export.json"},
            "fallback_domain": "example.com",
            "categorization": {
                "categories": {"Features": {"priority": 10, "matchers": [{"type": "path", "patterns": ["/f"]}]}}
            },
            "dimensions": {"language": {"presets": {"de": {"label": "Deutsch", "values": ["de", "en"]}}}},
            "generation": {"mode": "both", "max_depth": 3},
            "storage": {"backend": "memory"},
        }
        assert validate_config_basic(raw) == []
        assert collect_config_warnings(raw) == [
            "Language detection strategy 'path' has no path_patterns configured"
        ]


class TestWarnings:
    def test_matcher_warnings(self):
        warnings = collect_config_warnings(
            {
                "content": {"source": "content.yml"},
                "language_detection": {"strategy": "header"},
                "categorization": {
                    "categories": {
                        "A": {
                            "matchers": [
                                {"type": "regex"},
                                {"type": "property", "operator": "startsWith"},
                                {"type": "parentRelation", "relation": "sibling"},
                                {"type": "parent_relation", "relation": "depth", "operator": "atLeast"},
                                {"type": "path"},
                                {"type": "parentRelation", "relation": "directChild"},
                            ]
                        }
                    }
                },
            }
        )
        assert len(warnings) == 6
        assert warnings[0].startswith("Unknown matcher type 'regex'")
        assert "without 'property'" in warnings[1]
        assert "Unknown property operator 'startsWith'" in warnings[2]
        assert "Unknown parent relation 'sibling'" in warnings[3]
        assert "Unknown depth operator 'atLeast'" in warnings[4]
        assert "Path matcher without patterns" in warnings[5]

    def test_strategy_mode_and_source(self):
        warnings = collect_config_warnings(
            {"language_detection": {"strategy": "cookie"}, "generation": {"mode": "sideways"}}
        )
        assert len(warnings) == 3
        assert any("Invalid language detection strategy 'cookie'" in w for w in warnings)
        assert any("Unknown generation mode 'sideways'" in w for w in warnings)
        assert any("content.source" in w for w in warnings)


def test_snake_case():
    assert snake_case("parentRelation") == "parent_relation"
    assert snake_case("greaterThan") == "greater_than"
    assert snake_case("node_type") == "node_type"


class TestLoadConfig:
    def test_load_yaml(self, tmp_path):
        config_file = tmp_path / "llms.config.yml"
        config_file.write_text(
            """
content:
  source: "content.yml"
fallback_domain: "example.com"
categorization:
  default_category: ~
  categories:
    Features:
      priority: 10
      matchers:
        - type: "path"
          patterns: ["/features/*"]
full_content_grouping:
  default_group: "Other"
  Core:
    matchers:
      - type: "nodeType"
        types: ["page"]
language_detection:
  strategy: "header"
  header_mappings:
    DE: "de"
  domain_mappings:
    Example.DE: "de"
dimensions:
  language:
    presets:
      en:
        label: "English"
      de:
        label: "Deutsch"
        values: ["de", "en"]
        uri_segment: "deutsch"
generation:
  mode: "per_language"
  max_depth: 2
storage:
  database: "data/hashes.db"
  backend: "memory"
""",
            encoding="utf-8",
        )
        config = load_config(config_file)

        assert config.content.source == str(tmp_path / "content.yml")
        assert config.fallback_domain == "example.com"
        assert config.categorization.default_category is None
        assert config.categorization.categories[0].matchers[0].patterns == ["/features/*"]
        assert config.full_content_grouping.default_group == "Other"
        assert [g.name for g in config.full_content_grouping.groups] == ["Core"]
        assert config.full_content_grouping.groups[0].matchers[0].type == "node_type"
        assert config.language_detection.header_mappings == {"de": "de"}
        assert config.language_detection.domain_mappings == {"example.de": "de"}
        assert [lang.key for lang in config.languages] == ["en", "de"]
        assert config.languages[0].values == ["en"]
        assert config.languages[1].uri_segment == "deutsch"
        assert config.generation.mode == "per_language"
        assert config.generation.max_depth == 2
        assert config.storage.database == str(tmp_path / "data" / "hashes.db")
        assert config.storage.backend == "memory"

    def test_defaults(self, tmp_path):
        config_file = tmp_path / "empty.yml"
        config_file.write_text("", encoding="utf-8")
        config = load_config(config_file)
        assert config.homepage_types == ["homepage"]
        assert config.categorization.default_category == "Other Resources"
        assert [lang.key for lang in config.languages] == ["en"]
        assert config.full_content.opt_in is False
        assert config.serving.max_age == 3600

    def test_invalid_config_raises(self, tmp_path):
        config_file = tmp_path / "bad.yml"
        config_file.write_text("storage:\n  backend: s3\n", encoding="utf-8")
        with pytest.raises(ValueError, match="storage.backend"):
            load_config(config_file)
        assert load_config(config_file, validate=False).storage.backend == "s3"

    def test_non_mapping_root(self, tmp_path):
        config_file = tmp_path / "list.yml"
        config_file.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError, match="mapping"):
            load_config(config_file)
