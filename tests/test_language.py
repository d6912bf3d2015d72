"""
语言检测测试
"""
import sys
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from llms_cms_generator.config import LanguageDetectionConfig
from llms_cms_generator.language import LanguageResolver, Request, parse_accept_language
from llms_cms_generator.model import LanguageDimension
from llms_cms_generator.tree_source import build_sites

from sample_data import scenario_a_export


def _resolver(**kwargs):
    kwargs.setdefault("path_patterns", {"de": ["/de/"], "en": ["/en/"]})
    kwargs.setdefault("domain_mappings", {"example.de": "de", "*.example.fr": "fr"})
    kwargs.setdefault("header_mappings", {"de": "de", "fr-ca": "fr", "en": "en"})
    return LanguageResolver(LanguageDetectionConfig(**kwargs))


class TestAcceptLanguage:
    def test_sorted_by_quality(self):
        assert parse_accept_language("en;q=0.5, de-CH, de;q=0.9") == [
            ("de-ch", 1.0),
            ("de", 0.9),
            ("en", 0.5),
        ]

    def test_equal_quality_keeps_order(self):
        assert [tag for tag, _ in parse_accept_language("fr, de, en")] == ["fr", "de", "en"]

    def test_malformed_entries_skipped(self):
        assert parse_accept_language("de;q=abc, *, en_US, ;q=1, fr;q=1.2.3") == []
        assert parse_accept_language("") == []


class TestStrategies:
    def test_path(self):
        resolver = _resolver(strategy="path")
        assert resolver.detect_from_request(Request(path="/de/llms.txt")) == "de"
        assert resolver.detect_from_request(Request(path="/de")) == "de"
        assert resolver.detect_from_request(Request(path="/deutsch")) == "en"
        assert resolver.detect_from_request(Request(path="/llms.txt")) == "en"

    def test_domain_exact_and_wildcard(self):
        resolver = _resolver(strategy="domain")
        assert resolver.detect_from_request(Request(host="EXAMPLE.de")) == "de"
        assert resolver.detect_from_request(Request(host="shop.example.fr")) == "fr"
        assert resolver.detect_from_request(Request(host="example.com")) == "en"

    def test_domain_ignores_port(self):
        resolver = _resolver(strategy="domain")
        assert resolver.detect_from_request(Request(host="example.de:8080")) == "de"
        assert resolver.detect_from_request(Request(host="shop.example.fr:443")) == "fr"

    def test_header(self):
        resolver = _resolver(strategy="header", default_language="de")
        request = Request(headers={"accept-language": "fr-CA,fr;q=0.9"})
        assert resolver.detect_from_request(request) == "fr"
        assert resolver.detect_from_request(Request(headers={"Accept-Language": "en-GB"})) == "en"
        assert resolver.detect_from_request(Request(headers={"Accept-Language": "ja"})) == "de"
        assert resolver.detect_from_request(Request(headers={"Accept-Language": ";;;"})) == "de"

    def test_auto_order(self):
        resolver = _resolver(strategy="auto")
        request = Request(path="/en/x", host="example.de", headers={"Accept-Language": "de"})
        assert resolver.detect_from_request(request) == "en"
        request = Request(path="/x", host="example.de", headers={"Accept-Language": "en"})
        assert resolver.detect_from_request(request) == "de"
        request = Request(path="/x", host="example.com", headers={"Accept-Language": "de"})
        assert resolver.detect_from_request(request) == "de"

    def test_unknown_strategy_uses_default(self):
        resolver = _resolver(strategy="cookie", default_language="de")
        assert resolver.detect_from_request(Request(path="/en/")) == "de"

    def test_no_request(self):
        assert _resolver().detect_from_request(None) == "en"
        assert _resolver().dimensions_for_request(None) == {"language": ["en"]}

    def test_errors_fall_back_to_default(self):
        resolver = _resolver(strategy="path")
        resolver.config.path_patterns = {"de": [None]}
        assert resolver.detect_from_request(Request(path="/de/")) == "en"


def test_detect_from_node():
    site = build_sites(scenario_a_export())[0]
    node = site.root(LanguageDimension("de", "Deutsch", ["en"]))
    assert _resolver().detect_from_node(node) == "en"


def test_all_configured_languages():
    assert _resolver().all_configured_languages() == ["de", "en", "fr"]


@pytest.mark.parametrize(
    "config, expected",
    [
        ({"strategy": "path"}, []),
        ({"strategy": "cookie"}, ["Invalid language detection strategy"]),
        ({"strategy": "auto", "path_patterns": {}}, ["Path patterns are required"]),
        ({"strategy": "header", "default_language": ""}, ["Default language is not configured"]),
    ],
)
def test_validate_configuration(config, expected):
    errors = _resolver(**config).validate_configuration()
    assert len(errors) == len(expected)
    for error, prefix in zip(errors, expected):
        assert error.startswith(prefix)
