"""
HTTP 服务层测试：缓存命中 / 强制重新生成 / 响应头
"""
import sys
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from llms_cms_generator.language import Request
from llms_cms_generator.service import ArtifactService
from llms_cms_generator.store import ARTIFACT_INDEX

from sample_data import FIXED_NOW, SCENARIO_A_CONFIG, scenario_a_export


@pytest.fixture
def service(make_generator):
    generator = make_generator(SCENARIO_A_CONFIG)
    return ArtifactService(generator, clock=lambda: FIXED_NOW)


def test_unrelated_path_is_not_handled(service):
    assert service.serve("/robots.txt", "example.com") is None
    assert service.serve("/en/llms.txt", "example.com") is None


def test_cache_miss_generates(service, memory_store):
    response = service.serve("/llms.txt", "example.com")
    assert response.status == 200
    assert response.body.startswith("# Example\n\n> Example site\n\n")
    assert memory_store.get_hash(ARTIFACT_INDEX, "example") is not None


def test_headers(service):
    response = service.serve("/llms-full.txt", "example.com")
    assert response.headers == {
        "Content-Type": "text/plain; charset=UTF-8",
        "Cache-Control": "public, max-age=3600",
        "Pragma": "public",
        "Expires": "Tue, 28 Jan 2025 13:00:00 GMT",
    }


def test_cached_content_is_served(service, memory_store):
    memory_store.store(ARTIFACT_INDEX, "cached body", "example", {"all": True})
    assert service.serve("/llms.txt", "example.com").body == "cached body"


@pytest.mark.parametrize("parameter", ["force", "regenerate"])
def test_force_regenerates(service, memory_store, parameter):
    memory_store.store(ARTIFACT_INDEX, "stale", "example", {"all": True})
    response = service.serve("/llms.txt", "example.com", query={parameter: "1"})
    assert response.body != "stale"
    assert "https://example.com/en/features" in response.body


def test_request_host_used_for_urls(service):
    response = service.serve("/llms.txt", "preview.example.org:8443")
    assert "https://preview.example.org/en/features/a" in response.body


def test_max_age_override(make_generator):
    service = ArtifactService(make_generator(SCENARIO_A_CONFIG), max_age=60, clock=lambda: FIXED_NOW)
    headers = service.serve("/llms.txt", "example.com").headers
    assert headers["Cache-Control"] == "public, max-age=60"
    assert headers["Expires"] == "Tue, 28 Jan 2025 12:01:00 GMT"


class TestFindSite:
    def _export(self):
        export = scenario_a_export(domains=())
        other = scenario_a_export(domains=("docs.example.com:8080", "docs.example.com"))["sites"][0]
        other["node_name"] = "docs"
        export["sites"].append(other)
        return export

    def test_exact_host_then_without_port(self, make_generator):
        service = ArtifactService(make_generator(SCENARIO_A_CONFIG, self._export()))
        assert service.find_site("docs.example.com:8080").node_name == "docs"
        assert service.find_site("DOCS.example.com:9999").node_name == "docs"

    def test_first_site_with_active_domain(self, make_generator):
        service = ArtifactService(make_generator(SCENARIO_A_CONFIG, self._export()))
        assert service.find_site("unknown.example").node_name == "docs"

    def test_first_site_as_last_resort(self, make_generator):
        service = ArtifactService(make_generator(SCENARIO_A_CONFIG, scenario_a_export(domains=())))
        assert service.find_site(None).node_name == "example"

    def test_no_sites(self, make_generator):
        service = ArtifactService(make_generator(SCENARIO_A_CONFIG, {"sites": []}))
        assert service.find_site("example.com") is None
        with pytest.raises(RuntimeError, match="No site found"):
            service.serve("/llms.txt", "example.com")


def test_per_language_serving(make_generator):
    raw = dict(
        SCENARIO_A_CONFIG,
        generation={"mode": "per_language"},
        language_detection={"strategy": "header", "header_mappings": {"en": "en"}},
    )
    service = ArtifactService(make_generator(raw))
    response = service.serve("/llms.txt", "example.com", headers={"Accept-Language": "en-US"})
    assert response.body.startswith("# Example\n\n> Example site\n\n## Main Pages\n\n")


def test_unconfigured_language_uses_consolidated(make_generator):
    raw = dict(
        SCENARIO_A_CONFIG,
        generation={"mode": "per_language"},
        language_detection={"strategy": "header", "header_mappings": {"fr": "fr"}},
    )
    service = ArtifactService(make_generator(raw))
    dimensions = service.dimensions_for(Request(headers={"Accept-Language": "fr"}))
    assert dimensions == {"all": True}


def test_domain_detection_ignores_port(make_generator):
    raw = dict(
        SCENARIO_A_CONFIG,
        generation={"mode": "per_language"},
        language_detection={"strategy": "domain", "domain_mappings": {"Example.COM": "en"}},
    )
    generator = make_generator(raw)
    service = ArtifactService(generator)
    dimensions = service.dimensions_for(Request(host="example.com:8080"))
    assert dimensions == generator.language_by_code("en").selector()
    assert dimensions != {"all": True}


def test_regenerate(service, memory_store):
    memory_store.store(ARTIFACT_INDEX, "stale", "other-site")
    result = service.regenerate("example.com:443")
    assert result == {
        "success": True,
        "message": "LLMS files regenerated successfully",
        "cleared": 1,
        "host": "example.com",
    }
    assert memory_store.fetch(ARTIFACT_INDEX, "other-site") is None
    assert memory_store.fetch(ARTIFACT_INDEX, "example").startswith("# Example")
