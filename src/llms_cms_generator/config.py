from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .logger import get_logger
from .model import LanguageDimension

logger = get_logger(__name__)

DEFAULT_PRIORITY = 100
DEFAULT_CATEGORY = "Other Resources"


@dataclass
class MatcherRule:
    """One declarative predicate, e.g. ``{type: path, patterns: ["/features/*"]}``."""

    type: str
    patterns: List[str] = field(default_factory=list)
    types: List[str] = field(default_factory=list)
    property: Optional[str] = None
    operator: Optional[str] = None
    values: List[Any] = field(default_factory=list)
    relation: Optional[str] = None
    parent_types: List[str] = field(default_factory=list)
    depth: Any = 0


@dataclass
class CategoryConfig:
    name: str
    priority: int = DEFAULT_PRIORITY
    matchers: List[MatcherRule] = field(default_factory=list)


@dataclass
class CategorizationConfig:
    categories: List[CategoryConfig] = field(default_factory=list)
    # None means pages that match nothing stay uncategorized
    default_category: Optional[str] = DEFAULT_CATEGORY


@dataclass
class GroupingConfig:
    groups: List[CategoryConfig] = field(default_factory=list)
    default_group: Optional[str] = None


@dataclass
class ExclusionConfig:
    path_patterns: List[str] = field(default_factory=list)
    node_types: List[str] = field(default_factory=list)
    exclude_hidden: bool = True
    exclude_footer_pages: bool = True


@dataclass
class FullContentConfig:
    # opt_in: only pages flagged llm_include_in_full_content are dumped
    opt_in: bool = False


@dataclass
class LanguageDetectionConfig:
    strategy: str = "path"
    default_language: str = "en"
    path_patterns: Dict[str, List[str]] = field(default_factory=dict)
    domain_mappings: Dict[str, str] = field(default_factory=dict)
    header_mappings: Dict[str, str] = field(default_factory=dict)


@dataclass
class FallbacksConfig:
    site_description: str = "A website built with a content management system"
    home_page_title: Dict[str, str] = field(default_factory=lambda: {"en": "Homepage"})


@dataclass
class AdditionalContentConfig:
    # section title -> markdown body, rendered in declaration order
    simple: Dict[str, str] = field(default_factory=dict)
    full: Dict[str, str] = field(default_factory=dict)


@dataclass
class ContentConfig:
    # path or http(s) URL of the exported page tree (YAML or JSON)
    source: Optional[str] = None
    timeout: int = 20


@dataclass
class GenerationConfig:
    # consolidated | per_language | both
    mode: str = "consolidated"
    max_depth: int = 5


@dataclass
class StorageConfig:
    database: str = "llms_hashes.db"
    # file | memory
    backend: str = "file"
    blob_dir: str = ".llms-blobs"


@dataclass
class ServingConfig:
    max_age: int = 3600


@dataclass
class AppConfig:
    content: ContentConfig = field(default_factory=ContentConfig)
    homepage_types: List[str] = field(default_factory=lambda: ["homepage"])
    fallback_domain: Optional[str] = None
    site_description: Optional[str] = None
    site_descriptions: Dict[str, str] = field(default_factory=dict)
    fallbacks: FallbacksConfig = field(default_factory=FallbacksConfig)
    additional_content: AdditionalContentConfig = field(default_factory=AdditionalContentConfig)
    categorization: CategorizationConfig = field(default_factory=CategorizationConfig)
    full_content_grouping: GroupingConfig = field(default_factory=GroupingConfig)
    full_content_exclusions: ExclusionConfig = field(default_factory=ExclusionConfig)
    full_content: FullContentConfig = field(default_factory=FullContentConfig)
    translations: Dict[str, Dict[str, str]] = field(default_factory=dict)
    language_detection: LanguageDetectionConfig = field(default_factory=LanguageDetectionConfig)
    languages: List[LanguageDimension] = field(
        default_factory=lambda: [LanguageDimension(key="en", label="English", values=["en"])]
    )
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    serving: ServingConfig = field(default_factory=ServingConfig)


_CAMEL_RE = re.compile(r"(?<=[a-z0-9])([A-Z])")


def snake_case(name: str) -> str:
    """``parentRelation`` -> ``parent_relation``; snake_case input is returned as is."""
    return _CAMEL_RE.sub(r"_\1", str(name)).lower()


def _load_raw_config(path: Path) -> Dict[str, Any]:
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError("Config root must be a mapping")
    return data


def _str_list(raw: Any) -> List[str]:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return [str(v) for v in raw]
    return [str(raw)]


def _str_dict(raw: Any) -> Dict[str, str]:
    if not isinstance(raw, dict):
        return {}
    return {str(k): str(v) for k, v in raw.items() if v is not None}


def _parse_matcher(raw: Dict[str, Any]) -> MatcherRule:
    values = raw.get("values")
    if values is None:
        values = []
    elif not isinstance(values, list):
        values = [values]
    operator = raw.get("operator")
    relation = raw.get("relation")
    return MatcherRule(
        type=snake_case(raw.get("type", "")),
        patterns=_str_list(raw.get("patterns")),
        types=_str_list(raw.get("types")),
        property=str(raw["property"]) if raw.get("property") else None,
        operator=snake_case(operator) if operator else None,
        values=list(values),
        relation=snake_case(relation) if relation else None,
        parent_types=_str_list(raw.get("parent_types", raw.get("parentTypes"))),
        depth=raw.get("depth", 0),
    )


def _parse_buckets(raw: Any) -> List[CategoryConfig]:
    """
    Parse a ``name -> {priority, matchers}`` mapping. Declaration order is kept
    so that equal priorities resolve the same way on every run.
    """
    buckets: List[CategoryConfig] = []
    if not isinstance(raw, dict):
        return buckets
    for name, data in raw.items():
        data = data or {}
        try:
            priority = int(data.get("priority", DEFAULT_PRIORITY))
        except (TypeError, ValueError):
            logger.warning(f"Invalid priority for '{name}', using {DEFAULT_PRIORITY}")
            priority = DEFAULT_PRIORITY
        matchers = [
            _parse_matcher(m) for m in (data.get("matchers") or []) if isinstance(m, dict)
        ]
        buckets.append(CategoryConfig(name=str(name), priority=priority, matchers=matchers))
    return buckets


def _parse_languages(raw: Any) -> List[LanguageDimension]:
    presets = ((raw or {}).get("language") or {}).get("presets") or {}
    languages: List[LanguageDimension] = []
    for key, preset in presets.items():
        preset = preset or {}
        values = _str_list(preset.get("values")) or [str(key)]
        languages.append(
            LanguageDimension(
                key=str(key),
                label=str(preset.get("label") or str(key).upper()),
                values=values,
                uri_segment=str(preset.get("uri_segment") or key),
            )
        )
    return languages


def _resolve_relative(value: str, base_dir: Optional[Path]) -> str:
    if base_dir is None or not value or "://" in value or value == ":memory:":
        return value
    p = Path(value)
    if p.is_absolute():
        return value
    return str(base_dir / p)


def config_from_dict(raw: Dict[str, Any], base_dir: Optional[Path] = None) -> AppConfig:
    """Build an :class:`AppConfig` from an already parsed mapping."""
    config = AppConfig()

    content_raw = raw.get("content") or {}
    if content_raw.get("source"):
        config.content.source = _resolve_relative(str(content_raw["source"]), base_dir)
    config.content.timeout = int(content_raw.get("timeout", config.content.timeout))

    if "homepage_types" in raw:
        config.homepage_types = _str_list(raw.get("homepage_types"))
    if raw.get("fallback_domain"):
        config.fallback_domain = str(raw["fallback_domain"]).strip()
    if raw.get("site_description"):
        config.site_description = str(raw["site_description"])
    config.site_descriptions = _str_dict(raw.get("site_descriptions"))

    fallbacks_raw = raw.get("fallbacks") or {}
    if fallbacks_raw.get("site_description"):
        config.fallbacks.site_description = str(fallbacks_raw["site_description"])
    if isinstance(fallbacks_raw.get("home_page_title"), dict):
        config.fallbacks.home_page_title = _str_dict(fallbacks_raw["home_page_title"])

    additional_raw = raw.get("additional_content") or {}
    config.additional_content = AdditionalContentConfig(
        simple=_str_dict(additional_raw.get("simple")),
        full=_str_dict(additional_raw.get("full")),
    )

    categorization_raw = raw.get("categorization") or {}
    default_category = categorization_raw.get("default_category", DEFAULT_CATEGORY)
    config.categorization = CategorizationConfig(
        categories=_parse_buckets(categorization_raw.get("categories")),
        default_category=str(default_category) if default_category else None,
    )

    grouping_raw = dict(raw.get("full_content_grouping") or {})
    default_group = grouping_raw.pop("default_group", None)
    config.full_content_grouping = GroupingConfig(
        groups=_parse_buckets(grouping_raw),
        default_group=str(default_group) if default_group else None,
    )

    exclusions_raw = raw.get("full_content_exclusions") or {}
    config.full_content_exclusions = ExclusionConfig(
        path_patterns=_str_list(exclusions_raw.get("path_patterns")),
        node_types=_str_list(exclusions_raw.get("node_types")),
        exclude_hidden=bool(exclusions_raw.get("exclude_hidden", True)),
        exclude_footer_pages=bool(exclusions_raw.get("exclude_footer_pages", True)),
    )

    full_raw = raw.get("full_content") or {}
    config.full_content = FullContentConfig(opt_in=bool(full_raw.get("opt_in", False)))

    translations_raw = raw.get("translations") or {}
    config.translations = {
        str(key): _str_dict(entries) for key, entries in translations_raw.items()
    }

    detection_raw = raw.get("language_detection") or {}
    config.language_detection = LanguageDetectionConfig(
        strategy=str(detection_raw.get("strategy", "path")),
        default_language=str(detection_raw.get("default_language", "en")),
        path_patterns={
            str(lang): _str_list(patterns)
            for lang, patterns in (detection_raw.get("path_patterns") or {}).items()
        },
        domain_mappings={
            k.strip().lower(): v for k, v in _str_dict(detection_raw.get("domain_mappings")).items()
        },
        header_mappings={
            str(k).lower(): str(v)
            for k, v in (detection_raw.get("header_mappings") or {}).items()
        },
    )

    languages = _parse_languages(raw.get("dimensions"))
    if languages:
        config.languages = languages

    generation_raw = raw.get("generation") or {}
    config.generation = GenerationConfig(
        mode=str(generation_raw.get("mode", "consolidated")),
        max_depth=int(generation_raw.get("max_depth", 5)),
    )

    storage_raw = raw.get("storage") or {}
    config.storage = StorageConfig(
        database=_resolve_relative(str(storage_raw.get("database", "llms_hashes.db")), base_dir),
        backend=str(storage_raw.get("backend", "file")),
        blob_dir=_resolve_relative(str(storage_raw.get("blob_dir", ".llms-blobs")), base_dir),
    )

    serving_raw = raw.get("serving") or {}
    config.serving = ServingConfig(max_age=int(serving_raw.get("max_age", 3600)))

    return config


def load_config(path: Path, validate: bool = True) -> AppConfig:
    raw = _load_raw_config(path)

    if validate:
        from .validators import collect_config_warnings, validate_config_basic

        errors = validate_config_basic(raw)
        if errors:
            raise ValueError("Invalid configuration:\n" + "\n".join(f"  - {e}" for e in errors))
        # 语义问题（未知 matcher 类型等）只记录警告，运行时按「不匹配 / 默认值」处理
        for warning in collect_config_warnings(raw):
            logger.warning(warning)

    return config_from_dict(raw, base_dir=path.parent)
