"""
配置验证工具
用于验证配置文件的正确性和完整性

validate_config_basic 返回结构性错误（加载失败）；
collect_config_warnings 返回语义问题，运行时按「不匹配 / 使用默认值」处理。
"""
from __future__ import annotations

from typing import Any, List, Tuple
from urllib.parse import urlparse

from .config import snake_case
from .generator import GENERATION_MODES
from .language import VALID_STRATEGIES
from .matcher import DEPTH_OPERATORS, MATCHER_TYPES, PARENT_RELATIONS, PROPERTY_OPERATORS

STORAGE_BACKENDS = ("file", "memory")

_MAPPING_SECTIONS = (
    "content",
    "site_descriptions",
    "fallbacks",
    "additional_content",
    "categorization",
    "full_content_grouping",
    "full_content_exclusions",
    "full_content",
    "translations",
    "language_detection",
    "dimensions",
    "generation",
    "storage",
    "serving",
)


def validate_url(url: str) -> Tuple[bool, str]:
    """
    验证 URL 是否有效

    Returns:
        (is_valid, error_message)
    """
    if not url or not isinstance(url, str):
        return False, "URL 不能为空"

    url = url.strip()
    if not url:
        return False, "URL 不能为空"

    try:
        parsed = urlparse(url)
        if not parsed.scheme:
            return False, f"URL 缺少协议（scheme）: {url}"
        if parsed.scheme not in ("http", "https"):
            return False, f"URL 协议必须是 http 或 https: {url}"
        if not parsed.netloc:
            return False, f"URL 缺少域名: {url}"
        return True, ""
    except Exception as e:
        return False, f"URL 格式无效: {e}"


def validate_domain(domain: str) -> Tuple[bool, str]:
    """
    验证域名格式（可带端口，如 example.com:8080）

    Returns:
        (is_valid, error_message)
    """
    if not domain or not isinstance(domain, str):
        return False, "域名不能为空"

    domain = domain.strip().lower()

    if domain.startswith(("http://", "https://")):
        return False, f"域名不应包含协议: {domain}"

    if "/" in domain:
        return False, f"域名不应包含路径: {domain}"

    if "." not in domain.split(":", 1)[0]:
        return False, f"域名格式无效: {domain}"

    return True, ""


def validate_language_code(lang: str) -> Tuple[bool, str]:
    """
    验证语言代码格式（ISO 639-1，可带地区，如 de-CH / en_US）

    Returns:
        (is_valid, error_message)
    """
    if not lang or not isinstance(lang, str):
        return False, "语言代码不能为空"

    lang = lang.strip().lower()
    primary, _, region = lang.replace("_", "-").partition("-")

    if not primary.isalpha():
        return False, f"语言代码只能包含字母: {lang}"

    if len(primary) < 2 or len(primary) > 3:
        return False, f"语言代码长度应为 2-3 个字母: {lang}"

    if region and not region.isalnum():
        return False, f"语言代码地区部分无效: {lang}"

    return True, ""


def _validate_buckets(raw: Any, section: str, errors: List[str], *, skip_keys: Tuple[str, ...] = ()) -> None:
    if raw is None:
        return
    if not isinstance(raw, dict):
        errors.append(f"'{section}' 必须是字典格式（名称 -> {{priority, matchers}}）")
        return
    for name, bucket in raw.items():
        if name in skip_keys:
            continue
        if bucket is None:
            continue
        if not isinstance(bucket, dict):
            errors.append(f"'{section}.{name}' 必须是字典格式")
            continue
        priority = bucket.get("priority")
        if priority is not None and not isinstance(priority, int):
            errors.append(f"'{section}.{name}.priority' 必须是整数: {priority!r}")
        matchers = bucket.get("matchers", [])
        if matchers is None:
            continue
        if not isinstance(matchers, list):
            errors.append(f"'{section}.{name}.matchers' 必须是列表")
            continue
        for i, matcher in enumerate(matchers):
            if not isinstance(matcher, dict):
                errors.append(f"'{section}.{name}.matchers[{i}]' 必须是字典格式")
            elif not matcher.get("type"):
                errors.append(f"'{section}.{name}.matchers[{i}].type' 是必需的")


def validate_config_basic(config_dict: dict) -> List[str]:
    """
    验证配置的基本结构

    Returns:
        错误消息列表（空列表表示无错误）
    """
    errors: List[str] = []

    if not isinstance(config_dict, dict):
        errors.append("配置文件必须是 YAML 字典格式")
        return errors

    for section in _MAPPING_SECTIONS:
        value = config_dict.get(section)
        if value is not None and not isinstance(value, dict):
            errors.append(f"'{section}' 必须是字典格式")
    if errors:
        return errors

    homepage_types = config_dict.get("homepage_types")
    if homepage_types is not None and not isinstance(homepage_types, list):
        errors.append("'homepage_types' 必须是列表")

    fallback_domain = config_dict.get("fallback_domain")
    if fallback_domain:
        is_valid, msg = validate_domain(str(fallback_domain))
        if not is_valid:
            errors.append(f"'fallback_domain' {msg}")

    source = (config_dict.get("content") or {}).get("source")
    if isinstance(source, str) and source.startswith(("http://", "https://")):
        is_valid, msg = validate_url(source)
        if not is_valid:
            errors.append(f"'content.source' {msg}")

    categorization = config_dict.get("categorization") or {}
    _validate_buckets(categorization.get("categories"), "categorization.categories", errors)
    _validate_buckets(
        config_dict.get("full_content_grouping"),
        "full_content_grouping",
        errors,
        skip_keys=("default_group",),
    )

    exclusions = config_dict.get("full_content_exclusions") or {}
    for key in ("path_patterns", "node_types"):
        value = exclusions.get(key)
        if value is not None and not isinstance(value, list):
            errors.append(f"'full_content_exclusions.{key}' 必须是列表")
    for key in ("exclude_hidden", "exclude_footer_pages"):
        value = exclusions.get(key)
        if value is not None and not isinstance(value, bool):
            errors.append(f"'full_content_exclusions.{key}' 必须是布尔值 (true/false)")

    translations = config_dict.get("translations") or {}
    for key, entries in translations.items():
        if not isinstance(entries, dict):
            errors.append(f"'translations.{key}' 必须是字典格式（语言 -> 文本）")

    detection = config_dict.get("language_detection") or {}
    default_lang = detection.get("default_language")
    if default_lang:
        is_valid, msg = validate_language_code(str(default_lang))
        if not is_valid:
            errors.append(f"'language_detection.default_language' {msg}")
    path_patterns = detection.get("path_patterns")
    if path_patterns is not None and not isinstance(path_patterns, dict):
        errors.append("'language_detection.path_patterns' 必须是字典格式（语言 -> 路径前缀列表）")

    language_dimension = (config_dict.get("dimensions") or {}).get("language")
    presets = language_dimension.get("presets") if isinstance(language_dimension, dict) else None
    if language_dimension is not None and not isinstance(language_dimension, dict):
        errors.append("'dimensions.language' 必须是字典格式")
    elif presets is not None:
        if not isinstance(presets, dict):
            errors.append("'dimensions.language.presets' 必须是字典格式")
        else:
            for key, preset in presets.items():
                if preset is not None and not isinstance(preset, dict):
                    errors.append(f"'dimensions.language.presets.{key}' 必须是字典格式")
                    continue
                values = (preset or {}).get("values")
                if values is not None and not isinstance(values, list):
                    errors.append(f"'dimensions.language.presets.{key}.values' 必须是列表")

    max_depth = (config_dict.get("generation") or {}).get("max_depth")
    if max_depth is not None and (not isinstance(max_depth, int) or max_depth < 0):
        errors.append(f"'generation.max_depth' 必须是非负整数: {max_depth!r}")

    backend = (config_dict.get("storage") or {}).get("backend")
    if backend is not None and backend not in STORAGE_BACKENDS:
        errors.append(f"'storage.backend' 必须是 {' 或 '.join(STORAGE_BACKENDS)}: {backend}")

    max_age = (config_dict.get("serving") or {}).get("max_age")
    if max_age is not None and (not isinstance(max_age, int) or max_age < 0):
        errors.append(f"'serving.max_age' 必须是非负整数: {max_age!r}")

    return errors


def _matcher_warnings(raw: Any, section: str) -> List[str]:
    warnings: List[str] = []
    if not isinstance(raw, dict):
        return warnings
    for name, bucket in raw.items():
        if not isinstance(bucket, dict):
            continue
        for i, matcher in enumerate(bucket.get("matchers") or []):
            if not isinstance(matcher, dict):
                continue
            where = f"{section}.{name}.matchers[{i}]"
            matcher_type = snake_case(matcher.get("type", ""))
            if matcher_type not in MATCHER_TYPES:
                warnings.append(f"Unknown matcher type '{matcher.get('type')}' in {where}; it never matches")
                continue
            operator = matcher.get("operator")
            if matcher_type == "property":
                if not matcher.get("property"):
                    warnings.append(f"Property matcher without 'property' in {where}; it never matches")
                if operator and snake_case(operator) not in PROPERTY_OPERATORS:
                    warnings.append(f"Unknown property operator '{operator}' in {where}; 'in' is used")
            elif matcher_type == "parent_relation":
                relation = snake_case(matcher.get("relation") or "")
                if relation not in PARENT_RELATIONS:
                    warnings.append(f"Unknown parent relation '{matcher.get('relation')}' in {where}")
                elif relation == "depth" and operator and snake_case(operator) not in DEPTH_OPERATORS:
                    warnings.append(f"Unknown depth operator '{operator}' in {where}; 'equals' is used")
            elif matcher_type == "path" and not matcher.get("patterns"):
                warnings.append(f"Path matcher without patterns in {where}; it never matches")
    return warnings


def collect_config_warnings(config_dict: dict) -> List[str]:
    """Semantic problems that do not stop loading."""
    warnings: List[str] = []
    if not isinstance(config_dict, dict):
        return warnings

    categorization = config_dict.get("categorization") or {}
    warnings.extend(_matcher_warnings(categorization.get("categories"), "categorization.categories"))
    grouping = dict(config_dict.get("full_content_grouping") or {})
    grouping.pop("default_group", None)
    warnings.extend(_matcher_warnings(grouping, "full_content_grouping"))

    detection = config_dict.get("language_detection") or {}
    strategy = detection.get("strategy", "path")
    if strategy not in VALID_STRATEGIES:
        warnings.append(
            f"Invalid language detection strategy '{strategy}'; "
            f"the default language is used (valid: {', '.join(VALID_STRATEGIES)})"
        )
    elif strategy in ("path", "auto") and not detection.get("path_patterns"):
        warnings.append(f"Language detection strategy '{strategy}' has no path_patterns configured")

    mode = (config_dict.get("generation") or {}).get("mode", "consolidated")
    if mode not in GENERATION_MODES:
        warnings.append(f"Unknown generation mode '{mode}'; 'consolidated' is used")

    if not (config_dict.get("content") or {}).get("source"):
        warnings.append("'content.source' is not set; pass --source on the command line")

    return warnings
