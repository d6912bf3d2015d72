import argparse
import sys
from pathlib import Path

from .config import load_config
from .generator import LLMGenerator
from .logger import set_log_level
from .store import ARTIFACTS, create_store
from .tree_source import load_sites


DEFAULT_CONFIG_NAME = "llms.config.yml"


def cmd_init(args):
    """Create a starter config file in the current directory."""
    target = Path(args.path or DEFAULT_CONFIG_NAME)
    if target.exists() and not args.force:
        print(f"[WARN] Config file already exists: {target}", file=sys.stderr)
        return 1

    template = """# llms-cms-generator config
#
# 你通常只需要改这几个地方：
# 1）content.source：页面树导出文件（YAML/JSON，本地路径或 http(s) URL）
# 2）fallback_domain：站点没有配置域名时使用的主机名
# 3）categorization：llms.txt 中的分类规则
# 4）full_content_grouping：llms-full.txt 中的分组规则

content:
  source: "content.yml"
  timeout: 20

homepage_types:
  - "homepage"

fallback_domain: "example.com"

site_descriptions:
  en: "Example is a platform for building things."

fallbacks:
  site_description: "A website built with a content management system"
  home_page_title:
    en: "Homepage"
    de: "Startseite"

additional_content:
  simple: {}
  full: {}

categorization:
  default_category: "Other Resources"
  categories:
    Features:
      priority: 10
      matchers:
        - type: "path"
          patterns: ["/features", "/features/*"]
    "Main Pages":
      priority: 90
      matchers:
        - type: "parentRelation"
          relation: "directChild"

full_content_grouping:
  default_group: "Other Resources"
  "Core Features":
    priority: 10
    matchers:
      - type: "path"
        patterns: ["/features/*"]

full_content_exclusions:
  path_patterns: ["/legal/*"]
  node_types: []
  exclude_hidden: true
  exclude_footer_pages: true

full_content:
  # true: 只输出勾选了 llm_include_in_full_content 的页面
  opt_in: false

translations:
  "Main Pages":
    en: "Main Pages"
    de: "Hauptseiten"
  "Additional Resources":
    en: "Additional Resources"
    de: "Weitere Ressourcen"
  Features:
    en: "Features"
    de: "Funktionen"

language_detection:
  strategy: "path"
  default_language: "en"
  path_patterns:
    de: ["/de/"]
    en: ["/en/"]

dimensions:
  language:
    presets:
      en:
        label: "English"
        values: ["en"]
      de:
        label: "Deutsch"
        values: ["de", "en"]

generation:
  # consolidated | per_language | both
  mode: "consolidated"
  max_depth: 5

storage:
  database: "llms_hashes.db"
  # file | memory
  backend: "file"
  blob_dir: ".llms-blobs"

serving:
  max_age: 3600
"""
    target.write_text(template, encoding="utf-8")
    print(f"[OK] Created config file: {target}")
    return 0


def _load_config(args):
    config_path = Path(args.config or DEFAULT_CONFIG_NAME)
    if not config_path.exists():
        print(
            f"[ERROR] Config file not found: {config_path}. "
            f"Run `llms-cms-generator init` first.",
            file=sys.stderr,
        )
        return None

    try:
        validate = not getattr(args, "no_validate", False)
        return load_config(config_path, validate=validate)
    except ValueError as e:
        print("[ERROR] 配置验证失败:", file=sys.stderr)
        print(f"{e}", file=sys.stderr)
        return None
    except Exception as e:  # noqa: BLE001
        print(f"[ERROR] Failed to load config: {e}", file=sys.stderr)
        return None


def _open_store(config):
    return create_store(config.storage.database, config.storage.backend, config.storage.blob_dir)


def _build_generator(args, config, store):
    source = getattr(args, "source", None) or config.content.source
    if not source:
        print("[ERROR] No content source configured (content.source or --source).", file=sys.stderr)
        return None
    try:
        sites = load_sites(source, timeout=config.content.timeout)
    except Exception as e:  # noqa: BLE001
        print(f"[ERROR] Failed to load content from {source}: {e}", file=sys.stderr)
        return None
    return LLMGenerator(config, sites, store)


def _print_records(store):
    records = store.all_records()
    for record in records:
        print(
            f"- {record['filename']} (site: {record['site_name']}, "
            f"SHA1: {record['sha1']}, Status: {store.resource_status(record)})"
        )
    if not records:
        print("No resources found in hash table")


def cmd_generate(args):
    """Generate llms.txt / llms-full.txt for every site and store them."""
    config = _load_config(args)
    if config is None:
        return 1
    store = _open_store(config)
    try:
        generator = _build_generator(args, config, store)
        if generator is None:
            return 1
        print("Generating LLMS files...")
        try:
            generator.generate_all(args.host)
        except Exception as e:  # noqa: BLE001
            print(f"[ERROR] Error generating LLMS files: {e}", file=sys.stderr)
            return 1
        print("[OK] LLMS files generated successfully!")
        print("")
        print("Generated resources:")
        _print_records(store)
        return 0
    finally:
        store.close()


def cmd_regenerate(args):
    """Clear all stored files, then generate again."""
    config = _load_config(args)
    if config is None:
        return 1
    store = _open_store(config)
    try:
        generator = _build_generator(args, config, store)
        if generator is None:
            return 1
        print("Starting LLM file regeneration...")
        try:
            deleted = store.clear_all()
            print(f"[OK] Deleted {deleted} LLM resources")
            print("")
            print("Generating new LLM files...")
            generator.generate_all(args.host)
        except Exception as e:  # noqa: BLE001
            print(f"[ERROR] Error regenerating LLM files: {e}", file=sys.stderr)
            return 1
        print("[OK] LLM files regenerated successfully!")
        if args.host:
            print("")
            print("Files are now available at:")
            for filename in ARTIFACTS:
                print(f"- https://{args.host}/{filename}")
        return 0
    finally:
        store.close()


def cmd_clear(args):
    """Delete all hash records and their blobs."""
    config = _load_config(args)
    if config is None:
        return 1
    store = _open_store(config)
    try:
        print("Clearing LLM resources...")
        deleted = store.clear_all()
        print(f"[OK] Deleted {deleted} LLM resources")
        return 0
    except Exception as e:  # noqa: BLE001
        print(f"[ERROR] Error clearing LLM resources: {e}", file=sys.stderr)
        return 1
    finally:
        store.close()


def cmd_list(args):
    """List stored files and whether their blobs still exist."""
    config = _load_config(args)
    if config is None:
        return 1
    store = _open_store(config)
    try:
        records = store.all_records()
        if not records:
            print("No LLM resources found in hash table")
            return 0
        found = missing = 0
        for record in records:
            status = store.resource_status(record)
            marker = "✓" if status == "OK" else "✗ MISSING"
            if status == "OK":
                found += 1
            else:
                missing += 1
            print(
                f"- {record['filename']} (site: {record['site_name']}, "
                f"dimension: {record['dimension_hash']}, SHA1: {record['sha1']}) {marker}"
            )
        print("")
        print(f"Summary: {found} found, {missing} missing")
        return 0
    except Exception as e:  # noqa: BLE001
        print(f"[ERROR] Error listing LLM resources: {e}", file=sys.stderr)
        return 1
    finally:
        store.close()


def cmd_show_hashes(args):
    """Dump the hash table."""
    config = _load_config(args)
    if config is None:
        return 1
    store = _open_store(config)
    try:
        records = store.all_records()
        for record in records:
            print("")
            print(f"Filename: {record['filename']}")
            print(f"  Site: {record['site_name']}")
            print(f"  Dimension Hash: {record['dimension_hash']}")
            print(f"  SHA1: {record['sha1']}")
            print(f"  Created: {record['created_at']}")
            print(f"  Updated: {record['updated_at']}")
        if not records:
            print("No hashes found in database")
        else:
            stats = store.statistics()
            print("")
            print(f"[OK] Total hashes: {stats['total']} (last updated: {stats['last_updated']})")
        return 0
    except Exception as e:  # noqa: BLE001
        print(f"[ERROR] Error showing hashes: {e}", file=sys.stderr)
        return 1
    finally:
        store.close()


def cmd_get(args):
    """Print one stored file."""
    config = _load_config(args)
    if config is None:
        return 1
    if args.filename not in ARTIFACTS:
        print(f"[ERROR] Unknown file: {args.filename} (expected one of {', '.join(ARTIFACTS)})", file=sys.stderr)
        return 1

    store = _open_store(config)
    try:
        site_name = args.site
        if not site_name:
            records = store.all_records()
            if not records:
                print("[ERROR] No stored files; run `generate` first.", file=sys.stderr)
                return 1
            site_name = records[0]["site_name"]

        dimensions = {"all": True}
        if args.language:
            language = next((lang for lang in config.languages if lang.key == args.language), None)
            if language is None:
                print(f"[ERROR] Language not configured: {args.language}", file=sys.stderr)
                return 1
            dimensions = language.selector()

        content = store.fetch(args.filename, site_name, dimensions)
        if content is None:
            print(f"[ERROR] {args.filename} not found for site {site_name}", file=sys.stderr)
            return 1
        sys.stdout.write(content)
        return 0
    finally:
        store.close()


def build_parser():
    parser = argparse.ArgumentParser(
        prog="llms-cms-generator",
        description="Generate llms.txt & llms-full.txt from a content-managed site's page tree.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: INFO)",
    )

    config_parent = argparse.ArgumentParser(add_help=False)
    config_parent.add_argument(
        "-c",
        "--config",
        help=f"Config file path (default: {DEFAULT_CONFIG_NAME})",
    )
    config_parent.add_argument(
        "--no-validate",
        action="store_true",
        help="Skip configuration validation (not recommended).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # init
    p_init = subparsers.add_parser(
        "init", help=f"Create a starter {DEFAULT_CONFIG_NAME} in current directory."
    )
    p_init.add_argument(
        "-p",
        "--path",
        help=f"Config file path (default: {DEFAULT_CONFIG_NAME})",
    )
    p_init.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Overwrite existing config file.",
    )
    p_init.set_defaults(func=cmd_init)

    # generate / regenerate
    for name, func, help_text in (
        ("generate", cmd_generate, "Generate llms.txt and llms-full.txt for all sites."),
        ("regenerate", cmd_regenerate, "Clear stored files, then generate them again."),
    ):
        p = subparsers.add_parser(name, parents=[config_parent], help=help_text)
        p.add_argument(
            "--host",
            help="Host to use in absolute URLs (overrides configured domains).",
        )
        p.add_argument(
            "--source",
            help="Content export (path or URL); overrides content.source.",
        )
        p.set_defaults(func=func)

    p_clear = subparsers.add_parser("clear", parents=[config_parent], help="Delete all stored files.")
    p_clear.set_defaults(func=cmd_clear)

    p_list = subparsers.add_parser(
        "list", parents=[config_parent], help="List stored files and their blob status."
    )
    p_list.set_defaults(func=cmd_list)

    p_hashes = subparsers.add_parser(
        "show-hashes", parents=[config_parent], help="Show the hash table."
    )
    p_hashes.set_defaults(func=cmd_show_hashes)

    p_get = subparsers.add_parser("get", parents=[config_parent], help="Print a stored file.")
    p_get.add_argument("filename", help="llms.txt or llms-full.txt")
    p_get.add_argument("--site", help="Site node name (default: first stored site).")
    p_get.add_argument(
        "--language",
        help="Language key for per-language files (default: consolidated file).",
    )
    p_get.set_defaults(func=cmd_get)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    set_log_level(args.log_level)

    func = getattr(args, "func", None)
    if func is None:
        parser.print_help()
        return 1

    return int(func(args)) or 0


if __name__ == "__main__":
    raise SystemExit(main())
