"""CLI entry point for the Composer requirement resolver."""
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List

from .bumper import bump_links
from .config import ResolverConfig, build_repository_set, build_resolver, load_config, merge_manifest
from .constants import DEFAULT_MANIFEST, LOG_FORMAT
from .exceptions import ManifestError, MetadataFetchError, ReqflowError
from .manifest import ManifestFile, manifest_transaction, read_installed_packages
from .models import is_alias
from .platform import platform_filter_from
from .report import generate_json, generate_text
from .repositories import ComposerRepository
from .resolver import parse_requirement
from .stability import Stability
from .versions import sort_versions

logger = logging.getLogger(__name__)


def _load_project(args: argparse.Namespace):
    working_dir = Path(args.working_dir)
    manifest = ManifestFile(working_dir / DEFAULT_MANIFEST)
    data = manifest.read()
    config = merge_manifest(load_config(Path(args.config) if args.config else None), data)
    return working_dir, manifest, data, config


def _apply_overrides(config: ResolverConfig, args: argparse.Namespace) -> ResolverConfig:
    if getattr(args, "stability", None):
        config = replace(config, minimum_stability=Stability.parse(args.stability).label)
    if getattr(args, "prefer_stable", False):
        config = replace(config, prefer_stable=True)
    return config


def _print_report(args: argparse.Namespace, **results) -> None:
    if getattr(args, "format", "text") == "json":
        print(generate_json(**results))
    else:
        print(generate_text(**results))


def _installed_names(working_dir: Path) -> List[str]:
    try:
        installed, _ = read_installed_packages(working_dir)
    except ManifestError:
        return []
    return list(installed)


def cmd_require(args: argparse.Namespace) -> int:
    working_dir, manifest, data, config = _load_project(args)
    if args.fixed and data.get("type", "library") != "project":
        print('error: "--fixed" option is allowed for "project" package types only to prevent possible misuses.', file=sys.stderr)
        return 1

    config = _apply_overrides(config, args)
    platform_filter = platform_filter_from(args.ignore_platform_reqs, args.ignore_platform_req)
    resolver = build_resolver(
        config,
        platform_filter=platform_filter,
        base_dir=working_dir,
        installed=_installed_names(working_dir),
    )

    root_name = str(data.get("name", "")).lower()
    for token in args.packages:
        name, _ = parse_requirement(token)
        if root_name and name.lower() == root_name:
            print(f"error: Root package '{name}' cannot require itself in its composer.json", file=sys.stderr)
            return 1

    resolutions = resolver.resolve_all(args.packages, fixed=args.fixed)
    section, other = ("require-dev", "require") if args.dev else ("require", "require-dev")
    links = {resolution.name: resolution.constraint for resolution in resolutions}
    present_elsewhere = {key.lower() for key in data.get(other) or {}}
    for name in links:
        if name.lower() in present_elsewhere:
            logger.warning(
                "%s is currently present in the %s key and you ran the command %s the --dev flag, "
                "which moves it to the %s key.",
                name,
                other,
                "with" if args.dev else "without",
                section,
            )

    if not args.dry_run:
        with manifest_transaction(manifest):
            manifest.remove_links(data, other, links)
            manifest.add_links(data, section, links)
            manifest.write(data)
        logger.info("%s has been updated", manifest.path)

    _print_report(args, resolutions=resolutions)
    return 0


def cmd_suggest(args: argparse.Namespace) -> int:
    working_dir, _, _, config = _load_project(args)
    config = _apply_overrides(config, args)
    platform_filter = platform_filter_from(args.ignore_platform_reqs, args.ignore_platform_req)
    resolver = build_resolver(config, platform_filter=platform_filter, base_dir=working_dir)
    _print_report(args, resolutions=resolver.resolve_all(args.packages, fixed=args.fixed))
    return 0


def cmd_bump(args: argparse.Namespace) -> int:
    working_dir, manifest, data, _ = _load_project(args)
    if not manifest.exists:
        print(f"error: {manifest.path} not found", file=sys.stderr)
        return 1

    if data.get("type", "library") != "project" and not args.dev_only:
        logger.warning(
            "Bumping dependency constraints is not recommended for libraries as it will narrow down "
            "your dependencies and may cause problems for your users."
        )

    sections: List[str] = []
    if not args.no_dev_only:
        sections.append("require-dev")
    if not args.dev_only:
        sections.append("require")

    installed, _ = read_installed_packages(working_dir)
    updates = bump_links(data, installed, sections)

    if args.dry_run:
        _print_report(args, updates=updates)
        return 1 if updates else 0

    if updates:
        with manifest_transaction(manifest):
            for update in updates:
                manifest.add_links(data, update.section, {update.name: update.constraint})
            manifest.write(data)
        print(f"{manifest.path} has been updated ({len(updates)} changes).")
    else:
        print(f"No requirements to update in {manifest.path}.")
    return 0


def cmd_search(args: argparse.Namespace) -> int:
    working_dir, _, _, config = _load_project(args)
    repository_set = build_repository_set(config, base_dir=working_dir)
    results = repository_set.search(" ".join(args.query))
    if not results:
        print("No packages found.")
        return 0
    width = max(len(result["name"]) for result in results)
    for result in results:
        print(f"{result['name'].ljust(width)} {result.get('description', '')}".rstrip())
    return 0


def cmd_update_cache(args: argparse.Namespace) -> int:
    working_dir, _, _, config = _load_project(args)
    repository_set = build_repository_set(config, base_dir=working_dir)
    processed: List[str] = []
    for package in args.packages:
        for repository in repository_set.repositories:
            if not isinstance(repository, ComposerRepository):
                continue
            versions = repository.prime(package)
            releases = sort_versions(version.pretty_version for version in versions if not is_alias(version))
            newest = f", newest {releases[-1]}" if releases else ""
            processed.append(f"{package} from {repository.name} ({len(versions)} versions{newest})")
    if processed:
        print("Primed cache entries:")
        for item in processed:
            print(f"  - {item}")
    else:
        print("No cache entries updated.")
    return 0


def _add_resolution_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("packages", nargs="+", help="Packages to resolve, e.g. vendor/name or vendor/name:^1.0")
    parser.add_argument("--fixed", action="store_true", help="Use the exact selected version instead of a range")
    parser.add_argument(
        "--ignore-platform-reqs",
        dest="ignore_platform_reqs",
        action="store_true",
        help="Ignore all platform requirements (php, ext-*, lib-*)",
    )
    parser.add_argument(
        "--ignore-platform-req",
        dest="ignore_platform_req",
        action="append",
        default=[],
        help="Ignore a platform requirement; accepts wildcards and a trailing + to only ignore upper bounds",
    )
    parser.add_argument("--stability", help="Override the minimum stability (dev, alpha, beta, RC, stable)")
    parser.add_argument("--prefer-stable", dest="prefer_stable", action="store_true", help="Prefer stable versions")
    parser.add_argument("--format", choices=["text", "json"], default="text", help="Output format")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Pick Composer package versions and the constraints to require them with")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument(
        "-d",
        "--working-dir",
        dest="working_dir",
        default=".",
        help="Directory containing composer.json (default: %(default)s)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    require = subparsers.add_parser("require", help="Add packages to composer.json")
    _add_resolution_arguments(require)
    require.add_argument("--dev", action="store_true", help="Add to require-dev")
    require.add_argument("--dry-run", dest="dry_run", action="store_true", help="Resolve without writing composer.json")
    require.set_defaults(func=cmd_require)

    suggest = subparsers.add_parser("suggest", help="Print the constraints require would write")
    _add_resolution_arguments(suggest)
    suggest.set_defaults(func=cmd_suggest)

    bump = subparsers.add_parser("bump", help="Raise constraint lower bounds to the installed versions")
    only = bump.add_mutually_exclusive_group()
    only.add_argument("-D", "--dev-only", dest="dev_only", action="store_true", help='Only bump "require-dev"')
    only.add_argument("-R", "--no-dev-only", dest="no_dev_only", action="store_true", help='Only bump "require"')
    bump.add_argument("--dry-run", dest="dry_run", action="store_true", help="Show the changes; exit 1 if there are any")
    bump.add_argument("--format", choices=["text", "json"], default="text", help="Output format for --dry-run")
    bump.set_defaults(func=cmd_bump)

    search = subparsers.add_parser("search", help="Search the configured repositories")
    search.add_argument("query", nargs="+")
    search.set_defaults(func=cmd_search)

    update = subparsers.add_parser("update-cache", help="Refetch package metadata into the cache")
    update.add_argument("packages", nargs="+")
    update.set_defaults(func=cmd_update_cache)

    return parser


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format=LOG_FORMAT)
    try:
        return args.func(args)
    except (MetadataFetchError, ReqflowError, ValueError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
