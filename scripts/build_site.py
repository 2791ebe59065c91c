#!/usr/bin/env python3
"""
Build the blog: render every post in _posts/ into _site/.

Steps:
1. Load _config.yml and every post (front matter, filename date + slug)
2. Render each post (Liquid -> Markdown -> layout chain)
3. Write pages, the Atom feed, and copy static directories

If any post fails, nothing is written and every failure is listed.

Usage:
    python3 scripts/build_site.py
    python3 scripts/build_site.py --root example
    python3 scripts/build_site.py --destination /tmp/site
    python3 scripts/build_site.py --check   # build twice, fail if output differs
"""

import argparse
import filecmp
import shutil
import sys
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from atom_feed import build_feed
from blog_errors import BuildError, ConfigError, PostError
from post_files import load_posts_reporting
from render_posts import RenderedPost, SiteRenderer, find_duplicate_permalinks
from site_config import BLOG_ROOT, SiteConfig, load_site_config


@dataclass
class BuildResult:
    destination: Path
    pages: list[RenderedPost] = field(default_factory=list)
    written: list[Path] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def render_site(site: SiteConfig) -> tuple[list[RenderedPost], list[str]]:
    """Render all posts in memory. Raises BuildError listing every broken post."""
    posts, failures = load_posts_reporting(site.posts_path)

    renderer = SiteRenderer(site, posts)
    rendered, render_failures = renderer.render_all()
    failures.extend(render_failures)

    for url, paths in find_duplicate_permalinks(renderer).items():
        for path in paths:
            others = ", ".join(p.name for p in paths if p != path)
            failures.append(PostError(path, f"permalink {url} is also used by {others}"))

    if failures:
        raise BuildError(failures)

    warnings = [w for r in rendered for w in r.warnings]
    return rendered, warnings


def page_targets(rendered: list[RenderedPost], destination: Path) -> list[tuple[RenderedPost, Path]]:
    """Output file of each page. Raises BuildError if any would land outside `destination`."""
    root = destination.resolve()
    targets = []
    failures = []
    for r in rendered:
        target = destination / Path(*r.output_path.parts)
        if not target.resolve().is_relative_to(root):
            failures.append(PostError(r.post.path, f"permalink {r.permalink} points outside {destination}"))
        targets.append((r, target))
    if failures:
        raise BuildError(failures)
    return targets


def write_site(site: SiteConfig, rendered: list[RenderedPost], destination: Path) -> list[Path]:
    targets = page_targets(rendered, destination)
    written = []
    destination.mkdir(parents=True, exist_ok=True)

    for r, target in targets:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(r.html, encoding="utf-8")
        written.append(target)

    feed_target = destination / site.feed.path.lstrip("/")
    feed_target.parent.mkdir(parents=True, exist_ok=True)
    feed_target.write_bytes(build_feed(site, rendered))
    written.append(feed_target)

    for name in site.static_dirs:
        source = site.root / name
        if not source.is_dir():
            continue
        target = destination / name
        shutil.copytree(source, target, dirs_exist_ok=True)
        written.extend(sorted(p for p in target.rglob("*") if p.is_file()))

    return written


def source_paths(site: SiteConfig) -> list[Path]:
    """Directories the build reads from."""
    paths = [site.posts_path, site.layouts_path, site.includes_path]
    paths.extend(site.root / name for name in site.static_dirs)
    return [p.resolve() for p in paths]


def check_destination(site: SiteConfig, destination: Path):
    """Reject a destination that overlaps the site root or a source directory."""
    dest = destination.resolve()
    if site.root.is_relative_to(dest):
        raise ConfigError(f"destination {destination} would overwrite the site root")
    for source in source_paths(site):
        if source.is_relative_to(dest) or dest.is_relative_to(source):
            raise ConfigError(f"destination {destination} overlaps source directory {source}")


def build(root: Optional[Path] = None, destination: Optional[Path] = None) -> BuildResult:
    site = load_site_config(root)
    destination = Path(destination) if destination is not None else site.destination_path
    check_destination(site, destination)

    rendered, warnings = render_site(site)
    page_targets(rendered, destination)

    # clean rebuild: stale pages from renamed posts must not survive
    if destination.exists():
        shutil.rmtree(destination)
    written = write_site(site, rendered, destination)

    return BuildResult(destination=destination, pages=rendered, written=written, warnings=warnings)


def _tree_differences(a: Path, b: Path, prefix: str = "") -> list[str]:
    cmp = filecmp.dircmp(a, b)
    diffs = [f"{prefix}{n}" for n in cmp.left_only + cmp.right_only + cmp.funny_files]
    _, mismatch, errors = filecmp.cmpfiles(a, b, cmp.common_files, shallow=False)
    diffs.extend(f"{prefix}{n}" for n in mismatch + errors)
    for sub in cmp.common_dirs:
        diffs.extend(_tree_differences(a / sub, b / sub, f"{prefix}{sub}/"))
    return diffs


def check_idempotent(root: Optional[Path] = None) -> list[str]:
    """Build twice into scratch directories; return the paths that differ."""
    with tempfile.TemporaryDirectory() as tmp:
        first = Path(tmp) / "first"
        second = Path(tmp) / "second"
        build(root, first)
        build(root, second)
        return _tree_differences(first, second)


def main():
    parser = argparse.ArgumentParser(description="Render blog posts into a static site")
    parser.add_argument("--root", type=Path, default=BLOG_ROOT, help="Site root (contains _config.yml)")
    parser.add_argument("--destination", type=Path, help="Output directory (default: _site under root)")
    parser.add_argument("--check", action="store_true", help="Build twice and fail if the output differs")
    args = parser.parse_args()

    try:
        if args.check:
            print(f"Checking that {args.root} builds reproducibly...")
            diffs = check_idempotent(args.root)
            if diffs:
                print(f"\n✗ {len(diffs)} file(s) differ between two builds:")
                for d in diffs[:30]:
                    print(f"  {d}")
                if len(diffs) > 30:
                    print(f"  ... and {len(diffs) - 30} more")
                sys.exit(1)
            print("✓ Two builds produced identical output")
            sys.exit(0)

        result = build(args.root, args.destination)
    except ConfigError as e:
        print(f"✗ {e}")
        sys.exit(1)
    except BuildError as e:
        print(f"\n✗ BUILD FAILED: {len(e.failures)} error(s)")
        for f in e.failures[:30]:
            print(f"  ERR: {f}")
        if len(e.failures) > 30:
            print(f"  ... and {len(e.failures) - 30} more")
        sys.exit(1)

    for page in result.pages:
        print(f"✓ {page.post.filename} -> {page.permalink}")

    if result.warnings:
        print(f"\n⚠ {len(result.warnings)} warnings:")
        for w in result.warnings[:30]:
            print(f"  WARN: {w}")
        if len(result.warnings) > 30:
            print(f"  ... and {len(result.warnings) - 30} more")

    print(f"\n--- BUILD ---")
    print(f"Posts rendered: {len(result.pages)}")
    print(f"Files written: {len(result.written)}")
    print(f"Destination: {result.destination}")
    sys.exit(0)


if __name__ == "__main__":
    main()
