#!/usr/bin/env python3
"""
Validate blog posts in _posts/ before building.

Checks:
- Filename is YYYY-MM-DD-slug.md with a real calendar date
- Front matter block present, parses, has a non-empty title and a layout
- The layout exists in _layouts/
- Every [text][label] reference has a [label]: url definition in the same post
- $$ math delimiters are balanced
- No two posts share a permalink

Warnings:
- Link definitions nobody references, or defined twice
- Front matter `date` disagrees with the filename date
- Slug is not lowercase-with-hyphens

Usage:
    python3 scripts/validate_posts.py
    python3 scripts/validate_posts.py --strict  # treat warnings as errors
    python3 scripts/validate_posts.py --post 2023-01-18-distopia.md
"""

import argparse
import re
import sys
from collections import defaultdict
from pathlib import Path
from typing import Optional

from blog_errors import ConfigError, PostError
from link_refs import find_duplicate_definitions, unresolved_references, unused_definitions
from math_blocks import find_math_spans
from permalinks import expand_permalink
from post_files import (
    front_matter_date,
    list_post_files,
    load_post,
    parse_post_filename,
    read_post_text,
    split_front_matter,
)
from site_config import BLOG_ROOT, SiteConfig, load_site_config

SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def validate_post(path: Path, site: SiteConfig):
    """Validate a single post. Returns (errors, warnings, post or None)."""
    errors = []
    warnings = []
    prefix = f"[{path.name}]"

    published = None
    try:
        published, slug = parse_post_filename(path.name, path)
        if not SLUG_RE.match(slug):
            warnings.append(f"{prefix} slug '{slug}' is not lowercase-with-hyphens")
    except PostError as e:
        errors.append(f"{prefix} {e.message}")

    try:
        text = read_post_text(path)
    except PostError as e:
        errors.append(f"{prefix} {e.message}")
        return errors, warnings, None

    try:
        data, body, body_line = split_front_matter(text, path)
    except PostError as e:
        errors.append(f"{prefix} line {e.line}: {e.message}")
        return errors, warnings, None

    # === FRONT MATTER ===
    title = data.get("title")
    if title is None or not str(title).strip():
        errors.append(f"{prefix} Missing or empty 'title'")

    layout = data.get("layout")
    if layout is None or not str(layout).strip():
        errors.append(f"{prefix} Missing 'layout'")
    elif not (site.layouts_path / f"{str(layout).strip()}.html").is_file():
        errors.append(f"{prefix} Unknown layout '{layout}' (no {site.layouts_dir}/{layout}.html)")

    fm_date = front_matter_date(data)
    if published and fm_date and fm_date != published:
        warnings.append(f"{prefix} front matter date {fm_date} differs from filename date {published}")

    # === LINK REFERENCES ===
    def at(line):
        return body_line + line - 1

    for ref in unresolved_references(body):
        errors.append(f"{prefix} line {at(ref.line)}: unresolved link label '{ref.label}' in {ref.raw}")
    for d in unused_definitions(body):
        warnings.append(f"{prefix} line {at(d.line)}: link definition '{d.label}' is never used")
    for d in find_duplicate_definitions(body):
        warnings.append(f"{prefix} line {at(d.line)}: link definition '{d.label}' is defined more than once")

    # === MATH ===
    try:
        find_math_spans(body, path, line_offset=body_line - 1)
    except PostError as e:
        errors.append(f"{prefix} line {e.line}: {e.message}")

    post = None
    if not errors:
        try:
            post = load_post(path)
        except PostError as e:
            errors.append(f"{prefix} {e.message}")
    return errors, warnings, post


def validate_posts(site: SiteConfig, only: Optional[str] = None):
    """Validate every post (or just `only`). Returns (errors, warnings, per-post status)."""
    all_errors = []
    all_warnings = []
    status = {}
    permalinks = defaultdict(list)

    paths = list_post_files(site.posts_path)
    for path in paths:
        errors, warnings, post = validate_post(path, site)
        if post is not None:
            try:
                permalinks[expand_permalink(site.permalink, post)].append(path)
            except PostError as e:
                errors.append(f"[{path.name}] {e.message}")
        if only and path.name != only:
            continue
        all_errors.extend(errors)
        all_warnings.extend(warnings)
        status[path.name] = (errors, warnings)

    for url, clashing in permalinks.items():
        if len(clashing) < 2:
            continue
        for path in clashing:
            if only and path.name != only:
                continue
            others = ", ".join(p.name for p in clashing if p != path)
            message = f"[{path.name}] permalink {url} is also used by {others}"
            all_errors.append(message)
            status[path.name][0].append(message)

    return all_errors, all_warnings, status


def main():
    parser = argparse.ArgumentParser(description="Validate blog posts")
    parser.add_argument("--root", type=Path, default=BLOG_ROOT, help="Site root (contains _config.yml)")
    parser.add_argument("--strict", action="store_true", help="Treat warnings as errors")
    parser.add_argument("--post", help="Validate a single post (filename)")
    args = parser.parse_args()

    try:
        site = load_site_config(args.root)
    except ConfigError as e:
        print(f"✗ {e}")
        sys.exit(1)

    if args.post and not (site.posts_path / args.post).is_file():
        print(f"✗ No such post: {site.posts_path / args.post}")
        sys.exit(1)

    print(f"Validating posts in {site.posts_path}...")
    print()

    all_errors, all_warnings, status = validate_posts(site, args.post)

    for name, (errors, warnings) in sorted(status.items()):
        issue_count = len(errors) + (len(warnings) if args.strict else 0)
        if issue_count > 0:
            mark = "✗" if errors else "⚠"
            print(f"{mark} {name}: {len(errors)} errors, {len(warnings)} warnings")
        else:
            print(f"✓ {name}")

    print()
    print("=" * 50)

    if all_warnings:
        print(f"\n⚠ {len(all_warnings)} WARNINGS:")
        for w in all_warnings[:30]:
            print(f"  {w}")
        if len(all_warnings) > 30:
            print(f"  ... and {len(all_warnings) - 30} more")

    if all_errors:
        print(f"\n✗ {len(all_errors)} ERRORS:")
        for e in all_errors[:30]:
            print(f"  {e}")
        if len(all_errors) > 30:
            print(f"  ... and {len(all_errors) - 30} more")

    print(f"\n--- STATS ---")
    print(f"Posts validated: {len(status)}")

    total_issues = len(all_errors) + (len(all_warnings) if args.strict else 0)
    if total_issues == 0:
        print(f"\n✓ ALL VALIDATIONS PASSED ({len(all_warnings)} warnings)")
        sys.exit(0)
    else:
        print(f"\n✗ VALIDATION FAILED: {len(all_errors)} errors, {len(all_warnings)} warnings")
        sys.exit(1)


if __name__ == "__main__":
    main()
