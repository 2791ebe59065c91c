#!/usr/bin/env python3
"""
Create a new post skeleton in _posts/.

Usage:
    python3 scripts/new_post.py "Announcing distopia"
    python3 scripts/new_post.py "Announcing distopia" --date 2023-01-18 --layout post
"""

import argparse
import sys
from datetime import date
from pathlib import Path
from typing import Optional

import yaml

from blog_errors import ConfigError
from permalinks import slugify
from post_files import FRONT_MATTER_DELIMITER
from site_config import BLOG_ROOT, load_site_config


def new_post(root: Path, title: str, published: Optional[date] = None, layout: str = "post") -> Path:
    """Write `_posts/YYYY-MM-DD-<slug>.md`; never overwrites an existing post."""
    site = load_site_config(root)
    published = published or date.today()
    slug = slugify(title)
    if not slug:
        raise ValueError(f"cannot make a slug from title {title!r}")

    path = site.posts_path / f"{published.isoformat()}-{slug}.md"
    if path.exists():
        raise FileExistsError(f"{path} already exists")

    front_matter = yaml.safe_dump(
        {"layout": layout, "title": title},
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"{FRONT_MATTER_DELIMITER}\n{front_matter}{FRONT_MATTER_DELIMITER}\n\n", encoding="utf-8")
    return path


def main():
    parser = argparse.ArgumentParser(description="Create a new blog post")
    parser.add_argument("title", help="Post title")
    parser.add_argument("--root", type=Path, default=BLOG_ROOT, help="Site root (contains _config.yml)")
    parser.add_argument("--date", type=date.fromisoformat, help="Publish date, YYYY-MM-DD (default: today)")
    parser.add_argument("--layout", default="post", help="Layout name (default: post)")
    args = parser.parse_args()

    try:
        path = new_post(args.root, args.title, args.date, args.layout)
    except (ConfigError, FileExistsError, ValueError) as e:
        print(f"✗ {e}")
        sys.exit(1)
    print(f"✓ Created {path}")


if __name__ == "__main__":
    main()
