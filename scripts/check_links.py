#!/usr/bin/env python3
"""
Check every external link used by the blog posts.

Collects http(s) URLs from link reference definitions, inline links and
autolinks (code is ignored), then checks them in parallel.

Usage:
    python3 scripts/check_links.py
    python3 scripts/check_links.py --workers 5 --timeout 20
"""

import argparse
import re
import sys
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import requests

from blog_errors import ConfigError, PostError
from link_refs import parse_definitions
from markdown_text import mask_code
from post_files import list_post_files, read_post_text, split_front_matter
from site_config import BLOG_ROOT, load_site_config

URL_RE = re.compile(r"https?://[^\s<>\"'\)\]\}]+")
HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
}


def extract_urls(body: str) -> set[str]:
    urls = {d.url for d in parse_definitions(body).values() if d.url.startswith(("http://", "https://"))}
    for url in URL_RE.findall(mask_code(body)):
        urls.add(url.rstrip(".,;:"))
    return urls


def collect_urls(posts_dir: Path) -> dict[str, set[str]]:
    """URL -> names of the posts using it. Posts that fail to parse are skipped."""
    used_by = defaultdict(set)
    for path in list_post_files(posts_dir):
        try:
            _, body, _ = split_front_matter(read_post_text(path), path)
        except PostError:
            continue
        for url in extract_urls(body):
            used_by[url].add(path.name)
    return used_by


def check_link(url: str, timeout: float = 10):
    try:
        # HEAD first for speed
        response = requests.head(url, headers=HEADERS, timeout=timeout, allow_redirects=True)
        if response.status_code >= 400:
            # some sites reject HEAD
            response = requests.get(url, headers=HEADERS, timeout=timeout, allow_redirects=True)
        return url, response.status_code
    except requests.RequestException as e:
        return url, str(e)


def is_broken(status) -> bool:
    return not isinstance(status, int) or status >= 400


def check_all(urls, workers: int = 20, timeout: float = 10) -> list[tuple[str, object]]:
    urls = sorted(urls)
    if not urls:
        return []
    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(lambda u: check_link(u, timeout), urls))


def main():
    parser = argparse.ArgumentParser(description="Check external links in blog posts")
    parser.add_argument("--root", type=Path, default=BLOG_ROOT, help="Site root (contains _config.yml)")
    parser.add_argument("--workers", type=int, default=20, help="Parallel requests")
    parser.add_argument("--timeout", type=float, default=10, help="Per-request timeout in seconds")
    args = parser.parse_args()

    try:
        site = load_site_config(args.root)
    except ConfigError as e:
        print(f"✗ {e}")
        sys.exit(1)

    used_by = collect_urls(site.posts_path)
    print(f"Found {len(used_by)} unique URLs. Validating in parallel...")

    results = check_all(used_by.keys(), workers=args.workers, timeout=args.timeout)
    broken = [r for r in results if is_broken(r[1])]

    print("\n--- LINK VALIDATION REPORT ---")
    print(f"Total Unique Links: {len(used_by)}")
    print(f"Broken/Suspect Links: {len(broken)}")

    if broken:
        for url, status in broken:
            print(f"  [X] Status {status} | {url}")
            print(f"      used by: {', '.join(sorted(used_by[url]))}")
        sys.exit(1)
    print("  ✓ All links are healthy!")
    sys.exit(0)


if __name__ == "__main__":
    main()
