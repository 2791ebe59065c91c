"""
Permalinks built from date tokens in the site (or post) pattern.

    /:categories/:year/:month/:day/:title.html  ->  /news/2023/01/18/distopia.html
"""

import re
from pathlib import PurePosixPath

from blog_errors import TemplateDirectiveError

STYLES = {
    "date": "/:categories/:year/:month/:day/:title:output_ext",
    "pretty": "/:categories/:year/:month/:day/:title/",
    "ordinal": "/:categories/:year/:y_day/:title:output_ext",
    "none": "/:categories/:title:output_ext",
}

TOKEN_RE = re.compile(r":([a-z_]+)")


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", str(value).lower())
    return slug.strip("-")


def _token_values(post) -> dict[str, str]:
    d = post.date
    return {
        "year": f"{d.year:04d}",
        "short_year": f"{d.year % 100:02d}",
        "month": f"{d.month:02d}",
        "i_month": str(d.month),
        "day": f"{d.day:02d}",
        "i_day": str(d.day),
        "y_day": f"{d.timetuple().tm_yday:03d}",
        "title": post.slug,
        "slug": post.slug,
        "categories": "/".join(s for s in (slugify(c) for c in post.categories) if s),
        "output_ext": ".html",
    }


def _clean_url(url: str) -> str:
    """Collapse repeated slashes and drop `.` and `..` segments."""
    segments = [s for s in url.split("/") if s not in ("", ".", "..")]
    clean = "/" + "/".join(segments)
    if segments and url.endswith("/"):
        clean += "/"
    return clean


def expand_permalink(pattern: str, post) -> str:
    """Expand a permalink pattern (or named style) for `post`.

    A `permalink` key in the post's own front matter wins over `pattern`.
    """
    own = post.front_matter.get("permalink")
    if own:
        pattern = str(own)
    pattern = STYLES.get(pattern, pattern)

    values = _token_values(post)

    def replace(m):
        name = m.group(1)
        if name not in values:
            raise TemplateDirectiveError(post.path, f"unknown permalink token ':{name}' in '{pattern}'")
        return values[name]

    url = TOKEN_RE.sub(replace, pattern)
    url = _clean_url(url)
    return url


def output_path(permalink: str) -> PurePosixPath:
    """Path of the rendered file relative to the destination directory."""
    rel = permalink.lstrip("/")
    if not rel or permalink.endswith("/"):
        return PurePosixPath(rel) / "index.html"
    path = PurePosixPath(rel)
    if not path.suffix:
        return path / "index.html"
    return path
