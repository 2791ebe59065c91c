"""
Post files: `_posts/YYYY-MM-DD-slug.md` with a YAML front-matter block.

    ---
    layout: post
    title: "Announcing distopia"
    ---
    Body text in Markdown...
"""

import re
from datetime import date, datetime
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

from blog_errors import FilenameError, FrontMatterError, PostError
from link_refs import parse_definitions

FRONT_MATTER_DELIMITER = "---"
POST_EXTENSIONS = {".md", ".markdown"}
FILENAME_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})-(.*)\.(md|markdown)$")


class Post(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: Path
    title: str
    layout: str
    date: date
    slug: str
    body: str
    body_line: int = 1
    front_matter: dict[str, Any] = Field(default_factory=dict)
    categories: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    link_references: dict[str, str] = Field(default_factory=dict)

    @property
    def filename(self) -> str:
        return self.path.name


def split_front_matter(text: str, path=None) -> tuple[dict, str, int]:
    """Split a post into (front matter, body, line number where the body starts)."""
    if text.startswith("\ufeff"):
        text = text[1:]

    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip("\r\n") != FRONT_MATTER_DELIMITER:
        raise FrontMatterError(path, f"missing front matter (file must start with '{FRONT_MATTER_DELIMITER}')", line=1)

    for i, line in enumerate(lines[1:], start=1):
        if line.rstrip("\r\n") == FRONT_MATTER_DELIMITER:
            closing = i
            break
    else:
        raise FrontMatterError(path, f"front matter is not closed with '{FRONT_MATTER_DELIMITER}'", line=1)

    raw = "".join(lines[1:closing])
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        line = mark.line + 2 if mark is not None else 1
        raise FrontMatterError(path, f"invalid YAML in front matter: {getattr(e, 'problem', e)}", line=line) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontMatterError(path, "front matter must be a mapping of keys to values", line=2)

    body = "".join(lines[closing + 1:])
    return data, body, closing + 2


def parse_post_filename(name: str, path=None) -> tuple[date, str]:
    """`2023-01-18-distopia.md` -> (date(2023, 1, 18), "distopia")."""
    m = FILENAME_RE.match(name)
    if not m:
        raise FilenameError(path if path is not None else name,
                            "filename must look like YYYY-MM-DD-slug.md")
    year, month, day, slug, _ = m.groups()
    try:
        published = date(int(year), int(month), int(day))
    except ValueError as e:
        raise FilenameError(path if path is not None else name,
                            f"invalid date {year}-{month}-{day}: {e}") from e
    if not slug.strip():
        raise FilenameError(path if path is not None else name, "filename has no slug after the date")
    return published, slug


def _as_list(value) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]


def front_matter_date(front_matter: dict) -> date | None:
    """The `date:` key, if present, as a calendar date."""
    value = front_matter.get("date")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip()[:10]).date()
        except ValueError:
            return None
    return None


def read_post_text(path: Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise FrontMatterError(path, f"file is not valid UTF-8 ({e.reason} at byte {e.start})") from e


def load_post(path: Path) -> Post:
    path = Path(path)
    published, slug = parse_post_filename(path.name, path)

    text = read_post_text(path)
    data, body, body_line = split_front_matter(text, path)

    title = data.get("title")
    if title is None or not str(title).strip():
        raise FrontMatterError(path, "front matter has no 'title'", line=2)
    layout = data.get("layout")
    if layout is None or not str(layout).strip():
        raise FrontMatterError(path, "front matter has no 'layout'", line=2)

    definitions = parse_definitions(body)

    return Post(
        path=path,
        title=str(title),
        layout=str(layout).strip(),
        date=published,
        slug=slug,
        body=body,
        body_line=body_line,
        front_matter=data,
        categories=_as_list(data.get("categories", data.get("category"))),
        tags=_as_list(data.get("tags")),
        link_references={label: d.url for label, d in definitions.items()},
    )


def list_post_files(posts_dir: Path) -> list[Path]:
    """Post files in `posts_dir`, skipping hidden files and `_` drafts."""
    posts_dir = Path(posts_dir)
    if not posts_dir.is_dir():
        return []
    return sorted(
        p for p in posts_dir.iterdir()
        if p.is_file()
        and p.suffix in POST_EXTENSIONS
        and not p.name.startswith((".", "_"))
    )


def load_posts(posts_dir: Path) -> list[Post]:
    """Load every post, oldest first."""
    posts = [load_post(p) for p in list_post_files(posts_dir)]
    return sorted(posts, key=lambda p: (p.date, p.slug))


def load_posts_reporting(posts_dir: Path) -> tuple[list[Post], list[PostError]]:
    """Like load_posts, but keeps going past broken files and returns their errors."""
    posts = []
    failures = []
    for p in list_post_files(posts_dir):
        try:
            posts.append(load_post(p))
        except PostError as e:
            failures.append(e)
    return sorted(posts, key=lambda p: (p.date, p.slug)), failures


def post_url_key(post: Post) -> str:
    """Name used by `{% post_url %}`: the filename without extension."""
    return post.path.stem
