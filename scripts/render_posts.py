"""
Render posts to HTML.

Per post:
    1. expand Liquid directives in the body (liquid_tags)
    2. swap `$$ ... $$` math for placeholders (math_blocks)
    3. Markdown -> HTML with python-markdown
    4. put the math back
    5. wrap in the post's layout, then in that layout's parent, and so on

Rendering is a pure function of the inputs: nothing here reads the clock,
so the same site renders to the same bytes every time.
"""

from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Optional

import jinja2
import markdown

from blog_errors import FrontMatterError, LayoutError, PostError
from link_refs import parse_definitions, unresolved_references
from liquid_tags import expand_liquid, liquid_to_jinja, make_environment
from math_blocks import protect_math, restore_math
from permalinks import expand_permalink, output_path
from post_files import FRONT_MATTER_DELIMITER, Post, post_url_key, split_front_matter
from site_config import SiteConfig


@dataclass
class RenderedPost:
    post: Post
    permalink: str
    output_path: PurePosixPath
    content: str
    excerpt: str
    html: str
    warnings: list[str] = field(default_factory=list)


def markdown_to_html(text: str, extensions: list[str]) -> str:
    # fresh instance per document: Markdown objects keep reference/footnote state
    md = markdown.Markdown(extensions=extensions, output_format="html")
    return md.convert(text)


def _quote_title(title: str) -> str:
    if '"' not in title:
        return f'"{title}"'
    if "'" not in title:
        return f"'{title}'"
    return f"({title})"


def _definitions_block(text: str) -> str:
    lines = []
    for d in parse_definitions(text).values():
        title = f" {_quote_title(d.title)}" if d.title else ""
        lines.append(f"[{d.label}]: {d.url}{title}")
    return "\n".join(lines)


def render_body(post: Post, expanded: str, site: SiteConfig) -> tuple[str, str, list[str]]:
    """Markdown + math for an already Liquid-expanded body.

    Returns (content html, excerpt html, warnings). References whose label has
    no definition are left in the output as their raw `[text][label]` text.
    """
    warnings = []
    for ref in unresolved_references(expanded):
        warnings.append(
            f"{post.filename}:{post.body_line + ref.line - 1}: "
            f"unresolved link label '{ref.label}' in {ref.raw}"
        )

    protected, table = protect_math(expanded, post.path, line_offset=post.body_line - 1)
    content = restore_math(markdown_to_html(protected, site.markdown_extensions), table)

    separator = site.excerpt_separator or "\n\n"
    head = protected.lstrip("\n").split(separator, 1)[0]
    excerpt_source = head + "\n\n" + _definitions_block(expanded)
    excerpt = restore_math(markdown_to_html(excerpt_source, site.markdown_extensions), table)

    return content, excerpt, warnings


class LayoutRenderer:
    """Loads `_layouts/<name>.html` and nests content through parent layouts."""

    def __init__(self, site: SiteConfig, env: jinja2.Environment):
        self.site = site
        self.env = env
        self._cache = {}

    def _load(self, name: str, post: Post) -> tuple[jinja2.Template, dict]:
        if name in self._cache:
            return self._cache[name]

        path = self.site.layouts_path / f"{name}.html"
        if not path.is_file():
            raise LayoutError(post.path, f"layout '{name}' not found ({path})")

        text = path.read_text(encoding="utf-8")
        layout_vars = {}
        if text.startswith(FRONT_MATTER_DELIMITER):
            try:
                layout_vars, text, _ = split_front_matter(text, path)
            except FrontMatterError as e:
                raise LayoutError(post.path, f"layout '{name}': {e.message}") from e

        try:
            template = self.env.from_string(liquid_to_jinja(text))
        except jinja2.TemplateSyntaxError as e:
            raise LayoutError(post.path, f"layout '{name}' line {e.lineno}: {e.message}") from e

        self._cache[name] = (template, layout_vars)
        return template, layout_vars

    def render(self, name: str, content: str, context: dict, post: Post) -> str:
        seen = []
        while name:
            if name in seen:
                chain = " -> ".join(seen + [name])
                raise LayoutError(post.path, f"layout cycle: {chain}")
            seen.append(name)

            template, layout_vars = self._load(name, post)
            try:
                content = template.render(content=content, layout=layout_vars, **context)
            except jinja2.TemplateError as e:
                raise LayoutError(post.path, f"layout '{name}': {e}") from e
            name = layout_vars.get("layout")
        return content


class SiteRenderer:
    """Renders every post of a site. Build one per build."""

    def __init__(self, site: SiteConfig, posts: list[Post]):
        self.site = site
        self.posts = sorted(posts, key=lambda p: (p.date, p.slug))
        self.env = make_environment([site.layouts_path, site.includes_path], site.template_vars())
        self.layouts = LayoutRenderer(site, self.env)

        self.permalinks = {}
        self.failures: list[PostError] = []
        for post in self.posts:
            try:
                self.permalinks[post_url_key(post)] = expand_permalink(site.permalink, post)
            except PostError as e:
                self.failures.append(e)

    def _summary(self, post: Optional[Post]) -> Optional[dict]:
        if post is None:
            return None
        return {
            "title": post.title,
            "url": self.permalinks.get(post_url_key(post), ""),
            "date": post.date,
            "slug": post.slug,
            "categories": post.categories,
            "tags": post.tags,
        }

    def site_vars(self) -> dict:
        data = self.site.template_vars()
        data["posts"] = [self._summary(p) for p in reversed(self.posts)]
        return data

    def page_vars(self, post: Post, index: int) -> dict:
        page = dict(post.front_matter)
        page.update({
            "title": post.title,
            "layout": post.layout,
            "date": post.date,
            "slug": post.slug,
            "url": self.permalinks[post_url_key(post)],
            "categories": post.categories,
            "tags": post.tags,
            "path": f"{self.site.posts_dir}/{post.filename}",
            "previous": self._summary(self.posts[index - 1]) if index > 0 else None,
            "next": self._summary(self.posts[index + 1]) if index + 1 < len(self.posts) else None,
        })
        return page

    def render_post(self, post: Post) -> RenderedPost:
        key = post_url_key(post)
        if key not in self.permalinks:
            # permalink failed earlier; re-raise the same error
            expand_permalink(self.site.permalink, post)
        index = self.posts.index(post)

        context = {"site": self.site_vars(), "page": self.page_vars(post, index)}
        expanded = expand_liquid(post, context, self.permalinks, self.env)
        content, excerpt, warnings = render_body(post, expanded, self.site)

        context["page"]["excerpt"] = excerpt
        html = self.layouts.render(post.layout, content, context, post)

        permalink = self.permalinks[key]
        return RenderedPost(
            post=post,
            permalink=permalink,
            output_path=output_path(permalink),
            content=content,
            excerpt=excerpt,
            html=html,
            warnings=warnings,
        )

    def render_all(self) -> tuple[list[RenderedPost], list[PostError]]:
        """Render every post; failures are collected instead of stopping at the first."""
        rendered = []
        failures = list(self.failures)
        failed = {f.path for f in failures}
        for post in self.posts:
            if post.path in failed:
                continue
            try:
                rendered.append(self.render_post(post))
            except PostError as e:
                failures.append(e)
        return rendered, failures


def render_post(post: Post, site: SiteConfig, posts: Optional[list[Post]] = None) -> RenderedPost:
    """Render a single post; `posts` (default: just this one) resolves `post_url` and prev/next."""
    posts = list(posts) if posts else [post]
    if post not in posts:
        posts.append(post)
    renderer = SiteRenderer(site, posts)
    return renderer.render_post(post)


def find_duplicate_permalinks(renderer: SiteRenderer) -> dict[str, list[Path]]:
    by_url = {}
    for post in renderer.posts:
        url = renderer.permalinks.get(post_url_key(post))
        if url is not None:
            by_url.setdefault(url, []).append(post.path)
    return {url: paths for url, paths in by_url.items() if len(paths) > 1}
