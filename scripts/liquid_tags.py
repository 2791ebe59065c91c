"""
Liquid directives in post bodies, rendered with Jinja2.

Posts are written with the Liquid tags Jekyll blogs use. The subset that
appears in practice is rewritten to Jinja2 syntax and rendered strictly:
a typo in a variable name or a link to a post that does not exist stops the
build instead of silently producing an empty string.

Supported:
    {{ site.x }} {{ page.x }}            variables, incl. `| filter: arg`
    {% post_url 2023-01-18-distopia %}   permalink of another post
    {% link _posts/2023-01-18-distopia.md %}
    {% include note.html kind="info" %}  from _includes, params as include.*
    {% if %} {% elsif %} {% unless %} {% for %} {% assign %} {% comment %}
    {% highlight python %} ... {% endhighlight %}
    {% raw %} ... {% endraw %}
"""

import html
import re
from datetime import date, datetime
from pathlib import Path

import jinja2

from blog_errors import TemplateDirectiveError
from permalinks import slugify

TAG_RE = re.compile(r"\{%-?\s*(\w+)(.*?)-?%\}", re.DOTALL)
OUTPUT_RE = re.compile(r"\{\{(.*?)\}\}", re.DOTALL)
RAW_BLOCK_RE = re.compile(r"\{%-?\s*raw\s*-?%\}.*?\{%-?\s*endraw\s*-?%\}", re.DOTALL)
COMMENT_BLOCK_RE = re.compile(r"\{%-?\s*comment\s*-?%\}(.*?)\{%-?\s*endcomment\s*-?%\}", re.DOTALL)
FILTER_ARG_RE = re.compile(r"\|\s*(\w+)\s*:\s*([^|]+)")
JINJA_LITERAL_COMMENT_OPEN = "{{ '{#' }}"
INCLUDE_PARAM_RE = re.compile(r"([\w-]+)\s*=\s*(\"[^\"]*\"|'[^']*'|[\w.]+)")


def _translate_filters(expr: str) -> str:
    """`x | date: "%Y", "x"` -> `x | date("%Y", "x")`."""
    def repl(m):
        return f"| {m.group(1)}({m.group(2).strip()}) "
    return FILTER_ARG_RE.sub(repl, expr).rstrip()


def _translate_include(args: str) -> str:
    args = args.strip()
    name, _, rest = args.partition(" ")
    params = ", ".join(f'"{k}": {v}' for k, v in INCLUDE_PARAM_RE.findall(rest))
    name = name.strip().strip("\"'")
    return f'{{% with include = {{{params}}} %}}{{% include "{name}" %}}{{% endwith %}}'


def _translate_tag(m) -> str:
    name, args = m.group(1), m.group(2).strip()
    if name == "post_url":
        return f'{{{{ post_url("{args}") }}}}'
    if name == "link":
        return f'{{{{ link("{args}") }}}}'
    if name == "include":
        return _translate_include(args)
    if name == "highlight":
        return "```" + args.split()[0] if args else "```"
    if name == "endhighlight":
        return "```"
    if name == "elsif":
        return f"{{% elif {_translate_filters(args)} %}}"
    if name == "unless":
        return f"{{% if not ({_translate_filters(args)}) %}}"
    if name == "endunless":
        return "{% endif %}"
    if name == "assign":
        return f"{{% set {_translate_filters(args)} %}}"
    if name in ("if", "for"):
        return f"{{% {name} {_translate_filters(args)} %}}"
    return m.group(0)


def liquid_to_jinja(source: str) -> str:
    """Rewrite Liquid syntax to Jinja2. Line breaks are preserved."""
    raw_blocks = []

    def stash(m):
        raw_blocks.append(m.group(0))
        return f"\x00RAW{len(raw_blocks) - 1}\x00"

    source = RAW_BLOCK_RE.sub(stash, source)
    # `{#` is literal text in Liquid (`## Results {#results}`), a comment opener in Jinja2
    source = source.replace("{#", JINJA_LITERAL_COMMENT_OPEN)
    source = COMMENT_BLOCK_RE.sub(lambda m: "{#" + m.group(1).replace("#}", "# }") + "#}", source)
    source = TAG_RE.sub(_translate_tag, source)
    source = OUTPUT_RE.sub(lambda m: "{{" + _translate_filters(m.group(1)) + " }}", source)

    for i, block in enumerate(raw_blocks):
        source = source.replace(f"\x00RAW{i}\x00", block)
    return source


class BlogUndefined(jinja2.StrictUndefined):
    """Fails when printed or iterated, but `{% if page.missing %}` is just false."""

    def __bool__(self):
        return False


class LiquidLoader(jinja2.FileSystemLoader):
    """FileSystemLoader that rewrites Liquid includes to Jinja2 on load."""

    def get_source(self, environment, template):
        source, filename, uptodate = super().get_source(environment, template)
        return liquid_to_jinja(source), filename, uptodate


def _as_datetime(value):
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return datetime.fromisoformat(str(value).strip())


def make_environment(search_paths: list[Path], site: dict) -> jinja2.Environment:
    """Jinja2 environment shared by post bodies and layouts."""
    env = jinja2.Environment(
        loader=LiquidLoader([str(p) for p in search_paths]),
        undefined=BlogUndefined,
        autoescape=False,
        keep_trailing_newline=True,
    )

    baseurl = (site.get("baseurl") or "").rstrip("/")
    url = (site.get("url") or "").rstrip("/")

    def relative_url(path):
        path = str(path)
        if not path.startswith("/"):
            path = "/" + path
        return baseurl + path

    def absolute_url(path):
        return url + relative_url(path)

    env.filters.update({
        "date": lambda value, fmt="%Y-%m-%d": _as_datetime(value).strftime(fmt),
        "date_to_xmlschema": lambda value: _as_datetime(value).strftime("%Y-%m-%dT%H:%M:%S+00:00"),
        "relative_url": relative_url,
        "absolute_url": absolute_url,
        "xml_escape": lambda value: html.escape(str(value)),
        "slugify": slugify,
        "strip_html": lambda value: re.sub(r"<[^>]+>", "", str(value)),
    })
    return env


def _template_line(tb):
    """Line in the post body template where rendering failed, from a traceback."""
    line = None
    while tb is not None:
        # jinja2 rewrites template frames to report the template source line
        if tb.tb_frame.f_code.co_filename == "<template>":
            line = tb.tb_lineno
        tb = tb.tb_next
    return line


def expand_liquid(post, context: dict, post_urls: dict[str, str], env: jinja2.Environment) -> str:
    """Render the Liquid in `post.body` against `context` (site, page, ...)."""

    def post_url(name):
        key = Path(str(name).strip()).name
        key = re.sub(r"\.(md|markdown)$", "", key)
        if key not in post_urls:
            raise TemplateDirectiveError(post.path, f"post_url: no post named '{name}'")
        return post_urls[key]

    def link(target):
        return post_url(target)

    def body_line(e):
        line = _template_line(e.__traceback__)
        return post.body_line + line - 1 if line is not None else None

    try:
        template = env.from_string(liquid_to_jinja(post.body))
        return template.render(post_url=post_url, link=link, **context)
    except TemplateDirectiveError as e:
        if e.line is None:
            e.line = body_line(e)
        raise
    except jinja2.TemplateSyntaxError as e:
        line = post.body_line + (e.lineno or 1) - 1
        raise TemplateDirectiveError(post.path, f"template syntax error: {e.message}", line=line) from e
    except jinja2.TemplateNotFound as e:
        raise TemplateDirectiveError(post.path, f"include not found: {e.name}", line=body_line(e)) from e
    except jinja2.UndefinedError as e:
        raise TemplateDirectiveError(post.path, f"undefined variable: {e.message}", line=body_line(e)) from e
