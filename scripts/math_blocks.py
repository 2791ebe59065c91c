"""
`$$ ... $$` math.

Math is handed to the client-side renderer untouched: before Markdown runs,
each span is swapped for a placeholder Markdown will not alter, and the
original source is put back afterwards.
"""

import html
import re
from dataclasses import dataclass

from blog_errors import MathDelimiterError
from markdown_text import line_of, mask_code

MATH_DELIMITER = "$$"
DELIMITER_RE = re.compile(re.escape(MATH_DELIMITER))
PLACEHOLDER = "zqmathzq{}zq"


@dataclass(frozen=True)
class MathSpan:
    start: int
    end: int
    source: str
    line: int


def find_math_spans(text: str, path=None, line_offset: int = 0) -> list[MathSpan]:
    """Pair up `$$` delimiters outside code.

    `line_offset` shifts reported line numbers, for bodies that start below
    the front matter.
    """
    masked = mask_code(text)
    delimiters = list(DELIMITER_RE.finditer(masked))

    if len(delimiters) % 2:
        opener = delimiters[-1]
        raise MathDelimiterError(
            path, f"unmatched '{MATH_DELIMITER}' math delimiter",
            line=line_of(masked, opener.start()) + line_offset,
        )

    spans = []
    for opener, closer in zip(delimiters[::2], delimiters[1::2]):
        line = line_of(masked, opener.start()) + line_offset
        if not text[opener.end():closer.start()].strip():
            raise MathDelimiterError(path, "empty math expression", line=line)
        spans.append(MathSpan(
            start=opener.start(),
            end=closer.end(),
            source=text[opener.start():closer.end()],
            line=line,
        ))
    return spans


def protect_math(text: str, path=None, line_offset: int = 0) -> tuple[str, dict[str, str]]:
    table = {}
    pieces = []
    pos = 0
    for i, span in enumerate(find_math_spans(text, path, line_offset)):
        key = PLACEHOLDER.format(i)
        table[key] = span.source
        pieces.append(text[pos:span.start])
        pieces.append(key)
        pos = span.end
    pieces.append(text[pos:])
    return "".join(pieces), table


def restore_math(rendered: str, table: dict[str, str]) -> str:
    for key, source in table.items():
        rendered = rendered.replace(key, html.escape(source, quote=False))
    return rendered
