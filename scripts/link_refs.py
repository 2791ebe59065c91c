"""
Link reference definitions and the references that use them.

    See the [announcement][distopia-post] for details.

    [distopia-post]: https://www.mdanalysis.org/2023/01/18/distopia/

Labels are matched case-insensitively with internal whitespace collapsed.
Anything inside code blocks, code spans or `$$` math is ignored.
"""

import re
from dataclasses import dataclass
from typing import Optional

from markdown_text import line_of, mask_code, mask_math

DEFINITION_RE = re.compile(
    r"^ {0,3}\[(?P<label>[^\]\^][^\]]*)\]:[ \t]*"
    r"(?P<url><[^>\n]*>|\S+)"
    r"(?:[ \t]+(?P<title>\"[^\"\n]*\"|'[^'\n]*'|\([^)\n]*\)))?[ \t]*$",
    re.MULTILINE,
)

# [text][label] and [text][]; text may hold one level of nested brackets
REFERENCE_RE = re.compile(
    r"(?P<image>!?)\[(?P<text>(?:[^\[\]\n]|\[[^\[\]\n]*\])*)\]\[(?P<label>[^\[\]\n]*)\]"
)


@dataclass(frozen=True)
class LinkDefinition:
    label: str
    url: str
    title: Optional[str]
    line: int


@dataclass(frozen=True)
class LinkReference:
    text: str
    label: str
    line: int
    is_image: bool = False

    @property
    def raw(self) -> str:
        return f"{'!' if self.is_image else ''}[{self.text}][{self.label}]"


def normalize_label(label: str) -> str:
    return " ".join(label.split()).casefold()


def _iter_definitions(text: str):
    masked = mask_math(mask_code(text))
    for m in DEFINITION_RE.finditer(masked):
        url = m.group("url")
        if url.startswith("<") and url.endswith(">"):
            url = url[1:-1]
        title = m.group("title")
        if title:
            title = title[1:-1]
        yield LinkDefinition(
            label=m.group("label"),
            url=url,
            title=title,
            line=line_of(masked, m.start()),
        )


def parse_definitions(text: str) -> dict[str, LinkDefinition]:
    """Normalized label -> definition. The first definition of a label wins."""
    definitions = {}
    for d in _iter_definitions(text):
        definitions.setdefault(normalize_label(d.label), d)
    return definitions


def find_duplicate_definitions(text: str) -> list[LinkDefinition]:
    """Definitions shadowed by an earlier definition of the same label."""
    seen = set()
    duplicates = []
    for d in _iter_definitions(text):
        key = normalize_label(d.label)
        if key in seen:
            duplicates.append(d)
        seen.add(key)
    return duplicates


def find_references(text: str) -> list[LinkReference]:
    masked = mask_math(mask_code(text))
    refs = []
    for m in REFERENCE_RE.finditer(masked):
        link_text = m.group("text")
        label = m.group("label")
        if not label.strip():
            # collapsed reference: [label][]
            label = link_text
        refs.append(LinkReference(
            text=link_text,
            label=label,
            line=line_of(masked, m.start()),
            is_image=bool(m.group("image")),
        ))
    return refs


def unresolved_references(text: str) -> list[LinkReference]:
    definitions = parse_definitions(text)
    return [r for r in find_references(text) if normalize_label(r.label) not in definitions]


def unused_definitions(text: str) -> list[LinkDefinition]:
    used = {normalize_label(r.label) for r in find_references(text)}
    return [d for key, d in parse_definitions(text).items() if key not in used]
