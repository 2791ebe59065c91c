"""Helpers for scanning Markdown source while ignoring code and math."""

import re

FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})")
LIST_ITEM_RE = re.compile(r"^ {0,3}(?:[*+-]|\d{1,9}[.)])\s")
BACKTICK_RUN_RE = re.compile(r"`+")
MATH_DELIMITER_RE = re.compile(r"\$\$")


def _blank(s: str) -> str:
    return re.sub(r"[^\n]", " ", s)


def _is_indented(line: str) -> bool:
    return line.startswith("    ") or line.startswith("\t")


def mask_code(text: str) -> str:
    """Blank out code blocks and inline code spans.

    The result has the same length and the same newlines as `text`, so offsets
    and line numbers found in it point at the original.
    """
    lines = text.splitlines(keepends=True)
    out = []

    fence = None
    prev_blank = True
    in_list = False
    in_indented = False

    for line in lines:
        stripped = line.strip()

        if fence is not None:
            out.append(_blank(line))
            m = FENCE_RE.match(line)
            if m and m.group(1)[0] == fence[0] and len(m.group(1)) >= len(fence) \
                    and not line[m.end():].strip():
                fence = None
            prev_blank = False
            continue

        m = FENCE_RE.match(line)
        if m:
            in_indented = False
            fence = m.group(1)
            out.append(_blank(line))
            prev_blank = False
            continue

        if not stripped:
            out.append(line)
            prev_blank = True
            continue

        if in_indented and _is_indented(line):
            out.append(_blank(line))
            prev_blank = False
            continue
        in_indented = False

        if _is_indented(line) and prev_blank and not in_list:
            in_indented = True
            out.append(_blank(line))
            prev_blank = False
            continue

        if LIST_ITEM_RE.match(line):
            in_list = True
        elif not _is_indented(line) and prev_blank:
            in_list = False

        out.append(line)
        prev_blank = False

    return _mask_code_spans("".join(out))


def _mask_code_spans(text: str) -> str:
    chars = list(text)
    pos = 0
    while True:
        opener = BACKTICK_RUN_RE.search(text, pos)
        if not opener:
            break
        run = opener.group(0)
        # closing run must have exactly the same length
        closer = None
        for candidate in BACKTICK_RUN_RE.finditer(text, opener.end()):
            if "\n\n" in text[opener.end():candidate.start()]:
                break
            if candidate.group(0) == run:
                closer = candidate
                break
        if closer is None:
            pos = opener.end()
            continue
        for i in range(opener.start(), closer.end()):
            if chars[i] != "\n":
                chars[i] = " "
        pos = closer.end()
    return "".join(chars)


def line_of(text: str, offset: int) -> int:
    """1-based line number of `offset` in `text`."""
    return text.count("\n", 0, offset) + 1


def mask_math(text: str) -> str:
    """Blank out `$$ ... $$` spans, keeping length and newlines.

    Run it on code-masked text. A trailing unmatched `$$` is left alone.
    """
    chars = list(text)
    delimiters = [m.start() for m in MATH_DELIMITER_RE.finditer(text)]
    for start, end in zip(delimiters[::2], delimiters[1::2]):
        for i in range(start, end + 2):
            if chars[i] != "\n":
                chars[i] = " "
    return "".join(chars)
