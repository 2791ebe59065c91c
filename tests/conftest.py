import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "scripts"))


DEFAULT_LAYOUT = """<html><head><title>{{ page.title }} | {{ site.title }}</title></head>
<body>{{ content }}</body></html>
"""

POST_LAYOUT = """---
layout: default
---
<article><h1>{{ page.title }}</h1>{{ content }}</article>
"""


class SiteBuilder:
    """Writes a throwaway Jekyll-style site under a temp directory."""

    def __init__(self, root: Path):
        self.root = root
        (root / "_posts").mkdir(parents=True)
        (root / "_layouts").mkdir()
        (root / "_includes").mkdir()
        self.config("title: Test Blog\nurl: https://blog.example.org\n")
        self.layout("default", DEFAULT_LAYOUT)
        self.layout("post", POST_LAYOUT)

    def config(self, text: str):
        (self.root / "_config.yml").write_text(text, encoding="utf-8")

    def layout(self, name: str, text: str):
        (self.root / "_layouts" / f"{name}.html").write_text(text, encoding="utf-8")

    def include(self, name: str, text: str):
        (self.root / "_includes" / name).write_text(text, encoding="utf-8")

    def post(self, filename: str, body: str = "Hello.\n", front_matter: str = None, raw: str = None) -> Path:
        path = self.root / "_posts" / filename
        if raw is None:
            if front_matter is None:
                front_matter = f"layout: post\ntitle: {filename[11:-3].replace('-', ' ').title()}\n"
            raw = f"---\n{front_matter}---\n{body}"
        path.write_text(raw, encoding="utf-8")
        return path


@pytest.fixture
def site_builder(tmp_path) -> SiteBuilder:
    return SiteBuilder(tmp_path / "site")
