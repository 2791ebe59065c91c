from datetime import date
from pathlib import Path, PurePosixPath

import pytest

from blog_errors import TemplateDirectiveError
from permalinks import expand_permalink, output_path, slugify
from post_files import Post


def make_post(categories=(), front_matter=None, published=date(2023, 1, 18), slug="distopia"):
    return Post(
        path=Path(f"{published.isoformat()}-{slug}.md"),
        title="Announcing distopia",
        layout="post",
        date=published,
        slug=slug,
        body="",
        front_matter=front_matter or {},
        categories=list(categories),
    )


def test_default_pattern_without_categories_collapses_slashes():
    post = make_post()
    assert expand_permalink("/:categories/:year/:month/:day/:title.html", post) == "/2023/01/18/distopia.html"


def test_categories_are_slugified():
    post = make_post(categories=["News Items", "Releases"])
    assert expand_permalink("date", post) == "/news-items/releases/2023/01/18/distopia.html"


@pytest.mark.parametrize("style, expected", [
    ("pretty", "/2023/01/18/distopia/"),
    ("ordinal", "/2023/018/distopia.html"),
    ("none", "/distopia.html"),
    ("/blog/:short_year/:i_month/:i_day/:slug/", "/blog/23/1/18/distopia/"),
])
def test_styles_and_tokens(style, expected):
    assert expand_permalink(style, make_post()) == expected


def test_post_front_matter_overrides_site_pattern():
    post = make_post(front_matter={"permalink": "/announcements/:title/"})
    assert expand_permalink("date", post) == "/announcements/distopia/"


def test_unknown_token_is_an_error():
    with pytest.raises(TemplateDirectiveError, match=":week"):
        expand_permalink("/:year/:week/:title/", make_post())


def test_output_path():
    assert output_path("/2023/01/18/distopia.html") == PurePosixPath("2023/01/18/distopia.html")
    assert output_path("/2023/01/18/distopia/") == PurePosixPath("2023/01/18/distopia/index.html")
    assert output_path("/about") == PurePosixPath("about/index.html")
    assert output_path("/") == PurePosixPath("index.html")


def test_slugify():
    assert slugify("Announcing distopia: SIMD!") == "announcing-distopia-simd"
    assert slugify("---") == ""


@pytest.mark.parametrize("own, expected", [
    ("/../../escaped.html", "/escaped.html"),
    ("/a/./b/../c/", "/a/b/c/"),
    ("/..", "/"),
])
def test_dot_segments_are_dropped(own, expected):
    assert expand_permalink("date", make_post(front_matter={"permalink": own})) == expected
