"""Atom 1.0 feed of the newest posts."""

import xml.etree.ElementTree as ET
from datetime import date

from site_config import SiteConfig

ATOM_NS = "http://www.w3.org/2005/Atom"


def _timestamp(d: date) -> str:
    return f"{d.isoformat()}T00:00:00+00:00"


def _absolute(site: SiteConfig, path: str) -> str:
    return site.url.rstrip("/") + site.baseurl.rstrip("/") + path


def _author(parent: ET.Element, value):
    """`value` is a name or a `{name, email}` mapping, as in _config.yml and front matter."""
    name = None
    email = None
    if isinstance(value, dict):
        name = value.get("name")
        email = value.get("email")
    elif value:
        name = str(value)
    if not name:
        return
    author = ET.SubElement(parent, "author")
    ET.SubElement(author, "name").text = str(name)
    if email:
        ET.SubElement(author, "email").text = str(email)


def build_feed(site: SiteConfig, rendered_posts: list) -> bytes:
    """Feed document for `rendered_posts`, newest `site.feed.limit` first.

    `updated` comes from the newest post, never the clock.
    """
    newest = sorted(rendered_posts, key=lambda r: (r.post.date, r.post.slug), reverse=True)
    newest = newest[:max(site.feed.limit, 0)]

    feed = ET.Element("feed", {"xmlns": ATOM_NS})

    feed_url = _absolute(site, "/" + site.feed.path.lstrip("/"))
    home_url = _absolute(site, "/")

    ET.SubElement(feed, "title").text = site.title or home_url
    if site.description:
        ET.SubElement(feed, "subtitle").text = site.description
    ET.SubElement(feed, "link", {"href": feed_url, "rel": "self", "type": "application/atom+xml"})
    ET.SubElement(feed, "link", {"href": home_url, "rel": "alternate", "type": "text/html"})
    ET.SubElement(feed, "id").text = feed_url
    if newest:
        ET.SubElement(feed, "updated").text = _timestamp(newest[0].post.date)
    else:
        ET.SubElement(feed, "updated").text = _timestamp(date(1970, 1, 1))
    _author(feed, site.author)

    for r in newest:
        post = r.post
        url = _absolute(site, r.permalink)
        entry = ET.SubElement(feed, "entry")
        ET.SubElement(entry, "title", {"type": "html"}).text = post.title
        ET.SubElement(entry, "link", {"href": url, "rel": "alternate", "type": "text/html", "title": post.title})
        ET.SubElement(entry, "published").text = _timestamp(post.date)
        ET.SubElement(entry, "updated").text = _timestamp(post.date)
        ET.SubElement(entry, "id").text = url
        _author(entry, post.front_matter.get("author") or site.author)
        for category in post.categories:
            ET.SubElement(entry, "category", {"term": category})
        ET.SubElement(entry, "summary", {"type": "html"}).text = r.excerpt
        ET.SubElement(entry, "content", {"type": "html", "xml:base": url}).text = r.content

    return ET.tostring(feed, encoding="utf-8", xml_declaration=True)
