"""
Site configuration: `_config.yml` loaded into a pydantic model.

Environment overrides:
    BLOG_ROOT         site root (default: current directory)
    BLOG_DESTINATION  output directory (default: `destination` from _config.yml)
"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from blog_errors import ConfigError

# --- CONFIG ---
BLOG_ROOT = Path(os.getenv("BLOG_ROOT", "."))
BLOG_DESTINATION = os.getenv("BLOG_DESTINATION", "")
CONFIG_FILENAME = "_config.yml"

DEFAULT_PERMALINK = "/:categories/:year/:month/:day/:title.html"


class FeedConfig(BaseModel):
    path: str = "feed.xml"
    limit: int = 10


class SiteConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: str = ""
    description: str = ""
    url: str = ""
    baseurl: str = ""
    author: Any = None
    permalink: str = DEFAULT_PERMALINK
    excerpt_separator: str = "\n\n"

    posts_dir: str = "_posts"
    layouts_dir: str = "_layouts"
    includes_dir: str = "_includes"
    destination: str = "_site"
    static_dirs: list[str] = Field(default_factory=lambda: ["assets"])
    markdown_extensions: list[str] = Field(default_factory=lambda: ["extra", "sane_lists"])
    feed: FeedConfig = Field(default_factory=FeedConfig)

    root: Path = Path(".")

    @property
    def posts_path(self) -> Path:
        return self.root / self.posts_dir

    @property
    def layouts_path(self) -> Path:
        return self.root / self.layouts_dir

    @property
    def includes_path(self) -> Path:
        return self.root / self.includes_dir

    @property
    def destination_path(self) -> Path:
        return self.root / self.destination

    @property
    def author_name(self) -> str:
        if isinstance(self.author, dict):
            return str(self.author.get("name", ""))
        return str(self.author or "")

    def template_vars(self) -> dict:
        """Everything templates see as `site`."""
        data = self.model_dump(exclude={"root"})
        data["author_name"] = self.author_name
        return data


def load_site_config(root: Optional[Path] = None) -> SiteConfig:
    """Load `<root>/_config.yml`; a missing file gives the defaults."""
    root = Path(root if root is not None else BLOG_ROOT).resolve()
    config_path = root / CONFIG_FILENAME

    data = {}
    if config_path.exists():
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"{config_path}: invalid YAML: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{config_path}: top level must be a mapping")

    data.pop("root", None)
    if BLOG_DESTINATION:
        data["destination"] = BLOG_DESTINATION

    try:
        return SiteConfig(root=root, **data)
    except ValidationError as e:
        raise ConfigError(f"{config_path}: {e}") from e
