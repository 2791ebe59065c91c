"""
Exceptions raised while loading and rendering posts.

Every post-level failure names the offending file (and line, when known) so
a failed build points straight at what to fix.
"""

from pathlib import Path


class ConfigError(Exception):
    """_config.yml could not be read."""


class PostError(Exception):
    """Authoring error in a single post file."""

    def __init__(self, path, message: str, line: int | None = None):
        self.path = Path(path) if path is not None else None
        self.line = line
        self.message = message
        super().__init__(str(self))

    def __str__(self) -> str:
        where = self.path.name if self.path is not None else "<string>"
        if self.line is not None:
            where = f"{where}:{self.line}"
        return f"{where}: {self.message}"


class FrontMatterError(PostError):
    pass


class FilenameError(PostError):
    pass


class MathDelimiterError(PostError):
    pass


class LinkReferenceError(PostError):
    pass


class TemplateDirectiveError(PostError):
    pass


class LayoutError(PostError):
    pass


class BuildError(Exception):
    """One or more posts failed; carries every failure, not just the first."""

    def __init__(self, failures: list[PostError]):
        self.failures = list(failures)
        lines = [f"{len(self.failures)} post(s) failed to build:"]
        lines.extend(f"  {f}" for f in self.failures)
        super().__init__("\n".join(lines))
