"""
Path/URL mapping between rendered files and public URL paths.

Conventions:
- index.html at the tree root   <-> /
- segment/index.html            <-> /segment/
- segment.html                  <-> /segment

Comparison keys are percent-decoded, collapse "." and ".." segments (never above
the root), and drop the query, the fragment, trailing slashes (except for "/")
and the .html suffix, so a flat page and its migrated directory twin compare equal.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable
from urllib.parse import unquote, urlparse

import structlog

from site_integrity.core.config import PathFormRule

logger = structlog.get_logger(__name__)

PAGE_EXTENSION = ".html"
INDEX_FILE = "index.html"

DIRECTORY = "directory"
FLAT = "flat"
EITHER = "either"


@dataclass(frozen=True)
class PathResolution:
    """Outcome of resolving a URL path back to a file under the output directory."""
    path: str
    location: str | None = None  # relative, posix separators
    form: str | None = None
    ambiguous: bool = False      # both directory and flat files exist

    @property
    def exists(self) -> bool:
        return self.location is not None


# ─────────────────────────────────────────────
# URL Utilities
# ─────────────────────────────────────────────

class URLNormalizer:
    """Normalizes hrefs and URL paths for comparison."""

    IGNORED_SCHEMES = ("mailto:", "tel:", "javascript:", "data:", "sms:")
    IGNORED_EXTENSIONS = {".pdf", ".jpg", ".jpeg", ".png", ".gif", ".svg", ".webp", ".ico", ".css", ".js", ".json", ".xml", ".txt", ".csv", ".woff", ".woff2", ".ttf", ".zip", ".gz", ".mp4", ".mp3"}

    @classmethod
    def normalize_path(cls, raw: str) -> str:
        """Comparison key for a URL path."""
        value = (raw or "").strip()
        value = unquote(value.split("#", 1)[0].split("?", 1)[0])

        segments: list[str] = []
        for segment in value.split("/"):
            if segment in ("", "."):
                continue
            if segment == "..":
                # Never climb above the output root
                if segments:
                    segments.pop()
                continue
            segments.append(segment)
        value = "/" + "/".join(segments)

        if value.endswith("/" + INDEX_FILE):
            value = value[: -len(INDEX_FILE)]
        elif value.endswith(PAGE_EXTENSION):
            value = value[: -len(PAGE_EXTENSION)]

        value = value.rstrip("/")
        return value or "/"

    @classmethod
    def paths_equal(cls, a: str, b: str) -> bool:
        return cls.normalize_path(a) == cls.normalize_path(b)

    @classmethod
    def is_same_domain(cls, url: str, root_domain: str) -> bool:
        """Check if URL belongs to the root domain (including subdomains)."""
        if not root_domain:
            return False
        host = (urlparse(url).hostname or "").lower()
        return host == root_domain or host.endswith(f".{root_domain}")

    @classmethod
    def href_to_path(cls, href: str, site_host: str) -> str | None:
        """
        Convert an anchor href to a site path.
        Returns None for external, mail, script and fragment-only links.
        """
        value = (href or "").strip()
        if not value or value.startswith("#"):
            return None
        if value.lower().startswith(cls.IGNORED_SCHEMES):
            return None

        if value.startswith("//"):
            value = "https:" + value
        elif value.startswith("/"):
            return None if cls._is_asset(value) else cls.normalize_path(value)

        try:
            parsed = urlparse(value)
        except ValueError:
            return None
        if parsed.scheme not in ("http", "https"):
            return None
        if not cls.is_same_domain(value, site_host) or cls._is_asset(parsed.path):
            return None
        return cls.normalize_path(parsed.path or "/")

    @classmethod
    def _is_asset(cls, value: str) -> bool:
        path = value.split("#", 1)[0].split("?", 1)[0].lower()
        return any(path.endswith(ext) for ext in cls.IGNORED_EXTENSIONS)

    @classmethod
    def url_to_path(cls, url: str) -> str | None:
        """Strip scheme and host from an absolute URL (sitemap <loc>, canonical)."""
        value = (url or "").strip()
        if not value:
            return None
        if value.startswith("/"):
            return cls.normalize_path(value)
        try:
            parsed = urlparse(value)
        except ValueError:
            return None
        if not parsed.scheme or not parsed.netloc:
            return None
        return cls.normalize_path(parsed.path or "/")


# ─────────────────────────────────────────────
# Path Mapper
# ─────────────────────────────────────────────

class PathMapper(URLNormalizer):
    """
    Bidirectional mapping between rendered files and public URL paths.

    Resolution tries the directory form (path/index.html) before the flat form
    (path.html) unless a PathFormRule pins the URL family to one form. One
    instance serves one run: the existence cache is never shared across
    output directories.
    """

    def __init__(self, out_dir: Path, rules: Iterable[PathFormRule] = ()):
        self.out_dir = Path(out_dir)
        self._rules = [(re.compile(rule.pattern), rule.form) for rule in rules]
        self._exists: dict[str, bool] = {}
        self._resolved: dict[str, PathResolution] = {}

    @classmethod
    def path_for_file(cls, relative_location: str | Path) -> str:
        """Public URL path for a file location relative to the output directory."""
        rel = str(relative_location).replace("\\", "/").lstrip("/")
        if rel == INDEX_FILE:
            return "/"
        if rel.endswith("/" + INDEX_FILE):
            return "/" + rel[: -len(INDEX_FILE)]
        if rel.endswith(PAGE_EXTENSION):
            return "/" + rel[: -len(PAGE_EXTENSION)]
        return "/" + rel

    def form_for(self, path: str) -> str:
        """Configured on-disk form for a path; first matching rule wins."""
        key = self.normalize_path(path)
        for pattern, form in self._rules:
            if pattern.search(key):
                return form
        return EITHER

    def candidates_for_path(self, path: str) -> list[tuple[str, str]]:
        """
        Ordered (form, relative location) candidates for a URL path.

        The path is reduced to its comparison key first, so an explicit
        ".html" link is resolved by the same form rules as its extensionless
        twin.
        """
        key = self.normalize_path(path)
        if key == "/":
            return [(DIRECTORY, INDEX_FILE)]

        rel = key.lstrip("/")
        directory = (DIRECTORY, f"{rel}/{INDEX_FILE}")
        flat = (FLAT, f"{rel}{PAGE_EXTENSION}")

        form = self.form_for(key)
        if form == DIRECTORY:
            return [directory]
        if form == FLAT:
            return [flat]
        return [directory, flat]

    def file_for_path(self, path: str) -> str:
        """Preferred relative location for a URL path (directory form first)."""
        return self.candidates_for_path(path)[0][1]

    def resolve(self, path: str) -> PathResolution:
        """Locate the file backing a URL path, if any."""
        key = self.normalize_path(path)
        cached = self._resolved.get(key)
        if cached is not None:
            return cached

        found = [(form, rel) for form, rel in self.candidates_for_path(key) if self._file_exists(rel)]

        ambiguous = False
        if key != "/":
            rel = key.lstrip("/")
            ambiguous = (
                self._file_exists(f"{rel}/{INDEX_FILE}")
                and self._file_exists(f"{rel}{PAGE_EXTENSION}")
            )
            if ambiguous:
                logger.warning("Path resolves to both directory and flat output", path=key)

        if found:
            form, location = found[0]
            resolution = PathResolution(path=key, location=location, form=form, ambiguous=ambiguous)
        else:
            resolution = PathResolution(path=key, ambiguous=ambiguous)

        self._resolved[key] = resolution
        return resolution

    def _file_exists(self, rel: str) -> bool:
        cached = self._exists.get(rel)
        if cached is None:
            cached = (self.out_dir / rel).is_file()
            self._exists[rel] = cached
        return cached
