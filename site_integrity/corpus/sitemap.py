"""
Sitemap Loader - flattens the local sitemap index into the set of published paths.

Missing or unparsable files contribute nothing and are recorded in
SitemapIndex.missing; they never abort a run. An empty path set means the
audit is inconclusive, not that it passed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from urllib.parse import urlparse

import structlog
from bs4 import BeautifulSoup

from site_integrity.core.config import Settings
from site_integrity.core.paths import URLNormalizer

logger = structlog.get_logger(__name__)

SITEMAP_INDEX_TAG = "sitemapindex"
URLSET_TAG = "urlset"


@dataclass
class SitemapSegment:
    """One child sitemap (or a root urlset) and how many URLs it declares."""
    name: str
    location: str | None = None
    url_count: int = 0
    exists: bool = True


@dataclass
class SitemapIndex:
    paths: set[str] = field(default_factory=set)
    segments: list[SitemapSegment] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    declared_count: int = 0   # <loc> entries before de-duplication

    @property
    def inconclusive(self) -> bool:
        return not self.paths


def _read_locs(file_path: Path) -> tuple[str | None, list[str]]:
    """Return (root tag name, loc values) for a sitemap file; (None, []) if unusable."""
    try:
        soup = BeautifulSoup(file_path.read_bytes(), "xml")
    except Exception as e:
        logger.warning("Sitemap unreadable", file=str(file_path), error=str(e))
        return None, []

    root = soup.find([SITEMAP_INDEX_TAG, URLSET_TAG])
    if root is None:
        logger.warning("Sitemap has no urlset or sitemapindex root", file=str(file_path))
        return None, []

    entry_tag = "sitemap" if root.name == SITEMAP_INDEX_TAG else "url"
    locs = []
    for entry in root.find_all(entry_tag):
        loc = entry.find("loc", recursive=False)
        if loc is not None and loc.get_text(strip=True):
            locs.append(loc.get_text(strip=True))
    return root.name, locs


def _resolve_child(out_dir: Path, loc: str, sitemaps_dir: str) -> str | None:
    """Map a child sitemap <loc> to a file under out_dir: its own path, then sitemaps_dir/<name>."""
    url_path = urlparse(loc).path if "://" in loc else loc
    pure = PurePosixPath(url_path)
    if ".." in pure.parts:
        return None

    candidates = []
    rel = url_path.lstrip("/")
    if rel:
        candidates.append(rel)
    if pure.name:
        candidates.append(f"{sitemaps_dir}/{pure.name}")

    for candidate in candidates:
        if (out_dir / candidate).is_file():
            return candidate
    return None


def load_sitemap(settings: Settings) -> SitemapIndex:
    """
    Load the sitemap index under settings.OUT_DIR and union every child urlset.
    Nested indexes are followed; a file is never read twice.
    """
    out_dir = Path(settings.OUT_DIR)
    index = SitemapIndex()

    if not (out_dir / settings.SITEMAP_INDEX).is_file():
        logger.warning("Sitemap index not found", file=settings.SITEMAP_INDEX, out_dir=str(out_dir))
        index.missing.append(settings.SITEMAP_INDEX)
        return index

    stack: list[str] = [settings.SITEMAP_INDEX]
    seen: set[str] = set()

    while stack:
        rel = stack.pop()
        if rel in seen:
            continue
        seen.add(rel)

        kind, locs = _read_locs(out_dir / rel)
        if kind is None:
            index.missing.append(rel)
            index.segments.append(SitemapSegment(name=PurePosixPath(rel).name, location=rel, exists=False))
            continue

        if kind == SITEMAP_INDEX_TAG:
            children: list[str] = []
            for loc in locs:
                child = _resolve_child(out_dir, loc, settings.SITEMAPS_DIR)
                if child is None:
                    logger.warning("Child sitemap not found", loc=loc)
                    index.missing.append(loc)
                    index.segments.append(SitemapSegment(name=PurePosixPath(urlparse(loc).path).name or loc, exists=False))
                    continue
                children.append(child)
            stack.extend(reversed(children))
            continue

        index.segments.append(SitemapSegment(name=PurePosixPath(rel).name, location=rel, url_count=len(locs)))
        index.declared_count += len(locs)
        for loc in locs:
            path = URLNormalizer.url_to_path(loc)
            if path:
                index.paths.add(path)

    logger.info(
        "Sitemap loaded",
        segments=len(index.segments),
        paths=len(index.paths),
        missing=len(index.missing),
    )
    return index
