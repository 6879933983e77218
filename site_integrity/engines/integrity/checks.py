"""
Integrity checkers - independent, total predicates over scanned pages and the link graph.

Every function here returns data (lists or groupings of paths, sorted for
stable output) and never raises on malformed page data.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable
from urllib.parse import urlparse
from urllib.robotparser import RobotFileParser

import structlog

from site_integrity.core.paths import PathMapper
from site_integrity.corpus.graph import LinkGraph
from site_integrity.corpus.scanner import ScanResult
from site_integrity.engines.base import PageData

logger = structlog.get_logger(__name__)


def _sorted_paths(pages: Iterable[PageData]) -> list[str]:
    return sorted(p.path for p in pages)


# ─────────────────────────────────────────────
# Head metadata
# ─────────────────────────────────────────────

def missing_canonical(pages: Iterable[PageData], min_length: int = 10) -> list[str]:
    """Canonical absent or too short to be a real URL."""
    return _sorted_paths(p for p in pages if len((p.canonical or "").strip()) < min_length)


def missing_description(pages: Iterable[PageData]) -> list[str]:
    return _sorted_paths(p for p in pages if not (p.description or "").strip())


def _is_home_url(canonical: str, site_host: str) -> bool:
    value = (canonical or "").strip()
    if not value:
        return False
    if value.startswith("/"):
        return value.split("?", 1)[0].split("#", 1)[0].strip("/") == ""

    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https"):
        return False
    host = (parsed.hostname or "").lower().removeprefix("www.")
    return host == site_host.removeprefix("www.") and parsed.path.strip("/") == "" and not parsed.query


def canonical_to_home(pages: Iterable[PageData], site_host: str) -> list[str]:
    """Non-home pages whose canonical is exactly the home URL."""
    return _sorted_paths(p for p in pages if not p.is_home and _is_home_url(p.canonical, site_host))


def _group_by(pages: Iterable[PageData], attr: str) -> dict[str, list[str]]:
    groups: dict[str, list[str]] = defaultdict(list)
    for page in pages:
        value = getattr(page, attr) or ""
        if value:
            groups[value].append(page.path)
    return {value: sorted(paths) for value, paths in sorted(groups.items()) if len(paths) > 1}


def duplicate_titles(pages: Iterable[PageData]) -> dict[str, list[str]]:
    """Title -> pages sharing it, for titles used more than once."""
    return _group_by(pages, "title")


def duplicate_canonicals(pages: Iterable[PageData]) -> dict[str, list[str]]:
    """Canonical -> pages sharing it, for canonicals used more than once."""
    return _group_by(pages, "canonical")


def excess_duplicates(groups: dict[str, list[str]]) -> int:
    """Members beyond the first holder of each shared value."""
    return sum(len(paths) - 1 for paths in groups.values())


def noindex_pages(pages: Iterable[PageData]) -> list[str]:
    return _sorted_paths(p for p in pages if p.noindex)


# ─────────────────────────────────────────────
# Content and link density
# ─────────────────────────────────────────────

def thin_content(pages: Iterable[PageData], min_words: int) -> dict[str, int]:
    """Path -> word count, for pages under the word floor."""
    return {p.path: p.word_count for p in sorted(pages, key=lambda p: p.path) if p.word_count < min_words}


def under_linked(pages: Iterable[PageData], min_links: int) -> dict[str, int]:
    """Path -> internal anchor count, for pages under the link floor."""
    return {
        p.path: p.internal_link_count
        for p in sorted(pages, key=lambda p: p.path)
        if p.internal_link_count < min_links
    }


def unminified_stylesheets(pages: Iterable[PageData]) -> list[str]:
    return _sorted_paths(p for p in pages if p.unminified_stylesheet)


def render_blocking_scripts(pages: Iterable[PageData]) -> dict[str, int]:
    return {
        p.path: p.render_blocking_scripts
        for p in sorted(pages, key=lambda p: p.path)
        if p.render_blocking_scripts > 0
    }


# ─────────────────────────────────────────────
# Graph and sitemap
# ─────────────────────────────────────────────

def broken_links(graph: LinkGraph, mapper: PathMapper) -> dict[str, list[str]]:
    """
    Target -> linking pages, for link targets with no backing file.
    Resolution follows the mapper's directory-then-flat fallback.
    """
    nodes = graph.nodes
    broken: dict[str, list[str]] = defaultdict(list)
    for source, target in graph.edges():
        if target in nodes:
            continue
        if not mapper.resolve(target).exists:
            broken[target].append(source)
    return dict(sorted(broken.items()))


def orphans(sitemap_paths: Iterable[str], scanned_paths: Iterable[str], reachable: Iterable[str]) -> list[str]:
    """Published, rendered, but never reached from the home page."""
    scanned = set(scanned_paths)
    reached = set(reachable)
    return sorted(p for p in set(sitemap_paths) if p in scanned and p not in reached)


def sitemap_without_page(sitemap_paths: Iterable[str], scanned_paths: Iterable[str]) -> list[str]:
    """Published paths with no rendered page behind them."""
    scanned = set(scanned_paths)
    return sorted(p for p in set(sitemap_paths) if p not in scanned)


def ambiguous_outputs(scan: ScanResult, graph: LinkGraph, mapper: PathMapper) -> list[str]:
    """Paths backed by both a directory index and a flat file."""
    ambiguous = set(scan.dual_outputs)
    for target in {t for _, t in graph.edges()}:
        if mapper.resolve(target).ambiguous:
            ambiguous.add(target)
    return sorted(ambiguous)


# ─────────────────────────────────────────────
# Robots
# ─────────────────────────────────────────────

@dataclass(frozen=True)
class RobotsPolicy:
    """What the published robots.txt tells crawlers about the site."""
    exists: bool
    allows_home: bool = False
    sitemaps: tuple[str, ...] = ()


def robots_policy(
    out_dir: Path,
    site_url: str,
    robots_file: str = "robots.txt",
    user_agent: str = "*",
) -> RobotsPolicy:
    """Parse robots.txt from the output directory; missing or unreadable means exists=False."""
    location = Path(out_dir) / robots_file
    try:
        text = location.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return RobotsPolicy(exists=False)
    except OSError as exc:
        logger.warning("robots.txt unreadable", location=str(location), error=str(exc))
        return RobotsPolicy(exists=False)

    parser = RobotFileParser(f"{site_url}/{robots_file}")
    # can_fetch() refuses everything until the parser is marked as read
    parser.modified()
    parser.parse(text.splitlines())
    return RobotsPolicy(
        exists=True,
        allows_home=parser.can_fetch(user_agent, f"{site_url}/"),
        sitemaps=tuple(parser.site_maps() or ()),
    )


# ─────────────────────────────────────────────
# Authority coverage
# ─────────────────────────────────────────────

def authority_coverage_score(
    total_pages: int,
    orphan_count: int,
    missing_canonical_count: int,
    canonical_to_home_count: int,
    excess_duplicate_canonicals: int,
) -> float:
    """
    1 - (orphans + missing canonicals + canonical-to-home + excess duplicate
    canonicals) / total pages, clamped to [0, 1]; 1 for an empty corpus.
    """
    if total_pages <= 0:
        return 1.0
    penalty = orphan_count + missing_canonical_count + canonical_to_home_count + excess_duplicate_canonicals
    return max(0.0, min(1.0, 1.0 - penalty / total_pages))
