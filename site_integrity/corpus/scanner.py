"""
Page Scanner - walks the rendered output tree and extracts per-page summaries.

For every page file it keeps only derived data (metadata, link set, word
count); the parsed document is dropped as soon as the page is summarized,
so memory stays proportional to the number of pages, not their size.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator

import structlog
from bs4 import BeautifulSoup

from site_integrity.core.config import Settings
from site_integrity.core.paths import INDEX_FILE, PAGE_EXTENSION, PathMapper, URLNormalizer
from site_integrity.engines.base import PageData

logger = structlog.get_logger(__name__)

ROBOTS_META_NAMES = {"robots", "googlebot"}


@dataclass
class ScanResult:
    """All pages found under the output directory, keyed by comparison path."""
    pages: dict[str, PageData] = field(default_factory=dict)
    unreadable: list[str] = field(default_factory=list)
    dual_outputs: list[str] = field(default_factory=list)
    files_seen: int = 0


# ─────────────────────────────────────────────
# File Walk
# ─────────────────────────────────────────────

def iter_page_files(out_dir: Path, skip_dirs: Iterable[str] = ()) -> Iterator[str]:
    """
    Yield page files relative to out_dir (posix separators) in pre-order: each
    directory's files by name, then its subdirectories by name.
    Uses an explicit stack so very deep trees never hit the recursion limit.
    """
    skip = set(skip_dirs)
    stack: list[Path] = [out_dir]

    while stack:
        current = stack.pop()
        try:
            entries = sorted(current.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            logger.warning("Directory unreadable", directory=str(current), error=str(exc))
            continue

        subdirs: list[Path] = []
        for entry in entries:
            if entry.is_dir():
                if entry.name in skip or entry.is_symlink():
                    continue
                subdirs.append(entry)
            elif entry.name.endswith(PAGE_EXTENSION) and entry.is_file():
                yield entry.relative_to(out_dir).as_posix()

        # Reversed so the alphabetically first directory is popped first
        stack.extend(reversed(subdirs))


# ─────────────────────────────────────────────
# Extraction
# ─────────────────────────────────────────────

def extract_page(
    html: str,
    path: str,
    location: str,
    site_host: str,
    unminified_stylesheet: str = "styles.css",
) -> PageData:
    """
    Build a PageData summary from raw HTML.
    Malformed or missing markers yield empty values; this never raises.
    """
    try:
        soup = BeautifulSoup(html or "", "lxml")

        # Title
        title_tag = soup.find("title")
        title = " ".join(title_tag.get_text().split()) if title_tag else ""

        # Meta description + robots
        description = ""
        noindex = False
        for tag in soup.find_all("meta"):
            name = (tag.get("name") or "").strip().lower()
            content = tag.get("content") or ""
            if name == "description" and not description:
                description = content.strip()
            elif name in ROBOTS_META_NAMES and "noindex" in content.lower():
                noindex = True

        # Canonical
        canonical = ""
        canonical_tag = soup.find("link", rel="canonical")
        if canonical_tag and canonical_tag.get("href"):
            canonical = canonical_tag["href"].strip()

        # Internal links
        outbound: set[str] = set()
        internal_count = 0
        for anchor in soup.find_all("a", href=True):
            target = URLNormalizer.href_to_path(anchor["href"], site_host)
            if target is None:
                continue
            internal_count += 1
            outbound.add(target)

        # Asset hygiene
        has_unminified = any(
            _href_basename(link.get("href", "")) == unminified_stylesheet
            for link in soup.find_all("link", href=True)
        )
        blocking_scripts = sum(
            1
            for script in soup.find_all("script", src=True)
            if not script.has_attr("defer")
            and not script.has_attr("async")
            and (script.get("type") or "").lower() != "module"
        )

        # Word count: main region if present, scripts and styles stripped
        region = soup.find("main") or soup
        for tag in region.find_all(["script", "style"]):
            tag.decompose()
        word_count = len(region.get_text(separator=" ").split())

        return PageData(
            path=path,
            location=location,
            title=title,
            description=description,
            canonical=canonical,
            noindex=noindex,
            word_count=word_count,
            outbound_links=frozenset(outbound),
            internal_link_count=internal_count,
            unminified_stylesheet=has_unminified,
            render_blocking_scripts=blocking_scripts,
        )

    except Exception as e:
        logger.warning("HTML parse error", path=path, location=location, error=str(e))
        return PageData(path=path, location=location)


def _href_basename(href: str) -> str:
    return href.split("#", 1)[0].split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1]


def _is_directory_form(location: str) -> bool:
    return location == INDEX_FILE or location.endswith("/" + INDEX_FILE)


# ─────────────────────────────────────────────
# Scanner
# ─────────────────────────────────────────────

def scan_pages(settings: Settings, mapper: PathMapper | None = None) -> ScanResult:
    """
    Walk settings.OUT_DIR and summarize every page file.

    Unreadable files are logged and excluded. When a flat file and a
    directory index map to the same path, the directory form wins and the
    path is listed in dual_outputs.
    """
    out_dir = Path(settings.OUT_DIR)
    mapper = mapper or PathMapper(out_dir, settings.PATH_FORM_RULES)
    result = ScanResult()

    for location in iter_page_files(out_dir, settings.SKIP_DIRS):
        result.files_seen += 1
        try:
            html = (out_dir / location).read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.warning("Page unreadable", location=location, error=str(exc))
            result.unreadable.append(location)
            continue

        page = extract_page(
            html,
            path=mapper.path_for_file(location),
            location=location,
            site_host=settings.site_host,
            unminified_stylesheet=settings.UNMINIFIED_STYLESHEET,
        )
        del html

        existing = result.pages.get(page.key)
        if existing is not None:
            result.dual_outputs.append(page.key)
            logger.warning(
                "Two files map to one path",
                path=page.key,
                kept=location if _is_directory_form(location) else existing.location,
                ignored=existing.location if _is_directory_form(location) else location,
            )
            if not _is_directory_form(location):
                continue
        result.pages[page.key] = page

        if result.files_seen % 5000 == 0:
            logger.info("Scan progress", files=result.files_seen, pages=len(result.pages))

    result.dual_outputs = sorted(set(result.dual_outputs))
    logger.info(
        "Scan complete",
        out_dir=str(out_dir),
        pages=len(result.pages),
        unreadable=len(result.unreadable),
        dual_outputs=len(result.dual_outputs),
    )
    return result
