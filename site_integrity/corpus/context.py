"""
Request-scoped audit context.

Everything an engine reads is built here, once per invocation, from the
current state of the output directory. Nothing is cached across runs.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import structlog

from site_integrity.core.config import ConfigurationError, Settings
from site_integrity.core.paths import PathMapper
from site_integrity.corpus.graph import LinkGraph, build_link_graph
from site_integrity.corpus.reachability import ReachabilityRecord, compute_reachability
from site_integrity.corpus.scanner import ScanResult, scan_pages
from site_integrity.corpus.sitemap import SitemapIndex, load_sitemap
from site_integrity.engines.base import PageData

logger = structlog.get_logger(__name__)


@dataclass
class SiteData:
    """Aggregated site-level data passed to all engines."""
    settings: Settings
    mapper: PathMapper
    scan: ScanResult
    sitemap: SitemapIndex
    graph: LinkGraph
    reachability: dict[str, ReachabilityRecord]

    @property
    def pages(self) -> dict[str, PageData]:
        return self.scan.pages

    @property
    def sitemap_paths(self) -> set[str]:
        return self.sitemap.paths

    @property
    def reachable(self) -> set[str]:
        return set(self.reachability)


def build_site_data(settings: Settings) -> SiteData:
    """
    Scan pages, load the sitemap, build the link graph and run the traversal.

    Raises:
        ConfigurationError: the output directory does not exist.
    """
    out_dir = Path(settings.OUT_DIR)
    if not out_dir.is_dir():
        raise ConfigurationError(f"Output directory does not exist: {out_dir}")

    mapper = PathMapper(out_dir, settings.PATH_FORM_RULES)
    scan = scan_pages(settings, mapper)
    sitemap = load_sitemap(settings)
    graph = build_link_graph(scan.pages.values())
    reachability = compute_reachability(graph, settings.MAX_DEPTH)

    logger.info(
        "Audit context ready",
        pages=len(scan.pages),
        sitemap_paths=len(sitemap.paths),
        edges=graph.edge_count,
        reached=len(reachability),
    )
    return SiteData(
        settings=settings,
        mapper=mapper,
        scan=scan,
        sitemap=sitemap,
        graph=graph,
        reachability=reachability,
    )
