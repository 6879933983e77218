"""
Page-type classification and per-type link equity statistics.

Rules are ordered: entity-detail patterns are listed before the generic hub
patterns that would otherwise swallow them, and the first match wins.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field

from site_integrity.core.paths import URLNormalizer
from site_integrity.corpus.graph import LinkGraph


class PageType(str, Enum):
    NAME = "name"
    COMPATIBILITY = "compatibility"
    SIBLING = "sibling"
    COMPARISON = "comparison"
    JURISDICTION = "jurisdiction"
    HUB = "hub"
    OTHER = "other"


# Report order
TYPE_ORDER = list(PageType)

# Matched against the comparison key without its leading slash
PAGE_TYPE_RULES: list[tuple[PageType, re.Pattern[str]]] = [
    (PageType.HUB, re.compile(r"^(names)?$")),
    (PageType.NAME, re.compile(r"^name/[^/]+$")),
    (PageType.COMPATIBILITY, re.compile(r"^names/with-last-name")),
    (PageType.COMPATIBILITY, re.compile(r"^baby-names-with-[^/]+$")),
    (PageType.SIBLING, re.compile(r"^names/[^/]+/siblings")),
    (PageType.COMPARISON, re.compile(r"^(compare|names-like)/")),
    (PageType.JURISDICTION, re.compile(r"^names/(us|canada)/[^/]+")),
    (PageType.HUB, re.compile(r"^(names|popularity|legal|trends)/")),
    (PageType.HUB, re.compile(r"^compatibility$")),
]


def classify_page(path: str) -> PageType:
    key = URLNormalizer.normalize_path(path).lstrip("/")
    for page_type, pattern in PAGE_TYPE_RULES:
        if pattern.search(key):
            return page_type
    return PageType.OTHER


class PageTypeStats(BaseModel):
    page_type: PageType
    page_count: int = 0
    avg_outbound: float = 0.0
    avg_inbound: float = 0.0
    min_inbound: int = 0
    goal_met: bool = False

    model_config = ConfigDict(use_enum_values=True)


class LinkEquityTable(BaseModel):
    rows: list[PageTypeStats] = Field(default_factory=list)
    total_pages: int = 0
    total_outbound: int = 0
    total_inbound_sum: int = 0
    outbound_inbound_ratio: float = 0.0
    min_avg_inbound: float = 8.0

    def failing_types(self) -> list[str]:
        return [row.page_type for row in self.rows if not row.goal_met]


def link_equity_table(
    graph: LinkGraph,
    paths: Iterable[str] | None = None,
    min_avg_inbound: float = 8.0,
) -> LinkEquityTable:
    """
    Average outbound and inbound link counts per page type.

    `paths` defaults to every scanned page. Types with no pages are omitted.
    The goal is judged on the unrounded mean.
    """
    selected = sorted(set(paths) if paths is not None else graph.nodes)

    grouped: dict[PageType, list[str]] = {}
    for path in selected:
        grouped.setdefault(classify_page(path), []).append(path)

    rows = []
    for page_type in TYPE_ORDER:
        members = grouped.get(page_type)
        if not members:
            continue
        outbound = [len(graph.outbound(p)) for p in members]
        inbound = [graph.inbound(p) for p in members]
        mean_inbound = sum(inbound) / len(members)
        rows.append(PageTypeStats(
            page_type=page_type,
            page_count=len(members),
            avg_outbound=round(sum(outbound) / len(members), 1),
            avg_inbound=round(mean_inbound, 1),
            min_inbound=min(inbound),
            goal_met=mean_inbound >= min_avg_inbound,
        ))

    total_outbound = sum(len(graph.outbound(p)) for p in selected)
    total_inbound = sum(graph.inbound_count_by_path.values())
    return LinkEquityTable(
        rows=rows,
        total_pages=len(selected),
        total_outbound=total_outbound,
        total_inbound_sum=total_inbound,
        outbound_inbound_ratio=round(total_inbound / total_outbound, 2) if total_outbound else 0.0,
        min_avg_inbound=min_avg_inbound,
    )
