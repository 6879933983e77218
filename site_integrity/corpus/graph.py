"""
Graph Builder - adjacency structure over scanned pages.

Pure function of the page set. Targets without a backing page and
self-links are kept; judging them is the integrity checkers' job.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Iterator

from site_integrity.engines.base import PageData


@dataclass(frozen=True)
class LinkGraph:
    outbound_by_path: dict[str, frozenset[str]] = field(default_factory=dict)
    inbound_count_by_path: dict[str, int] = field(default_factory=dict)

    @property
    def nodes(self) -> set[str]:
        """Paths of scanned pages (the outbound map's domain)."""
        return set(self.outbound_by_path)

    def outbound(self, path: str) -> frozenset[str]:
        return self.outbound_by_path.get(path, frozenset())

    def inbound(self, path: str) -> int:
        return self.inbound_count_by_path.get(path, 0)

    def edges(self) -> Iterator[tuple[str, str]]:
        """All (source, target) pairs in sorted order."""
        for source in sorted(self.outbound_by_path):
            for target in sorted(self.outbound_by_path[source]):
                yield source, target

    @property
    def edge_count(self) -> int:
        return sum(len(targets) for targets in self.outbound_by_path.values())


def build_link_graph(pages: Iterable[PageData]) -> LinkGraph:
    outbound: dict[str, frozenset[str]] = {}
    inbound: dict[str, int] = defaultdict(int)

    for page in pages:
        targets = frozenset(page.outbound_links)
        outbound[page.key] = targets
        for target in targets:
            inbound[target] += 1

    return LinkGraph(outbound_by_path=outbound, inbound_count_by_path=dict(inbound))
