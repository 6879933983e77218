"""
Reachability/Depth Analyzer - breadth-first traversal from the home page.

BFS explores in non-decreasing depth order, so the first depth assigned to a
path is its minimum and is never overwritten. Nodes at depth <= max_depth are
expanded; nodes first found at max_depth + 1 are recorded but not expanded,
which is what lets callers report them as depth violations.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Iterable

import structlog

from site_integrity.corpus.graph import LinkGraph

logger = structlog.get_logger(__name__)

HOME_PATH = "/"


@dataclass(frozen=True)
class ReachabilityRecord:
    depth: int
    first_discovered_via: str | None = None


@dataclass
class DepthDistribution:
    """
    Paths bucketed by depth.

    `beyond` holds paths first found at max_depth + 1, `unreached` holds
    rendered pages the bounded traversal never reached, and `unreachable`
    holds paths with no rendered page at all.
    """
    max_depth: int
    by_depth: dict[int, list[str]] = field(default_factory=dict)
    beyond: list[str] = field(default_factory=list)
    unreached: list[str] = field(default_factory=list)
    unreachable: list[str] = field(default_factory=list)

    @property
    def over_bound(self) -> list[str]:
        """Rendered pages not reachable within max_depth clicks."""
        return sorted(self.beyond + self.unreached)

    @property
    def total(self) -> int:
        return (
            sum(len(v) for v in self.by_depth.values())
            + len(self.beyond)
            + len(self.unreached)
            + len(self.unreachable)
        )

    @property
    def reachable(self) -> int:
        return self.total - len(self.unreached) - len(self.unreachable)


def compute_reachability(
    graph: LinkGraph,
    max_depth: int,
    root: str = HOME_PATH,
) -> dict[str, ReachabilityRecord]:
    """
    Shortest hop count from root to every scanned page reachable within
    max_depth + 1 hops. Link targets with no scanned page get no record.
    """
    nodes = graph.nodes
    if root not in nodes:
        logger.warning("Home page not found in scanned pages; nothing is reachable", root=root)
        return {}

    records: dict[str, ReachabilityRecord] = {root: ReachabilityRecord(depth=0)}
    queue: deque[str] = deque([root])

    while queue:
        current = queue.popleft()
        depth = records[current].depth
        if depth > max_depth:
            continue

        for target in sorted(graph.outbound(current)):
            if target in records or target not in nodes:
                continue
            records[target] = ReachabilityRecord(depth=depth + 1, first_discovered_via=current)
            queue.append(target)

    logger.debug("Traversal complete", reached=len(records), nodes=len(nodes), max_depth=max_depth)
    return records


def discovery_chain(records: dict[str, ReachabilityRecord], path: str) -> list[str]:
    """Home-first list of hops that first discovered path; empty if unreached."""
    if path not in records:
        return []
    chain = [path]
    current = records[path].first_discovered_via
    while current is not None:
        chain.append(current)
        current = records[current].first_discovered_via
    chain.reverse()
    return chain


def depth_distribution(
    records: dict[str, ReachabilityRecord],
    paths: Iterable[str],
    max_depth: int,
    rendered: Iterable[str] = (),
) -> DepthDistribution:
    """
    Bucket paths by their recorded depth. Paths without a record count as
    over the bound when they have a rendered page, and as unreachable when
    they do not.
    """
    scanned = set(rendered)
    distribution = DepthDistribution(max_depth=max_depth)
    for depth in range(max_depth + 1):
        distribution.by_depth[depth] = []

    for path in sorted(set(paths)):
        record = records.get(path)
        if record is None:
            if path in scanned:
                distribution.unreached.append(path)
            else:
                distribution.unreachable.append(path)
        elif record.depth > max_depth:
            distribution.beyond.append(path)
        else:
            distribution.by_depth[record.depth].append(path)
    return distribution
