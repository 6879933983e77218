"""
Crawl Depth Engine

Buckets every sitemap URL by its click depth from the home page and fails
when any published page sits deeper than the configured maximum.
"""

from __future__ import annotations

from typing import Any

from site_integrity.corpus.context import SiteData
from site_integrity.corpus.reachability import depth_distribution, discovery_chain
from site_integrity.engines.base import (
    AuditEngine,
    AuditResult,
    CheckResult,
    EngineStatus,
    Issue,
    IssueCategory,
    Severity,
)


class CrawlDepthEngine(AuditEngine):

    ENGINE_NAME = "crawl-depth"
    CATEGORY = IssueCategory.CRAWLABILITY

    def run(self, site_data: SiteData) -> AuditResult:
        max_depth = site_data.settings.MAX_DEPTH
        records = site_data.reachability
        distribution = depth_distribution(records, site_data.sitemap_paths, max_depth, site_data.pages)
        over_bound = distribution.over_bound
        total = distribution.total
        inconclusive = site_data.sitemap.inconclusive

        buckets: list[dict[str, Any]] = []
        for depth, paths in sorted(distribution.by_depth.items()):
            buckets.append({
                "depth": str(depth),
                "count": len(paths),
                "pct": self.percent(len(paths), total),
            })
        beyond_label = f">={max_depth + 1}"
        buckets.append({
            "depth": beyond_label,
            "count": len(over_bound),
            "pct": self.percent(len(over_bound), total),
        })

        checks = [
            CheckResult(
                rule_id="depth-sitemap-present",
                title="Sitemap declares at least one URL",
                passed=not inconclusive,
                observed=total,
                expected="> 0",
            ),
            CheckResult(
                rule_id="depth-beyond-max",
                title=f"Sitemap pages at depth {beyond_label}",
                passed=not over_bound,
                observed=len(over_bound),
                expected="0",
            ),
            CheckResult(
                rule_id="depth-unreachable",
                title="Sitemap paths with no rendered page",
                passed=not distribution.unreachable,
                observed=len(distribution.unreachable),
                expected="0",
                blocking=False,
            ),
        ]

        issues: list[Issue] = []
        if inconclusive:
            issues.append(Issue(
                rule_id="depth-sitemap-present",
                title="Sitemap empty or missing: depth audit inconclusive",
                description="No sitemap URLs were loaded, so there is nothing to bucket.",
                severity=Severity.HIGH,
                category=IssueCategory.SITEMAP,
                affected_urls=list(site_data.sitemap.missing),
                affected_count=len(site_data.sitemap.missing),
                recommendation="Generate sitemap.xml and its child sitemaps before auditing.",
            ))
        if over_bound:
            issues.append(Issue(
                rule_id="depth-beyond-max",
                title=f"Pages deeper than {max_depth} clicks",
                description=(
                    f"{len(distribution.beyond)} sitemap pages are first reached at depth "
                    f"{max_depth + 1}; {len(distribution.unreached)} are not reached within "
                    f"{max_depth + 1} clicks at all."
                ),
                severity=Severity.HIGH,
                category=self.CATEGORY,
                affected_urls=over_bound,
                affected_count=len(over_bound),
                recommendation=f"Link these pages from a hub at depth {max_depth - 1} or shallower.",
                metadata={
                    "chains": {p: discovery_chain(records, p) for p in distribution.beyond},
                    "unreached": distribution.unreached,
                },
            ))
        if distribution.unreachable:
            issues.append(Issue(
                rule_id="depth-unreachable",
                title="Sitemap paths with no rendered page",
                description=f"{len(distribution.unreachable)} sitemap paths have no page to crawl.",
                severity=Severity.INFO,
                category=self.CATEGORY,
                affected_urls=distribution.unreachable,
                affected_count=len(distribution.unreachable),
                recommendation="See the index-integrity audit for orphan and stale-sitemap details.",
            ))

        self.logger.debug(
            "Depth distribution",
            total=total,
            beyond=len(over_bound),
            unreachable=len(distribution.unreachable),
        )

        return AuditResult(
            engine_name=self.ENGINE_NAME,
            status=EngineStatus.INCONCLUSIVE if inconclusive else EngineStatus.SUCCESS,
            category=self.CATEGORY,
            passed=self.verdict(checks),
            checks=checks,
            issues=issues,
            summary={
                "total_sitemap_urls": total,
                "reachable": distribution.reachable,
                "unreachable": len(distribution.unreachable),
                "max_depth": max_depth,
                "distribution": buckets,
            },
            pages_analyzed=total,
        )
