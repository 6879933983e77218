"""
Link Equity Engine

Reports average inbound/outbound internal link counts per page type and
fails when any type's average inbound count is below the goal.
"""

from __future__ import annotations

from site_integrity.corpus.context import SiteData
from site_integrity.engines.base import (
    AuditEngine,
    AuditResult,
    CheckResult,
    EngineStatus,
    Issue,
    IssueCategory,
    Severity,
)
from site_integrity.engines.link_equity.classifier import classify_page, link_equity_table


class LinkEquityEngine(AuditEngine):

    ENGINE_NAME = "link-equity"
    CATEGORY = IssueCategory.INTERNAL_LINKS

    def run(self, site_data: SiteData) -> AuditResult:
        goal = site_data.settings.MIN_AVG_INBOUND
        graph = site_data.graph
        table = link_equity_table(graph, min_avg_inbound=goal)

        checks = [
            CheckResult(
                rule_id=f"equity-{row.page_type}",
                title=f"Average inbound links for {row.page_type} pages",
                passed=row.goal_met,
                observed=row.avg_inbound,
                expected=f">= {goal}",
            )
            for row in table.rows
        ]

        issues = []
        for row in table.rows:
            if row.goal_met:
                continue
            # Weakest pages first so the display cap shows the worst offenders
            members = sorted(
                (p for p in graph.nodes if classify_page(p).value == row.page_type),
                key=lambda p: (graph.inbound(p), p),
            )
            issues.append(Issue(
                rule_id=f"equity-{row.page_type}",
                title=f"{row.page_type} pages under {goal} average inbound links",
                description=(
                    f"{row.page_count} {row.page_type} pages average {row.avg_inbound} inbound "
                    f"links (minimum {row.min_inbound})."
                ),
                severity=Severity.MEDIUM,
                category=self.CATEGORY,
                affected_urls=members,
                affected_count=len(members),
                recommendation="Link these pages from hubs and related-page blocks.",
                metadata={"inbound": {p: graph.inbound(p) for p in members}},
            ))

        return AuditResult(
            engine_name=self.ENGINE_NAME,
            status=EngineStatus.SUCCESS,
            category=self.CATEGORY,
            passed=self.verdict(checks),
            checks=checks,
            issues=issues,
            summary={
                "by_type": [row.model_dump() for row in table.rows],
                "total_pages": table.total_pages,
                "total_outbound": table.total_outbound,
                "total_inbound_sum": table.total_inbound_sum,
                "outbound_inbound_ratio": table.outbound_inbound_ratio,
                "min_avg_inbound": goal,
            },
            pages_analyzed=table.total_pages,
        )
