"""
Index Integrity Engine

Checks the rendered corpus for indexability and structural integrity:
- Missing / placeholder canonical URLs
- Canonicals pointing at the home page from non-home pages
- Duplicate titles and duplicate canonicals (reported as groups)
- Missing meta descriptions
- Thin content and under-linked pages
- Broken internal links and orphan pages
- noindex leakage and robots.txt presence, crawl permission and Sitemap line
- Asset hygiene (unminified stylesheet, render-blocking scripts)

Derives the authority coverage score and the integrity summary used as the
post-build gate; the summary also carries the per-page-type link equity table.
"""

from __future__ import annotations

from typing import Any

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
from site_integrity.engines.integrity import checks
from site_integrity.engines.link_equity.classifier import link_equity_table


class IndexIntegrityEngine(AuditEngine):

    ENGINE_NAME = "index-integrity"
    CATEGORY = IssueCategory.INDEXABILITY

    def run(self, site_data: SiteData) -> AuditResult:
        settings = site_data.settings
        pages = [site_data.pages[key] for key in sorted(site_data.pages)]
        total_pages = len(pages)
        scanned = set(site_data.pages)

        results: list[CheckResult] = []
        issues: list[Issue] = []

        # ── Head metadata ─────────────────────────────────
        no_canonical = checks.missing_canonical(pages, settings.CANONICAL_MIN_LENGTH)
        no_description = checks.missing_description(pages)
        to_home = checks.canonical_to_home(pages, settings.site_host)
        dup_titles = checks.duplicate_titles(pages)
        dup_canonicals = checks.duplicate_canonicals(pages)
        noindex = checks.noindex_pages(pages)

        # ── Content / density ─────────────────────────────
        thin = checks.thin_content(pages, settings.MIN_WORDS)
        sparse = checks.under_linked(pages, settings.MIN_INTERNAL_LINKS)
        unminified = checks.unminified_stylesheets(pages)
        blocking_scripts = checks.render_blocking_scripts(pages)

        # ── Graph / sitemap ───────────────────────────────
        broken = checks.broken_links(site_data.graph, site_data.mapper)
        broken_edge_count = sum(len(sources) for sources in broken.values())
        orphan_paths = checks.orphans(site_data.sitemap_paths, scanned, site_data.reachable)
        unbacked = checks.sitemap_without_page(site_data.sitemap_paths, scanned)
        ambiguous = checks.ambiguous_outputs(site_data.scan, site_data.graph, site_data.mapper)
        equity = link_equity_table(site_data.graph, min_avg_inbound=settings.MIN_AVG_INBOUND)

        # ── Robots ────────────────────────────────────────
        robots = checks.robots_policy(
            settings.OUT_DIR,
            settings.SITE_URL,
            robots_file=settings.ROBOTS_FILE,
            user_agent=settings.ROBOTS_USER_AGENT,
        )
        robots_location = f"/{settings.ROBOTS_FILE}"

        score = checks.authority_coverage_score(
            total_pages=total_pages,
            orphan_count=len(orphan_paths),
            missing_canonical_count=len(no_canonical),
            canonical_to_home_count=len(to_home),
            excess_duplicate_canonicals=checks.excess_duplicates(dup_canonicals),
        )
        rounded_score = round(score, 3)

        # ── Checks & issues ───────────────────────────────
        inconclusive = site_data.sitemap.inconclusive
        results.append(CheckResult(
            rule_id="integrity-sitemap-present",
            title="Sitemap declares at least one URL",
            passed=not inconclusive,
            observed=len(site_data.sitemap_paths),
            expected="> 0",
        ))
        if inconclusive:
            issues.append(Issue(
                rule_id="integrity-sitemap-present",
                title="Sitemap empty or missing: orphan audit inconclusive",
                description="No sitemap URLs were loaded, so orphan detection could not run.",
                severity=Severity.HIGH,
                category=IssueCategory.SITEMAP,
                affected_urls=list(site_data.sitemap.missing),
                affected_count=len(site_data.sitemap.missing),
                recommendation="Generate sitemap.xml and its child sitemaps before auditing.",
            ))

        self._record(
            results, issues,
            rule_id="integrity-orphan-pages",
            title="Orphan pages (in sitemap, not reachable from home)",
            affected=orphan_paths,
            severity=Severity.HIGH,
            category=IssueCategory.CRAWLABILITY,
            recommendation=f"Link every published page within {settings.MAX_DEPTH + 1} hops of the home page.",
        )
        self._record(
            results, issues,
            rule_id="integrity-broken-links",
            title="Broken internal links",
            affected=list(broken),
            count=broken_edge_count,
            severity=Severity.HIGH,
            category=IssueCategory.INTERNAL_LINKS,
            recommendation="Render the missing targets or update the linking templates.",
            metadata={"sources": broken},
        )
        self._record(
            results, issues,
            rule_id="integrity-duplicate-titles",
            title="Duplicate titles",
            affected=sorted(path for paths in dup_titles.values() for path in paths),
            count=len(dup_titles),
            severity=Severity.MEDIUM,
            category=IssueCategory.CONTENT,
            recommendation="Give every page a unique <title>.",
            metadata={"groups": dup_titles},
        )
        self._record(
            results, issues,
            rule_id="integrity-missing-canonical",
            title="Missing or placeholder canonical",
            affected=no_canonical,
            severity=Severity.HIGH,
            category=IssueCategory.INDEXABILITY,
            recommendation="Add a self-referencing absolute <link rel=\"canonical\">.",
        )
        self._record(
            results, issues,
            rule_id="integrity-canonical-to-home",
            title="Canonical points at the home page",
            affected=to_home,
            severity=Severity.CRITICAL,
            category=IssueCategory.INDEXABILITY,
            recommendation="Point each page's canonical at its own URL.",
        )
        self._record(
            results, issues,
            rule_id="integrity-duplicate-canonicals",
            title="Duplicate canonicals",
            affected=sorted(path for paths in dup_canonicals.values() for path in paths),
            count=len(dup_canonicals),
            severity=Severity.HIGH,
            category=IssueCategory.INDEXABILITY,
            recommendation="Each canonical URL should be claimed by exactly one page.",
            metadata={"groups": dup_canonicals},
        )
        self._record(
            results, issues,
            rule_id="integrity-missing-description",
            title="Missing meta description",
            affected=no_description,
            severity=Severity.MEDIUM,
            category=IssueCategory.CONTENT,
            recommendation="Write a unique <meta name=\"description\"> for every page.",
        )
        self._record(
            results, issues,
            rule_id="integrity-thin-content",
            title=f"Pages under {settings.MIN_WORDS} words",
            affected=list(thin),
            severity=Severity.MEDIUM,
            category=IssueCategory.CONTENT,
            recommendation=f"Expand main content to at least {settings.MIN_WORDS} words.",
            metadata={"word_counts": thin},
        )
        self._record(
            results, issues,
            rule_id="integrity-under-linked",
            title=f"Pages with fewer than {settings.MIN_INTERNAL_LINKS} internal links",
            affected=list(sparse),
            severity=Severity.MEDIUM,
            category=IssueCategory.INTERNAL_LINKS,
            recommendation=f"Add related-page blocks until each page has {settings.MIN_INTERNAL_LINKS} internal links.",
            metadata={"link_counts": sparse},
        )
        self._record(
            results, issues,
            rule_id="integrity-noindex",
            title="Pages carrying noindex",
            affected=noindex,
            severity=Severity.HIGH if settings.NOINDEX_FATAL else Severity.INFO,
            category=IssueCategory.INDEXABILITY,
            recommendation="Remove noindex from pages that should be indexed.",
            blocking=settings.NOINDEX_FATAL,
        )
        self._record(
            results, issues,
            rule_id="integrity-robots-missing",
            title="Missing robots.txt",
            affected=[] if robots.exists else [robots_location],
            severity=Severity.HIGH,
            category=IssueCategory.INDEXABILITY,
            recommendation="Publish a robots.txt that allows crawling and names the sitemap.",
        )
        self._record(
            results, issues,
            rule_id="integrity-robots-blocks-home",
            title=f"robots.txt blocks the home page for user agent {settings.ROBOTS_USER_AGENT!r}",
            affected=[robots_location] if robots.exists and not robots.allows_home else [],
            severity=Severity.CRITICAL,
            category=IssueCategory.INDEXABILITY,
            recommendation="Remove the site-wide Disallow rule or add an explicit Allow: /.",
        )
        self._record(
            results, issues,
            rule_id="integrity-robots-sitemap",
            title="robots.txt without a Sitemap line",
            affected=[robots_location] if robots.exists and not robots.sitemaps else [],
            severity=Severity.LOW,
            category=IssueCategory.SITEMAP,
            recommendation=f"Add 'Sitemap: {settings.SITE_URL}/{settings.SITEMAP_INDEX}' to robots.txt.",
            blocking=False,
        )
        self._record(
            results, issues,
            rule_id="integrity-unminified-stylesheet",
            title=f"Pages referencing {settings.UNMINIFIED_STYLESHEET}",
            affected=unminified,
            severity=Severity.LOW,
            category=IssueCategory.PERFORMANCE,
            recommendation="Reference the minified stylesheet instead.",
        )
        self._record(
            results, issues,
            rule_id="integrity-render-blocking-scripts",
            title="Scripts loaded without defer",
            affected=list(blocking_scripts),
            severity=Severity.LOW,
            category=IssueCategory.PERFORMANCE,
            recommendation="Add defer (or async) to external <script> tags.",
            metadata={"script_counts": blocking_scripts},
        )
        self._record(
            results, issues,
            rule_id="integrity-sitemap-without-page",
            title="Sitemap URLs with no rendered page",
            affected=unbacked,
            severity=Severity.HIGH,
            category=IssueCategory.SITEMAP,
            recommendation="Remove stale sitemap entries or render the missing pages.",
        )
        self._record(
            results, issues,
            rule_id="integrity-ambiguous-output",
            title="Paths rendered as both directory and flat file",
            affected=ambiguous,
            severity=Severity.INFO,
            category=IssueCategory.CRAWLABILITY,
            recommendation="Delete the stale flat file after migrating a family to directory form.",
            blocking=False,
        )
        self._record(
            results, issues,
            rule_id="integrity-unreadable-files",
            title="Unreadable page files",
            affected=sorted(site_data.scan.unreadable),
            severity=Severity.INFO,
            category=IssueCategory.CRAWLABILITY,
            recommendation="Check file permissions and encoding of the listed files.",
            blocking=False,
        )

        results.append(CheckResult(
            rule_id="integrity-authority-score",
            title="Authority coverage score",
            passed=rounded_score >= settings.AUTHORITY_SCORE_TARGET,
            observed=rounded_score,
            expected=f">= {settings.AUTHORITY_SCORE_TARGET}",
        ))

        summary: dict[str, Any] = {
            "total_pages": total_pages,
            "sitemap_paths": len(site_data.sitemap_paths),
            "orphan_pages": len(orphan_paths),
            "broken_internal_links": broken_edge_count,
            "broken_link_targets": len(broken),
            "duplicate_titles": len(dup_titles),
            "missing_canonical": len(no_canonical),
            "canonical_to_homepage": len(to_home),
            "duplicate_canonicals": len(dup_canonicals),
            "missing_meta_description": len(no_description),
            "pages_under_min_words": len(thin),
            "pages_under_min_links": len(sparse),
            "noindex_pages": len(noindex),
            "unminified_stylesheets": len(unminified),
            "render_blocking_scripts": len(blocking_scripts),
            "sitemap_paths_without_page": len(unbacked),
            "ambiguous_outputs": len(ambiguous),
            "unreadable_files": len(site_data.scan.unreadable),
            "robots_txt": {
                "exists": robots.exists,
                "allows_home": robots.allows_home,
                "sitemaps": list(robots.sitemaps),
            },
            "link_equity": {
                "rows": [row.model_dump() for row in equity.rows],
                "total_outbound": equity.total_outbound,
                "total_inbound_sum": equity.total_inbound_sum,
                "outbound_inbound_ratio": equity.outbound_inbound_ratio,
                "failing_types": equity.failing_types(),
            },
            "authority_coverage_score": rounded_score,
            "max_hops_from_home": settings.MAX_DEPTH,
        }

        passed = self.verdict(results)
        return AuditResult(
            engine_name=self.ENGINE_NAME,
            status=EngineStatus.INCONCLUSIVE if inconclusive else EngineStatus.SUCCESS,
            category=self.CATEGORY,
            passed=passed,
            score=rounded_score,
            checks=results,
            issues=issues,
            summary=summary,
            pages_analyzed=total_pages,
            metadata={
                "thresholds": {
                    "min_words": settings.MIN_WORDS,
                    "min_internal_links": settings.MIN_INTERNAL_LINKS,
                    "canonical_min_length": settings.CANONICAL_MIN_LENGTH,
                    "authority_score_target": settings.AUTHORITY_SCORE_TARGET,
                    "noindex_fatal": settings.NOINDEX_FATAL,
                },
            },
        )

    @staticmethod
    def _record(
        results: list[CheckResult],
        issues: list[Issue],
        *,
        rule_id: str,
        title: str,
        affected: list[str],
        severity: Severity,
        category: IssueCategory,
        recommendation: str,
        count: int | None = None,
        metadata: dict[str, Any] | None = None,
        blocking: bool = True,
    ) -> None:
        """Append the check outcome, plus an Issue when anything was found."""
        observed = len(affected) if count is None else count
        results.append(CheckResult(
            rule_id=rule_id,
            title=title,
            passed=observed == 0,
            observed=observed,
            expected="0",
            blocking=blocking,
        ))
        if not affected:
            return
        issues.append(Issue(
            rule_id=rule_id,
            title=title,
            description=f"{observed} found across {len(affected)} paths.",
            severity=severity,
            category=category,
            affected_urls=affected,
            affected_count=observed,
            recommendation=recommendation,
            metadata=metadata or {},
        ))
