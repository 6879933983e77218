"""
Sitemap Hygiene Engine

Confirms the sitemap index is present and segmented sensibly:
- every child sitemap referenced by the index exists
- no segment exceeds the per-file URL limit
- configured segments (e.g. siblings.xml) are present
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


class SitemapHygieneEngine(AuditEngine):

    ENGINE_NAME = "sitemap-hygiene"
    CATEGORY = IssueCategory.SITEMAP

    def run(self, site_data: SiteData) -> AuditResult:
        settings = site_data.settings
        sitemap = site_data.sitemap
        present = [s for s in sitemap.segments if s.exists]

        oversize = sorted(s.name for s in present if s.url_count > settings.MAX_URLS_PER_SITEMAP)
        present_names = {s.name for s in present}
        absent_required = sorted(n for n in settings.REQUIRED_SITEMAP_SEGMENTS if n not in present_names)
        missing = sorted(set(sitemap.missing))
        duplicate_locs = sitemap.declared_count - len(sitemap.paths)

        checks = [
            CheckResult(
                rule_id="sitemap-present",
                title="Sitemap declares at least one URL",
                passed=not sitemap.inconclusive,
                observed=len(sitemap.paths),
                expected="> 0",
            ),
            CheckResult(
                rule_id="sitemap-missing-files",
                title="Sitemap files referenced but missing or unreadable",
                passed=not missing,
                observed=len(missing),
                expected="0",
            ),
            CheckResult(
                rule_id="sitemap-oversize-segments",
                title=f"Segments over {settings.MAX_URLS_PER_SITEMAP} URLs",
                passed=not oversize,
                observed=len(oversize),
                expected="0",
            ),
            CheckResult(
                rule_id="sitemap-required-segments",
                title="Required segments present",
                passed=not absent_required,
                observed=len(settings.REQUIRED_SITEMAP_SEGMENTS) - len(absent_required),
                expected=str(len(settings.REQUIRED_SITEMAP_SEGMENTS)),
            ),
            CheckResult(
                rule_id="sitemap-duplicate-locs",
                title="URLs listed more than once",
                passed=duplicate_locs == 0,
                observed=duplicate_locs,
                expected="0",
                blocking=False,
            ),
        ]

        issues = []
        if missing:
            issues.append(Issue(
                rule_id="sitemap-missing-files",
                title="Sitemap files missing or unreadable",
                description=f"{len(missing)} sitemap files could not be loaded.",
                severity=Severity.HIGH,
                category=self.CATEGORY,
                affected_urls=missing,
                affected_count=len(missing),
                recommendation="Regenerate the sitemaps so every index entry has a file.",
            ))
        if oversize:
            issues.append(Issue(
                rule_id="sitemap-oversize-segments",
                title="Oversize sitemap segments",
                description=f"{len(oversize)} segments exceed {settings.MAX_URLS_PER_SITEMAP} URLs.",
                severity=Severity.HIGH,
                category=self.CATEGORY,
                affected_urls=oversize,
                affected_count=len(oversize),
                recommendation="Split large segments into several child sitemaps.",
            ))
        if absent_required:
            issues.append(Issue(
                rule_id="sitemap-required-segments",
                title="Required sitemap segments absent",
                description=f"{len(absent_required)} required segments are not in the index.",
                severity=Severity.HIGH,
                category=self.CATEGORY,
                affected_urls=absent_required,
                affected_count=len(absent_required),
                recommendation="Add the missing segments to the sitemap build.",
            ))
        if duplicate_locs:
            issues.append(Issue(
                rule_id="sitemap-duplicate-locs",
                title="URLs listed more than once",
                description=f"{duplicate_locs} <loc> entries repeat a URL already listed.",
                severity=Severity.INFO,
                category=self.CATEGORY,
                affected_count=duplicate_locs,
                recommendation="Keep each URL in exactly one segment.",
            ))

        return AuditResult(
            engine_name=self.ENGINE_NAME,
            status=EngineStatus.INCONCLUSIVE if sitemap.inconclusive else EngineStatus.SUCCESS,
            category=self.CATEGORY,
            passed=self.verdict(checks),
            checks=checks,
            issues=issues,
            summary={
                "sitemap_count": len(present),
                "total_urls": sitemap.declared_count,
                "unique_paths": len(sitemap.paths),
                "segments": [
                    {"name": s.name, "url_count": s.url_count, "exists": s.exists}
                    for s in sorted(sitemap.segments, key=lambda s: (s.name, s.location or ""))
                ],
            },
            pages_analyzed=len(sitemap.paths),
        )
