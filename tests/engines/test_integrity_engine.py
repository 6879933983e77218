"""
Tests for the Index Integrity Engine.
"""

import pytest

from site_integrity.engines.base import EngineStatus
from site_integrity.engines.integrity.engine import IndexIntegrityEngine

LENIENT = {"MIN_INTERNAL_LINKS": 0}


def _checks(result):
    return {c.rule_id: c for c in result.checks}


class TestIndexIntegrityEngine:

    @pytest.fixture
    def clean_site(self, site):
        site.page("index.html", links=["/names/", "/name/liam/"])
        site.page("names/index.html", links=["/", "/name/liam/"])
        site.page("name/liam/index.html", links=["/names/"])
        site.urlset(["/", "/names/", "/name/liam/"])
        site.robots()
        return site

    def test_clean_site_passes(self, clean_site):
        result = IndexIntegrityEngine().execute(clean_site.load(**LENIENT))
        assert result.passed
        assert result.status == EngineStatus.SUCCESS.value
        assert result.summary["authority_coverage_score"] == 1.0
        assert result.summary["orphan_pages"] == 0
        assert result.summary["broken_internal_links"] == 0
        assert result.issues == []

    def test_integrity_summary_keys(self, clean_site):
        result = IndexIntegrityEngine().execute(clean_site.load(**LENIENT))
        for key in (
            "orphan_pages",
            "broken_internal_links",
            "duplicate_titles",
            "missing_canonical",
            "canonical_to_homepage",
            "pages_under_min_words",
            "pages_under_min_links",
            "authority_coverage_score",
            "max_hops_from_home",
        ):
            assert key in result.summary
        assert result.summary["max_hops_from_home"] == 3

    def test_scenario_a(self, scenario_a):
        result = IndexIntegrityEngine().execute(scenario_a.load(**LENIENT))
        checks = _checks(result)

        assert result.summary["broken_internal_links"] == 1
        assert result.issue_for("integrity-broken-links").affected_urls == ["/c"]
        assert result.issue_for("integrity-sitemap-without-page").affected_urls == ["/c"]
        assert not checks["integrity-broken-links"].passed
        assert not result.passed

    def test_scenario_b_score(self, site):
        site.page("index.html", links=[f"/p{i}/" for i in range(1, 10)])
        for i in range(1, 10):
            canonical = "https://example.com/x" if i in (1, 2) else None
            site.page(f"p{i}/index.html", canonical=canonical)
        site.urlset(["/"] + [f"/p{i}/" for i in range(1, 10)])

        result = IndexIntegrityEngine().execute(site.load(**LENIENT))
        assert result.summary["total_pages"] == 10
        assert result.summary["orphan_pages"] == 0
        assert result.summary["missing_canonical"] == 0
        assert result.summary["canonical_to_homepage"] == 0
        assert result.summary["authority_coverage_score"] == pytest.approx(0.9)
        assert not _checks(result)["integrity-authority-score"].passed

    def test_scenario_c_duplicate_title_group(self, site):
        site.page("index.html", links=["/name/liam/", "/compare/liam/"])
        site.page("name/liam/index.html", title="Liam")
        site.page("compare/liam/index.html", title="Liam")
        site.urlset(["/", "/name/liam/", "/compare/liam/"])

        result = IndexIntegrityEngine().execute(site.load(**LENIENT))
        issue = result.issue_for("integrity-duplicate-titles")
        assert result.summary["duplicate_titles"] == 1
        assert issue.metadata["groups"] == {"Liam": ["/compare/liam/", "/name/liam/"]}

    def test_orphan_reported(self, site):
        site.page("index.html")
        site.page("island/index.html")
        site.urlset(["/", "/island/"])

        result = IndexIntegrityEngine().execute(site.load(**LENIENT))
        assert result.summary["orphan_pages"] == 1
        assert result.issue_for("integrity-orphan-pages").affected_urls == ["/island"]
        assert result.summary["authority_coverage_score"] == 0.5

    def test_canonical_to_home_is_critical(self, site):
        site.page("index.html", links=["/a/"])
        site.page("a/index.html", canonical="https://example.com/")
        site.urlset(["/", "/a/"])

        result = IndexIntegrityEngine().execute(site.load(**LENIENT))
        issue = result.issue_for("integrity-canonical-to-home")
        assert issue.affected_urls == ["/a/"]
        assert issue.severity == "critical"

    def test_thin_and_under_linked(self, site):
        site.page("index.html", links=["/a/"], words=10)
        site.page("a/index.html", links=["/"])
        site.urlset(["/", "/a/"])

        result = IndexIntegrityEngine().execute(site.load(MIN_INTERNAL_LINKS=2))
        assert result.issue_for("integrity-thin-content").metadata["word_counts"] == {"/": 10}
        assert result.summary["pages_under_min_links"] == 2

    def test_noindex_fatal_by_default(self, site):
        site.page("index.html", head='<meta name="robots" content="noindex">')
        site.urlset(["/"])
        site.robots()

        fatal = IndexIntegrityEngine().execute(site.load(**LENIENT))
        assert not fatal.passed

        lenient = IndexIntegrityEngine().execute(site.load(NOINDEX_FATAL=False, **LENIENT))
        assert lenient.passed
        assert lenient.issue_for("integrity-noindex").severity == "info"

    def test_ambiguous_output_is_warning_only(self, site):
        site.page("index.html", links=["/name/liam/"])
        site.page("name/liam/index.html")
        site.page("name/liam.html", canonical="https://example.com/name/liam-old")
        site.urlset(["/", "/name/liam/"])
        site.robots()

        result = IndexIntegrityEngine().execute(site.load(**LENIENT))
        assert result.summary["ambiguous_outputs"] == 1
        assert not _checks(result)["integrity-ambiguous-output"].blocking
        assert result.passed

    def test_empty_sitemap_is_inconclusive(self, site):
        site.page("index.html")

        result = IndexIntegrityEngine().execute(site.load(**LENIENT))
        assert result.status == EngineStatus.INCONCLUSIVE.value
        assert not result.passed

    def test_missing_home_makes_everything_orphan(self, site):
        site.page("a/index.html")
        site.page("b/index.html")
        site.urlset(["/a/", "/b/"])

        result = IndexIntegrityEngine().execute(site.load(**LENIENT))
        assert result.summary["orphan_pages"] == 2
        assert result.summary["authority_coverage_score"] == 0.0

    def test_summary_carries_link_equity_table(self, clean_site):
        result = IndexIntegrityEngine().execute(clean_site.load(**LENIENT))
        equity = result.summary["link_equity"]
        rows = {row["page_type"]: row for row in equity["rows"]}
        assert list(rows) == ["name", "hub"]
        assert rows["name"]["page_count"] == 1
        assert rows["name"]["avg_inbound"] == 2.0
        assert rows["hub"]["page_count"] == 2
        assert equity["failing_types"] == ["name", "hub"]

    def test_percent_encoded_links_match_decoded_files(self, site):
        site.page("index.html", links=["/name/zo%C3%AB/"])
        site.page("name/zoë/index.html", links=["/"])
        site.urlset(["/", "/name/zo%C3%AB/"])
        site.robots()

        result = IndexIntegrityEngine().execute(site.load(**LENIENT))
        assert result.summary["broken_internal_links"] == 0
        assert result.summary["sitemap_paths_without_page"] == 0
        assert result.summary["orphan_pages"] == 0
        assert result.passed


class TestRobotsChecks:

    @pytest.fixture
    def small_site(self, site):
        site.page("index.html", links=["/a/"])
        site.page("a/index.html", links=["/"])
        site.urlset(["/", "/a/"])
        return site

    def test_missing_robots_fails(self, small_site):
        result = IndexIntegrityEngine().execute(small_site.load(**LENIENT))
        assert not result.passed
        assert not _checks(result)["integrity-robots-missing"].passed
        assert result.issue_for("integrity-robots-missing").affected_urls == ["/robots.txt"]
        assert result.summary["robots_txt"]["exists"] is False

    def test_disallow_all_fails(self, small_site):
        small_site.robots("User-agent: *\nDisallow: /\n\nSitemap: https://example.com/sitemap.xml\n")
        result = IndexIntegrityEngine().execute(small_site.load(**LENIENT))
        assert not result.passed
        assert result.issue_for("integrity-robots-blocks-home").severity == "critical"
        assert result.summary["robots_txt"]["allows_home"] is False

    def test_partial_disallow_still_allows_home(self, small_site):
        small_site.robots("User-agent: *\nDisallow: /drafts/\n\nSitemap: https://example.com/sitemap.xml\n")
        result = IndexIntegrityEngine().execute(small_site.load(**LENIENT))
        assert result.passed
        assert result.summary["robots_txt"]["sitemaps"] == ["https://example.com/sitemap.xml"]

    def test_missing_sitemap_line_is_advisory(self, small_site):
        small_site.robots("User-agent: *\nAllow: /\n")
        result = IndexIntegrityEngine().execute(small_site.load(**LENIENT))
        assert result.passed
        check = _checks(result)["integrity-robots-sitemap"]
        assert not check.passed
        assert not check.blocking

    def test_user_agent_setting(self, small_site):
        small_site.robots("User-agent: Googlebot\nDisallow: /\n\nUser-agent: *\nAllow: /\n")
        assert IndexIntegrityEngine().execute(small_site.load(**LENIENT)).passed

        strict = IndexIntegrityEngine().execute(small_site.load(ROBOTS_USER_AGENT="Googlebot", **LENIENT))
        assert not strict.passed
