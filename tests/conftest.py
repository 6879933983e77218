"""
Shared fixtures: a tiny on-disk site builder over tmp_path.
"""

from pathlib import Path

import pytest
import structlog

from site_integrity.core.config import Settings
from site_integrity.core.paths import PathMapper
from site_integrity.corpus.context import SiteData, build_site_data

SITE_URL = "https://example.com"


class SiteBuilder:
    """Writes rendered pages and sitemaps into a temporary output directory."""

    def __init__(self, root: Path):
        self.root = root

    def page(
        self,
        rel: str,
        links=(),
        title: str | None = None,
        canonical: str | None = None,
        description: str = "A short description.",
        words: int = 450,
        head: str = "",
    ) -> Path:
        path = PathMapper.path_for_file(rel)
        title = path if title is None else title
        canonical = f"{SITE_URL}{path}" if canonical is None else canonical

        head_parts = [f"<title>{title}</title>"]
        if description:
            head_parts.append(f'<meta name="description" content="{description}">')
        if canonical:
            head_parts.append(f'<link rel="canonical" href="{canonical}">')
        head_parts.append(head)

        anchors = "".join(f'<a href="{href}">{href}</a>' for href in links)
        body = " ".join(["word"] * words)
        html = (
            "<!DOCTYPE html><html><head>"
            + "".join(head_parts)
            + f"</head><body><nav>{anchors}</nav><main><p>{body}</p></main></body></html>"
        )

        target = self.root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(html, encoding="utf-8")
        return target

    def urlset(self, paths, name: str = "sitemap.xml") -> Path:
        entries = "".join(f"<url><loc>{SITE_URL}{p}</loc></url>" for p in paths)
        target = self.root / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(
            '<?xml version="1.0" encoding="UTF-8"?>'
            f'<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{entries}</urlset>',
            encoding="utf-8",
        )
        return target

    def sitemap_index(self, children, name: str = "sitemap.xml") -> Path:
        entries = "".join(f"<sitemap><loc>{SITE_URL}/{child}</loc></sitemap>" for child in children)
        target = self.root / name
        target.write_text(
            '<?xml version="1.0" encoding="UTF-8"?>'
            f'<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{entries}</sitemapindex>',
            encoding="utf-8",
        )
        return target

    def robots(self, text: str | None = None) -> Path:
        if text is None:
            text = f"User-agent: *\nAllow: /\n\nSitemap: {SITE_URL}/sitemap.xml\n"
        target = self.root / "robots.txt"
        target.write_text(text, encoding="utf-8")
        return target

    def settings(self, **overrides) -> Settings:
        values = {"OUT_DIR": self.root, "SITE_URL": SITE_URL, "REPORTS_DIR": self.root / "build"}
        values.update(overrides)
        return Settings(**values)

    def load(self, **overrides) -> SiteData:
        return build_site_data(self.settings(**overrides))


@pytest.fixture
def site(tmp_path) -> SiteBuilder:
    out = tmp_path / "out"
    out.mkdir()
    return SiteBuilder(out)


@pytest.fixture
def scenario_a(site) -> SiteBuilder:
    """/ -> /a/, /b/; /a/ -> /c/ which was never rendered."""
    site.page("index.html", links=["/a/", "/b/"])
    site.page("a/index.html", links=["/c/"])
    site.page("b/index.html")
    site.urlset(["/", "/a/", "/b/", "/c/"])
    return site


@pytest.fixture
def chain_site(site) -> SiteBuilder:
    """/ -> /l1 -> /l2 -> /l3 -> /l4: /l4 is only reachable in four hops."""
    site.page("index.html", links=["/l1/"])
    site.page("l1/index.html", links=["/l2/"])
    site.page("l2/index.html", links=["/l3/"])
    site.page("l3/index.html", links=["/l4/"])
    site.page("l4/index.html")
    site.urlset(["/", "/l1/", "/l2/", "/l3/", "/l4/"])
    return site


@pytest.fixture(autouse=True)
def reset_logging():
    """CLI runs bind structlog to the runner's streams; unbind after each test."""
    yield
    structlog.reset_defaults()
