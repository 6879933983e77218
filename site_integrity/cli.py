"""site-integrity CLI - post-build structural audits for a rendered static site.

Usage:
    site-integrity --help

Each audit reads the output directory fresh, prints one PASS/FAIL line per
check and exits 0 when every blocking check passed, 1 otherwise.
Configuration problems (missing output directory or report) exit 2.
"""

from pathlib import Path
from typing import Annotated, Optional

import structlog
import typer

from site_integrity.core.config import ConfigurationError, Settings, get_settings
from site_integrity.core.logging import configure_logging
from site_integrity.corpus.context import SiteData, build_site_data
from site_integrity.engines.base import AuditEngine
from site_integrity.engines.depth.engine import CrawlDepthEngine
from site_integrity.engines.integrity.engine import IndexIntegrityEngine
from site_integrity.engines.link_equity.engine import LinkEquityEngine
from site_integrity.engines.sitemap.engine import SitemapHygieneEngine
from site_integrity.reports.writer import (
    EXPECTED_INTEGRITY,
    load_report,
    render_result,
    validate_integrity_report,
    write_json_report,
)

logger = structlog.get_logger(__name__)

EXIT_FAILED = 1
EXIT_CONFIG = 2

ENGINES: dict[str, type[AuditEngine]] = {
    CrawlDepthEngine.ENGINE_NAME: CrawlDepthEngine,
    IndexIntegrityEngine.ENGINE_NAME: IndexIntegrityEngine,
    LinkEquityEngine.ENGINE_NAME: LinkEquityEngine,
    SitemapHygieneEngine.ENGINE_NAME: SitemapHygieneEngine,
}

app = typer.Typer(
    name="site-integrity",
    help="Structural integrity and crawl-graph audits for a rendered static site.",
    no_args_is_help=True,
)

OutDirOption = Annotated[
    Optional[Path],
    typer.Option("--out-dir", help="Rendered output directory (default: OUT_DIR or cwd).", file_okay=False),
]
SiteUrlOption = Annotated[
    Optional[str],
    typer.Option("--site-url", help="Canonical site origin used to tell internal from external links."),
]
MaxDepthOption = Annotated[
    Optional[int],
    typer.Option("--max-depth", min=0, help="Deepest allowed click depth from the home page."),
]
ReportOption = Annotated[
    Optional[bool],
    typer.Option("--report/--no-report", help="Write <audit>.json under REPORTS_DIR."),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _settings(
    out_dir: Optional[Path] = None,
    site_url: Optional[str] = None,
    max_depth: Optional[int] = None,
    report: Optional[bool] = None,
) -> Settings:
    """Per-invocation copy of the process settings with CLI overrides applied."""
    overrides: dict = {}
    if out_dir is not None:
        overrides["OUT_DIR"] = out_dir
    if site_url is not None:
        overrides["SITE_URL"] = site_url.strip().rstrip("/")
    if max_depth is not None:
        overrides["MAX_DEPTH"] = max_depth
    if report is not None:
        overrides["BUILD_REPORT"] = report

    settings = get_settings().model_copy(update=overrides)
    configure_logging(settings)
    return settings


def _load_site(settings: Settings) -> SiteData:
    try:
        return build_site_data(settings)
    except ConfigurationError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(EXIT_CONFIG)


def _run(names: list[str], settings: Settings) -> None:
    """Run audits in order over one shared scan; stop at the first failure."""
    logger.info("Audit run starting", audits=names, out_dir=str(settings.OUT_DIR))
    site_data = _load_site(settings)

    for name in names:
        result = ENGINES[name]().execute(site_data)
        render_result(result, settings.DISPLAY_CAP)
        if settings.BUILD_REPORT:
            write_json_report(result, settings.REPORTS_DIR)
        if not result.passed:
            raise typer.Exit(EXIT_FAILED)


# ---------------------------------------------------------------------------
# Audit commands
# ---------------------------------------------------------------------------

@app.command("crawl-depth")
def crawl_depth(
    out_dir: OutDirOption = None,
    site_url: SiteUrlOption = None,
    max_depth: MaxDepthOption = None,
    report: ReportOption = None,
) -> None:
    """Bucket sitemap URLs by click depth from the home page."""
    _run([CrawlDepthEngine.ENGINE_NAME], _settings(out_dir, site_url, max_depth, report))


@app.command("index-integrity")
def index_integrity(
    out_dir: OutDirOption = None,
    site_url: SiteUrlOption = None,
    max_depth: MaxDepthOption = None,
    report: ReportOption = None,
) -> None:
    """Orphans, broken links, canonicals, duplicates, thin pages and the authority score."""
    _run([IndexIntegrityEngine.ENGINE_NAME], _settings(out_dir, site_url, max_depth, report))


@app.command("link-equity")
def link_equity(
    out_dir: OutDirOption = None,
    site_url: SiteUrlOption = None,
    max_depth: MaxDepthOption = None,
    report: ReportOption = None,
) -> None:
    """Average inbound/outbound internal links per page type."""
    _run([LinkEquityEngine.ENGINE_NAME], _settings(out_dir, site_url, max_depth, report))


@app.command("sitemap-hygiene")
def sitemap_hygiene(
    out_dir: OutDirOption = None,
    site_url: SiteUrlOption = None,
    max_depth: MaxDepthOption = None,
    report: ReportOption = None,
) -> None:
    """Sitemap index segments, missing files and oversize segments."""
    _run([SitemapHygieneEngine.ENGINE_NAME], _settings(out_dir, site_url, max_depth, report))


@app.command("all")
def run_all(
    out_dir: OutDirOption = None,
    site_url: SiteUrlOption = None,
    max_depth: MaxDepthOption = None,
    report: ReportOption = None,
) -> None:
    """Run every audit over one scan, stopping at the first failure."""
    _run(list(ENGINES), _settings(out_dir, site_url, max_depth, report))


# ---------------------------------------------------------------------------
# Post-rebuild validation
# ---------------------------------------------------------------------------

@app.command("validate-report")
def validate_report(
    report_path: Optional[Path] = typer.Option(
        None, "--report-path", help="Persisted index-integrity report (default: REPORTS_DIR/index-integrity.json).",
    ),
    max_depth: MaxDepthOption = None,
) -> None:
    """Check a persisted index-integrity report against the acceptance values."""
    settings = _settings(max_depth=max_depth)
    path = report_path or settings.REPORTS_DIR / f"{IndexIntegrityEngine.ENGINE_NAME}.json"

    try:
        data = load_report(path)
    except ConfigurationError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(EXIT_CONFIG)

    expected = dict(EXPECTED_INTEGRITY, max_hops_from_home=settings.MAX_DEPTH)
    result = validate_integrity_report(data, expected)
    render_result(result, settings.DISPLAY_CAP)
    if not result.passed:
        raise typer.Exit(EXIT_FAILED)


if __name__ == "__main__":
    app()
