"""
Report Writer - renders AuditResults as pass/fail lines and persists them as JSON.

Persisted reports are deterministic: keys are sorted, lists are complete and
ordered, and nothing run-specific (timestamps, timings) is written, so an
unchanged corpus produces a byte-identical file.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog
import typer

from site_integrity.core.config import ConfigurationError
from site_integrity.engines.base import AuditResult, CheckResult, EngineStatus, IssueCategory

logger = structlog.get_logger(__name__)

VALIDATE_ENGINE_NAME = "validate-report"

# Post-rebuild acceptance values for the persisted index-integrity report
EXPECTED_INTEGRITY = {
    "broken_internal_links": 0,
    "orphan_pages": 0,
    "authority_coverage_score": 1,
    "max_hops_from_home": 3,
}


# ─────────────────────────────────────────────
# Console output
# ─────────────────────────────────────────────

def _format_observed(check: CheckResult) -> str:
    if check.expected:
        return f"{check.observed} (expected {check.expected})"
    return str(check.observed)


def render_result(result: AuditResult, display_cap: int = 10) -> None:
    """
    One line per check, offending paths capped at display_cap, then the verdict.
    Passing lines go to stdout; failing lines go to stderr.
    """
    typer.echo(f"{result.engine_name}")

    if result.status == EngineStatus.FAILED.value:
        typer.echo(f"FAIL: {result.engine_name} crashed: {result.error_message}", err=True)
        return

    for check in result.checks:
        if check.passed:
            typer.echo(f"  PASS: {check.title}: {_format_observed(check)}")
            continue

        label = "FAIL" if check.blocking else "WARN"
        typer.echo(f"  {label}: {check.title}: {_format_observed(check)}", err=check.blocking)

        issue = result.issue_for(check.rule_id)
        if issue is None:
            continue
        for path in issue.affected_urls[:display_cap]:
            typer.echo(f"      {path}", err=check.blocking)
        hidden = len(issue.affected_urls) - display_cap
        if hidden > 0:
            typer.echo(f"      ... and {hidden} more", err=check.blocking)

    if result.status == EngineStatus.INCONCLUSIVE.value:
        typer.echo(f"FAIL: {result.engine_name} inconclusive (sitemap empty or missing).", err=True)
    elif result.passed:
        typer.echo(f"PASS: {result.engine_name} passed.")
    else:
        failed = len(result.failed_checks())
        typer.echo(f"FAIL: {result.engine_name} failed ({failed} check(s)).", err=True)


# ─────────────────────────────────────────────
# JSON reports
# ─────────────────────────────────────────────

def build_report(result: AuditResult) -> dict[str, Any]:
    """Stable-schema dict for one audit; no timings."""
    violations: dict[str, Any] = {}
    for issue in result.issues:
        violations[issue.rule_id] = issue.model_dump(mode="json", exclude={"rule_id"})

    metadata = dict(result.metadata)
    metadata["pages_analyzed"] = result.pages_analyzed
    if result.score is not None:
        metadata["score"] = result.score
    if result.error_message:
        metadata["error_message"] = result.error_message

    return {
        "audit": result.engine_name,
        "status": result.status,
        "passed": result.passed,
        "summary": result.summary,
        "checks": [check.model_dump(mode="json") for check in result.checks],
        "violations": violations,
        "metadata": metadata,
    }


def write_json_report(result: AuditResult, reports_dir: Path) -> Path:
    reports_dir = Path(reports_dir)
    reports_dir.mkdir(parents=True, exist_ok=True)
    target = reports_dir / f"{result.engine_name}.json"

    payload = json.dumps(build_report(result), sort_keys=True, indent=2, ensure_ascii=False)
    target.write_text(payload + "\n", encoding="utf-8")

    logger.info("Report written", audit=result.engine_name, file=str(target))
    return target


def load_report(path: Path) -> dict[str, Any]:
    """
    Read a persisted report.

    Raises:
        ConfigurationError: the file is missing or is not a JSON object.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Report not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Report unreadable: {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Report is not a JSON object: {path}")
    return data


def validate_integrity_report(
    report: dict[str, Any],
    expected: dict[str, Any] | None = None,
) -> AuditResult:
    """
    Compare a persisted index-integrity report's summary with the acceptance
    values. A summary key that is absent counts as a mismatch.
    """
    expected = EXPECTED_INTEGRITY if expected is None else expected
    summary = report.get("summary") or {}

    checks = [
        CheckResult(
            rule_id=f"validate-{key}",
            title=key,
            passed=key in summary and summary[key] == value,
            observed=summary.get(key),
            expected=str(value),
        )
        for key, value in expected.items()
    ]

    return AuditResult(
        engine_name=VALIDATE_ENGINE_NAME,
        status=EngineStatus.SUCCESS,
        category=IssueCategory.AUTHORITY,
        passed=all(c.passed for c in checks),
        checks=checks,
        summary={key: summary.get(key) for key in expected},
        metadata={"source_audit": report.get("audit")},
    )
