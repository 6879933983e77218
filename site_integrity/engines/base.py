"""
Base class and type contracts for all site integrity audit engines.
Every engine MUST inherit from AuditEngine and implement run().

Design principles:
- Engines are stateless: all state comes from site_data
- Engines are independent: no engine imports another
- Engines return a standardized AuditResult
- Violations are data (Issues), never exceptions
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from site_integrity.core.paths import URLNormalizer

if TYPE_CHECKING:
    from site_integrity.corpus.context import SiteData

logger = structlog.get_logger(__name__)


# ─────────────────────────────────────────────
# Enums
# ─────────────────────────────────────────────

class Severity(str, Enum):
    CRITICAL = "critical"   # Breaks crawlability or indexing of the site
    HIGH = "high"           # Fails a build gate
    MEDIUM = "medium"       # Fails a build gate, localized impact
    LOW = "low"             # Hygiene
    INFO = "info"           # Informational - never fails a gate


class IssueCategory(str, Enum):
    CRAWLABILITY = "crawlability"
    INDEXABILITY = "indexability"
    CONTENT = "content"
    INTERNAL_LINKS = "internal_links"
    AUTHORITY = "authority"
    SITEMAP = "sitemap"
    PERFORMANCE = "performance"


class EngineStatus(str, Enum):
    SUCCESS = "success"
    INCONCLUSIVE = "inconclusive"   # Ran, but input was missing (e.g. empty sitemap)
    FAILED = "failed"


# ─────────────────────────────────────────────
# Core data types
# ─────────────────────────────────────────────

class PageData(BaseModel):
    """Derived summary of one rendered page. Raw HTML is never kept."""
    path: str
    location: str
    title: str = ""
    description: str = ""
    canonical: str = ""
    noindex: bool = False
    word_count: int = 0
    outbound_links: frozenset[str] = Field(default_factory=frozenset)
    internal_link_count: int = 0
    unminified_stylesheet: bool = False
    render_blocking_scripts: int = 0

    model_config = ConfigDict(frozen=True)

    @property
    def key(self) -> str:
        """Comparison key used by the link graph and reachability map."""
        return URLNormalizer.normalize_path(self.path)

    @property
    def is_home(self) -> bool:
        return self.key == "/"


class Issue(BaseModel):
    """A single violation found by an engine."""
    rule_id: str
    title: str
    description: str
    severity: Severity
    category: IssueCategory
    affected_urls: list[str] = Field(default_factory=list)
    affected_count: int = 0
    recommendation: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(use_enum_values=True)

    @property
    def blocking(self) -> bool:
        return self.severity != Severity.INFO.value


class CheckResult(BaseModel):
    """Pass/fail outcome of one named check, reported whether or not it failed."""
    rule_id: str
    title: str
    passed: bool
    observed: Any = None
    expected: str = ""
    blocking: bool = True


class AuditResult(BaseModel):
    """Standardized output from every engine."""
    engine_name: str
    status: EngineStatus
    category: IssueCategory
    passed: bool = False
    score: float | None = None
    checks: list[CheckResult] = Field(default_factory=list)
    issues: list[Issue] = Field(default_factory=list)
    summary: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    execution_time_ms: float = 0.0
    pages_analyzed: int = 0
    error_message: str | None = None

    model_config = ConfigDict(use_enum_values=True)

    def failed_checks(self) -> list[CheckResult]:
        return [c for c in self.checks if not c.passed and c.blocking]

    def issue_for(self, rule_id: str) -> Issue | None:
        return next((i for i in self.issues if i.rule_id == rule_id), None)


# ─────────────────────────────────────────────
# Base Engine
# ─────────────────────────────────────────────

class AuditEngine(ABC):
    """
    Abstract base class for all audit engines.

    All engines MUST:
    1. Implement run(site_data) -> AuditResult
    2. Report violations as Issues and CheckResults, never raise them
    3. Be stateless - store nothing on self between calls
    """

    ENGINE_NAME: str = "base"
    CATEGORY: IssueCategory = IssueCategory.CRAWLABILITY

    def __init__(self):
        self.logger = structlog.get_logger(self.__class__.__name__)

    @abstractmethod
    def run(self, site_data: SiteData) -> AuditResult:
        """
        Execute the audit engine against site data.

        Args:
            site_data: Scanned corpus, sitemap, link graph and reachability map

        Returns:
            AuditResult with checks, issues and a stable summary
        """
        ...

    def execute(self, site_data: SiteData) -> AuditResult:
        """
        Wrapper around run() that adds timing, logging, and error handling.
        Call this instead of run() directly.
        """
        start = time.perf_counter()
        self.logger.info(
            "Engine starting",
            engine=self.ENGINE_NAME,
            out_dir=str(site_data.settings.OUT_DIR),
            page_count=len(site_data.pages),
        )

        try:
            result = self.run(site_data)
            elapsed = (time.perf_counter() - start) * 1000
            result.execution_time_ms = elapsed
            self.logger.info(
                "Engine complete",
                engine=self.ENGINE_NAME,
                passed=result.passed,
                issue_count=len(result.issues),
                elapsed_ms=round(elapsed, 2),
            )
            return result

        except Exception as exc:
            elapsed = (time.perf_counter() - start) * 1000
            self.logger.error(
                "Engine failed",
                engine=self.ENGINE_NAME,
                error=str(exc),
                elapsed_ms=round(elapsed, 2),
                exc_info=True,
            )
            return AuditResult(
                engine_name=self.ENGINE_NAME,
                status=EngineStatus.FAILED,
                category=self.CATEGORY,
                passed=False,
                execution_time_ms=elapsed,
                error_message=str(exc),
            )

    @staticmethod
    def verdict(checks: list[CheckResult]) -> bool:
        """An audit passes when every blocking check passes."""
        return all(c.passed for c in checks if c.blocking)

    @staticmethod
    def percent(count: int, total: int) -> float:
        """Share of total as a percentage with one decimal; 0.0 when total is 0."""
        if total <= 0:
            return 0.0
        return round(count / total * 100, 1)
