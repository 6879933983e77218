"""
Configuration system with environment-based settings.
Uses pydantic-settings for validation and type safety.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class PathFormRule(BaseModel):
    """Pins a URL family to one on-disk form (directory/index.html or flat .html)."""
    pattern: str
    form: Literal["directory", "flat", "either"] = "either"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    # Application
    APP_VERSION: str = "1.0.0"

    # Corpus
    OUT_DIR: Path = Path(".")
    SITE_URL: str = "https://nameorigin.io"
    SKIP_DIRS: Annotated[list[str], NoDecode] = ["templates", "node_modules", "docs", ".git", "build", "data", "scripts"]
    PATH_FORM_RULES: list[PathFormRule] = Field(default_factory=list)

    # Sitemaps
    SITEMAP_INDEX: str = "sitemap.xml"
    SITEMAPS_DIR: str = "sitemaps"
    MAX_URLS_PER_SITEMAP: int = 50_000
    REQUIRED_SITEMAP_SEGMENTS: Annotated[list[str], NoDecode] = Field(default_factory=list)

    # Robots
    ROBOTS_FILE: str = "robots.txt"
    ROBOTS_USER_AGENT: str = "*"

    # Reports
    BUILD_REPORT: bool = False
    REPORTS_DIR: Path = Path("build")
    DISPLAY_CAP: int = 10

    # Thresholds
    MAX_DEPTH: int = Field(3, ge=0)
    MIN_WORDS: int = 400
    MIN_INTERNAL_LINKS: int = 20
    MIN_AVG_INBOUND: float = 8.0
    CANONICAL_MIN_LENGTH: int = 10
    AUTHORITY_SCORE_TARGET: float = Field(0.995, ge=0.0, le=1.0)
    NOINDEX_FATAL: bool = True
    UNMINIFIED_STYLESHEET: str = "styles.css"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "console"

    @field_validator("SKIP_DIRS", "REQUIRED_SITEMAP_SEGMENTS", mode="before")
    @classmethod
    def parse_csv(cls, v: str | list) -> list:
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("SITE_URL")
    @classmethod
    def strip_site_url(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @property
    def site_host(self) -> str:
        """Host part of SITE_URL, lowercased, without port."""
        return (urlparse(self.SITE_URL).hostname or "").lower()


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance - created once per process."""
    return Settings()


class ConfigurationError(Exception):
    """Fatal setup problem (e.g. missing output directory); nothing to audit."""
