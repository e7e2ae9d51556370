"""Configuration management using Pydantic Settings.

``Settings`` is built once at process entry (CLI command or API dependency)
and handed to every component constructor. Components never read the
environment themselves.
"""

from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from live_kb_sync.core.errors import ConfigError

ENV_FILE_OPT: str | None = None
THREE_MINUTES_IN_SECONDS = 180.0
FIFTEEN_MINUTES_IN_SECONDS = 900

# Only load .env if it exists (for local development)
_env_path = Path(".env")
if _env_path.exists():
    load_dotenv(dotenv_path=_env_path)
    ENV_FILE_OPT = str(_env_path)

# Whitespace plus straight and typographic quotes pasted around env values
_ENV_WRAPPERS = " \t\r\n\"'“”„‘’"


def clean_env_value(value):
    """Strip whitespace and wrapping quotes from a raw env value."""
    if value is None:
        return None
    if isinstance(value, SecretStr):
        value = value.get_secret_value()
    if not isinstance(value, str):
        return value
    cleaned = value.strip(_ENV_WRAPPERS)
    return cleaned or None


class Settings(BaseSettings):
    """Application configuration.

    Loads settings from environment variables. In local development, these can be
    provided via a .env file. In serverless/production, they should be set directly.
    """

    model_config = SettingsConfigDict(
        env_file=ENV_FILE_OPT,
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
        frozen=True,
    )

    # Application
    app_name: str = "Live KB Sync"
    log_level: str = Field(default="INFO", description="Logging level")

    # Remote vector store (OpenAI-compatible API)
    openai_api_key: Optional[SecretStr] = Field(default=None, description="API bearer token")
    vector_store_id: Optional[str] = Field(default=None, description="Target vector store (vs_...)")
    assistant_id: Optional[str] = Field(
        default=None, description="Assistant to link to the vector store (asst_...)"
    )
    openai_base_url: str = Field(
        default="https://api.openai.com",
        description="API base URL, override to point at a mock server",
    )
    http_timeout: float = Field(default=60.0, description="HTTP timeout for API calls (seconds)")
    list_limit: int = Field(default=100, ge=1, le=100, description="Vector store files page size")
    batch_poll_interval: float = Field(
        default=2.0, gt=0, description="Seconds between file batch status checks"
    )
    batch_poll_timeout: float = Field(
        default=THREE_MINUTES_IN_SECONDS, gt=0, description="Deadline for file batch indexing"
    )

    # Live artifact
    live_file_path: Optional[Path] = Field(
        default=None, description="Explicit artifact location (absolute or project relative)"
    )
    live_filename: str = Field(
        default="10_LIVE_obec_chomutice.txt", description="Stable logical artifact filename"
    )
    live_marker: str = Field(
        default="live_obec_chomutice",
        description="Token identifying earlier uploads of the live document",
    )
    document_tag_key: str = Field(
        default="live_document",
        description="Vector store file attribute carrying the document identity",
    )
    cleanup_old: bool = Field(default=True, description="Delete stale live copies before upload")
    regenerate_artifact: bool = Field(
        default=False, description="Scrape a fresh artifact even when one already exists"
    )
    ephemeral_storage: bool = Field(
        default=False, description="Force the temporary-directory artifact location"
    )
    netlify: Optional[str] = Field(default=None, description="Set by the Netlify runtime")
    aws_lambda_function_name: Optional[str] = Field(
        default=None, description="Set by the AWS Lambda runtime"
    )
    project_root: Path = Field(default_factory=Path.cwd, description="Base for relative paths")
    max_artifact_chars: int = Field(default=200_000, gt=0, description="Artifact size cap")

    # Single-flight guard
    single_flight: bool = Field(default=True, description="Refuse overlapping runs")
    lock_path: Optional[Path] = Field(default=None, description="Lock file location override")
    lock_stale_seconds: int = Field(
        default=FIFTEEN_MINUTES_IN_SECONDS, gt=0, description="Age after which a lock is broken"
    )

    # Live site scraper
    site_base_url: str = Field(
        default="https://www.obec-chomutice.cz", description="Origin of the scraped site"
    )
    scraper_user_agent: str = Field(default="ChomuticeBot/1.0", description="User-Agent header")
    scraper_accept_language: str = Field(default="cs", description="Accept-Language header")
    scraper_timeout: float = Field(default=30.0, description="Per-request timeout (seconds)")
    scraper_max_concurrent_requests: int = Field(default=3, ge=1)
    scraper_max_pages: int = Field(default=10, ge=1, description="Listing page fetch cap")

    # Multi-page knowledge base build
    kb_root_url: str = Field(default="https://www.obec-radim.cz", description="Crawl origin")
    kb_start_paths: Tuple[str, ...] = Field(
        default=("/", "/urad/", "/urad/uzemni-a-rozvojovy-plan/"),
        description="Crawl seeds, relative to kb_root_url",
    )
    kb_user_agent: str = Field(default="RadimChatbotKB/1.0 (+github actions)")
    kb_site_label: str = Field(default="Web obce Radim", description="Source label on KB chunks")
    kb_max_pages: int = Field(default=80, ge=1)
    kb_max_pdfs: int = Field(default=40, ge=0)
    kb_output_path: Path = Field(default=Path("kb") / "kb.json")
    chunk_size: int = Field(default=1200, gt=0)
    chunk_overlap: int = Field(default=150, ge=0)

    @field_validator(
        "openai_api_key",
        "vector_store_id",
        "assistant_id",
        "live_file_path",
        "lock_path",
        "netlify",
        "aws_lambda_function_name",
        mode="before",
    )
    @classmethod
    def _strip_optional(cls, value):
        return clean_env_value(value)

    @field_validator("openai_base_url", "site_base_url", "kb_root_url", mode="before")
    @classmethod
    def _strip_base_url(cls, value):
        cleaned = clean_env_value(value)
        if cleaned is None:
            raise ValueError("base URL must not be empty")
        return cleaned.rstrip("/")

    @property
    def is_serverless(self) -> bool:
        """True when running on a platform with a read-only or per-run filesystem."""
        return bool(self.netlify or self.aws_lambda_function_name or self.ephemeral_storage)

    @property
    def api_key(self) -> Optional[str]:
        if self.openai_api_key is None:
            return None
        return self.openai_api_key.get_secret_value()

    def require_sync_credentials(self) -> None:
        """Raise ConfigError unless the settings needed by a sync run are present."""
        missing = []
        if not self.api_key:
            missing.append("OPENAI_API_KEY")
        if not self.vector_store_id:
            missing.append("VECTOR_STORE_ID")
        if missing:
            raise ConfigError(missing)
