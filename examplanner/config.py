"""Application configuration loaded from environment variables.

Every setting can be overridden with an ``EXAMPLANNER_`` prefixed environment
variable or a local ``.env`` file, e.g.::

    EXAMPLANNER_STATE_DIR=/tmp/examplanner
    EXAMPLANNER_CURRENT_TERMS='["W2026", "S2026"]'
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

PACKAGE_DIR = Path(__file__).resolve().parent

DEFAULT_CURRENT_TERMS = ("W2026",)


class ExamPlannerConfig(BaseSettings):
    """Runtime settings with sensible defaults for local use."""

    # Paths
    raw_dir: Path = Field(
        default=PACKAGE_DIR / "data" / "raw",
        description="Directory holding the bundled current.csv and historical.csv",
    )
    state_dir: Path = Field(
        default=Path.home() / ".examplanner",
        description="Directory for the local device store and the local account book",
    )

    # Schedule persistence
    storage_key: str = Field(
        default="mcgill-exam-schedule",
        description="Local store key that holds the guest schedule",
    )

    # Term partition for the current/historical view
    current_terms: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CURRENT_TERMS),
        description="Term tags treated as 'current'; every other tag is historical",
    )

    # Remote account service (empty url = local account book)
    account_url: str = Field(default="", description="Base URL of the account API")
    account_token: str = Field(default="", description="Bearer token for the account API")
    request_timeout: float = Field(default=15.0, description="Per-request timeout in seconds")

    # Catalog sources for `examplanner update`
    current_catalog_url: str = Field(default="", description="URL of the current-term catalog")
    historical_catalog_url: str = Field(default="", description="URL of the historical catalog")

    # Logging
    log_json: bool = Field(default=False, description="Output logs in JSON format")
    log_level: str = Field(default="WARNING", description="Log level")

    model_config = {
        "env_prefix": "EXAMPLANNER_",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def local_store_path(self) -> Path:
        return Path(self.state_dir) / "local_storage.json"

    @property
    def accounts_path(self) -> Path:
        return Path(self.state_dir) / "accounts.json"

    @property
    def download_dir(self) -> Path:
        return Path(self.state_dir) / "catalogs"


_config: ExamPlannerConfig | None = None


def get_config() -> ExamPlannerConfig:
    """Return the cached configuration instance."""
    global _config
    if _config is None:
        _config = ExamPlannerConfig()
    return _config
