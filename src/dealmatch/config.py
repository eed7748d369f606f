"""Runtime settings for the matching and import tooling.

Values come from ``DM_``-prefixed environment variables (or a ``.env``
file).  Score thresholds are on the 0-100 match scale.
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """CRM connection and match-admission settings."""

    # CRM database
    database_url: str = ""
    application_name: str = "dealmatch"
    statement_timeout_ms: int = 30_000

    # Match admission
    min_match_score: int = 30
    strong_match_score: int = 70

    model_config = {"env_file": ".env", "env_prefix": "DM_"}

    @model_validator(mode="after")
    def _check_thresholds(self) -> "Settings":
        for name in ("min_match_score", "strong_match_score"):
            value = getattr(self, name)
            if not 0 <= value <= 100:
                raise ValueError(f"{name} must be between 0 and 100, got {value}")
        if self.strong_match_score < self.min_match_score:
            raise ValueError("strong_match_score cannot be below min_match_score")
        if self.statement_timeout_ms < 0:
            raise ValueError("statement_timeout_ms cannot be negative")
        return self


def get_settings() -> Settings:
    return Settings()
