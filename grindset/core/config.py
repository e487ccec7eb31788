"""Configuration management for grindset."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # SQLite Configuration
    sqlite_db_path: str = Field(default="grindset.db", description="Path to the SQLite database file")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    environment: str = Field(default="development", description="Deployment environment name")

    # Access Token Verification
    secret_key: str | None = Field(default=None, description="Secret used to verify signed access tokens")
    access_token_max_age_seconds: int = Field(
        default=7 * 24 * 3600, description="Maximum accepted age of an access token (in seconds)"
    )

    # Problem Source Configuration
    problem_source: Literal["leetcode", "static"] = Field(
        default="leetcode", description="Backend used to supply daily problems"
    )
    leetcode_graphql_url: str = Field(
        default="https://leetcode.com/graphql", description="LeetCode GraphQL endpoint"
    )
    problem_list_name: str | None = Field(
        default=None, description="Curated problem list to draw from (e.g. 'blind75'); None uses the full catalog"
    )
    problem_list_dir: str = Field(default="problem_lists", description="Directory holding curated <list>.csv files")

    @property
    def is_production(self) -> bool:
        """Whether the app runs in production."""
        return self.environment == "production"

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {field_name.upper()} environment variable or add to .env file."
            )
        return value


# Application Constants
class Constants:
    """Application-wide constants."""

    # Day window used by "today" lookups: [midnight - 1h, midnight + 23h] UTC
    TODAY_WINDOW_SKEW_HOURS: int = 1

    # Problem Source
    PROBLEM_SOURCE_TIMEOUT_SECONDS: float = 10.0
    PROBLEM_CATALOG_SIZE: int = 2000
    DEFAULT_PROBLEM_DESCRIPTION: str = "A daily problem from LeetCode"
    LEETCODE_PROBLEM_URL_TEMPLATE: str = "https://leetcode.com/problems/{slug}/description"
    TASK_TYPE_LEETCODE: str = "leetcode"

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 10


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
