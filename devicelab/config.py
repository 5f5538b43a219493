"""Application configuration using Pydantic Settings."""

import os
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _is_test_environment() -> bool:
    """Check if we're running in a test environment."""
    return "PYTEST_CURRENT_TEST" in os.environ or "pytest" in os.environ.get("_", "")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database (durable test run records)
    DATABASE_URL: str = (
        "sqlite+aiosqlite:///:memory:"
        if _is_test_environment()
        else "sqlite+aiosqlite:///./devicelab.db"
    )

    # Blob storage (S3-compatible)
    STORAGE_ENDPOINT: str = "localhost:9000" if _is_test_environment() else ""
    STORAGE_ACCESS_KEY: str = "minioadmin" if _is_test_environment() else ""
    STORAGE_SECRET_KEY: str = "minioadmin123" if _is_test_environment() else ""
    STORAGE_USE_SSL: bool = False
    STORAGE_BUCKET: str = "devicelab-artifacts"
    STORAGE_BUCKET_PATH: str = Field(
        default="devicelab",
        description="Root folder inside the bucket for uploaded APKs and results",
    )
    STORAGE_URI_SCHEME: str = Field(
        default="gs",
        description="Scheme used when handing blob paths to the test lab service",
    )

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"

    # Artifact source (GitHub Actions)
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_OWNER: str = "androidx"
    GITHUB_REPO: str = "androidx"
    GITHUB_TOKEN: str = "test-token" if _is_test_environment() else ""

    # Remote test service
    TEST_LAB_API_URL: str = Field(
        default="https://testing.googleapis.com/v1",
        description="Base URL for the device test lab API",
    )
    TOOL_RESULTS_API_URL: str = Field(
        default="https://toolresults.googleapis.com/toolresults/v1beta3",
        description="Base URL for the tool results (history) API",
    )
    GCP_PROJECT_ID: str = "test-project" if _is_test_environment() else ""
    GCP_ACCESS_TOKEN: str = "test-access-token" if _is_test_environment() else ""
    HTTP_TIMEOUT_SECONDS: int = 60

    # Retry policy for outbound calls
    RETRY_TIMES: int = 3
    RETRY_DELAY_UNIT_SECONDS: float = 2.0
    RETRY_MAX_DELAY_SECONDS: float = 10.0

    # Test runner
    POLL_INTERVAL_SECONDS: float = 10.0
    MAX_CONCURRENT_UPLOADS: int = 4
    MAX_CONCURRENT_SUBMISSIONS: int = 4
    ARTIFACT_NAME_REGEX: str = Field(
        default=".*",
        description="Only artifacts whose name fully matches this regex are tested",
    )
    DEVICE_SPECS: str = Field(
        default="",
        description="Comma separated model:sdk list, e.g. 'redfin:30, sailfish:25'",
    )
    USE_TEST_CONFIG_FILES: bool = False
    TEST_SUITE_TAGS: str = ""
    PLACEHOLDER_APK_PATH: str = "placeholderApp.apk"
    OUTPUT_FOLDER: str = ""
    PULL_SCREENSHOTS: bool = False
    FLAKY_TEST_ATTEMPTS: int = 2
    TEST_TIMEOUT_SECONDS: int = 2700

    # Application
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    @property
    def test_suite_tags_list(self) -> List[str]:
        """Parse test suite tags string into list."""
        return [tag.strip() for tag in self.TEST_SUITE_TAGS.split(",") if tag.strip()]


settings = Settings()


class ConfigurationError(ValueError):
    """Raised for invalid settings detected before a test run starts."""
