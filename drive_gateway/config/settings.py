"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables (and an optional .env
file). The variable names match the ones the deployment already sets:
FOLDER_ID, SERVICE_ACCOUNT_JSON_BASE64, CATEGORIES_JSON and PORT.

Mock mode swaps the Google Drive backend for an in-memory tree, enabling
local development without a service account.
"""

import json
import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES: dict[str, str] = {
    "Năm 1": "",
    "Năm 2": "",
    "Bài Hát Sinh Hoạt": "",
    "Tài Liệu Giáo Án": "",
}


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Drive Gateway API"
    api_version: str = "v1"
    host: str = Field(
        default="0.0.0.0",
        description="Interface the HTTP server binds to"
    )
    port: int = Field(
        default=4000,
        description="Port the HTTP server listens on"
    )

    # Google Drive Configuration
    folder_id: str = Field(
        default="",
        description="Root Drive folder. Every category folder is created under it."
    )
    service_account_json_base64: str = Field(
        default="",
        description="Base64-encoded service account JSON key. Decoded in memory, never written to disk."
    )
    drive_scopes: str = Field(
        default="https://www.googleapis.com/auth/drive",
        description="Comma-separated OAuth scopes requested for the service account"
    )
    drive_mock_mode: bool = Field(
        default=False,
        description="Use an in-memory Drive instead of Google. Enables local dev without credentials."
    )

    # Categories
    categories_json: Optional[str] = Field(
        default=None,
        description="JSON object mapping category name to Drive folder id ('' = not provisioned yet)"
    )

    # Application Behavior
    max_upload_size_mb: int = Field(
        default=200,
        description="Maximum upload size in MB. Larger requests are rejected before reaching Drive."
    )
    list_page_size: int = Field(
        default=1000,
        description="Single page size for folder listings. Drive caps this at 1000."
    )
    download_chunk_size: int = Field(
        default=1024 * 1024,
        description="Bytes fetched from Drive per chunk when relaying a download"
    )
    static_dir: Optional[str] = Field(
        default=None,
        description="Optional directory of static frontend files served at /"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://127.0.0.1:5500",
        description="Comma-separated list of allowed CORS origins. Use * to allow all."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def drive_scopes_list(self) -> list[str]:
        """Parse comma-separated OAuth scopes into a list."""
        return [scope.strip() for scope in self.drive_scopes.split(",") if scope.strip()]

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def category_seed(self) -> dict[str, str]:
        """
        Initial category map.

        Unset falls back to the default categories. A value that is not a
        JSON object yields an empty map rather than failing startup.
        """
        if not self.categories_json:
            return dict(DEFAULT_CATEGORIES)

        try:
            parsed = json.loads(self.categories_json)
        except ValueError as e:
            logger.warning(
                "CATEGORIES_JSON is not valid JSON, starting with no categories",
                extra={"error": str(e)}
            )
            return {}

        if not isinstance(parsed, dict):
            logger.warning("CATEGORIES_JSON is not a JSON object, starting with no categories")
            return {}

        return {str(name): str(folder_id or "") for name, folder_id in parsed.items()}

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode.
        """
        missing = []

        if not self.drive_mock_mode:
            if not self.folder_id:
                missing.append("FOLDER_ID")
            if not self.service_account_json_base64:
                missing.append("SERVICE_ACCOUNT_JSON_BASE64")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
