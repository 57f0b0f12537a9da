"""Application configuration using pydantic-settings."""
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Base wiki directory holding one file per page
    wiki_dir: Path = Field(validation_alias="WIKI_DIR")

    # Patch records live in {wiki_dir}/{history_dir_name}/{identity}_{version}{ext}
    history_dir_name: str = Field(default="versions", validation_alias="HISTORY_DIR_NAME")
    page_extension: str = Field(default=".md", validation_alias="PAGE_EXTENSION")

    max_content_length: int = Field(default=512_000, validation_alias="MAX_CONTENT_LENGTH")

    # Seconds diff-match-patch may spend on a diff; 0 means unbounded (deterministic output)
    diff_timeout: float = Field(default=0.0, validation_alias="DIFF_TIMEOUT")

    # When False, two saves minted in the same millisecond share a key and the
    # later patch overwrites the earlier one
    bump_colliding_versions: bool = Field(
        default=False, validation_alias="BUMP_COLLIDING_VERSIONS",
    )

    @field_validator("page_extension")
    @classmethod
    def validate_page_extension(cls, value: str) -> str:
        """Require a dotted extension without path separators."""
        if not value.startswith(".") or "/" in value or len(value) < 2:  # noqa: PLR2004
            raise ValueError(f"page_extension must look like '.md', got {value!r}")
        return value

    @field_validator("history_dir_name")
    @classmethod
    def validate_history_dir_name(cls, value: str) -> str:
        """Keep the history directory a direct child of the wiki directory."""
        if not value or "/" in value or value in {".", ".."}:
            raise ValueError(f"history_dir_name must be a plain directory name, got {value!r}")
        return value


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
