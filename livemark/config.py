import os

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EditorSettings(BaseSettings):
    # Post-commit rounds (detector, fixer, heading sync) allowed per edit batch
    max_post_commit_rounds: int = Field(default=4, ge=1)

    instant_render: bool = True  # False: every syntax marker stays visible
    source_view: bool = False  # Mode a new editor starts in

    log_level: str = "INFO"
    log_file: str | None = None  # JSON lines, rotated

    model_config = SettingsConfigDict(
        env_prefix="LIVEMARK_",
        env_file=[os.getenv("ENV_FILE", ""), ".env"],
        extra="ignore",
    )


def get_settings() -> EditorSettings:
    """Read settings from the environment (LIVEMARK_*) and .env files."""
    return EditorSettings()
