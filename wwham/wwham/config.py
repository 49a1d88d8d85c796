"""
Runtime settings for the triage engine.

Values come from ``WWHAM_*`` environment variables or a local ``.env`` file.
The engine itself never reads settings; the CLI and
``ChatbotEngine.from_settings`` pass them in explicitly.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BUNDLED_DATASET = Path(__file__).parent / "data" / "otc_dataset.json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="WWHAM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    dataset_path: Optional[Path] = Field(default=None, description="Dataset JSON; bundled dataset when unset")

    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "console"] = Field(default="console", description="Log output format")

    fuzzy_max_distance: int = Field(default=2, ge=0, description="Largest edit distance accepted by the classifier")
    fuzzy_min_keyword_length: int = Field(default=5, ge=1, description="Shorter keywords are never fuzzy matched")
    negation_window: int = Field(default=12, ge=0, description="Characters scanned before a red flag match for negation")

    @property
    def resolved_dataset_path(self) -> Path:
        return self.dataset_path or BUNDLED_DATASET


@lru_cache
def get_settings() -> Settings:
    return Settings()
