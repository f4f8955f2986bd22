from functools import lru_cache
import json
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"


class Settings(BaseSettings):
    # Resolve to backend/.env so the engine picks up the same file from any cwd.
    model_config = SettingsConfigDict(
        env_file=str(BACKEND_ENV_FILE),
        env_file_encoding="utf-8",
        env_prefix="CHRONOPLAN_",
    )

    project_name: str = "Chronoplan"

    database_url: str = "sqlite+pysqlite:///./chronoplan.db"

    lab_preferred_slots: list[str] = ["15:00", "16:00"]
    default_max_daily_hours: int = 8
    default_faculty_max_load: int | None = None

    operation_budget_seconds: float = 10.0

    @field_validator("lab_preferred_slots", mode="before")
    @classmethod
    def split_lab_preferred_slots(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith("["):
                try:
                    parsed = json.loads(stripped)
                    if isinstance(parsed, list):
                        return [str(item).strip() for item in parsed if str(item).strip()]
                except json.JSONDecodeError:
                    pass
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()
