from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PUMLBUILD_", case_sensitive=False)

    plantuml_command: Optional[str] = None
    plantuml_jar: Optional[Path] = None
    java_executable: str = "java"
    project_file: Optional[Path] = None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
