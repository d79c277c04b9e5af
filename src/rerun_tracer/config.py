from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .utils import read_json

SCHEMA_VERSION = "v1"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="RERUN_TRACER_")

    cache_path: Path = Path("rerun_tracer_cache")
    project_root: Path = Field(default_factory=Path.cwd)
    serializer: str = "json"
    # Number of nondeterministic re-runs needed to promote a possibly flaky
    # example to flaky. The re-run strategy itself lives with the host.
    flaky_confirmations: int = 1
    print_notices: bool = True

    @field_validator("flaky_confirmations")
    @classmethod
    def _positive_confirmations(cls, value: int) -> int:
        if value < 1:
            raise ValueError("flaky_confirmations must be >= 1")
        return value


def load_settings(config: Optional[Path]) -> Settings:
    if config is None:
        return Settings()
    data = read_json(config)
    return Settings(**data)
