from __future__ import annotations

import math
import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, Field, model_validator


class ConfigurationError(ValueError):
    pass


def validate_quota_config(murderer_number: float, hunter_number: float) -> None:
    """Configuration-time check for murderer/hunter numbers.

    Both must be finite. When both are proportions (strictly between 0 and 1)
    they must not add up to more than 1.0.
    """

    for name, v in (("murderer_number", murderer_number), ("hunter_number", hunter_number)):
        if not math.isfinite(v):
            raise ConfigurationError(f"{name} must be a finite number")

    if 0 < murderer_number < 1 and 0 < hunter_number < 1 and murderer_number + hunter_number > 1.0:
        raise ConfigurationError(
            f"murderer_number ({murderer_number}) + hunter_number ({hunter_number}) must not exceed 1.0"
        )


class Settings(BaseModel):
    redis_url: str = "redis://localhost:6379/0"
    murderer_number: float = 0.0
    hunter_number: float = 0.0
    scrap_count: int = Field(default=0, ge=0)
    map_name: str = "default"
    failure_limit: int | None = Field(default=None, ge=1)
    log_level: str = "INFO"

    @model_validator(mode="after")
    def _check_quotas(self) -> "Settings":
        validate_quota_config(self.murderer_number, self.hunter_number)
        return self


_ENV_KEYS = {
    "redis_url": "REDIS_URL",
    "murderer_number": "MURDER_MURDERER_NUMBER",
    "hunter_number": "MURDER_HUNTER_NUMBER",
    "scrap_count": "MURDER_SCRAP_COUNT",
    "map_name": "MURDER_MAP",
    "failure_limit": "MURDER_FAILURE_LIMIT",
    "log_level": "MURDER_LOG_LEVEL",
}


def load_settings(*, env: Mapping[str, str] | None = None, dotenv_path: Path | None = None) -> Settings:
    """Build settings from the environment.

    A `.env` file (if given and present) is loaded first without overriding
    variables that are already set.
    """

    if env is None:
        if dotenv_path is not None and dotenv_path.exists():
            from dotenv import load_dotenv

            load_dotenv(dotenv_path=dotenv_path, override=False)
        env = os.environ

    values = {field: env[key] for field, key in _ENV_KEYS.items() if env.get(key, "").strip()}
    return Settings.model_validate(values)
