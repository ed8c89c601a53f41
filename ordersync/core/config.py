from __future__ import annotations

import logging
from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="OSYNC_", extra="ignore")

    app_name: str = "Order Sync Engine"
    env: str = "dev"

    database_url: str = "sqlite+pysqlite:///./ordersync.db"

    log_level: str = "INFO"
    log_format: str = DEFAULT_LOG_FORMAT

    # What happens to an order item when an input brings its quantity to zero: update | delete
    zero_quantity_policy: Literal["update", "delete"] = "delete"
    default_discount: Decimal = Field(
        default=Decimal("0"),
        description="Discount applied to update inputs that do not carry one",
    )

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unsupported log_level: {value}")
        return level


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
