from __future__ import annotations

from collections.abc import Sequence
from typing import Literal

import structlog
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fusebox.fuse import Fuse, FuseConfig
from fusebox.integrations.redis.storage import DEFAULT_KEY_PREFIX, RedisFuseStorage
from fusebox.logging import FuseLogger, configure_structlog, get_log_level_value
from fusebox.metrics import FuseListener
from fusebox.storage import FuseStorage, InMemoryFuseStorage

StorageBackendName = Literal["memory", "redis"]


def prefixed_settings_config(prefix: str) -> SettingsConfigDict:
    """Build standard Pydantic settings config for prefixed environments."""
    return SettingsConfigDict(env_prefix=prefix, case_sensitive=False)


class FuseSettings(BaseSettings):
    """Environment-driven fuse settings (``FUSE_*`` variables).

    ``on_break`` only names standard handlers; callables are attached in code
    through ``FuseConfig``.
    """

    model_config = prefixed_settings_config("FUSE_")

    allowed_failures: int
    cool_off_period: float
    timeout: float | None = None
    on_break: tuple[str, ...] = ()
    break_handler_timeout: float = 5.0
    storage_backend: StorageBackendName = "memory"
    redis_url: str | None = None
    redis_key_prefix: str = DEFAULT_KEY_PREFIX
    log_level: str = "INFO"

    @field_validator("storage_backend", mode="before")
    @classmethod
    def _normalize_storage_backend(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        get_log_level_value(value)
        return value.strip().upper()

    @model_validator(mode="after")
    def _validate_fuse_settings(self) -> FuseSettings:
        if self.allowed_failures < 1:
            raise ValueError("allowed_failures must be >= 1")
        if self.cool_off_period <= 0:
            raise ValueError("cool_off_period must be > 0")
        if self.break_handler_timeout <= 0:
            raise ValueError("break_handler_timeout must be > 0")

        if self.storage_backend == "redis":
            if not self.redis_url:
                raise ValueError("redis_url is required when storage_backend is redis")
        elif self.redis_url:
            raise ValueError("redis_url requires storage_backend redis")
        return self

    def fuse_config(self) -> FuseConfig:
        """Build the immutable fuse config described by these settings."""
        return FuseConfig(
            allowed_failures=self.allowed_failures,
            cool_off_period=self.cool_off_period,
            timeout=self.timeout,
            on_break=self.on_break or None,
        )

    def build_storage(self) -> FuseStorage:
        """Build the configured storage backend."""
        if self.storage_backend == "redis":
            assert self.redis_url is not None
            return RedisFuseStorage.from_url(
                self.redis_url,
                key_prefix=self.redis_key_prefix,
            )
        return InMemoryFuseStorage()

    def configure_logging(
        self, *, json_logs: bool | None = None
    ) -> structlog.stdlib.BoundLogger:
        """Configure process logging at ``log_level`` and return the fuse logger."""
        return configure_structlog(log_level=self.log_level, json_logs=json_logs)

    def build_fuse(
        self,
        name: str,
        *,
        storage: FuseStorage | None = None,
        logger: FuseLogger | None = None,
        listeners: Sequence[FuseListener] | None = None,
    ) -> Fuse:
        """Build a fuse named ``name`` from these settings.

        Args:
            name: Resource name guarded by the fuse.
            storage: Storage to share with other fuses. Defaults to a new
                ``build_storage()`` backend.
            logger: Optional structured logger.
            listeners: Optional telemetry listeners.
        """
        fuse = Fuse(
            name,
            self.build_storage() if storage is None else storage,
            self.fuse_config(),
            logger=logger,
            listeners=listeners,
        )
        fuse.break_handler_timeout = self.break_handler_timeout
        return fuse
