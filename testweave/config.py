"""
Project configuration.

Loads ``testweave.toml`` (or the ``[tool.testweave]`` table of
``pyproject.toml``) and converts it into the runtime configs of the executor.
"""

import tomllib
from pathlib import Path
from typing import List, Optional, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from testweave.executor.errors import ConfigError
from testweave.executor.types import PoolConfig, RetryConfig, SchedulerConfig

CONFIG_FILENAMES = ("testweave.toml", "pyproject.toml")


class Settings(BaseModel):
    """Base model for configuration sections."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


class ParallelSettings(Settings):
    enabled: bool = True
    max_workers: int = Field(default=4, ge=1)


class RetrySettings(Settings):
    enabled: bool = True
    max_retries: int = Field(default=2, ge=0)
    retry_delay_ms: int = Field(default=1000, ge=0)


class BrowserSettings(Settings):
    headless: bool = True
    args: List[str] = Field(
        default_factory=lambda: ["--no-sandbox", "--disable-setuid-sandbox"]
    )
    pool_size: int = Field(default=3, ge=0)


class HttpSettings(Settings):
    max_sockets: int = Field(default=10, ge=1)
    keepalive_timeout_s: float = Field(default=15.0, gt=0)


class ReportSettings(Settings):
    enabled: bool = False
    output_dir: str = "reports"
    keep_old: bool = False


class FilterSettings(Settings):
    include: List[str] = Field(default_factory=list)
    exclude: List[str] = Field(default_factory=list)
    grep: Optional[str] = None


class LoggingSettings(Settings):
    level: str = "INFO"


class ProjectConfig(Settings):
    """Complete project configuration."""

    test_dir: str = "tests"
    parallel: ParallelSettings = Field(default_factory=ParallelSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)
    reporting: ReportSettings = Field(default_factory=ReportSettings)
    filters: FilterSettings = Field(default_factory=FilterSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def to_scheduler_config(self) -> SchedulerConfig:
        workers = self.parallel.max_workers if self.parallel.enabled else 1
        return SchedulerConfig(max_concurrency=workers)

    def to_retry_config(self) -> RetryConfig:
        return RetryConfig(
            enabled=self.retry.enabled,
            max_retries=self.retry.max_retries,
            base_delay_ms=self.retry.retry_delay_ms,
        )

    def to_pool_config(self) -> PoolConfig:
        return PoolConfig(
            capacity=self.browser.pool_size,
            http_max_connections=self.http.max_sockets,
            http_keepalive_timeout_s=self.http.keepalive_timeout_s,
            headless=self.browser.headless,
            browser_args=list(self.browser.args),
        )


def find_config(start: Union[str, Path, None] = None) -> Optional[Path]:
    """Find the first config file in ``start`` (default: the working directory)."""
    directory = Path(start) if start is not None else Path.cwd()
    for name in CONFIG_FILENAMES:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


def load_config(path: Union[str, Path, None] = None) -> ProjectConfig:
    """
    Load the project configuration.

    Args:
        path: Explicit config file. When omitted the working directory is
            searched; defaults are used when nothing is found.

    Returns:
        The validated configuration.

    Raises:
        ConfigError: If the file cannot be read or fails validation.
    """
    config_path = Path(path) if path is not None else find_config()
    if config_path is None:
        logger.debug("No configuration file found, using defaults")
        return ProjectConfig()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(str(config_path), str(e)) from e

    if config_path.name == "pyproject.toml":
        data = data.get("tool", {}).get("testweave", {})

    try:
        config = ProjectConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(str(config_path), str(e)) from e

    logger.info(f"Loaded configuration from {config_path}")
    return config
