"""Configuration loading from environment variables and loreweave.toml."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

_DEFAULT_HOME = Path.home() / ".loreweave"
_DEFAULT_LIBRARY_DIR = _DEFAULT_HOME / "library"
_CONFIG_FILENAME = "loreweave.toml"


@dataclass
class PipelineConfig:
    """Turn pipeline settings."""

    history_window: int = 20
    context_budget: int = 1001
    score_cap: float = 1000.0
    seed: int | None = None


@dataclass
class CacheConfig:
    """Turn cache settings."""

    storage_size: int = 10
    path: Path | None = None


@dataclass
class LoreweaveConfig:
    """Top-level Loreweave configuration."""

    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    library_dir: Path = _DEFAULT_LIBRARY_DIR
    log_level: str = "INFO"


def _optional_int(value: object) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def _optional_path(value: object) -> Path | None:
    if not value:
        return None
    return Path(str(value)).expanduser()


def load_config(config_path: Path | None = None) -> LoreweaveConfig:
    """Load configuration from environment variables and optional loreweave.toml.

    Priority: environment variables > loreweave.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        # Search current dir and ~/.loreweave/
        for candidate in [Path.cwd() / _CONFIG_FILENAME, _DEFAULT_HOME / _CONFIG_FILENAME]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    pipeline_data = file_data.get("pipeline", {})
    cache_data = file_data.get("cache", {})

    config = LoreweaveConfig(
        pipeline=PipelineConfig(
            history_window=int(
                os.getenv("LOREWEAVE_HISTORY_WINDOW", pipeline_data.get("history_window", 20))
            ),
            context_budget=int(
                os.getenv("LOREWEAVE_CONTEXT_BUDGET", pipeline_data.get("context_budget", 1001))
            ),
            score_cap=float(pipeline_data.get("score_cap", 1000.0)),
            seed=_optional_int(os.getenv("LOREWEAVE_SEED", pipeline_data.get("seed"))),
        ),
        cache=CacheConfig(
            storage_size=int(os.getenv("LOREWEAVE_CACHE_SIZE", cache_data.get("storage_size", 10))),
            path=_optional_path(os.getenv("LOREWEAVE_CACHE_PATH", cache_data.get("path"))),
        ),
        library_dir=Path(
            os.getenv("LOREWEAVE_LIBRARY_DIR", file_data.get("library_dir", str(_DEFAULT_LIBRARY_DIR)))
        ).expanduser(),
        log_level=os.getenv("LOREWEAVE_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )
    return config


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
