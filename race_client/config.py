from __future__ import annotations

import json
import logging
import os
from enum import StrEnum
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from race_shared.utils import flatten_keys, new_race_id

logger = logging.getLogger(__name__)


class RaceMode(StrEnum):
    KICKOFF = "KICKOFF"
    ONGOING = "ONGOING"


DEFAULT_CONFIG: Dict[str, Any] = {
    "room": None,  # random per run
    "seed": None,  # random per run
    "mode": RaceMode.KICKOFF.value,
    "hostname": "anchor.proxysaw.dev",
    "port": 43384,
    "log_level": "INFO",
    "cvars_path": "shipofharkinian.json",
}

# Keys accepted as KEY=VALUE command-line arguments
OVERRIDABLE_KEYS = ("room", "seed", "mode", "hostname", "port")


class ConfigError(Exception):
    """Raised when configuration values are invalid."""

    pass


class RaceConfig(BaseModel):
    """Immutable configuration built once at startup."""

    model_config = ConfigDict(frozen=True)

    room: str = Field(default_factory=new_race_id, min_length=1)
    seed: str = Field(default_factory=new_race_id, min_length=1)
    mode: RaceMode = RaceMode.KICKOFF
    hostname: str = DEFAULT_CONFIG["hostname"]
    port: int = Field(default=DEFAULT_CONFIG["port"], ge=1, le=65535)
    log_level: str = DEFAULT_CONFIG["log_level"]
    cvars_path: Path = Path(DEFAULT_CONFIG["cvars_path"])

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level {value!r}")
        return level


def parse_overrides(args: Iterable[str]) -> Dict[str, str]:
    """Parse KEY=VALUE arguments into a dict of overrides."""
    overrides: Dict[str, str] = {}
    for arg in args:
        key, _, value = arg.partition("=")
        if not key or not value or key not in OVERRIDABLE_KEYS:
            raise ConfigError(f"Invalid argument: {arg}, must be KEY=VALUE of {', '.join(OVERRIDABLE_KEYS)}")
        if key == "mode" and value not in RaceMode.__members__:
            raise ConfigError(f"Invalid mode: {value}, must be KICKOFF or ONGOING")
        overrides[key] = value
    return overrides


def _from_env() -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for key in DEFAULT_CONFIG:
        value = os.getenv(f"ANCHOR_{key.upper()}")
        if value:
            values[key] = value
    return values


def load_config(args: Iterable[str] = (), env_path: str = ".env") -> RaceConfig:
    """Build the race configuration from defaults, env file/environment variables, then KEY=VALUE args."""
    if os.path.exists(env_path):
        load_dotenv(env_path)

    values = _from_env()
    if "mode" in values:
        # env values go through the same check as command-line ones
        parse_overrides([f"mode={values['mode']}"])
    values.update(parse_overrides(args))

    try:
        return RaceConfig(**values)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def load_cvars(path: Path) -> Dict[str, Any]:
    """Read the game's config file and flatten its CVars object into dotted keys."""
    try:
        with Path(path).open("r", encoding="utf-8") as fp:
            game_config = json.load(fp)
    except FileNotFoundError as exc:
        raise ConfigError(f"CVar file not found: {path}") from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read CVar file {path}: {exc}") from exc

    cvars: Optional[Any] = game_config.get("CVars") if isinstance(game_config, dict) else None
    if cvars is None:
        logger.warning("No CVars section in %s", path)
        return {}
    return flatten_keys(cvars)


__all__ = [
    "DEFAULT_CONFIG",
    "OVERRIDABLE_KEYS",
    "ConfigError",
    "RaceConfig",
    "RaceMode",
    "load_config",
    "load_cvars",
    "parse_overrides",
]
