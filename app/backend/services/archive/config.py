"""Directory job configuration.

The configuration file is JSON shaped like::

    {
        "directories": [
            {
                "name": "documents",
                "cron": "0 0 3 * * *",
                "input": "/home/user/documents",
                "output": "/backups/documents",
                "max_backups": 7,
                "max_age": "30d"
            }
        ]
    }

`max_age` is either an integer number of milliseconds or a duration string
with a unit suffix (`ms`, `s`, `m`, `h`, `d`, `w`). `max_backups` and `max_age`
are optional; a missing value means no limit for that dimension.
"""

from __future__ import annotations

import json
import os
import re
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from backend.services.archive.errors import ConfigError
from backend.services.archive.schedule_timing import compute_next_fire_time


_DURATION_RE = re.compile(r"^\s*(\d+)\s*(ms|s|m|h|d|w)\s*$", re.IGNORECASE)

_DURATION_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
}


def parse_duration(value: Union[int, str, timedelta]) -> timedelta:
    """Parse a retention age.

    Args:
        value: Milliseconds as an int (or digit string), a suffixed duration
            string such as "24h", or a timedelta.

    Returns:
        timedelta: Parsed duration.

    Raises:
        ValueError: If the value cannot be parsed.
    """

    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, int):
        return timedelta(milliseconds=value)

    raw = str(value).strip()
    if raw.isdigit():
        return timedelta(milliseconds=int(raw))

    match = _DURATION_RE.match(raw)
    if not match:
        raise ValueError(f"Invalid duration (expected e.g. 30d, 24h, 15m or milliseconds): {value!r}")
    return int(match.group(1)) * _DURATION_UNITS[match.group(2).lower()]


class DirectorySpec(BaseModel):
    """A directory to archive on a schedule."""

    name: str = Field(..., min_length=1, description="Human-friendly directory name")
    cron: str = Field(..., description="Cron expression (5 or 6 fields, UTC)")
    input_path: Path = Field(..., alias="input", description="Directory to archive")
    output_path: Path = Field(..., alias="output", description="Directory receiving archives")
    max_backups: Optional[int] = Field(None, gt=0, description="Keep at most this many archives")
    max_age: Optional[timedelta] = Field(None, description="Delete archives older than this")

    model_config = {"populate_by_name": True, "frozen": True}

    @field_validator("cron")
    @classmethod
    def _validate_cron(cls, value: str) -> str:
        compute_next_fire_time(value)
        return value.strip()

    @field_validator("max_age", mode="before")
    @classmethod
    def _validate_max_age(cls, value: Any) -> Optional[timedelta]:
        if value is None:
            return None
        age = parse_duration(value)
        if age <= timedelta(0):
            raise ValueError("max_age must be positive")
        return age


class ArchiverConfig(BaseModel):
    """Top-level configuration file model."""

    directories: List[DirectorySpec] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_names(self) -> "ArchiverConfig":
        seen = set()
        for spec in self.directories:
            if spec.name in seen:
                raise ValueError(f"Duplicate directory name: {spec.name}")
            seen.add(spec.name)
        return self


def check_directories(config: ArchiverConfig) -> List[str]:
    """Check that every input is readable and every output is writable.

    Output directories are created when missing. Two directories may not share
    a canonical input: their records would be indistinguishable.

    Args:
        config: Parsed configuration.

    Returns:
        List[str]: Problems found (empty when everything is usable).
    """

    problems: List[str] = []
    sources: Dict[Path, str] = {}
    for spec in config.directories:
        if not spec.input_path.is_dir():
            problems.append(f"{spec.name}: input is not a directory: {spec.input_path}")
        elif not os.access(spec.input_path, os.R_OK | os.X_OK):
            problems.append(f"{spec.name}: input is not readable: {spec.input_path}")
        else:
            canonical = spec.input_path.resolve()
            if canonical in sources:
                problems.append(f"{spec.name}: input {canonical} is already archived by {sources[canonical]}")
            else:
                sources[canonical] = spec.name

        try:
            spec.output_path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            problems.append(f"{spec.name}: cannot create output {spec.output_path}: {exc}")
            continue
        if not os.access(spec.output_path, os.W_OK | os.X_OK):
            problems.append(f"{spec.name}: output is not writable: {spec.output_path}")

    return problems


def config_from_dict(data: Any) -> ArchiverConfig:
    """Validate raw configuration data.

    Args:
        data: Decoded JSON document.

    Returns:
        ArchiverConfig: Validated configuration.

    Raises:
        ConfigError: If the data is malformed or a directory is unusable.
    """

    try:
        config = ArchiverConfig.model_validate(data)
    except ValidationError as exc:
        issues = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigError(f"Invalid configuration: {issues}") from exc

    problems = check_directories(config)
    if problems:
        raise ConfigError("Invalid configuration: " + "; ".join(problems))

    return config


def load_config(path: Union[str, Path]) -> ArchiverConfig:
    """Load and validate the configuration file.

    Args:
        path: Path to the JSON configuration.

    Returns:
        ArchiverConfig: Validated configuration.

    Raises:
        ConfigError: If the file is missing, not JSON, or invalid.
    """

    config_path = Path(path)
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as exc:
        raise ConfigError(f"Configuration file not found: {config_path}") from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read configuration {config_path}: {exc}") from exc

    return config_from_dict(data)
