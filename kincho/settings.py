"""TOML configuration loader.

Loads consensus and persistence defaults from defaults.toml. CLI flags
and callers override the loaded values.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from kincho.schemas.consensus import ConsensusConfig
from kincho.schemas.records import PersistenceConfig

# Default config directory relative to the kincho package
CONFIG_DIR = Path(__file__).parent / "config"


def _load_section(config_path: Path | None, section: str) -> dict[str, Any]:
    path = config_path or CONFIG_DIR / "defaults.toml"
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "rb") as f:
        raw = tomllib.load(f)

    data = raw.get(section, {})
    if not isinstance(data, dict):
        raise ValueError(f"[{section}] in {path} must be a table")
    return data


def load_consensus_config(config_path: Path | None = None) -> ConsensusConfig:
    """Load the [consensus] section.

    Missing keys take the ConsensusConfig defaults.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If the section is malformed or a value is out of range.
    """
    return ConsensusConfig.model_validate(_load_section(config_path, "consensus"))


def load_persistence_config(config_path: Path | None = None) -> PersistenceConfig:
    """Load the [persistence] section.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If the section is malformed or a value is out of range.
    """
    return PersistenceConfig.model_validate(_load_section(config_path, "persistence"))
