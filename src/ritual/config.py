"""
Configuration management for the Ritual playlist generator.

Loads and validates TOML config against strict bounds.
A missing, unreadable or invalid config file falls back to the built-in
defaults (the six Ritual phases, 20 minutes, daily at 06:00).
"""

import copy
import os
from datetime import date
from pathlib import Path
from typing import Dict, Any, List, Optional
import toml
import logging

from .generate.models import PhaseCriteria, PhaseDefinition, PlaylistConfig

logger = logging.getLogger(__name__)

MS_PER_MINUTE = 60 * 1000


class ConfigError(Exception):
    """Raised when config validation fails."""
    pass


DEFAULT_PHASES: List[Dict[str, Any]] = [
    {
        "name": "Going to Temple",
        "description": "Phase Shift / The Anticipation",
        "target_duration_minutes": 3,
        "keywords": [
            "temple", "anticipation", "phase", "shift", "intro", "beginning", "meditation",
            "calm", "serene", "peace", "still", "quiet", "ambient", "acoustic",
        ],
        "duration_range_minutes": [2, 6],
    },
    {
        "name": "Intro",
        "description": "Gettin' Goin' / Range Ridin' / Trance Walk / Warmup",
        "target_duration_minutes": 3,
        "keywords": [
            "intro", "warm", "begin", "start", "walk", "ride", "trance", "groove",
            "build", "rise", "awakening",
        ],
        "duration_range_minutes": [2, 5],
    },
    {
        "name": "Dancing With the Divine",
        "description": "The Prayer / Ecstasy / Being the Whirling Dervish / Celebrate / Finding Center",
        "target_duration_minutes": 4,
        "keywords": [
            "dance", "divine", "prayer", "ecstasy", "celebrate", "center", "dervish",
            "bliss", "joy", "euphoria", "sacred", "spirit",
        ],
        "duration_range_minutes": [3, 6],
    },
    {
        "name": "Dealer's Choice",
        "description": "Wild card - anything goes",
        "target_duration_minutes": 3,
        "keywords": ["choice", "wild", "free", "open", "surprise", "random", "mix", "variety"],
        "duration_range_minutes": [1, 8],
    },
    {
        "name": "Unleashing the Beast",
        "description": "Climbing the Mountain / Thick of It / Innit",
        "target_duration_minutes": 4,
        "keywords": [
            "beast", "mountain", "thick", "climb", "unleash", "power", "intense", "fury",
            "rage", "strength", "warrior", "battle", "fire", "energy",
        ],
        "duration_range_minutes": [3, 7],
    },
    {
        "name": "Outro",
        "description": "Cool Down / Stretch",
        "target_duration_minutes": 3,
        "keywords": [
            "outro", "cool", "down", "stretch", "end", "calm", "relax", "wind", "finish",
            "close", "peaceful", "gentle", "soft",
        ],
        "duration_range_minutes": [2, 6],
    },
]


class Config:
    """Configuration loader and validator."""

    PARAM_BOUNDS = {
        "playlist": {
            "total_duration_minutes": (1, 600),
        },
        "schedule": {
            "hour": (0, 23),
            "minute": (0, 59),
        },
    }

    # Params that must be whole numbers; others accept int or float
    PARAM_TYPES = {
        "schedule.hour": int,
        "schedule.minute": int,
    }

    PHASE_TARGET_BOUNDS = (0.5, 120)

    DEFAULT_CONFIG = {
        "config_version": "1.0",
        "playlist": {
            "name": "The Ritual",
            "description": "A 20-minute journey through The Ritual phases",
            "total_duration_minutes": 20,
            "append_date": True,
            "public": False,
        },
        "schedule": {
            "hour": 6,
            "minute": 0,
        },
        "phases": DEFAULT_PHASES,
    }

    def __init__(self, config_dict: Dict[str, Any]):
        """Initialize config from dictionary."""
        self.data = config_dict
        self._validate()

    @classmethod
    def defaults(cls) -> "Config":
        return cls(copy.deepcopy(cls.DEFAULT_CONFIG))

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "Config":
        """
        Load config from TOML file.

        Args:
            config_path: Path to ritual.toml. If None, uses RITUAL_CONFIG_PATH env var
                        or defaults to configs/ritual.toml.

        Returns:
            Config instance. Falls back to defaults if the file is missing,
            unreadable or fails validation.
        """
        if config_path is None:
            config_path = os.getenv("RITUAL_CONFIG_PATH", "configs/ritual.toml")

        config_path = Path(config_path)

        if not config_path.exists():
            logger.warning(f"Config file not found: {config_path}. Using defaults.")
            return cls.defaults()

        try:
            config_dict = toml.load(config_path)
        except (OSError, toml.TomlDecodeError) as e:
            logger.warning(f"Failed to read config from {config_path}: {e}. Using defaults.")
            return cls.defaults()

        try:
            config = cls(config_dict)
        except ConfigError as e:
            logger.warning(f"Invalid config in {config_path}: {e}. Using defaults.")
            return cls.defaults()

        logger.info(f"Loaded config from {config_path}")
        return config

    def _validate(self) -> None:
        """
        Validate all config parameters against bounds.

        Raises:
            ConfigError: If any parameter is out of bounds.
        """
        for section in ("playlist", "schedule"):
            if section not in self.data:
                logger.warning(f"Missing config section: {section}. Using defaults.")
                self.data[section] = copy.deepcopy(self.DEFAULT_CONFIG[section])
                continue

            section_data = self.data[section]
            if not isinstance(section_data, dict):
                raise ConfigError(f"Config section [{section}] must be a table")

            for param, default_val in self.DEFAULT_CONFIG[section].items():
                if param not in section_data:
                    logger.warning(f"Missing param {section}.{param}. Using default: {default_val}")
                    section_data[param] = default_val

        for section, params in self.PARAM_BOUNDS.items():
            for param, (min_val, max_val) in params.items():
                value = self.data[section][param]
                expected = self.PARAM_TYPES.get(f"{section}.{param}", (int, float))
                if isinstance(value, bool) or not isinstance(value, expected):
                    raise ConfigError(f"Parameter {section}.{param}={value!r} has invalid type")
                if not (min_val <= value <= max_val):
                    raise ConfigError(
                        f"Parameter {section}.{param}={value} out of bounds "
                        f"[{min_val}, {max_val}]"
                    )

        if "phases" not in self.data:
            logger.warning("Missing config section: phases. Using default Ritual phases.")
            self.data["phases"] = copy.deepcopy(DEFAULT_PHASES)

        phases = self.data["phases"]
        if not isinstance(phases, list) or not phases:
            raise ConfigError("At least one phase must be configured")

        for index, phase in enumerate(phases):
            self._validate_phase(index, phase)

        logger.debug("Config validation passed")

    def _validate_phase(self, index: int, phase: Dict[str, Any]) -> None:
        if not isinstance(phase, dict) or not phase.get("name"):
            raise ConfigError(f"Phase #{index} must have a name")

        name = phase["name"]
        target = phase.get("target_duration_minutes")
        min_val, max_val = self.PHASE_TARGET_BOUNDS
        if (
            isinstance(target, bool)
            or not isinstance(target, (int, float))
            or not (min_val <= target <= max_val)
        ):
            raise ConfigError(
                f"Phase '{name}' target_duration_minutes={target} out of bounds "
                f"[{min_val}, {max_val}]"
            )

        keywords = phase.get("keywords", [])
        if not isinstance(keywords, list) or not all(isinstance(k, str) for k in keywords):
            raise ConfigError(f"Phase '{name}' keywords must be a list of strings")

        duration_range = phase.get("duration_range_minutes")
        if duration_range is not None:
            if (
                not isinstance(duration_range, list)
                or len(duration_range) != 2
                or not all(
                    isinstance(v, (int, float)) and not isinstance(v, bool) for v in duration_range
                )
            ):
                raise ConfigError(f"Phase '{name}' duration_range_minutes must be [min, max]")
            low, high = duration_range
            if low < 0 or low > high:
                raise ConfigError(
                    f"Phase '{name}' duration_range_minutes={duration_range} is invalid"
                )

    def get(self, section: str, param: str, default: Any = None) -> Any:
        """Get a config parameter safely."""
        return self.data.get(section, {}).get(param, default)

    def __getitem__(self, section: str) -> Dict[str, Any]:
        """Allow dict-like access: config["playlist"]"""
        return self.data.get(section, {})

    @property
    def phases(self) -> List[PhaseDefinition]:
        """Phase definitions in configured order."""
        definitions = []
        for phase in self.data["phases"]:
            duration_range = phase.get("duration_range_minutes")
            criteria = PhaseCriteria(
                keywords=tuple(phase.get("keywords", [])),
                duration_range=(
                    (int(duration_range[0] * MS_PER_MINUTE), int(duration_range[1] * MS_PER_MINUTE))
                    if duration_range is not None
                    else None
                ),
            )
            definitions.append(
                PhaseDefinition(
                    name=phase["name"],
                    description=phase.get("description", ""),
                    target_duration_ms=int(phase["target_duration_minutes"] * MS_PER_MINUTE),
                    criteria=criteria,
                )
            )
        return definitions

    def to_playlist_config(self, today: Optional[date] = None) -> PlaylistConfig:
        """
        Build the immutable playlist config for one run.

        Args:
            today: Date appended to the playlist name when `append_date` is set
                   (defaults to the current date)
        """
        playlist = self["playlist"]
        name = playlist["name"]
        if playlist.get("append_date"):
            name = f"{name} - {(today or date.today()).isoformat()}"

        return PlaylistConfig(
            name=name,
            description=playlist.get("description", ""),
            total_duration_ms=int(playlist["total_duration_minutes"] * MS_PER_MINUTE),
            phases=tuple(self.phases),
        )

    def __repr__(self) -> str:
        version = self.data.get('config_version', 'unknown')
        return f"Config(version={version}, phases={len(self.data.get('phases', []))})"
