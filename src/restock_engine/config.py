"""Configuration management for the restock engine."""

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import ValidationError


@dataclass
class DataConfig:
    """Data storage configuration."""

    storage_dir: Path
    backend: str = "json"


@dataclass
class DefaultsConfig:
    """Defaults applied to items created from receipts."""

    location: str = "Pantry"
    category: str = "Uncategorized"
    unit: str = "count"


@dataclass
class EstimatorConfig:
    """Burn-rate smoothing configuration."""

    window: int = 5
    decay: float = 0.5


@dataclass
class ThresholdsConfig:
    """Day boundaries for status and priority classification."""

    critical_days: float = 2.0
    low_days: float = 5.0
    high_priority_days: float = 3.0
    reorder_threshold_days: float = 5.0


@dataclass
class ReplenishmentConfig:
    """Shopping list sizing configuration."""

    lookahead_days: float = 14.0
    unit_granularity: dict[str, float] = field(default_factory=dict)

    def granularity_for(self, unit: str | None) -> float:
        """Purchase granularity for a unit, defaulting to whole units."""
        if unit is None:
            return 1.0
        return self.unit_granularity.get(unit.lower(), 1.0)


@dataclass
class MatchingConfig:
    """Receipt matching configuration."""

    fuzzy_threshold: float = 0.8


@dataclass
class EngineConfig:
    """Engine behaviour configuration."""

    max_retries: int = 3


@dataclass
class LoggingConfig:
    """Logging configuration; no level defers to RESTOCK_LOG_LEVEL."""

    level: str | None = None


@dataclass
class Config:
    """Complete application configuration."""

    data: DataConfig
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)
    estimator: EstimatorConfig = field(default_factory=EstimatorConfig)
    thresholds: ThresholdsConfig = field(default_factory=ThresholdsConfig)
    replenishment: ReplenishmentConfig = field(default_factory=ReplenishmentConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def default_config(storage_dir: Path | None = None) -> Config:
    """Build a configuration with every default applied."""
    return Config(
        data=DataConfig(storage_dir=storage_dir or Path.home() / "restock-engine" / "data")
    )


class ConfigManager:
    """Manages application configuration from TOML files."""

    def __init__(self, config_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            config_path: Optional explicit path to config file.
                        If not provided, searches standard locations.
        """
        self.config_path = config_path or self._find_config()
        self._config = self._load_config()

    @property
    def config(self) -> Config:
        """Get the full configuration."""
        return self._config

    @property
    def data(self) -> DataConfig:
        return self._config.data

    @property
    def defaults(self) -> DefaultsConfig:
        return self._config.defaults

    @property
    def estimator(self) -> EstimatorConfig:
        return self._config.estimator

    @property
    def thresholds(self) -> ThresholdsConfig:
        return self._config.thresholds

    @property
    def replenishment(self) -> ReplenishmentConfig:
        return self._config.replenishment

    @property
    def matching(self) -> MatchingConfig:
        return self._config.matching

    @property
    def engine(self) -> EngineConfig:
        return self._config.engine

    @property
    def logging(self) -> LoggingConfig:
        return self._config.logging

    def _find_config(self) -> Path:
        """Find config file in standard locations."""
        locations = [
            Path.cwd() / "config.toml",
            Path.home() / ".config" / "restock-engine" / "config.toml",
            Path.home() / ".restock-engine" / "config.toml",
        ]

        for loc in locations:
            if loc.exists():
                return loc

        return Path.home() / ".config" / "restock-engine" / "config.toml"

    def _load_config(self) -> Config:
        """Load configuration from TOML file."""
        if not self.config_path.exists():
            return default_config()

        with open(self.config_path, "rb") as f:
            data = tomllib.load(f)

        data_section = data.get("data", {})
        defaults = data.get("defaults", {})
        estimator = data.get("estimator", {})
        thresholds = data.get("thresholds", {})
        replenishment = data.get("replenishment", {})
        matching = data.get("matching", {})
        engine = data.get("engine", {})
        logging_section = data.get("logging", {})

        config = Config(
            data=DataConfig(
                storage_dir=Path(
                    data_section.get("storage_dir", "~/restock-engine/data")
                ).expanduser(),
                backend=data_section.get("backend", "json"),
            ),
            defaults=DefaultsConfig(
                location=defaults.get("location", "Pantry"),
                category=defaults.get("category", "Uncategorized"),
                unit=defaults.get("unit", "count"),
            ),
            estimator=EstimatorConfig(
                window=estimator.get("window", 5),
                decay=estimator.get("decay", 0.5),
            ),
            thresholds=ThresholdsConfig(
                critical_days=thresholds.get("critical_days", 2.0),
                low_days=thresholds.get("low_days", 5.0),
                high_priority_days=thresholds.get("high_priority_days", 3.0),
                reorder_threshold_days=thresholds.get("reorder_threshold_days", 5.0),
            ),
            replenishment=ReplenishmentConfig(
                lookahead_days=replenishment.get("lookahead_days", 14.0),
                unit_granularity={
                    unit.lower(): float(step)
                    for unit, step in replenishment.get("unit_granularity", {}).items()
                },
            ),
            matching=MatchingConfig(
                fuzzy_threshold=matching.get("fuzzy_threshold", 0.8),
            ),
            engine=EngineConfig(max_retries=engine.get("max_retries", 3)),
            logging=LoggingConfig(level=logging_section.get("level")),
        )
        validate_config(config)
        return config

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get config value by dot-notation path.

        Args:
            key_path: Dot-separated path like 'thresholds.critical_days'
            default: Default value if path not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split(".")
        value: Any = self._config

        for key in keys:
            if hasattr(value, key):
                value = getattr(value, key)
            elif isinstance(value, dict):
                value = value.get(key)
                if value is None:
                    return default
            else:
                return default

        return value if value is not None else default


def validate_config(config: Config) -> None:
    """Reject configuration values the engine cannot work with.

    Raises:
        ValidationError: If a value is out of range
    """
    if config.data.backend not in ("json", "sqlite"):
        raise ValidationError(f"Unknown backend: {config.data.backend}", "data.backend")
    if config.estimator.window < 1:
        raise ValidationError("estimator.window must be at least 1", "estimator.window")
    if not 0 < config.estimator.decay <= 1:
        raise ValidationError("estimator.decay must be in (0, 1]", "estimator.decay")
    if config.thresholds.critical_days < 0:
        raise ValidationError(
            "thresholds.critical_days must not be negative", "thresholds.critical_days"
        )
    if config.thresholds.low_days < config.thresholds.critical_days:
        raise ValidationError(
            "thresholds.low_days must not be below critical_days", "thresholds.low_days"
        )
    if config.replenishment.lookahead_days <= 0:
        raise ValidationError(
            "replenishment.lookahead_days must be positive", "replenishment.lookahead_days"
        )
    for unit, step in config.replenishment.unit_granularity.items():
        if step <= 0:
            raise ValidationError(
                f"Granularity for '{unit}' must be positive", "replenishment.unit_granularity"
            )
    if not 0 < config.matching.fuzzy_threshold <= 1:
        raise ValidationError(
            "matching.fuzzy_threshold must be in (0, 1]", "matching.fuzzy_threshold"
        )
    if config.engine.max_retries < 1:
        raise ValidationError("engine.max_retries must be at least 1", "engine.max_retries")
