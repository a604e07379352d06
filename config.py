# listline/config.py
"""
Configuration management for the listline simulator.
Loads from .env, validates engine parameters before a run starts.
"""
import os
import logging
from dataclasses import dataclass, asdict, fields
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class ConfigurationError(Exception):
    """Configuration error exception."""
    pass


class Config:
    """
    Environment configuration store.

    Usage:
        # Load from .env
        Config.initialize_from_env()

        # Get value
        fee = Config.get(Config.MAINTENANCE_FEE_RATE)

        # Build validated engine parameters
        params = SimulationConfig.from_env()
    """

    # ═══════════════════════════════════════════════════════════════════════
    # CONFIGURATION KEYS
    # ═══════════════════════════════════════════════════════════════════════

    # Ledger
    MAINTENANCE_FEE_RATE = "MAINTENANCE_FEE_RATE"
    DEPOSIT_AMOUNT = "DEPOSIT_AMOUNT"
    MIN_WITHDRAWAL_AMOUNT = "MIN_WITHDRAWAL_AMOUNT"

    # Successor lottery
    SUCCESSOR_SEQUENCE_MAX = "SUCCESSOR_SEQUENCE_MAX"
    SUCCESSOR_REPARENT = "SUCCESSOR_REPARENT"
    SUCCESSOR_CAP_SCOPE = "SUCCESSOR_CAP_SCOPE"

    # Event generator
    CONVERSION_RATE = "CONVERSION_RATE"
    VIEW_WEIGHT = "VIEW_WEIGHT"
    FRAUD_ALERT_RATE = "FRAUD_ALERT_RATE"
    VERIFICATION_RATE = "VERIFICATION_RATE"
    RANDOM_SEED = "RANDOM_SEED"

    # Read-model bounds
    EVENT_LOG_CAP = "EVENT_LOG_CAP"
    HISTORY_CAP = "HISTORY_CAP"
    HISTORY_INTERVAL = "HISTORY_INTERVAL"

    # Runtime
    TICK_INTERVAL_MS = "TICK_INTERVAL_MS"
    LOG_LEVEL = "LOG_LEVEL"

    # ═══════════════════════════════════════════════════════════════════════
    # STORAGE
    # ═══════════════════════════════════════════════════════════════════════

    _config: Dict[str, Any] = {}
    _initialized: bool = False

    # ═══════════════════════════════════════════════════════════════════════
    # METHODS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    def initialize_from_env(cls) -> None:
        """
        Load configuration from .env file and process environment.

        Only keys that are present are stored; missing keys fall back to
        SimulationConfig defaults.

        Raises:
            ConfigurationError: If a value cannot be parsed
        """
        load_dotenv()

        logger.info("Loading configuration from environment...")

        try:
            # Decimal money and rates
            for key in (cls.MAINTENANCE_FEE_RATE, cls.DEPOSIT_AMOUNT, cls.MIN_WITHDRAWAL_AMOUNT,
                        cls.CONVERSION_RATE, cls.VIEW_WEIGHT, cls.FRAUD_ALERT_RATE,
                        cls.VERIFICATION_RATE):
                raw = os.getenv(key)
                if raw is not None:
                    cls._config[key] = Decimal(raw.strip())

            # Integers
            for key in (cls.SUCCESSOR_SEQUENCE_MAX, cls.EVENT_LOG_CAP, cls.HISTORY_CAP,
                        cls.HISTORY_INTERVAL, cls.TICK_INTERVAL_MS, cls.RANDOM_SEED):
                raw = os.getenv(key)
                if raw is not None:
                    cls._config[key] = int(raw.strip())

            # Flags and strings
            reparent = os.getenv(cls.SUCCESSOR_REPARENT)
            if reparent is not None:
                cls._config[cls.SUCCESSOR_REPARENT] = reparent.strip().lower() in ("1", "true", "yes")

            scope = os.getenv(cls.SUCCESSOR_CAP_SCOPE)
            if scope is not None:
                cls._config[cls.SUCCESSOR_CAP_SCOPE] = scope.strip().lower()

            cls._config[cls.LOG_LEVEL] = os.getenv(cls.LOG_LEVEL, "INFO").upper()

            cls._initialized = True
            logger.info("Configuration loaded from environment successfully")

        except (ValueError, InvalidOperation) as e:
            logger.error(f"Failed to load configuration: {e}")
            raise ConfigurationError(f"Configuration loading failed: {e}") from e

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Get configuration value.

        Args:
            key: Configuration key
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        return cls._config.get(key, default)

    @classmethod
    def set(cls, key: str, value: Any, source: str = "runtime") -> None:
        """
        Set configuration value (for dynamic updates).

        Args:
            key: Configuration key
            value: New value
            source: Source of the update (for logging)
        """
        cls._config[key] = value
        logger.debug(f"Config updated: {key} = {value} (source: {source})")

    @classmethod
    def get_all(cls) -> Dict[str, Any]:
        """
        Get all configuration values.

        Returns:
            Copy of configuration dictionary
        """
        return cls._config.copy()

    @classmethod
    def clear(cls) -> None:
        """Drop every loaded value. Used by tests."""
        cls._config.clear()
        cls._initialized = False


# Environment key -> SimulationConfig field
_ENV_FIELDS = {
    Config.MAINTENANCE_FEE_RATE: "maintenance_fee_rate",
    Config.DEPOSIT_AMOUNT: "deposit_amount",
    Config.MIN_WITHDRAWAL_AMOUNT: "min_withdrawal_amount",
    Config.SUCCESSOR_SEQUENCE_MAX: "successor_sequence_max",
    Config.SUCCESSOR_REPARENT: "successor_reparent",
    Config.SUCCESSOR_CAP_SCOPE: "successor_cap_scope",
    Config.CONVERSION_RATE: "conversion_rate",
    Config.VIEW_WEIGHT: "view_weight",
    Config.FRAUD_ALERT_RATE: "fraud_alert_rate",
    Config.VERIFICATION_RATE: "verification_rate",
    Config.EVENT_LOG_CAP: "event_log_cap",
    Config.HISTORY_CAP: "history_cap",
    Config.HISTORY_INTERVAL: "history_interval",
    Config.TICK_INTERVAL_MS: "tick_interval_ms",
}

_RATE_FIELDS = (
    "maintenance_fee_rate",
    "conversion_rate",
    "view_weight",
    "fraud_alert_rate",
    "verification_rate",
)

_MONEY_FIELDS = ("deposit_amount", "min_withdrawal_amount")

_COUNT_FIELDS = (
    "successor_sequence_max",
    "event_log_cap",
    "history_cap",
    "history_interval",
    "tick_interval_ms",
)

CAP_SCOPES = ("member", "global")


def _to_decimal(name: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be numeric, got {value!r}")
    try:
        return value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ConfigurationError(f"{name} must be numeric, got {value!r}") from e


@dataclass(frozen=True)
class SimulationConfig:
    """
    Validated engine parameters.

    Money is Decimal at 2 decimal places, rates are Decimal fractions in [0, 1].
    Instances are immutable; use replace() to derive a changed copy.
    """
    maintenance_fee_rate: Decimal = Decimal("0.10")
    deposit_amount: Decimal = Decimal("10.00")
    min_withdrawal_amount: Decimal = Decimal("100.00")
    successor_sequence_max: int = 4
    successor_reparent: bool = True
    successor_cap_scope: str = "member"
    conversion_rate: Decimal = Decimal("0.01")
    view_weight: Decimal = Decimal("0.40")
    fraud_alert_rate: Decimal = Decimal("0.05")
    verification_rate: Decimal = Decimal("0.85")
    event_log_cap: int = 50
    history_cap: int = 50
    history_interval: int = 1
    tick_interval_ms: int = 150

    def __post_init__(self):
        # Normalise numeric input before validating
        for name in _RATE_FIELDS + _MONEY_FIELDS:
            object.__setattr__(self, name, _to_decimal(name, getattr(self, name)))
        self.validate()

    @property
    def deposit_weight(self) -> Decimal:
        """Share of ticks that attempt a deposit."""
        return Decimal("1") - self.view_weight - self.conversion_rate

    def validate(self) -> None:
        """
        Check every parameter against its allowed range.

        Raises:
            ConfigurationError: On the first invalid parameter
        """
        for name in _RATE_FIELDS:
            value = getattr(self, name)
            if not (Decimal("0") <= value <= Decimal("1")):
                raise ConfigurationError(f"{name} must be within [0, 1], got {value}")

        if self.view_weight + self.conversion_rate > Decimal("1"):
            raise ConfigurationError(
                f"view_weight + conversion_rate must not exceed 1, "
                f"got {self.view_weight} + {self.conversion_rate}"
            )

        for name in _MONEY_FIELDS:
            value = getattr(self, name)
            if value <= 0:
                raise ConfigurationError(f"{name} must be > 0, got {value}")
            if value != value.quantize(CENTS):
                raise ConfigurationError(f"{name} must have at most 2 decimal places, got {value}")

        for name in _COUNT_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
            if value < 1:
                raise ConfigurationError(f"{name} must be >= 1, got {value}")

        if not isinstance(self.successor_reparent, bool):
            raise ConfigurationError(
                f"successor_reparent must be a boolean, got {self.successor_reparent!r}"
            )

        if self.successor_cap_scope not in CAP_SCOPES:
            raise ConfigurationError(
                f"successor_cap_scope must be one of {CAP_SCOPES}, got {self.successor_cap_scope!r}"
            )

    @classmethod
    def from_mapping(cls, params: Mapping[str, Any]) -> "SimulationConfig":
        """
        Build from a plain mapping of field names.

        Raises:
            ConfigurationError: On unknown names or invalid values
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(params) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration parameters: {', '.join(unknown)}")
        return cls(**dict(params))

    @classmethod
    def from_env(cls) -> "SimulationConfig":
        """Build from values loaded by Config.initialize_from_env()."""
        params = {
            field_name: Config.get(key)
            for key, field_name in _ENV_FIELDS.items()
            if Config.get(key) is not None
        }
        return cls.from_mapping(params)

    def replace(self, **changes: Any) -> "SimulationConfig":
        """Return a validated copy with the given parameters changed."""
        params = self.as_dict()
        params.update(changes)
        return self.from_mapping(params)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def get_random_seed() -> Optional[int]:
    """Seed for the production random source, if one is configured."""
    return Config.get(Config.RANDOM_SEED)
