"""Configuration management for microfin."""

from dataclasses import dataclass, field
from decimal import Decimal

from microfin.exceptions import ConfigurationError


@dataclass
class PostgresConfig:
    """PostgreSQL connection configuration."""

    host: str = "localhost"
    port: int = 5432
    database: str = "microfin"
    user: str = "postgres"
    password: str = "postgres"

    @property
    def connection_string(self) -> str:
        """Get connection string."""
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass
class ScheduleConfig:
    """Loan program rules used by the amortization engine."""

    program_periods: dict[str, int] = field(
        default_factory=lambda: {"small_loan": 8, "big_loan": 12}
    )
    default_periods: int = 8
    # Flat interest charged on principal at origination
    interest_rates: dict[str, Decimal] = field(
        default_factory=lambda: {"small_loan": Decimal("0.15"), "big_loan": Decimal("0.20")}
    )
    default_interest_rate: Decimal = Decimal("0.15")
    processing_fee_rate: Decimal = Decimal("0.06")
    days_per_period: int = 7

    def __post_init__(self) -> None:
        if self.default_periods <= 0:
            raise ConfigurationError(f"default_periods must be positive, got {self.default_periods}")
        for program, periods in self.program_periods.items():
            if periods <= 0:
                raise ConfigurationError(f"Program {program} has non-positive period count {periods}")


@dataclass
class ReconcilerConfig:
    """Deletion reconciler configuration."""

    # Single bounded wait before the post-delete verification read
    settle_delay_ms: int = 300

    @property
    def settle_delay_seconds(self) -> float:
        """Settle delay in seconds."""
        return max(self.settle_delay_ms, 0) / 1000.0


@dataclass
class MicrofinConfig:
    """Main configuration for microfin."""

    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    reconciler: ReconcilerConfig = field(default_factory=ReconcilerConfig)
    seed: int | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "MicrofinConfig":
        """Create config from environment variables."""
        import os

        postgres = PostgresConfig(
            host=os.getenv("POSTGRES_HOST", "localhost"),
            port=int(os.getenv("POSTGRES_PORT", "5432")),
            database=os.getenv("POSTGRES_DB", "microfin"),
            user=os.getenv("POSTGRES_USER", "postgres"),
            password=os.getenv("POSTGRES_PASSWORD", "postgres"),
        )

        schedule = ScheduleConfig(
            default_periods=int(os.getenv("DEFAULT_PERIODS", "8")),
        )

        reconciler = ReconcilerConfig(
            settle_delay_ms=int(os.getenv("SETTLE_DELAY_MS", "300")),
        )

        return cls(
            postgres=postgres,
            schedule=schedule,
            reconciler=reconciler,
            seed=int(os.getenv("SEED")) if os.getenv("SEED") else None,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
