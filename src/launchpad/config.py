"""Configuration system using pydantic-settings with environment variable loading."""

from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class CurveSettings(BaseSettings):
    """Default bonding curve parameters for newly created tokens."""

    model_config = SettingsConfigDict(env_prefix="CURVE_")

    # With the default USD rate the curve graduates at roughly 860M units sold.
    base_price: Decimal = Decimal("0.00000003")  # native units per token at zero sold
    slope: Decimal = Decimal("0.0000000000000005")  # price increase per unit sold
    total_supply: int = 1_000_000_000


class FeeSettings(BaseSettings):
    """Platform trading fee (1% total, split liquidity / treasury)."""

    model_config = SettingsConfigDict(env_prefix="FEES_")

    trade_fee_rate: Decimal = Decimal("0.01")  # 1%
    liquidity_share: Decimal = Decimal("0.5")  # 0.5% liquidity, 0.5% treasury
    native_decimals: int = 9  # lamports

    @property
    def quantum(self) -> Decimal:
        """Smallest representable native amount (1e-native_decimals)."""
        return Decimal(1).scaleb(-self.native_decimals)


class MarketSettings(BaseSettings):
    """Graduation threshold, USD conversion, and listing constraints."""

    model_config = SettingsConfigDict(env_prefix="MARKET_")

    graduation_threshold_usd: Decimal = Decimal("69000")
    native_usd_rate: Decimal = Decimal("150")  # USD per native unit
    max_ticker_length: int = 5
    max_name_length: int = 32


class HistorySettings(BaseSettings):
    """Price history buffer and synthetic walk configuration.

    Capacity 120 at 60s spacing keeps two hours of chart history.
    All fields configurable via HISTORY_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="HISTORY_")

    capacity: int = 120
    sample_interval: float = 60.0  # seconds between synthetic samples
    max_step_pct: Decimal = Decimal("0.01")  # max relative move per synthetic sample
    min_price: Decimal = Decimal("0.000000001")  # floor; the curve base price also bounds samples
    walk_enabled: bool = True
    disable_after_real_trades: bool = True


class StorageSettings(BaseSettings):
    """Snapshot persistence configuration."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    enabled: bool = True
    db_path: str = "data/launchpad.db"
    flush_interval: float = 30.0  # seconds between snapshot flushes
    max_persisted_trades: int = 500  # per ticker


class ApiSettings(BaseSettings):
    """HTTP API server configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 8080
    enabled: bool = True


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    curve: CurveSettings = CurveSettings()
    fees: FeeSettings = FeeSettings()
    market: MarketSettings = MarketSettings()
    history: HistorySettings = HistorySettings()
    storage: StorageSettings = StorageSettings()
    api: ApiSettings = ApiSettings()
