"""Configuration system using pydantic-settings with environment variable loading."""

from decimal import Decimal
from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class HedgeSettings(BaseSettings):
    """Perpetual hedge sizing and risk limits."""

    model_config = SettingsConfigDict(env_prefix="HEDGE_")

    max_leverage: Decimal = Decimal("2")
    min_leverage: Decimal = Decimal("0.5")
    max_hedge_ratio: Decimal = Decimal("0.75")  # notional <= lp value * ratio
    min_hedge_ratio: Decimal = Decimal("0.3")  # live target floor, share of token0 held
    max_funding_rate: Decimal = Decimal("0.001")  # 0.1% per period
    max_position_adjustment: Decimal = Decimal("0.10")
    liquidation_buffer: Decimal = Decimal("0.85")
    risk_leverage_cut: Decimal = Decimal("0.7")
    base_hedge_ratio: Decimal = Decimal("0.5")  # initial notional / capital
    initial_leverage: Decimal = Decimal("1")
    direction: Literal["long", "short"] = "short"


class LpSettings(BaseSettings):
    """Liquidity position shape and rebalancing thresholds."""

    model_config = SettingsConfigDict(env_prefix="LP_")

    venue: Literal["aerodrome", "uniswap"] = "aerodrome"
    tick_spacing: int = 2000
    position_type: str = "full-range"  # "full-range" or "N%" (e.g. "10%")
    target_token0_ratio: Decimal = Decimal("0.5")
    rebalance_threshold: Decimal = Decimal("0.05")  # 5% deviation from target
    fee_tier: Decimal = Decimal("0.003")  # used when a day reports no feesUSD


class BacktestSettings(BaseSettings):
    """Backtest engine configuration.

    Controls default capital, the tolerances used when joining price and
    funding series onto pool days, and the funding-cost alert.
    All fields configurable via BACKTEST_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="BACKTEST_")

    default_initial_capital: Decimal = Decimal("1000")
    funding_join_window_hours: int = 8
    price_join_tolerance_hours: int | None = None  # None = nearest candle, any distance
    aggregate_funding_to_8h: bool = True
    funding_alert_ratio: Decimal = Decimal("0.2")  # |funding| / fees
    funding_alert_every_days: int = 7
    price_interval: str = "1d"


class LiveSettings(BaseSettings):
    """Live strategy loop parameters."""

    model_config = SettingsConfigDict(env_prefix="STRATEGY_")

    mode: Literal["paper", "live"] = "paper"
    poll_interval_seconds: int = 300  # 5 minutes
    out_of_range_exit_hours: int = 24
    hedge_enabled: bool = True
    fee_collection_threshold_usd: Decimal = Decimal("100")
    hedge_size_tolerance: Decimal = Decimal("0.01")  # 1% of target before resubmitting
    max_margin_usage: Decimal = Decimal("0.75")  # hedge value / position value
    owner_address: str = ""
    pool_address: str = ""
    asset: str = "BTC"


class HyperliquidSettings(BaseSettings):
    """Hyperliquid perpetual exchange connection settings."""

    model_config = SettingsConfigDict(env_prefix="HYPERLIQUID_")

    wallet_address: str = ""
    private_key: SecretStr = SecretStr("")
    testnet: bool = False
    funding_page_limit: int = 500  # records per fundingHistory call


class SubgraphSettings(BaseSettings):
    """The Graph gateway settings for pool and position data."""

    model_config = SettingsConfigDict(env_prefix="SUBGRAPH_")

    api_key: SecretStr = SecretStr("")
    aerodrome_url: str = (
        "https://gateway.thegraph.com/api/subgraphs/id/"
        "GENunSHWLBXm59mBSgPzQ8metBEp9YDfdqwFr91Av1UM"
    )
    uniswap_url: str = (
        "https://gateway.thegraph.com/api/subgraphs/id/"
        "5zvR82QoaXYFyDEKLZ9t6v9adgnptxYpKpSbxtgVENFV"
    )
    timeout_seconds: float = 30.0


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    hedge: HedgeSettings = HedgeSettings()
    lp: LpSettings = LpSettings()
    backtest: BacktestSettings = BacktestSettings()
    strategy: LiveSettings = LiveSettings()
    hyperliquid: HyperliquidSettings = HyperliquidSettings()
    subgraph: SubgraphSettings = SubgraphSettings()
