"""Performance analytics over a daily equity curve.

Pure Decimal analytics: daily_returns, sharpe_ratio, max_drawdown_pct,
alpha_vs_hold_pct. No external dependencies (no pandas, numpy, quantstats).
"""

from decimal import Decimal

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


def daily_returns(equity: list[Decimal]) -> list[Decimal]:
    """Simple returns between consecutive equity points.

    Steps from a non-positive equity point are skipped.
    """
    return [
        (cur - prev) / prev
        for prev, cur in zip(equity, equity[1:])
        if prev > 0
    ]


def sharpe_ratio(
    equity: list[Decimal],
    risk_free_rate: Decimal = _ZERO,
    annualization_factor: int = 365,
) -> Decimal | None:
    """Annualized Sharpe ratio of daily equity returns.

    Sharpe = ((mean_return - risk_free) / sample_std_dev) * sqrt(annualization)

    Args:
        equity: Daily equity values in time order.
        risk_free_rate: Risk-free rate per day (default 0).
        annualization_factor: Periods per year. Default 365 daily steps.

    Returns:
        Sharpe ratio as Decimal, or None if < 2 returns or zero std dev.
    """
    returns = daily_returns(equity)
    if len(returns) < 2:
        return None

    n = Decimal(len(returns))
    mean = sum(returns, _ZERO) / n

    # Sample standard deviation (N-1 denominator)
    variance = sum((r - mean) ** 2 for r in returns) / (n - Decimal("1"))
    std_dev = variance.sqrt()

    if std_dev == _ZERO:
        return None

    return ((mean - risk_free_rate) / std_dev) * Decimal(annualization_factor).sqrt()


def max_drawdown_pct(equity: list[Decimal]) -> Decimal:
    """Largest peak-to-trough decline, as a percent of the peak.

    Returns:
        Drawdown as a non-negative percent; 0 for an empty or rising curve.
    """
    peak: Decimal | None = None
    max_dd = _ZERO

    for value in equity:
        if peak is None or value > peak:
            peak = value
        if peak > 0:
            dd = (peak - value) / peak * _HUNDRED
            if dd > max_dd:
                max_dd = dd

    return max_dd


def alpha_vs_hold_pct(strategy_return_pct: Decimal, initial: Decimal, hold_value: Decimal) -> Decimal:
    """Strategy return minus the return of holding the entry token split."""
    if initial <= 0:
        return _ZERO
    hold_return_pct = (hold_value - initial) / initial * _HUNDRED
    return strategy_return_pct - hold_return_pct
