"""Funding-rate period aggregation."""

from decimal import Decimal

from lphedge.models import FundingRatePeriod

HOURS_PER_FUNDING_PERIOD = 8


def aggregate_funding_to_8h(
    entries: list[FundingRatePeriod], group_size: int = HOURS_PER_FUNDING_PERIOD
) -> list[FundingRatePeriod]:
    """Sum consecutive runs of hourly funding entries into 8h periods.

    Each output period carries the coin, premium and time of the first
    entry in its run and the summed funding rate. A trailing run shorter
    than group_size is still emitted.

    Args:
        entries: Hourly entries in time order.
        group_size: Entries per output period.

    Returns:
        Aggregated periods, in input order.
    """
    periods: list[FundingRatePeriod] = []
    for start in range(0, len(entries), group_size):
        chunk = entries[start : start + group_size]
        first = chunk[0]
        periods.append(
            FundingRatePeriod(
                coin=first.coin,
                time_ms=first.time_ms,
                funding_rate=sum((e.funding_rate for e in chunk), Decimal("0")),
                premium=first.premium,
            )
        )
    return periods
