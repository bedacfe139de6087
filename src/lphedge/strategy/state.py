"""Explicit state carried between live strategy ticks.

CRITICAL: All monetary values use Decimal. Never use float for notionals or leverage.
"""

from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum

from lphedge.position.decisions import RebalanceDecision


class ActionKind(str, Enum):
    """Side effects a tick asked collaborators to perform."""

    REMOVE_LIQUIDITY = "remove_liquidity"
    CLOSE_HEDGE = "close_hedge"
    OPEN_HEDGE = "open_hedge"
    CUT_LEVERAGE = "cut_leverage"
    COLLECT_FEES = "collect_fees"


@dataclass(frozen=True)
class StrategyState:
    """Everything the live loop remembers between ticks.

    Attributes:
        out_of_range_since_ms: When the position was first seen out of
            range in the current streak; None while in range.
        hedge_leverage: Leverage of the hedge last submitted.
        hedge_notional: USD notional of the hedge last submitted (0 = none).
        initial_price: Token0 price on the first tick that saw the position.
        last_tick_ms: Time of the last completed tick.
        exits: Number of full exits performed.
        fees_collected: USD fees collected so far.
    """

    out_of_range_since_ms: int | None = None
    hedge_leverage: Decimal = Decimal("1")
    hedge_notional: Decimal = Decimal("0")
    initial_price: Decimal | None = None
    last_tick_ms: int | None = None
    exits: int = 0
    fees_collected: Decimal = Decimal("0")

    def evolve(self, **changes: object) -> "StrategyState":
        return replace(self, **changes)

    def after_exit(self, now_ms: int) -> "StrategyState":
        """State after liquidity is removed and the hedge closed."""
        return StrategyState(
            last_tick_ms=now_ms,
            exits=self.exits + 1,
            fees_collected=self.fees_collected,
        )


@dataclass(frozen=True)
class TickResult:
    """Outcome of one tick: the next state and the actions taken, in order."""

    state: StrategyState
    actions: tuple[ActionKind, ...] = ()
    decision: RebalanceDecision | None = None
