"""Custom exceptions for the LP hedge backtester and live strategy.

All model, data-alignment and collaborator exceptions live here
to avoid circular imports between modules.
"""


class LpHedgeError(Exception):
    """Base exception for all lphedge errors."""


class InvalidInput(LpHedgeError):
    """Raised for inputs that make a run meaningless.

    Non-positive investment, notional or price, an empty snapshot series,
    a non-positive first-day TVL or an unsupported position type. Always
    raised before any model state is mutated.
    """


class MissingJoinData(LpHedgeError):
    """Raised when a day has no funding period (or price candle) to join."""


class CollaboratorFailure(LpHedgeError):
    """Raised when an exchange, subgraph or liquidity collaborator fails."""


class InvariantViolation(LpHedgeError):
    """Raised when a position model leaves its documented bounds."""
