"""Exchange layer -- Hyperliquid via ccxt, pool subgraphs via httpx, paper simulation."""

from lphedge.exchange.hyperliquid_client import HyperliquidClient, perp_symbol
from lphedge.exchange.paper import PaperTrader
from lphedge.exchange.subgraph_client import SubgraphPoolClient

__all__ = ["HyperliquidClient", "PaperTrader", "SubgraphPoolClient", "perp_symbol"]
