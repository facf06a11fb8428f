"""Perpetuals positions - API client and aggregate statistics."""

from solana_copytrader.positions.client import PerpsPositionsClient, PositionsClientError
from solana_copytrader.positions.models import PerpPosition, WalletPositions
from solana_copytrader.positions.stats import PositionStats, aggregate_positions

__all__ = [
    "PerpPosition",
    "PerpsPositionsClient",
    "PositionStats",
    "PositionsClientError",
    "WalletPositions",
    "aggregate_positions",
]
