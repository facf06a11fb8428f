"""Aggregate statistics over fetched perpetuals positions."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Literal

from solana_copytrader.positions.client import token_symbol
from solana_copytrader.positions.models import WalletPositions


@dataclass
class TokenExposure:
    long: Decimal = Decimal(0)
    short: Decimal = Decimal(0)
    pnl: Decimal = Decimal(0)

    @property
    def total_size(self) -> Decimal:
        return self.long + self.short


@dataclass
class PositionStats:
    """Totals across all wallets' positions."""

    total_positions: int = 0
    long_count: int = 0
    short_count: int = 0
    total_long_size: Decimal = Decimal(0)
    total_short_size: Decimal = Decimal(0)
    total_long_pnl: Decimal = Decimal(0)
    total_short_pnl: Decimal = Decimal(0)
    total_collateral: Decimal = Decimal(0)
    by_token: dict[str, TokenExposure] = field(default_factory=dict)

    @property
    def total_size(self) -> Decimal:
        return self.total_long_size + self.total_short_size

    @property
    def total_pnl(self) -> Decimal:
        return self.total_long_pnl + self.total_short_pnl

    @property
    def net_bias(self) -> Literal["long", "short"]:
        return "long" if self.total_long_size > self.total_short_size else "short"

    @property
    def net_size(self) -> Decimal:
        return abs(self.total_long_size - self.total_short_size)

    @property
    def long_ratio(self) -> Decimal:
        """Long share of total size in percent (50 when there is no size)."""
        if self.total_size <= 0:
            return Decimal(50)
        return self.total_long_size / self.total_size * 100


def aggregate_positions(wallet_positions: Iterable[WalletPositions]) -> PositionStats:
    stats = PositionStats()
    for entry in wallet_positions:
        for pos in entry.positions:
            stats.total_positions += 1
            stats.total_collateral += pos.collateral_usd

            exposure = stats.by_token.setdefault(token_symbol(pos.token), TokenExposure())
            if pos.side == "long":
                stats.long_count += 1
                stats.total_long_size += pos.size_usd
                stats.total_long_pnl += pos.pnl_usd
                exposure.long += pos.size_usd
            else:
                stats.short_count += 1
                stats.total_short_size += pos.size_usd
                stats.total_short_pnl += pos.pnl_usd
                exposure.short += pos.size_usd
            exposure.pnl += pos.pnl_usd
    return stats
