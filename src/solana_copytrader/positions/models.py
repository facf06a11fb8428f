"""Data models for perpetuals positions."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Literal

PositionSide = Literal["long", "short"]


@dataclass(frozen=True)
class PerpPosition:
    """One open perpetuals position, with USD quantities already scaled."""

    position_pubkey: str
    owner: str
    pool: str
    custody: str
    collateral_custody: str
    side: PositionSide
    size_usd: Decimal
    collateral_usd: Decimal
    entry_price: Decimal
    mark_price: Decimal
    pnl_usd: Decimal
    pnl_percent: Decimal
    leverage: Decimal
    liquidation_price: Decimal
    token: str
    collateral_token: str
    updated_at: int  # ms epoch


@dataclass
class WalletPositions:
    """Positions fetched for one wallet, or the error that prevented it."""

    wallet_address: str
    positions: list[PerpPosition] = field(default_factory=list)
    last_fetched: int = 0  # ms epoch
    error: str | None = None
