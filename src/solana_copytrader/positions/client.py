"""Perpetuals positions API client.

The positions endpoint mixes numeric scales: ``collateralUsd`` is reported in
micro-USD while ``size``, PnL and price fields are already decimal USD
strings. ``parse_position`` applies the per-field table as observed in API
responses rather than a uniform rule.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from decimal import Decimal, InvalidOperation
from typing import Any

import aiohttp

from solana_copytrader.positions.models import PerpPosition, WalletPositions

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://perps-api.jup.ag/v1"
DEFAULT_REQUEST_DELAY_SECONDS = 0.2
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30

USD_SCALE = Decimal(1_000_000)

# Substring of the wrapped SOL mint used to recognize SOL markets.
SOL_MINT_PREFIX = "So1111111111111111111111111111111"

PERP_TOKEN_SYMBOLS: dict[str, str] = {
    "SOL": "SOL",
    "BTC": "BTC",
    "ETH": "ETH",
    "wSOL": "SOL",
    "WBTC": "BTC",
    "WETH": "ETH",
}


class PositionsClientError(Exception):
    """Raised when the positions API returns an error."""


def token_symbol(token: str) -> str:
    """Normalize wrapped token names to their market symbol."""
    return PERP_TOKEN_SYMBOLS.get(token, token)


def _decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal(0)
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return Decimal(0)


def parse_position(raw: Mapping[str, Any]) -> PerpPosition:
    """Build a PerpPosition from one raw ``dataList`` entry."""
    market_mint = str(raw.get("marketMint") or "")
    if SOL_MINT_PREFIX in market_mint:
        token = "SOL"
    elif raw.get("asset"):
        token = str(raw["asset"])
    else:
        token = "Unknown"

    side = "short" if raw.get("side") == "short" else "long"
    updated = raw.get("updatedTime") or raw.get("updateTime") or 0

    return PerpPosition(
        position_pubkey=str(raw.get("positionPubkey") or ""),
        owner=str(raw.get("owner") or ""),
        pool=str(raw.get("pool") or ""),
        custody=str(raw.get("custody") or ""),
        collateral_custody=str(raw.get("collateralCustody") or ""),
        side=side,
        size_usd=_decimal(raw.get("size")),
        collateral_usd=_decimal(raw.get("collateralUsd")) / USD_SCALE,
        entry_price=_decimal(raw.get("entryPrice")),
        mark_price=_decimal(raw.get("markPrice")),
        pnl_usd=_decimal(raw.get("pnlAfterFeesUsd")),
        pnl_percent=_decimal(raw.get("pnlChangePctAfterFees")),
        leverage=_decimal(raw.get("leverage")),
        liquidation_price=_decimal(raw.get("liquidationPrice")),
        token=token,
        collateral_token=str(raw.get("collateralToken") or "USDC"),
        updated_at=int(_decimal(updated) * 1000),
    )


def _now_ms() -> int:
    return int(time.time() * 1000)


class PerpsPositionsClient:
    """Fetches open perpetuals positions per wallet, restricted to SOL markets.

    Example:
        ```python
        client = PerpsPositionsClient()
        positions = await client.get_positions(wallet_address)
        await client.aclose()
        ```
    """

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        *,
        request_delay_seconds: float = DEFAULT_REQUEST_DELAY_SECONDS,
        request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Callable[[], int] = _now_ms,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._request_delay = request_delay_seconds
        self._timeout = aiohttp.ClientTimeout(total=request_timeout_seconds)
        self._sleep = sleep
        self._now = now
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def _get(self, path: str, params: dict[str, str]) -> tuple[int, Any]:
        session = self._get_session()
        async with session.get(f"{self._api_url}{path}", params=params) as response:
            if response.status != 200:
                return response.status, None
            return response.status, await response.json(content_type=None)

    async def get_positions(self, wallet_address: str) -> list[PerpPosition]:
        """Fetch open SOL-market positions for one wallet.

        Raises:
            PositionsClientError: On a non-200 response, transport failure or
                malformed body.
        """
        try:
            status, body = await self._get("/positions", {"walletAddress": wallet_address})
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise PositionsClientError(f"Positions request failed: {e}") from e
        if status != 200:
            raise PositionsClientError(f"HTTP {status}")

        if body is None:
            return []
        if not isinstance(body, dict):
            raise PositionsClientError(f"Unexpected response body: {type(body).__name__}")
        data_list = body.get("dataList") or []
        if not isinstance(data_list, list) or not all(isinstance(raw, dict) for raw in data_list):
            raise PositionsClientError("Unexpected dataList in positions response")
        try:
            positions = [parse_position(raw) for raw in data_list]
        except (ValueError, ArithmeticError) as e:
            raise PositionsClientError(f"Malformed position record: {e}") from e
        return [p for p in positions if token_symbol(p.token).upper() == "SOL"]

    async def get_all_positions(self, wallet_addresses: Iterable[str]) -> dict[str, WalletPositions]:
        """Fetch positions for each wallet sequentially.

        Per-wallet failures are recorded on the result instead of raised.
        """
        results: dict[str, WalletPositions] = {}
        for address in wallet_addresses:
            try:
                positions = await self.get_positions(address)
                results[address] = WalletPositions(
                    wallet_address=address, positions=positions, last_fetched=self._now()
                )
            except PositionsClientError as e:
                logger.warning("Error fetching positions for %s: %s", address[:8] + "...", e)
                results[address] = WalletPositions(
                    wallet_address=address, last_fetched=self._now(), error=str(e)
                )
            await self._sleep(self._request_delay)
        return results

    async def aclose(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
