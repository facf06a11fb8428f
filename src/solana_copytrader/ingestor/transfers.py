"""Balance-delta transfer extraction.

Transfers are derived from the before/after balance snapshots carried in a
transaction's ``meta`` rather than from instruction decoding, so they capture
any movement affecting the wallet regardless of which program caused it.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping

from solana_copytrader.ingestor.classifier import account_keys
from solana_copytrader.ingestor.models import TokenTransfer
from solana_copytrader.ingestor.tokens import (
    LAMPORTS_PER_SOL,
    NATIVE_DECIMALS,
    NATIVE_MINT,
    NATIVE_SYMBOL,
    symbol_for_mint,
)

# Changes at or below this magnitude are treated as rounding noise.
MIN_TRANSFER_AMOUNT = Decimal("0.000001")


@dataclass
class _BalanceChange:
    mint: str
    decimals: int
    pre: Decimal
    post: Decimal


def _ui_amount(balance: Mapping[str, Any]) -> Decimal:
    ui = balance.get("uiTokenAmount") or {}
    value = ui.get("uiAmountString")
    if value is None:
        value = ui.get("uiAmount")
    return Decimal(str(value)) if value is not None else Decimal(0)


def _decimals(balance: Mapping[str, Any]) -> int:
    return int((balance.get("uiTokenAmount") or {}).get("decimals") or 0)


def _transfer(mint: str, diff: Decimal, decimals: int, symbol: str | None) -> TokenTransfer:
    return TokenTransfer(
        mint=mint,
        amount=abs(diff),
        decimals=decimals,
        direction="in" if diff > 0 else "out",
        symbol=symbol,
    )


def token_balance_transfers(tx: Mapping[str, Any], wallet_address: str) -> list[TokenTransfer]:
    """Per-token transfers for token accounts owned by the wallet."""
    meta = tx.get("meta") or {}
    changes: dict[int, _BalanceChange] = {}

    for balance in meta.get("preTokenBalances") or ():
        if balance.get("owner") != wallet_address:
            continue
        changes[int(balance["accountIndex"])] = _BalanceChange(
            mint=str(balance["mint"]),
            decimals=_decimals(balance),
            pre=_ui_amount(balance),
            post=Decimal(0),
        )

    for balance in meta.get("postTokenBalances") or ():
        if balance.get("owner") != wallet_address:
            continue
        index = int(balance["accountIndex"])
        existing = changes.get(index)
        if existing is not None:
            existing.post = _ui_amount(balance)
        else:
            changes[index] = _BalanceChange(
                mint=str(balance["mint"]),
                decimals=_decimals(balance),
                pre=Decimal(0),
                post=_ui_amount(balance),
            )

    transfers: list[TokenTransfer] = []
    for change in changes.values():
        diff = change.post - change.pre
        if abs(diff) > MIN_TRANSFER_AMOUNT:
            transfers.append(
                _transfer(change.mint, diff, change.decimals, symbol_for_mint(change.mint))
            )
    return transfers


def native_transfer(tx: Mapping[str, Any], wallet_address: str) -> TokenTransfer | None:
    """SOL movement for the wallet, excluding the transaction fee.

    Returns None when the wallet is not among the account keys or the
    balance snapshots are missing.
    """
    meta = tx.get("meta") or {}
    pre_balances = meta.get("preBalances")
    post_balances = meta.get("postBalances")
    if not pre_balances or not post_balances:
        return None

    keys = account_keys(tx)
    if wallet_address not in keys:
        return None
    index = keys.index(wallet_address)
    if index >= len(pre_balances) or index >= len(post_balances):
        return None

    pre = Decimal(int(pre_balances[index])) / LAMPORTS_PER_SOL
    post = Decimal(int(post_balances[index])) / LAMPORTS_PER_SOL
    fee = Decimal(int(meta.get("fee") or 0)) / LAMPORTS_PER_SOL
    # The fee is debited from the same balance; add it back.
    diff = post - pre + fee
    if abs(diff) <= MIN_TRANSFER_AMOUNT:
        return None
    return _transfer(NATIVE_MINT, diff, NATIVE_DECIMALS, NATIVE_SYMBOL)


def extract_transfers(tx: Mapping[str, Any], wallet_address: str) -> list[TokenTransfer]:
    """All transfers for a wallet: token transfers first, native SOL last."""
    transfers = token_balance_transfers(tx, wallet_address)
    sol = native_transfer(tx, wallet_address)
    if sol is not None:
        transfers.append(sol)
    return transfers
