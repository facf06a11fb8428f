"""Data models for the ingestor module."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Literal, get_args

from solana_copytrader.config import clamp_poll_interval

ActivityType = Literal["transfer", "swap", "jupiter_perp", "unknown"]
TransferDirection = Literal["in", "out"]

_ACTIVITY_TYPES: frozenset[str] = frozenset(get_args(ActivityType))


def _to_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal(0)
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Invalid decimal value: {value!r}") from e


def activity_id(signature: str, wallet_address: str) -> str:
    """Deterministic activity identifier for a (signature, wallet) pair."""
    return f"{signature}-{wallet_address}"


@dataclass(frozen=True)
class Wallet:
    """A tracked wallet address with a user label."""

    address: str
    label: str
    added_at: int  # ms epoch

    def with_label(self, label: str) -> Wallet:
        return replace(self, label=label)

    def to_dict(self) -> dict[str, Any]:
        return {"address": self.address, "label": self.label, "addedAt": self.added_at}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Wallet:
        """Create a Wallet from its persisted form."""
        return cls(
            address=str(data["address"]),
            label=str(data.get("label") or ""),
            added_at=int(data.get("addedAt") or 0),
        )


@dataclass(frozen=True)
class TokenTransfer:
    """A single balance change of one token for one wallet in one transaction."""

    mint: str
    amount: Decimal  # always non-negative
    decimals: int
    direction: TransferDirection
    symbol: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "mint": self.mint,
            "amount": str(self.amount),
            "decimals": self.decimals,
            "direction": self.direction,
        }
        if self.symbol is not None:
            data["symbol"] = self.symbol
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenTransfer:
        direction = str(data.get("direction", "in"))
        if direction not in ("in", "out"):
            raise ValueError(f"Invalid transfer direction: {direction!r}")
        symbol = data.get("symbol")
        return cls(
            mint=str(data["mint"]),
            amount=_to_decimal(data.get("amount")),
            decimals=int(data.get("decimals", 0)),
            direction=direction,  # type: ignore[arg-type]
            symbol=str(symbol) if symbol is not None else None,
        )


@dataclass(frozen=True)
class Activity:
    """A classified transaction observed for one tracked wallet.

    Activities are created once per newly observed (signature, wallet) pair
    and never mutated afterwards.
    """

    signature: str
    wallet_address: str
    wallet_label: str
    timestamp: int  # ms epoch, 0 when the block time is unknown
    type: ActivityType
    transfers: tuple[TokenTransfer, ...] = ()
    is_jupiter_perp: bool = False
    fee: Decimal = Decimal(0)  # SOL
    success: bool = True

    @property
    def id(self) -> str:
        return activity_id(self.signature, self.wallet_address)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "signature": self.signature,
            "walletAddress": self.wallet_address,
            "walletLabel": self.wallet_label,
            "timestamp": self.timestamp,
            "type": self.type,
            "transfers": [t.to_dict() for t in self.transfers],
            "isJupiterPerp": self.is_jupiter_perp,
            "fee": str(self.fee),
            "success": self.success,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Activity:
        """Create an Activity from its persisted form.

        The stored ``id`` is ignored; it is always derived from the
        signature and wallet address.
        """
        raw_type = str(data.get("type", "unknown"))
        activity_type = raw_type if raw_type in _ACTIVITY_TYPES else "unknown"
        return cls(
            signature=str(data["signature"]),
            wallet_address=str(data["walletAddress"]),
            wallet_label=str(data.get("walletLabel") or ""),
            timestamp=int(data.get("timestamp") or 0),
            type=activity_type,  # type: ignore[arg-type]
            transfers=tuple(TokenTransfer.from_dict(t) for t in data.get("transfers") or ()),
            is_jupiter_perp=bool(data.get("isJupiterPerp", False)),
            fee=_to_decimal(data.get("fee")),
            success=bool(data.get("success", True)),
        )


@dataclass(frozen=True)
class MonitorSettings:
    """User-adjustable monitor settings persisted under the ``settings`` key."""

    poll_interval: int  # seconds
    rpc_endpoint: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "poll_interval", clamp_poll_interval(self.poll_interval))

    def with_poll_interval(self, seconds: int) -> MonitorSettings:
        return replace(self, poll_interval=seconds)

    def with_rpc_endpoint(self, endpoint: str) -> MonitorSettings:
        return replace(self, rpc_endpoint=endpoint)

    def to_dict(self) -> dict[str, Any]:
        return {"pollInterval": self.poll_interval, "rpcEndpoint": self.rpc_endpoint}

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, defaults: MonitorSettings) -> MonitorSettings:
        return cls(
            poll_interval=int(data.get("pollInterval") or defaults.poll_interval),
            rpc_endpoint=str(data.get("rpcEndpoint") or defaults.rpc_endpoint),
        )


@dataclass(frozen=True)
class SignatureInfo:
    """One entry from a signature listing, most recent first."""

    signature: str
    block_time: int | None = None  # seconds epoch
    slot: int | None = None
    err: Any = field(default=None, compare=False)

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> SignatureInfo:
        block_time = data.get("blockTime")
        slot = data.get("slot")
        return cls(
            signature=str(data["signature"]),
            block_time=int(block_time) if block_time is not None else None,
            slot=int(slot) if slot is not None else None,
            err=data.get("err"),
        )
