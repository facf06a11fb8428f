"""Transaction classification for wallet activity.

Protocol detection is a layered OR over independent signal predicates,
evaluated in order with short-circuiting. Each predicate inspects one part
of a ``jsonParsed`` transaction record:

1. static account keys of the message
2. addresses loaded through address lookup tables (versioned transactions)
3. owners of pre/post token balance entries
4. accounts referenced by inner (CPI) instructions

A match on any signal marks the transaction as perpetuals activity and fixes
its type to ``jupiter_perp``. Otherwise the top-level instructions are
checked against a swap-program allow-list, falling back to ``transfer``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from solana_copytrader.ingestor.models import ActivityType

logger = logging.getLogger(__name__)

# Jupiter Perpetuals vault authority
JUPITER_PERP_VAULT_AUTHORITY = "AVzP2GeRmqGphJsMxWoqjpUifPpCret7LqWhD8NWQK49"

SWAP_PROGRAM_IDS: frozenset[str] = frozenset(
    {
        "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4",  # Jupiter v6
        "JUP4Fb2cqiRUcaTHdrPC8h2gNsA2ETXiPDD33WcGuJB",  # Jupiter v4
        "9W959DqEETiGZocYWCQPaJ6sBmUzgfxXfqGeTEdp3aQP",  # Orca v2
        "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc",  # Orca Whirlpools
    }
)

Transaction = Mapping[str, Any]
SignalPredicate = Callable[[Transaction, str], bool]


def _meta(tx: Transaction) -> Mapping[str, Any]:
    return tx.get("meta") or {}


def _message(tx: Transaction) -> Mapping[str, Any]:
    return (tx.get("transaction") or {}).get("message") or {}


def key_to_str(key: Any) -> str:
    """Normalize an account key entry (parsed dict or plain string)."""
    if isinstance(key, Mapping):
        return str(key.get("pubkey", ""))
    return str(key)


def account_keys(tx: Transaction) -> list[str]:
    """Static account keys of a transaction message, in index order."""
    return [key_to_str(k) for k in _message(tx).get("accountKeys") or ()]


def _iter_inner_instructions(tx: Transaction) -> Iterator[Mapping[str, Any]]:
    for group in _meta(tx).get("innerInstructions") or ():
        yield from group.get("instructions") or ()


def authority_in_account_keys(tx: Transaction, authority: str) -> bool:
    return authority in account_keys(tx)


def authority_in_loaded_addresses(tx: Transaction, authority: str) -> bool:
    loaded = _meta(tx).get("loadedAddresses") or {}
    writable = loaded.get("writable") or ()
    readonly = loaded.get("readonly") or ()
    return any(key_to_str(k) == authority for k in (*writable, *readonly))


def authority_owns_token_balance(tx: Transaction, authority: str) -> bool:
    meta = _meta(tx)
    balances = (*(meta.get("preTokenBalances") or ()), *(meta.get("postTokenBalances") or ()))
    return any(b.get("owner") == authority for b in balances)


def authority_in_inner_instructions(tx: Transaction, authority: str) -> bool:
    for ix in _iter_inner_instructions(tx):
        # Parsed instructions carry no raw account list.
        if any(key_to_str(acc) == authority for acc in ix.get("accounts") or ()):
            return True
    return False


PROTOCOL_SIGNALS: tuple[SignalPredicate, ...] = (
    authority_in_account_keys,
    authority_in_loaded_addresses,
    authority_owns_token_balance,
    authority_in_inner_instructions,
)


@dataclass(frozen=True)
class Classification:
    """Result of classifying one transaction."""

    is_jupiter_perp: bool
    type: ActivityType


class TransactionClassifier:
    """Classifies parsed transactions by protocol and coarse type.

    Example:
        ```python
        classifier = TransactionClassifier()
        result = classifier.classify(tx, wallet_address)
        if result.is_jupiter_perp:
            ...
        ```
    """

    def __init__(
        self,
        *,
        authority: str = JUPITER_PERP_VAULT_AUTHORITY,
        swap_program_ids: frozenset[str] = SWAP_PROGRAM_IDS,
        signals: Sequence[SignalPredicate] = PROTOCOL_SIGNALS,
    ) -> None:
        self._authority = authority
        self._swap_program_ids = swap_program_ids
        self._signals = tuple(signals)

    def is_protocol_activity(self, tx: Transaction) -> bool:
        """Return True if any protocol signal matches (short-circuit)."""
        return any(signal(tx, self._authority) for signal in self._signals)

    def activity_type(self, tx: Transaction, *, is_protocol: bool) -> ActivityType:
        if is_protocol:
            return "jupiter_perp"
        for ix in _message(tx).get("instructions") or ():
            program_id = ix.get("programId")
            if program_id is not None and str(program_id) in self._swap_program_ids:
                return "swap"
        return "transfer"

    def classify(self, tx: Transaction, wallet_address: str) -> Classification:
        is_protocol = self.is_protocol_activity(tx)
        result = Classification(
            is_jupiter_perp=is_protocol,
            type=self.activity_type(tx, is_protocol=is_protocol),
        )
        logger.debug(
            "Classified transaction for %s: type=%s perp=%s",
            wallet_address[:8] + "...",
            result.type,
            result.is_jupiter_perp,
        )
        return result
