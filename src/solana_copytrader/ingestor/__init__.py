"""Data ingestion layer - Solana wallet activity fetching and classification."""

from solana_copytrader.ingestor.classifier import Classification, TransactionClassifier
from solana_copytrader.ingestor.fetcher import FetchPolicy, WalletActivityFetcher
from solana_copytrader.ingestor.history import ActivityHistory
from solana_copytrader.ingestor.models import (
    Activity,
    MonitorSettings,
    SignatureInfo,
    TokenTransfer,
    Wallet,
)
from solana_copytrader.ingestor.solana_client import (
    ConnectionResolver,
    RateLimitError,
    RPCError,
    SolanaClient,
    SolanaClientError,
)
from solana_copytrader.ingestor.transfers import extract_transfers

__all__ = [
    "Activity",
    "ActivityHistory",
    "Classification",
    "ConnectionResolver",
    "FetchPolicy",
    "MonitorSettings",
    "RPCError",
    "RateLimitError",
    "SignatureInfo",
    "SolanaClient",
    "SolanaClientError",
    "TokenTransfer",
    "TransactionClassifier",
    "Wallet",
    "WalletActivityFetcher",
    "extract_transfers",
]
