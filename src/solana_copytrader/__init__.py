"""Solana Copytrader - wallet activity monitoring for tracked Solana wallets."""

__version__ = "0.1.0"
