"""Well-known Solana token mints used to label balance changes."""

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class TokenInfo:
    """Display metadata for a token mint."""

    symbol: str
    decimals: int
    name: str | None = None


# Wrapped SOL mint, used as the sentinel mint for native SOL movements.
NATIVE_MINT = "So11111111111111111111111111111111111111112"
NATIVE_SYMBOL = "SOL"
NATIVE_DECIMALS = 9
LAMPORTS_PER_SOL = Decimal(10) ** NATIVE_DECIMALS

KNOWN_TOKENS: dict[str, TokenInfo] = {
    NATIVE_MINT: TokenInfo("SOL", 9, "Solana"),
    # Stablecoins
    "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v": TokenInfo("USDC", 6, "USD Coin"),
    "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB": TokenInfo("USDT", 6, "Tether USD"),
    "USDSwr9ApdHk5bvJKMjzff41FfuX8bSxdKcR81vTwcA": TokenInfo("USDS", 6, "USDS"),
    # Liquid staking tokens
    "mSoLzYCxHdYgdzU16g5QSh3i5K3z3KZK7ytfqcJm7So": TokenInfo("mSOL", 9, "Marinade SOL"),
    "J1toso1uCk3RLmjorhTtrVwY9HJ7X8V9yYac6Y7kGCPn": TokenInfo("jitoSOL", 9, "Jito SOL"),
    "bSo13r4TkiE4KumL71LsHTPpL2euBYLFx6h9HP3piy1": TokenInfo("bSOL", 9, "BlazeStake SOL"),
    # Major tokens
    "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN": TokenInfo("JUP", 6, "Jupiter"),
    "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263": TokenInfo("BONK", 5, "Bonk"),
    "EKpQGSJtjMFqKZ9KQanSqYXRcF8fBopzLHYxdM65zcjm": TokenInfo("WIF", 6, "dogwifhat"),
    "HZ1JovNiVvGrGNiiYvEozEVgZ58xaU3RKwX8eACQBCt3": TokenInfo("PYTH", 6, "Pyth Network"),
    "rndrizKT3MK1iimdxRdWabcF7Zg7AR5T4nud4EkHBof": TokenInfo("RENDER", 8, "Render"),
    "7vfCXTUXx5WJV5JADk17DUJ4ksgau7utNKj4b963voxs": TokenInfo("WETH", 8, "Wrapped ETH"),
    "3NZ9JMVBmGAqocybic2c7LQCJScmgsAZ6vQqTDzcqmJh": TokenInfo("WBTC", 8, "Wrapped BTC"),
    "hntyVP6YFm1Hg25TN9WGLqM12b8TQmcknKrdu1oxWux": TokenInfo("HNT", 8, "Helium"),
    "SHDWyBxihqiCj6YekG2GUr7wqKLeLAMK1gHZck9pL6y": TokenInfo("SHDW", 9, "Shadow Token"),
    "RAYdGMVVLRxLnPpX7n4Rf85Xa3tWg5L5EB9Bp3RD7HB": TokenInfo("RAY", 6, "Raydium"),
    "orcaEKTdK7LKz57vaAYr9QeNsVEPfiu6QeMU1kektZE": TokenInfo("ORCA", 6, "Orca"),
    # Jupiter perpetuals LP token
    "27G8MtK7VtTcCHkpASjSDdkWWYfoqT6ggEuKidVJidD4": TokenInfo("JLP", 6, "Jupiter LP"),
}


def symbol_for_mint(mint: str) -> str | None:
    """Return the display symbol for a known mint, or None."""
    info = KNOWN_TOKENS.get(mint)
    return info.symbol if info else None
