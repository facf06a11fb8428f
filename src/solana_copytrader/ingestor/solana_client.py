"""Solana JSON-RPC client with rate limiting and caching.

This module provides the fetch client used by wallet activity ingestion:
- JSON-RPC over HTTP via a shared aiohttp session
- Token bucket rate limiting to respect provider limits
- Retry with exponential backoff on transient transport errors
- Redis caching of parsed transactions (immutable once confirmed)

Rate-limit responses are surfaced as ``RateLimitError`` and never retried
here; callers own the cooldown policy.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, cast

import aiohttp
from redis.asyncio import Redis

from solana_copytrader.ingestor.models import SignatureInfo

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_COMMITMENT = "confirmed"
DEFAULT_REQUEST_TIMEOUT_SECONDS = 60
DEFAULT_MAX_REQUESTS_PER_SECOND = 10.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_SECONDS = 1.0
DEFAULT_TRANSACTION_CACHE_TTL_SECONDS = 3600

RATE_LIMIT_STATUS = 429
RETRY_STATUS_CODES = (500, 502, 503, 504)


class SolanaClientError(Exception):
    """Base exception for Solana client errors."""


class RPCError(SolanaClientError):
    """Raised when an RPC call fails."""


class RateLimitError(SolanaClientError):
    """Raised when the upstream reports rate limiting (HTTP 429)."""


def _is_rate_limit_message(message: str) -> bool:
    lowered = message.lower()
    return "429" in lowered or "too many requests" in lowered


@dataclass
class RateLimiter:
    """Token bucket rate limiter."""

    max_tokens: float
    refill_rate: float  # tokens per second
    tokens: float
    last_refill: float

    @classmethod
    def create(cls, max_requests_per_second: float) -> RateLimiter:
        """Create a rate limiter with specified max requests per second."""
        return cls(
            max_tokens=max_requests_per_second,
            refill_rate=max_requests_per_second,
            tokens=max_requests_per_second,
            last_refill=time.monotonic(),
        )

    def _refill(self) -> None:
        """Refill tokens based on elapsed time."""
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(self.max_tokens, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    async def acquire(self, tokens: float = 1.0) -> None:
        """Acquire tokens, waiting if necessary."""
        while True:
            self._refill()
            if self.tokens >= tokens:
                self.tokens -= tokens
                return
            wait_time = (tokens - self.tokens) / self.refill_rate
            await asyncio.sleep(wait_time)


class SolanaClient:
    """Solana RPC client with caching and rate limiting.

    Provides the two calls activity ingestion depends on, plus a health
    check:
    - ``get_signatures_for_address``: recent signatures, most recent first
    - ``get_parsed_transaction``: one ``jsonParsed`` transaction or None

    Example:
        ```python
        client = SolanaClient("https://api.mainnet-beta.solana.com")
        sigs = await client.get_signatures_for_address(address, limit=5)
        tx = await client.get_parsed_transaction(sigs[0].signature)
        await client.aclose()
        ```
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        redis: Redis | None = None,
        commitment: str = DEFAULT_COMMITMENT,
        request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        max_requests_per_second: float = DEFAULT_MAX_REQUESTS_PER_SECOND,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
        transaction_cache_ttl_seconds: int = DEFAULT_TRANSACTION_CACHE_TTL_SECONDS,
    ) -> None:
        """Initialize the Solana client.

        Args:
            rpc_url: Solana JSON-RPC endpoint URL.
            redis: Optional Redis client for caching parsed transactions.
            commitment: Commitment level for queries.
            request_timeout_seconds: Total timeout per HTTP request.
            max_requests_per_second: Rate limit for RPC calls.
            max_retries: Maximum attempts on transient failures.
            retry_delay_seconds: Initial delay between retries.
            transaction_cache_ttl_seconds: TTL for cached transactions.
        """
        self._rpc_url = rpc_url
        self._redis = redis
        self._commitment = commitment
        self._timeout = aiohttp.ClientTimeout(total=request_timeout_seconds)
        self._max_retries = max_retries
        self._retry_delay = retry_delay_seconds
        self._tx_cache_ttl = transaction_cache_ttl_seconds

        self._rate_limiter = RateLimiter.create(max_requests_per_second)
        self._session: aiohttp.ClientSession | None = None
        self._request_ids = itertools.count(1)
        self._closed = False

        self._cache_prefix = "solana:"

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    @property
    def closed(self) -> bool:
        return self._closed

    def _get_session(self) -> aiohttp.ClientSession:
        if self._closed:
            raise RPCError(f"Client for {self._rpc_url} is closed")
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    def _cache_key(self, key_type: str, value: str) -> str:
        """Generate a cache key."""
        return f"{self._cache_prefix}{key_type}:{value}"

    async def _get_cached(self, key: str) -> str | None:
        """Get value from cache."""
        if not self._redis:
            return None
        try:
            value = await self._redis.get(key)
            if isinstance(value, bytes):
                return value.decode()
            return str(value) if value is not None else None
        except Exception as e:
            logger.warning("Cache get failed: %s", e)
            return None

    async def _set_cached(self, key: str, value: str, ttl: int) -> None:
        """Set value in cache."""
        if not self._redis:
            return
        try:
            await self._redis.set(key, value, ex=ttl)
        except Exception as e:
            logger.warning("Cache set failed: %s", e)

    async def _post(self, payload: dict[str, Any]) -> tuple[int, Any]:
        """POST one JSON-RPC payload, returning (HTTP status, decoded body)."""
        session = self._get_session()
        async with session.post(self._rpc_url, json=payload) as resp:
            if resp.status != 200:
                return resp.status, None
            return resp.status, await resp.json(content_type=None)

    async def _call(self, method: str, params: list[Any]) -> Any:
        """Execute a JSON-RPC call with retry on transient failures.

        Args:
            method: JSON-RPC method name.
            params: Positional parameters.

        Returns:
            The ``result`` member of the response.

        Raises:
            RateLimitError: If the upstream rate-limits the request.
            RPCError: If the call fails after all retries.
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": method,
            "params": params,
        }

        last_error: str = "no attempts made"
        delay = self._retry_delay
        for attempt in range(self._max_retries):
            await self._rate_limiter.acquire()
            try:
                status, body = await self._post(payload)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = str(e) or type(e).__name__
            else:
                if status == RATE_LIMIT_STATUS:
                    raise RateLimitError(f"{method}: HTTP 429 Too Many Requests")
                if status in RETRY_STATUS_CODES:
                    last_error = f"HTTP {status}"
                elif status != 200:
                    raise RPCError(f"{method}: HTTP {status}")
                else:
                    return self._unwrap(method, body)

            logger.warning(
                "RPC %s failed (attempt %d/%d): %s",
                method,
                attempt + 1,
                self._max_retries,
                last_error,
            )
            if attempt < self._max_retries - 1:
                await asyncio.sleep(delay)
                delay *= 2  # Exponential backoff

        raise RPCError(f"RPC call {method} failed after all retries: {last_error}")

    @staticmethod
    def _unwrap(method: str, body: Any) -> Any:
        if not isinstance(body, dict):
            raise RPCError(f"{method}: malformed response")
        error = body.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = str(error.get("message", error)) if isinstance(error, dict) else str(error)
            if code == RATE_LIMIT_STATUS or _is_rate_limit_message(message):
                raise RateLimitError(f"{method}: {message}")
            raise RPCError(f"{method}: {message} (code={code})")
        return body.get("result")

    async def get_signatures_for_address(
        self,
        address: str,
        *,
        limit: int,
    ) -> list[SignatureInfo]:
        """Get recent transaction signatures for an address.

        Args:
            address: Base58 account address.
            limit: Maximum number of signatures.

        Returns:
            Signatures ordered most recent first.
        """
        result = await self._call(
            "getSignaturesForAddress",
            [address, {"limit": limit, "commitment": self._commitment}],
        )
        return [SignatureInfo.from_rpc(item) for item in result or ()]

    async def get_parsed_transaction(self, signature: str) -> dict[str, Any] | None:
        """Get one parsed transaction.

        Args:
            signature: Transaction signature.

        Returns:
            The ``jsonParsed`` transaction record, or None if it is not
            (yet) available.
        """
        cache_key = self._cache_key("tx", signature)
        cached = await self._get_cached(cache_key)
        if cached is not None:
            return cast(dict[str, Any], json.loads(cached))

        tx = await self._call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "jsonParsed",
                    "maxSupportedTransactionVersion": 0,
                    "commitment": self._commitment,
                },
            ],
        )
        if tx is None:
            return None

        await self._set_cached(cache_key, json.dumps(tx), ttl=self._tx_cache_ttl)
        return cast(dict[str, Any], tx)

    async def health_check(self) -> bool:
        """Check if the client can reach the RPC.

        Returns:
            True if healthy, False otherwise.
        """
        try:
            return await self._call("getHealth", []) == "ok"
        except SolanaClientError:
            return False

    async def aclose(self) -> None:
        """Close the HTTP session. The client cannot be used afterwards."""
        self._closed = True
        if self._session is not None and not self._session.closed:
            try:
                await self._session.close()
            except Exception as e:
                logger.warning("Failed to close RPC session: %s", e)
        self._session = None


class ConnectionResolver:
    """Resolves the active SolanaClient for the configured endpoint.

    The client is replaced, and the previous one closed, whenever the
    requested endpoint differs from the current one.
    """

    def __init__(
        self,
        *,
        redis: Redis | None = None,
        commitment: str = DEFAULT_COMMITMENT,
        request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        max_requests_per_second: float = DEFAULT_MAX_REQUESTS_PER_SECOND,
    ) -> None:
        self._redis = redis
        self._commitment = commitment
        self._request_timeout = request_timeout_seconds
        self._max_rps = max_requests_per_second
        self._client: SolanaClient | None = None
        self._lock = asyncio.Lock()

    @property
    def current(self) -> SolanaClient | None:
        return self._client

    def _create_client(self, rpc_url: str) -> SolanaClient:
        return SolanaClient(
            rpc_url,
            redis=self._redis,
            commitment=self._commitment,
            request_timeout_seconds=self._request_timeout,
            max_requests_per_second=self._max_rps,
        )

    async def resolve(self, rpc_url: str) -> SolanaClient:
        """Return a client for ``rpc_url``, replacing the current one if needed.

        Raises:
            ValueError: If the endpoint is not an HTTP(S) URL.
        """
        if not rpc_url.startswith(("http://", "https://")):
            raise ValueError(f"RPC endpoint must be an HTTP(S) URL: {rpc_url!r}")

        async with self._lock:
            if self._client is not None and self._client.rpc_url == rpc_url:
                return self._client
            client = self._create_client(rpc_url)
            previous, self._client = self._client, client
            logger.info("Using Solana RPC endpoint %s", rpc_url)
        if previous is not None:
            await previous.aclose()
        return client

    async def reset(self) -> None:
        """Drop and close the current client."""
        async with self._lock:
            previous, self._client = self._client, None
        if previous is not None:
            await previous.aclose()
