"""
JSON-RPC client for the Soroban RPC endpoint

Handles HTTP communication with retry logic for idempotent reads, session
reuse and mapping of transport failures onto the ledger error taxonomy.
"""

import asyncio
import itertools
import logging
from typing import Any, Dict, Optional

import aiohttp

from decentpay.core.config import RPC_MAX_RETRIES, RPC_TIMEOUT_SECONDS
from decentpay.core.ledger_exceptions import (
    NetworkError,
    ProtocolError,
    RpcTimeoutError,
)

logger = logging.getLogger(__name__)


class JsonRpcClient:
    """
    Async JSON-RPC 2.0 client.

    Features:
    - One lazily opened ``aiohttp.ClientSession`` per client
    - Exponential backoff retries for read-only methods only
    - JSON-RPC error objects raised as ``ProtocolError`` with their code

    ``sendTransaction`` is never retried: a lost response does not mean the
    transaction was not accepted.
    """

    IDEMPOTENT_METHODS = frozenset(
        {
            "simulateTransaction",
            "getTransaction",
            "getLedgerEntries",
            "getLatestLedger",
            "getNetwork",
            "getHealth",
        }
    )

    RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})

    def __init__(
        self,
        url: str,
        timeout: float = RPC_TIMEOUT_SECONDS,
        max_retries: int = RPC_MAX_RETRIES,
        backoff_factor: float = 0.5,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            url: RPC endpoint URL
            timeout: Total request timeout in seconds
            max_retries: Retries for idempotent methods after the first attempt
            backoff_factor: Base delay for exponential backoff
            session: Existing session to reuse; it is then not closed by us
        """
        self.url = url
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self._session = session
        self._owns_session = session is None
        self._ids = itertools.count(1)

    async def __aenter__(self) -> "JsonRpcClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Content-Type": "application/json", "User-Agent": "decentpay/1.0"},
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _post(self, payload: Dict[str, Any]) -> Any:
        """Send one HTTP request and return the parsed JSON body."""
        session = self._get_session()
        try:
            async with session.post(
                self.url,
                json=payload,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                logger.debug(f"POST {payload['method']} - Status: {response.status}")
                if response.status in self.RETRYABLE_STATUS:
                    raise NetworkError(
                        f"RPC endpoint returned HTTP {response.status}",
                        code=response.status,
                    )
                if response.status != 200:
                    raise ProtocolError(
                        f"RPC endpoint returned HTTP {response.status}",
                        code=response.status,
                        recoverable=False,
                    )
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise ProtocolError(f"Invalid JSON from RPC endpoint: {e}") from e
        except asyncio.TimeoutError as e:
            raise RpcTimeoutError(f"RPC request timed out after {self.timeout}s") from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"Failed to reach RPC endpoint: {e}") from e

    @staticmethod
    def _handle_response(method: str, data: Any) -> Any:
        if not isinstance(data, dict):
            raise ProtocolError(f"Malformed JSON-RPC response to {method}")

        error = data.get("error")
        if error is not None:
            if isinstance(error, dict):
                message = error.get("message", "Unknown error")
                code = error.get("code")
                extra = error.get("data")
            else:
                message, code, extra = str(error), None, None
            raise ProtocolError(
                message,
                code=code,
                details={"method": method, "data": extra},
            )

        if "result" not in data:
            raise ProtocolError(f"JSON-RPC response to {method} has no result")
        return data["result"]

    async def call(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Invoke a JSON-RPC method.

        Args:
            method: RPC method name
            params: Named parameters

        Returns:
            The ``result`` member of the response

        Raises:
            NetworkError, RpcTimeoutError: transport failure after retries
            ProtocolError: error object or malformed response
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or {},
        }
        attempts = self.max_retries + 1 if method in self.IDEMPOTENT_METHODS else 1

        for attempt in range(attempts):
            try:
                data = await self._post(payload)
            except (NetworkError, RpcTimeoutError) as e:
                if attempt + 1 >= attempts:
                    logger.error(
                        f"RPC {method} failed: {e}",
                        extra={"event": "rpc.failed", "method": method, "attempts": attempt + 1},
                    )
                    raise
                delay = self.backoff_factor * (2 ** attempt)
                logger.warning(
                    f"RPC {method} failed, retrying in {delay}s (attempt {attempt + 1}/{self.max_retries})",
                    extra={"event": "rpc.retry", "method": method, "attempt": attempt + 1},
                )
                await asyncio.sleep(delay)
                continue
            return self._handle_response(method, data)

        # Should not reach here
        raise NetworkError(f"RPC {method} failed")
