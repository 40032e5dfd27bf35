"""
Async Sui JSON-RPC read client.

Only the read calls the pipeline depends on are implemented. Transport and
protocol failures are mapped onto core.exceptions so callers never see raw
httpx errors:

- Timeouts, connection errors, HTTP 5xx -> NetworkError
- HTTP 429 -> RateLimitError
- JSON-RPC error object -> RPCError
- Undecodable or unexpected payloads -> RPCResponseError
"""

import itertools
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx
from pydantic import TypeAdapter, ValidationError

from core.config import SUI_QUERY_MAX_RESULT_LIMIT, get_settings
from core.exceptions import (
    APIExtractionError,
    NetworkError,
    RateLimitError,
    RequestLimitError,
    RPCError,
    RPCResponseError,
)
from schemas.sui import (
    ObjectDataOptions,
    PastObjectRequest,
    PastObjectResponse,
    TransactionBlockPage,
)

logger = logging.getLogger(__name__)

_PAST_OBJECT_LIST = TypeAdapter(List[PastObjectResponse])


class SuiReadApi:
    """
    Minimal Sui read API over JSON-RPC 2.0.

    Usage:
        async with SuiReadApi("https://fullnode.mainnet.sui.io:443") as sui:
            page = await sui.query_transaction_blocks(query, cursor=None)
    """

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.rpc_url = rpc_url or get_settings().SUI_RPC_URL
        self.timeout = timeout or get_settings().SUI_REQUEST_TIMEOUT
        self._client = client
        self._owns_client = client is None
        self._ids = itertools.count(1)

    async def __aenter__(self) -> "SuiReadApi":
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _call(self, method: str, params: Sequence[Any]) -> Any:
        """
        Issue one JSON-RPC request and return its ``result``.

        Raises:
            NetworkError: Timeout, connection failure or server error
            RateLimitError: HTTP 429
            RPCError: The node returned a JSON-RPC error
            RPCResponseError: The body is not a JSON-RPC response
        """
        if self._client is None:
            raise APIExtractionError(
                "Client is not open; use 'async with SuiReadApi(...)'",
                context={"rpc_url": self.rpc_url, "method": method}
            )

        context = {"rpc_url": self.rpc_url, "method": method}
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": list(params)}
        logger.debug(f"RPC {method} params={payload['params']}")

        try:
            response = await self._client.post(self.rpc_url, json=payload, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise NetworkError(
                f"Request timeout calling {method}",
                context={**context, "timeout": self.timeout},
                original_exception=e
            )
        except httpx.HTTPError as e:
            raise NetworkError(
                f"Network error calling {method}",
                context=context,
                original_exception=e
            )

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                f"Rate limited calling {method}",
                context={**context, "status_code": 429},
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None
            )

        if response.status_code >= 500:
            raise NetworkError(
                f"Server error {response.status_code} calling {method}",
                context={
                    **context,
                    "status_code": response.status_code,
                    "response_body": response.text[:500]  # Truncate
                }
            )

        if response.status_code >= 400:
            raise APIExtractionError(
                f"HTTP {response.status_code} calling {method}",
                context={
                    **context,
                    "status_code": response.status_code,
                    "response_body": response.text[:500]
                }
            )

        try:
            body = response.json()
        except ValueError as e:
            raise RPCResponseError(
                f"Failed to parse JSON response of {method}",
                context={**context, "response_body": response.text[:500]},
                original_exception=e
            )

        if not isinstance(body, dict):
            raise RPCResponseError(
                f"Unexpected response shape from {method}",
                context={**context, "response_body": str(body)[:500]}
            )

        if body.get("error") is not None:
            error = body["error"] if isinstance(body["error"], dict) else {"message": str(body["error"])}
            raise RPCError(
                f"{method} failed: {error.get('message', 'unknown error')}",
                context={**context, "code": error.get("code"), "rpc_message": error.get("message")}
            )

        if "result" not in body:
            raise RPCResponseError(
                f"Response of {method} has neither result nor error",
                context={**context, "response_body": str(body)[:500]}
            )

        return body["result"]

    async def query_transaction_blocks(
        self,
        query: Dict[str, Any],
        cursor: Optional[str] = None,
        limit: int = SUI_QUERY_MAX_RESULT_LIMIT,
        descending: bool = False
    ) -> TransactionBlockPage:
        """Fetch one page of transaction blocks after ``cursor``"""
        limit = min(limit, SUI_QUERY_MAX_RESULT_LIMIT)
        result = await self._call(
            "suix_queryTransactionBlocks",
            [query, cursor, limit, descending]
        )
        try:
            return TransactionBlockPage.model_validate(result)
        except ValidationError as e:
            raise RPCResponseError(
                "Unexpected transaction block page",
                context={"rpc_url": self.rpc_url, "method": "suix_queryTransactionBlocks", "cursor": cursor},
                original_exception=e
            )

    async def try_get_past_object(
        self,
        object_id: str,
        version: int,
        options: ObjectDataOptions
    ) -> PastObjectResponse:
        """Look up an object as of ``version``"""
        result = await self._call(
            "sui_tryGetPastObject",
            [object_id, str(version), options.to_params()]
        )
        try:
            return PastObjectResponse.model_validate(result)
        except ValidationError as e:
            raise RPCResponseError(
                "Unexpected past object response",
                context={
                    "rpc_url": self.rpc_url,
                    "method": "sui_tryGetPastObject",
                    "object_id": object_id,
                    "version": version
                },
                original_exception=e
            )

    async def try_multi_get_past_objects(
        self,
        requests: List[PastObjectRequest],
        options: ObjectDataOptions
    ) -> List[PastObjectResponse]:
        """
        Look up several objects at given versions in one call.

        The node returns results in request order.
        """
        if len(requests) > SUI_QUERY_MAX_RESULT_LIMIT:
            raise RequestLimitError(
                f"At most {SUI_QUERY_MAX_RESULT_LIMIT} objects per multi-get, got {len(requests)}",
                context={
                    "method": "sui_tryMultiGetPastObjects",
                    "limit": SUI_QUERY_MAX_RESULT_LIMIT,
                    "requested": len(requests)
                }
            )
        result = await self._call(
            "sui_tryMultiGetPastObjects",
            [[r.to_params() for r in requests], options.to_params()]
        )
        try:
            return _PAST_OBJECT_LIST.validate_python(result)
        except ValidationError as e:
            raise RPCResponseError(
                "Unexpected multi past object response",
                context={
                    "rpc_url": self.rpc_url,
                    "method": "sui_tryMultiGetPastObjects",
                    "requested": len(requests)
                },
                original_exception=e
            )

    async def ping(self) -> int:
        """Latest checkpoint sequence number; used as a reachability check"""
        result = await self._call("sui_getLatestCheckpointSequenceNumber", [])
        try:
            return int(result)
        except (TypeError, ValueError) as e:
            raise RPCResponseError(
                "Unexpected checkpoint sequence number",
                context={"rpc_url": self.rpc_url, "response_body": str(result)[:500]},
                original_exception=e
            )
