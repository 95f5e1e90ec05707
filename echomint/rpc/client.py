"""
Remote-procedure client used by the request gateway.

The dispatcher is an internal dependency reached over HTTP. Anything that
prevents getting a well-formed envelope back (connection refused, timeout,
non-JSON body) is UpstreamUnavailableError. A well-formed `error` envelope
is raised as RpcCallError with the dispatcher's code and kind intact.
"""

import asyncio
import itertools
from typing import Any, Dict, List, Optional

import aiohttp

from echomint.context import RequestContext
from echomint.errors import RpcCallError, UpstreamUnavailableError
from echomint.logger import get_logger
from echomint.rpc.models import JSONRPC_VERSION

logger = get_logger(__name__)


class RpcClient:
    """
    Async JSON-RPC client for the dispatcher.

    Usage:
        client = RpcClient("http://127.0.0.1:3000", timeout_s=45)
        await client.start()
        result = await client.call("list_agents", {}, ctx)
        await client.close()
    """

    def __init__(self, base_url: str, timeout_s: float = 45.0):
        self._url = base_url.rstrip("/") + "/"
        self._timeout = aiohttp.ClientTimeout(total=timeout_s)
        self._session: Optional[aiohttp.ClientSession] = None
        self._ids = itertools.count(1)

    async def start(self) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def call(
        self,
        method: str,
        params: Dict[str, Any],
        ctx: Optional[RequestContext] = None,
    ) -> Dict[str, Any]:
        """
        Invoke a method and return its `result`.

        Raises:
            UpstreamUnavailableError: Dispatcher unreachable or answered garbage
            RpcCallError: Dispatcher answered with an error envelope
        """
        ctx = ctx or RequestContext()
        await self.start()
        envelope = {
            "jsonrpc": JSONRPC_VERSION,
            "method": method,
            "params": params,
            "id": next(self._ids),
        }

        try:
            async with self._session.post(self._url, json=envelope, headers=ctx.headers) as response:
                try:
                    body = await response.json(content_type=None)
                except ValueError:
                    body = None
                status = response.status
        except asyncio.TimeoutError:
            logger.error(f"[{ctx.request_id}] Dispatcher timed out on {method}")
            raise UpstreamUnavailableError("Dispatcher timed out", detail=self._url)
        except aiohttp.ClientError as e:
            logger.error(f"[{ctx.request_id}] Dispatcher unreachable: {e}")
            raise UpstreamUnavailableError("Dispatcher unreachable", detail=str(e))

        if not isinstance(body, dict) or ("result" not in body and "error" not in body):
            raise UpstreamUnavailableError(
                "Dispatcher returned an invalid response", detail=f"HTTP {status}"
            )
        if body.get("id") != envelope["id"]:
            raise UpstreamUnavailableError("Dispatcher response id mismatch")

        error = body.get("error")
        if error:
            raise RpcCallError(
                code=int(error.get("code", 0)),
                message=str(error.get("message", "")),
                data=error.get("data") or {},
            )
        return body["result"]

    async def list_agents(self, ctx: Optional[RequestContext] = None) -> List[Dict[str, Any]]:
        result = await self.call("list_agents", {}, ctx)
        return result.get("agents", [])

    async def process_text(
        self,
        agent_id: str,
        user_text: str,
        ctx: Optional[RequestContext] = None,
        history: Optional[List[Dict[str, str]]] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"agent_id": agent_id, "user_text": user_text}
        if history:
            params["conversation_history"] = list(history)
        return await self.call("process_text", params, ctx)
