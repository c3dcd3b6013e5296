from __future__ import annotations

import itertools
import logging
from typing import Any, Dict, Optional

import requests

from tychonet.domain.errors import RpcError
from tychonet.domain.ports import StatusClient
from tychonet.infra.network.common import DEFAULT_TIMEOUT, USER_AGENT

logger = logging.getLogger(__name__)


class JrpcClient(StatusClient):
    """
    Minimal JSON-RPC 2.0 client for a node endpoint.

    Only the calls needed to report network status are exposed; responses
    are returned as plain JSON values.
    """

    def __init__(self, endpoint: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        if not endpoint.startswith(("http://", "https://")):
            raise ValueError(f"invalid RPC endpoint: {endpoint!r}")
        self._endpoint = endpoint
        self._timeout = timeout
        self._ids = itertools.count(1)

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def get_timings(self) -> Dict[str, Any]:
        return self.call("getTimings")

    def get_config(self) -> Dict[str, Any]:
        return self.call("getBlockchainConfig")

    def get_param(self, param: int) -> Dict[str, Any]:
        """Return a single blockchain config param with its key block context."""
        res = self.get_config()
        if not isinstance(res, dict):
            raise RpcError("JRPC getBlockchainConfig returned no config object")
        params = (res.get("config") or {}).get("params") or {}
        return {
            "global_id": res.get("globalId"),
            "seqno": res.get("seqno"),
            "param": param,
            "value": params.get(str(param)),
        }

    def get_account(self, address: str) -> Dict[str, Any]:
        """Raw contract state of `workchain:hex` address, tagged by its `type`."""
        res = self.call("getContractState", {"address": address})
        if not isinstance(res, dict):
            raise RpcError("JRPC getContractState returned no state object")
        return res

    def call(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Perform one JSON-RPC call.

        Raises:
            RpcError: On transport failure or an error object in the response.
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or {},
        }
        headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}

        try:
            response = requests.post(
                self._endpoint, json=payload, headers=headers, timeout=self._timeout
            )
            response.raise_for_status()
            body = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            msg = f"JRPC request '{method}' failed: {e}"
            logger.error(msg)
            raise RpcError(msg) from e

        if not isinstance(body, dict):
            raise RpcError(f"JRPC request '{method}' returned a non-object response")
        if "error" in body:
            error = body["error"] or {}
            raise RpcError(f"JRPC error {error.get('code')}: {error.get('message')}")
        return body.get("result")
