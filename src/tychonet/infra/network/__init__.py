from __future__ import annotations

"""
Network Communication Infrastructure.

HTTP adapters for the external collaborators of the reset workflow: the
source-control commit lookup and the node JSON-RPC endpoint.
"""

from tychonet.infra.network.github_client import GithubClient
from tychonet.infra.network.jrpc_client import JrpcClient

__all__ = [
    "GithubClient",
    "JrpcClient",
]
