"""
Remote-Procedure Package

- Models: JSON-RPC envelopes and method payloads
- Dispatcher: Validate, route and format procedure calls
- Client: HTTP client the gateway uses to reach the dispatcher
"""

from echomint.rpc.dispatcher import Dispatcher
from echomint.rpc.client import RpcClient

__all__ = ["Dispatcher", "RpcClient"]
