"""
Request Gateway Package

The REST-facing façade: transcribe → dispatch → synthesize → store.
"""

from echomint.gateway.pipeline import GatewayReply, RequestGateway

__all__ = ["GatewayReply", "RequestGateway"]
