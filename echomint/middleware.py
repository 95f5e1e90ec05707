"""HTTP middleware shared by the services."""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from echomint.context import REQUEST_ID_HEADER, RequestContext


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Attach a RequestContext to every request.

    The context is stored on request.state.ctx for handlers to pass along
    explicitly, and its id is echoed in the X-Request-ID response header.
    """

    async def dispatch(self, request: Request, call_next):
        ctx = RequestContext.from_header(request.headers.get(REQUEST_ID_HEADER))
        request.state.ctx = ctx
        request.state.request_id = ctx.request_id

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = ctx.request_id
        return response


def get_context(request: Request) -> RequestContext:
    """FastAPI dependency returning the request's context."""
    ctx = getattr(request.state, "ctx", None)
    if ctx is None:
        ctx = RequestContext()
        request.state.ctx = ctx
        request.state.request_id = ctx.request_id
    return ctx
