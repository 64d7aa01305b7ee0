"""
Hello Route

The single client-facing endpoint. Declared as a plain ``def`` so Starlette
runs each request on its worker thread pool: requests proceed concurrently and
each one's profiling labels are bound to the thread serving it.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from src.api.deps import get_request_handler
from src.services.hello import CorrelatedRequestHandler

TRACE_ID_HEADER = "X-Trace-Id"

router = APIRouter(tags=["Hello"])


@router.get("/hello", response_class=PlainTextResponse)
def hello(
    request: Request,
    handler: CorrelatedRequestHandler = Depends(get_request_handler),
) -> PlainTextResponse:
    """Return the fixed greeting; every call is traced, measured, logged and profiled."""
    remote_addr = (
        f"{request.client.host}:{request.client.port}" if request.client else "unknown"
    )
    result = handler.handle(
        path=request.url.path,
        method=request.method,
        remote_addr=remote_addr,
        headers=dict(request.headers),
    )
    return PlainTextResponse(
        content=result.body,
        status_code=result.status_code,
        media_type=result.media_type,
        headers={TRACE_ID_HEADER: result.trace_id},
    )
