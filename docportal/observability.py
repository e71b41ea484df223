import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from docportal.metrics import REQUEST_COUNT, REQUEST_ERRORS, REQUEST_LATENCY

REQUEST_ID_HEADER = "X-Request-ID"
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def _route_path(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Assign a request id and record request metrics."""

    async def dispatch(self, request: Request, call_next):
        incoming = request.headers.get(REQUEST_ID_HEADER, "")
        request_id = incoming if _REQUEST_ID_RE.match(incoming) else uuid.uuid4().hex
        request.state.request_id = request_id

        start = time.monotonic()
        status = "500"
        try:
            response = await call_next(request)
            status = str(response.status_code)
        finally:
            path = _route_path(request)
            duration = time.monotonic() - start
            REQUEST_COUNT.labels(request.method, path, status).inc()
            REQUEST_LATENCY.labels(request.method, path, status).observe(duration)
            if status.startswith("5"):
                REQUEST_ERRORS.labels(request.method, path, status).inc()
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
