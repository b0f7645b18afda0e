import hashlib
import json
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("tipfeed.http")

_REQUEST_ID_HEADER = "X-Request-ID"


def _hash_client(request: Request) -> str | None:
    if not request.client or not request.client.host:
        return None
    return hashlib.sha256(request.client.host.encode()).hexdigest()[:12]


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """One JSON log line per request; reuses an inbound request id when sane."""

    async def dispatch(self, request: Request, call_next) -> Response:
        inbound = request.headers.get(_REQUEST_ID_HEADER, "")
        request_id = inbound if inbound.isalnum() and len(inbound) <= 32 else str(uuid.uuid4())[:8]
        request.state.request_id = request_id
        start = time.perf_counter()

        response: Response = await call_next(request)

        log_data = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            "client_ip_hash": _hash_client(request),
        }

        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(level, json.dumps(log_data))

        response.headers[_REQUEST_ID_HEADER] = request_id
        return response


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
