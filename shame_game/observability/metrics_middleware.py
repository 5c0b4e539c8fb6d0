"""Request metrics for every HTTP call"""

import logging
import re
import time
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from shame_game.observability.metrics import (
    http_requests_total,
    http_request_duration_seconds,
    http_requests_in_progress,
)

logger = logging.getLogger(__name__)

_UUID_SEGMENT = re.compile(r"/[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}")


def endpoint_label(request: Request) -> str:
    """Route template when one matched (/api/v1/feed/{item_id}), else the path with UUIDs collapsed"""
    route = request.scope.get("route")
    template = getattr(route, "path", None)
    if template:
        return template
    return _UUID_SEGMENT.sub("/{id}", request.url.path)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Counts requests, times them and tracks how many are in flight"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        in_flight = http_requests_in_progress.labels(
            method=request.method, endpoint=_UUID_SEGMENT.sub("/{id}", request.url.path)
        )
        in_flight.inc()
        started = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        except Exception as e:
            logger.error(f"{request.method} {request.url.path} failed: {e}", exc_info=True)
            raise
        finally:
            in_flight.dec()
            # the route is only resolved once the request has been routed
            endpoint = endpoint_label(request)
            http_requests_total.labels(method=request.method, endpoint=endpoint, status=status_code).inc()
            http_request_duration_seconds.labels(method=request.method, endpoint=endpoint).observe(
                time.perf_counter() - started
            )
