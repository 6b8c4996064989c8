"""Request metrics and spans for the link service."""

import time

from fastapi import Request
from opentelemetry.trace import SpanKind
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from shortlink.core.telemetry import get_meter, get_tracer

tracer = get_tracer("shortlink.middleware")
meter = get_meter("shortlink.middleware")

request_counter = meter.create_counter(
    name="shortlink.http.requests",
    description="Number of HTTP requests",
    unit="1",
)

request_duration = meter.create_histogram(
    name="shortlink.http.duration",
    description="Duration of HTTP requests",
    unit="ms",
)


class TracingMiddleware(BaseHTTPMiddleware):
    """Wrap each request in a span and record count and duration."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start_time = time.perf_counter()
        method = request.method
        attributes = {
            "http.method": method,
            "http.host": request.headers.get("host", ""),
        }
        with tracer.start_as_current_span(
            f"{method} {request.url.path}",
            attributes={**attributes, "http.target": request.url.path},
            kind=SpanKind.SERVER,
        ) as span:
            response = await call_next(request)
            span.set_attribute("http.status_code", response.status_code)

        # The route template keeps metric cardinality bounded
        route = request.scope.get("route")
        attributes["http.route"] = getattr(route, "path", "unmatched")
        attributes["http.status_code"] = response.status_code
        request_counter.add(1, attributes)
        request_duration.record((time.perf_counter() - start_time) * 1000, attributes)
        return response
