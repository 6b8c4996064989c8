"""OpenTelemetry instrumentation for the link service."""

import logging
from contextlib import suppress
from functools import lru_cache
from typing import Dict, Optional, Tuple, Union

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter as OTLPGrpcMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter as OTLPGrpcSpanExporter
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter as OTLPHttpMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter as OTLPHttpSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBasedTraceIdRatio, TraceIdRatioBased

from shortlink.core.config import settings

logger = logging.getLogger(__name__)


@lru_cache
def setup_telemetry() -> Tuple[Optional[TracerProvider], Optional[MeterProvider]]:
    """Install the tracer and meter providers when telemetry is enabled."""
    if not settings.OTEL_ENABLED:
        logger.info("OpenTelemetry instrumentation is disabled")
        return None, None

    try:
        resource = Resource.create({
            "service.name": settings.OTEL_SERVICE_NAME,
            "service.version": settings.APP_VERSION,
            "deployment.environment": settings.ENVIRONMENT.value,
            **_parse_resource_attributes(settings.OTEL_RESOURCE_ATTRIBUTES)
        })
        return _setup_tracing(resource), _setup_metrics(resource)
    except Exception as e:
        logger.error(f"Failed to initialize OpenTelemetry: {e}")
        return None, None


def instrument_app(app=None, db_engine=None) -> None:
    """Instrument FastAPI, SQLAlchemy, Redis and logging."""
    if not settings.OTEL_ENABLED:
        return

    try:
        LoggingInstrumentor().instrument(
            tracer_provider=trace.get_tracer_provider(),
            set_logging_format=False,
        )

        if app is not None:
            FastAPIInstrumentor.instrument_app(
                app,
                tracer_provider=trace.get_tracer_provider(),
                meter_provider=metrics.get_meter_provider(),
                excluded_urls="/api/health,/api/health/live,/api/health/ready",
            )

        if db_engine is not None:
            with suppress(Exception):
                SQLAlchemyInstrumentor().instrument(
                    engine=db_engine.sync_engine,
                    tracer_provider=trace.get_tracer_provider(),
                    meter_provider=metrics.get_meter_provider()
                )
                logger.info("SQLAlchemy instrumentation enabled")

        if settings.CACHE_ENABLED or settings.RATE_LIMIT_ENABLED:
            with suppress(Exception):
                RedisInstrumentor().instrument(tracer_provider=trace.get_tracer_provider())
                logger.info("Redis instrumentation enabled")
    except Exception as e:
        logger.error(f"Failed to instrument application: {e}")


def _setup_tracing(resource: Resource) -> TracerProvider:
    tracer_provider = TracerProvider(
        resource=resource,
        sampler=_create_sampler(
            settings.OTEL_TRACES_SAMPLER,
            float(settings.OTEL_TRACES_SAMPLER_ARG)
        )
    )
    trace.set_tracer_provider(tracer_provider)

    if settings.OTEL_EXPORTER_OTLP_PROTOCOL.lower() == "grpc":
        otlp_exporter = OTLPGrpcSpanExporter(
            endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT,
            insecure=True
        )
    else:
        otlp_exporter = OTLPHttpSpanExporter(endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT)

    tracer_provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
    logger.info(f"OpenTelemetry tracer configured with {settings.OTEL_EXPORTER_OTLP_PROTOCOL} exporter")
    return tracer_provider


def _setup_metrics(resource: Resource) -> MeterProvider:
    if settings.OTEL_EXPORTER_OTLP_PROTOCOL.lower() == "grpc":
        metric_exporter = OTLPGrpcMetricExporter(
            endpoint=settings.OTEL_EXPORTER_OTLP_METRICS_ENDPOINT,
            insecure=True
        )
    else:
        metric_exporter = OTLPHttpMetricExporter(endpoint=settings.OTEL_EXPORTER_OTLP_METRICS_ENDPOINT)

    reader = PeriodicExportingMetricReader(
        metric_exporter,
        export_interval_millis=settings.OTEL_METRICS_EXPORT_INTERVAL_MILLIS
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[reader])
    metrics.set_meter_provider(meter_provider)
    logger.info(f"OpenTelemetry metrics configured with {settings.OTEL_EXPORTER_OTLP_PROTOCOL} exporter")
    return meter_provider


def _create_sampler(sampler_type: str, sampler_arg: float) -> Union[ParentBasedTraceIdRatio, TraceIdRatioBased]:
    if sampler_type.lower() == "parentbased_traceidratio":
        return ParentBasedTraceIdRatio(sampler_arg)
    return TraceIdRatioBased(sampler_arg)


def _parse_resource_attributes(attributes_str: str) -> Dict[str, str]:
    """Parse ``key=value,key=value`` resource attributes."""
    if not attributes_str:
        return {}

    attributes = {}
    for pair in attributes_str.split(","):
        with suppress(ValueError):
            key, value = pair.strip().split("=", 1)
            attributes[key] = value
    return attributes


def get_tracer(name: str = None) -> trace.Tracer:
    return trace.get_tracer(name or settings.OTEL_SERVICE_NAME)


def get_meter(name: str = None) -> metrics.Meter:
    """Get a meter; without an installed provider the instruments are no-ops."""
    return metrics.get_meter(name or settings.OTEL_SERVICE_NAME)
