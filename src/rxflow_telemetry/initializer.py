"""OpenTelemetry SDK 初期化"""

from __future__ import annotations

from opentelemetry import metrics, trace
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

from .exceptions import TelemetryError, TelemetryErrorCodes
from .models import TelemetryConfig


def init_telemetry(config: TelemetryConfig) -> TracerProvider | None:
    """OpenTelemetry SDK を初期化する。

    Args:
        config: テレメトリー設定

    Returns:
        トレース有効時は設定した TracerProvider、無効時は None

    Raises:
        TelemetryError: 初期化に失敗した場合
    """
    try:
        resource = Resource.create(
            {
                "service.name": config.service_name,
                "service.version": config.service_version,
                "deployment.environment": config.environment,
            }
        )

        if config.metrics.enabled:
            readers = []
            if config.trace.endpoint:
                try:
                    from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import (
                        OTLPMetricExporter,
                    )
                    from opentelemetry.sdk.metrics.export import (
                        PeriodicExportingMetricReader,
                    )

                    readers.append(
                        PeriodicExportingMetricReader(
                            OTLPMetricExporter(endpoint=config.trace.endpoint),
                            export_interval_millis=config.metrics.export_interval_seconds * 1000,
                        )
                    )
                except Exception as e:
                    raise TelemetryError(
                        code=TelemetryErrorCodes.EXPORTER_INIT_ERROR,
                        message=f"Failed to initialize OTLP metric exporter: {e}",
                        cause=e,
                    ) from e
            metrics.set_meter_provider(
                MeterProvider(resource=resource, metric_readers=readers)
            )

        if not config.trace.enabled:
            return None

        sampler = TraceIdRatioBased(config.trace.sample_rate)
        provider = TracerProvider(resource=resource, sampler=sampler)

        if config.trace.endpoint:
            try:
                from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
                    OTLPSpanExporter,
                )
                from opentelemetry.sdk.trace.export import BatchSpanProcessor

                exporter = OTLPSpanExporter(endpoint=config.trace.endpoint)
                provider.add_span_processor(BatchSpanProcessor(exporter))
            except Exception as e:
                raise TelemetryError(
                    code=TelemetryErrorCodes.EXPORTER_INIT_ERROR,
                    message=f"Failed to initialize OTLP exporter: {e}",
                    cause=e,
                ) from e

        trace.set_tracer_provider(provider)
        return provider
    except TelemetryError:
        raise
    except Exception as e:
        raise TelemetryError(
            code=TelemetryErrorCodes.INIT_ERROR,
            message=f"Failed to initialize telemetry: {e}",
            cause=e,
        ) from e
