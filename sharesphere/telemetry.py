"""OpenTelemetry metrics and logs for the trading core."""

import logging
from decimal import Decimal

from opentelemetry import metrics
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource

from sharesphere._version import VERSION
from sharesphere.config import settings


# Module-level state
_initialized = False
_meter = None
_log_handler = None

# Counters (cumulative)
_trades_total = None
_trade_volume_total = None
_trade_value_total = None
_trade_rejections_total = None
_concurrency_retries_total = None
_recalculations_total = None


def setup_telemetry() -> bool:
    """Initialize OpenTelemetry metrics and log export.

    Returns True if telemetry was initialized, False if disabled.
    """
    global _initialized, _meter, _log_handler
    global _trades_total, _trade_volume_total, _trade_value_total
    global _trade_rejections_total, _concurrency_retries_total, _recalculations_total

    if _initialized:
        return True

    if not settings.otlp_enabled:
        return False

    resource = Resource.create({
        "service.name": "sharesphere",
        "service.version": VERSION,
    })

    exporter = OTLPMetricExporter(endpoint=settings.otlp_endpoint)
    reader = PeriodicExportingMetricReader(
        exporter,
        export_interval_millis=settings.otlp_export_interval,
    )
    provider = MeterProvider(resource=resource, metric_readers=[reader])
    metrics.set_meter_provider(provider)

    _meter = metrics.get_meter("sharesphere", VERSION)

    _trades_total = _meter.create_counter(
        "sharesphere_trades_total",
        description="Total number of trades executed",
        unit="1",
    )

    _trade_volume_total = _meter.create_counter(
        "sharesphere_trade_volume_total",
        description="Total number of shares traded",
        unit="shares",
    )

    _trade_value_total = _meter.create_counter(
        "sharesphere_trade_value_total",
        description="Total cash value of trades",
        unit="currency",
    )

    _trade_rejections_total = _meter.create_counter(
        "sharesphere_trade_rejections_total",
        description="Trades rejected, by error kind",
        unit="1",
    )

    _concurrency_retries_total = _meter.create_counter(
        "sharesphere_concurrency_retries_total",
        description="Operations retried after an optimistic concurrency conflict",
        unit="1",
    )

    _recalculations_total = _meter.create_counter(
        "sharesphere_valuation_recalculations_total",
        description="Portfolio values recomputed after a share price change",
        unit="1",
    )

    # === LOGS ===
    logs_endpoint = settings.otlp_endpoint.replace("/v1/metrics", "/v1/logs")
    log_exporter = OTLPLogExporter(endpoint=logs_endpoint)
    logger_provider = LoggerProvider(resource=resource)
    logger_provider.add_log_record_processor(BatchLogRecordProcessor(log_exporter))
    set_logger_provider(logger_provider)

    _log_handler = LoggingHandler(
        level=logging.INFO,
        logger_provider=logger_provider,
    )

    _initialized = True
    return True


def get_log_handler() -> LoggingHandler | None:
    """Get the OTLP logging handler to attach to Python loggers."""
    return _log_handler


# --- Counter update functions ---

def record_trade(trade_type: str, ticker: str, quantity: int, price: Decimal) -> None:
    """Record an executed trade."""
    if not _initialized:
        return

    attributes = {"ticker": ticker, "type": trade_type}
    _trades_total.add(1, attributes)
    _trade_volume_total.add(quantity, attributes)
    _trade_value_total.add(float(price * quantity), attributes)


def record_rejection(operation: str, kind: str) -> None:
    """Record a trade or recalculation that ended in an error."""
    if not _initialized:
        return

    _trade_rejections_total.add(1, {"operation": operation, "kind": kind})


def record_retry(operation: str) -> None:
    """Record a retry after a concurrency conflict."""
    if not _initialized:
        return

    _concurrency_retries_total.add(1, {"operation": operation})


def record_recalculation(ticker: str, shareholders: int) -> None:
    """Record portfolio values recomputed for one price change."""
    if not _initialized:
        return

    _recalculations_total.add(shareholders, {"ticker": ticker})
