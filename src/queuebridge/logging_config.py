"""
Centralized logging configuration for queuebridge.

Console logging is always available; OpenTelemetry log export is attached
when the ``otel`` extra is installed and requested.
"""

import logging
import os
import sys
from typing import Optional

try:
    from opentelemetry._logs import set_logger_provider
    from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
    from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
    from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
    from opentelemetry.sdk.resources import Resource

    OTEL_AVAILABLE = True
except ImportError:
    OTEL_AVAILABLE = False

from queuebridge.config import SERVICE_NAME

# chatty at INFO, not useful unless debugging the broker clients themselves
NOISY_LOGGERS = ("amqpstorm", "botocore", "boto3", "urllib3")


def setup_logging(
    level: int = logging.INFO,
    microservice_name: Optional[str] = None,
    app_env: Optional[str] = None,
    force_setup: bool = False,
    enable_otel: bool = False,
    enable_console: bool = True,
    otel_endpoint: Optional[str] = None,
) -> None:
    """
    Setup logging for queuebridge processes.

    Args:
        level: Logging level (default: INFO)
        microservice_name: Name of the component (e.g., 'consumer', 'publisher')
        app_env: Application environment (e.g., 'dev', 'prod')
        force_setup: Whether to force reconfiguration even if already setup
        enable_otel: Whether to enable OTEL log export (default: False)
        enable_console: Whether to enable console logging (default: True)
        otel_endpoint: OTEL collector endpoint (defaults to env var)
    """
    root_logger = logging.getLogger()
    if root_logger.handlers and not force_setup:
        root_logger.setLevel(level)
        return

    if force_setup:
        root_logger.handlers.clear()

    if enable_otel:
        if OTEL_AVAILABLE:
            _setup_otel_logging(microservice_name, app_env, otel_endpoint)
        else:
            logging.getLogger(__name__).warning(
                "OTEL logging requested but opentelemetry is not installed"
            )

    if enable_console:
        _setup_console_logging(microservice_name)

    root_logger.setLevel(level)

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger(SERVICE_NAME).setLevel(level)


def create_formatter(microservice_name: Optional[str] = None) -> logging.Formatter:
    """
    Create the standard formatter, prefixed with the component name when given.
    """
    if microservice_name:
        service_prefix = f"[{microservice_name}] "
    else:
        service_prefix = ""

    return logging.Formatter(
        f"%(asctime)s - {service_prefix}%(name)s - %(levelname)s - %(message)s"
    )


def _setup_console_logging(microservice_name: Optional[str] = None) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(create_formatter(microservice_name))
    logging.getLogger().addHandler(handler)


def _setup_otel_logging(
    microservice_name: Optional[str] = None,
    app_env: Optional[str] = None,
    otel_endpoint: Optional[str] = None,
) -> None:
    resource_attrs = {
        "service.name": SERVICE_NAME,
        "service.instance.id": os.uname().nodename,
    }
    if microservice_name:
        resource_attrs["service.component"] = microservice_name
    if app_env:
        resource_attrs["deployment.environment"] = app_env

    logger_provider = LoggerProvider(resource=Resource.create(resource_attrs))
    set_logger_provider(logger_provider)

    endpoint = otel_endpoint or os.getenv("OTEL_EXPORTER_OTLP_LOGS_ENDPOINT")
    otlp_exporter = OTLPLogExporter(endpoint=endpoint, insecure=True)
    logger_provider.add_log_record_processor(BatchLogRecordProcessor(otlp_exporter))

    handler = LoggingHandler(level=logging.NOTSET, logger_provider=logger_provider)
    logging.getLogger().addHandler(handler)
