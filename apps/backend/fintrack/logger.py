"""Structured logging for the reconciliation backend.

structlog renders JSON in production and console output when DEBUG is on.
Account-like fields are masked before rendering, and logs can additionally be
shipped to an OTLP collector when ``OTEL_EXPORTER_OTLP_ENDPOINT`` is set.
"""

import inspect
import logging
import sys
import time
from collections.abc import Callable, Iterator, MutableMapping
from contextlib import contextmanager
from functools import wraps
from typing import Any, ParamSpec, TypeVar

import structlog
from structlog.stdlib import BoundLogger
from structlog.types import Processor

from fintrack.config import parse_key_value_pairs, settings
from fintrack.utils.masking import SENSITIVE_KEYS, mask_account_number

P = ParamSpec("P")
T = TypeVar("T")


def mask_sensitive_fields(
    _logger: Any, _method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor: never let a full account number reach a log sink."""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        value = event_dict[key]
        if isinstance(value, str):
            event_dict[key] = mask_account_number(value)
    return event_dict


def _build_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        mask_sensitive_fields,
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def _select_renderer() -> Processor:
    if settings.debug:
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def _build_otlp_logs_endpoint(endpoint: str) -> str:
    base = endpoint.rstrip("/")
    return base if base.endswith("/v1/logs") else f"{base}/v1/logs"


def _configure_otel_logging() -> None:
    """Attach an OTLP log handler to the root logger when a collector is configured."""
    endpoint = settings.otel_exporter_otlp_endpoint
    if not endpoint:
        return

    try:
        from opentelemetry._logs import set_logger_provider
        from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
        from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
        from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
        from opentelemetry.sdk.resources import Resource
    except ImportError:  # pragma: no cover - exporter is an optional install
        logging.getLogger(__name__).warning("OTEL log exporter not available", exc_info=True)
        return

    attributes = {"service.name": settings.otel_service_name}
    attributes.update(parse_key_value_pairs(settings.otel_resource_attributes))

    provider = LoggerProvider(resource=Resource.create(attributes))
    provider.add_log_record_processor(
        BatchLogRecordProcessor(OTLPLogExporter(endpoint=_build_otlp_logs_endpoint(endpoint)))
    )
    set_logger_provider(provider)
    logging.getLogger().addHandler(LoggingHandler(level=logging.INFO, logger_provider=provider))


def configure_logging() -> None:
    """Route structlog and stdlib logging through one formatter on stdout."""
    processors = _build_processors()

    structlog.configure(
        processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=_select_renderer(), foreign_pre_chain=processors)
    )
    logging.basicConfig(handlers=[handler], level=logging.DEBUG if settings.debug else logging.INFO)

    _configure_otel_logging()


def get_logger(name: str | None = None) -> BoundLogger:
    return structlog.get_logger(name)


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


# =============================================================================
# Timing
# =============================================================================


@contextmanager
def log_timing(
    operation: str,
    logger: BoundLogger | None = None,
    level: str = "info",
    **context: Any,
) -> Iterator[dict[str, Any]]:
    """Log ``"<operation> completed"`` with its duration when the block exits.

    The yielded dict collects extra fields (counts, ids) to attach to the line;
    ``duration_ms`` is added to it on exit. The line is logged even when the
    block raises.

        with log_timing("reconcile_batch", logger=logger, kind="stock") as timing:
            ...
            timing["created"] = len(result.created)
    """
    log = logger or get_logger(__name__)
    start = time.perf_counter()
    collected: dict[str, Any] = {}

    try:
        yield collected
    finally:
        collected["duration_ms"] = _elapsed_ms(start)
        emit = getattr(log, level, log.info)
        emit(f"{operation} completed", operation=operation, **context, **collected)


def log_external_api(
    service: str,
    *,
    logger: BoundLogger | None = None,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Decorate an async outbound call so every attempt is logged with its latency.

    Failures are logged at error level and re-raised unchanged.
    """

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"log_external_api requires an async function, got {func.__name__}")

        log = logger or get_logger(func.__module__)

        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            start = time.perf_counter()
            fields: dict[str, Any] = {"service": service, "function": func.__name__}
            try:
                result = await func(*args, **kwargs)  # type: ignore[misc]
            except Exception as exc:
                log.error(
                    f"External API call to {service} failed",
                    duration_ms=_elapsed_ms(start),
                    success=False,
                    error=str(exc),
                    error_type=type(exc).__name__,
                    **fields,
                )
                raise
            log.info(
                f"External API call to {service}",
                duration_ms=_elapsed_ms(start),
                success=True,
                **fields,
            )
            return result

        return wrapper  # type: ignore[return-value]

    return decorator


def log_exception(
    logger: BoundLogger,
    exc: BaseException,
    context: str,
    *,
    level: str = "error",
    include_traceback: bool = True,
    **extra: Any,
) -> None:
    """Log ``exc`` with its type and module alongside ``extra`` context.

        except LedgerWriteFailure as exc:
            log_exception(logger, exc, "Ledger write failed", level="warning", user_id=user_id)
    """
    emit = getattr(logger, level, logger.error)
    fields: dict[str, Any] = {
        "error": str(exc),
        "error_type": type(exc).__name__,
        "error_module": type(exc).__module__,
        **extra,
    }
    if include_traceback:
        fields["exc_info"] = exc
    emit(context, **fields)
