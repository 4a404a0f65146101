"""
Structured JSON logging with OpenTelemetry trace context injection.

``setup_logging()`` configures the root logger once per process: every
record is emitted as a JSON line carrying the trace/span IDs of the
active span, so a store fault can be joined with the request trace that
produced it.

``StoreAlertHandler`` forwards CRITICAL records tagged ``alert=True`` to
a webhook. The insert engine emits such a record when it detects a store
invariant violation.

Usage::

    from intake_common.observability.logging import setup_logging, get_logger

    setup_logging()                       # call once at process startup
    logger = get_logger("engine")
    logger.info("inserted")               # {"timestamp": ..., "level": "INFO", ...}

    logger.critical("store invariant violated",
                    extra={"alert": True, "transaction_id": "..."})
"""

import json
import logging
import os
import threading
from datetime import datetime, timezone
from urllib.request import Request, urlopen
from urllib.error import URLError

from opentelemetry.instrumentation.logging import LoggingInstrumentor
from pythonjsonlogger.json import JsonFormatter


_FORMAT_STRING = "%(timestamp)s %(level)s %(name)s %(message)s"
_setup_done = False


class JsonTraceFormatter(JsonFormatter):
    """JSON formatter that adds standard fields to every log record."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = record.created
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["message"] = record.getMessage()


class StoreAlertHandler(logging.Handler):
    """
    Logging handler that POSTs CRITICAL alert records to a webhook URL.

    Fires only for records at ``CRITICAL`` level that carry ``alert=True``
    in their extra data. The POST runs in a daemon thread so the request
    that logged the record is never blocked on the webhook.

    Args:
        webhook_url: The URL to POST alert payloads to.
        timeout: HTTP request timeout in seconds.
    """

    def __init__(self, webhook_url: str, timeout: int = 5):
        super().__init__(level=logging.CRITICAL)
        self.webhook_url = webhook_url
        self.timeout = timeout

    def emit(self, record: logging.LogRecord) -> None:
        if record.levelno < logging.CRITICAL:
            return
        if not getattr(record, "alert", False):
            return

        try:
            payload = self._build_payload(record)
            thread = threading.Thread(
                target=self._send, args=(payload,), daemon=True
            )
            thread.start()
        except Exception:
            self.handleError(record)

    def _build_payload(self, record: logging.LogRecord) -> dict:
        """Build a JSON payload from the log record."""
        return {
            "severity": record.levelname,
            "message": record.getMessage(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "logger": record.name,
            "service": getattr(record, "service", "unknown"),
            "transaction_id": getattr(record, "transaction_id", None),
            "details": getattr(record, "details", {}),
            "trace_id": getattr(record, "otelTraceID", ""),
            "span_id": getattr(record, "otelSpanID", ""),
        }

    def _send(self, payload: dict) -> None:
        try:
            data = json.dumps(payload, default=str).encode("utf-8")
            req = Request(
                self.webhook_url,
                data=data,
                headers={"Content-Type": "application/json"},
                method="POST",
            )
            urlopen(req, timeout=self.timeout)
        except URLError as exc:
            # debug level: a warning here would re-enter the root handlers
            logging.getLogger("webhook").debug("Webhook POST failed: %s", exc)
        except Exception as exc:
            logging.getLogger("webhook").debug("Webhook error: %s", exc)


def level_from_env(default: int = logging.INFO) -> int:
    """Resolve ``LOG_LEVEL`` (e.g. ``"DEBUG"``) to a logging level."""
    name = os.environ.get("LOG_LEVEL", "").strip().upper()
    if not name:
        return default
    return getattr(logging, name, default)


def setup_logging(level: int = logging.INFO) -> None:
    """
    Configure the root logger with structured JSON output and trace context.

    Safe to call multiple times; subsequent calls are no-ops.

    When ``ALERT_WEBHOOK_URL`` is set, a ``StoreAlertHandler`` is attached
    to the root logger as well.

    Args:
        level: The root log level (default ``logging.INFO``).
    """
    global _setup_done
    if _setup_done:
        return
    _setup_done = True

    LoggingInstrumentor().instrument(set_logging_format=False)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonTraceFormatter(_FORMAT_STRING))

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)

    webhook_url = os.environ.get("ALERT_WEBHOOK_URL")
    if webhook_url:
        root.addHandler(StoreAlertHandler(webhook_url))
        logging.getLogger("observability").info(
            "StoreAlertHandler attached (url=%s)", webhook_url
        )


def get_logger(name: str) -> logging.Logger:
    """Return a named logger (thin wrapper for discoverability)."""
    return logging.getLogger(name)
