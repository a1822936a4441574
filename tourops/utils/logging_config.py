"""
Structured Logging Configuration

Provides JSON-formatted logging with:
- Request ID tracking
- Entity context (booking, invoice, boat lock)
- Duration of manifest compilation
"""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Optional, Any, Dict
from contextvars import ContextVar

# Context variables for request tracking
request_id_var: ContextVar[str] = ContextVar('request_id', default='')
company_id_var: ContextVar[str] = ContextVar('company_id', default='')


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.
    Outputs one JSON object per line for log aggregators.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        company_id = company_id_var.get()
        if company_id:
            log_data["company_id"] = company_id

        log_data["module"] = record.module
        log_data["function"] = record.funcName
        log_data["line"] = record.lineno

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_data'):
            log_data["data"] = record.extra_data

        if hasattr(record, 'duration_ms'):
            log_data["duration_ms"] = record.duration_ms

        if hasattr(record, 'entity_type'):
            log_data["entity_type"] = record.entity_type
        if hasattr(record, 'entity_id'):
            log_data["entity_id"] = record.entity_id

        return json.dumps(log_data, ensure_ascii=False, default=str)


class StructuredLogger(logging.LoggerAdapter):
    """
    Logger adapter that adds structured context to log messages.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = kwargs.get('extra', {})
        extra.update(self.extra)
        kwargs['extra'] = extra
        return msg, kwargs

    def log_with_context(
        self,
        level: int,
        msg: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        duration_ms: Optional[float] = None,
        **extra_data
    ):
        """Log with additional structured context."""
        extra = {}
        if entity_type:
            extra['entity_type'] = entity_type
        if entity_id:
            extra['entity_id'] = entity_id
        if duration_ms is not None:
            extra['duration_ms'] = duration_ms
        if extra_data:
            extra['extra_data'] = extra_data

        self.log(level, msg, extra=extra)

    def assignment_set(self, company_id: str, activity_date: str, boat_id: str,
                       guide_id: Optional[str], restaurant_id: Optional[str]):
        """Log a boat lock upsert."""
        self.log_with_context(
            logging.INFO,
            f"Boat assignment set: {boat_id} on {activity_date}",
            entity_type="boat_assignment_lock",
            entity_id=boat_id,
            company_id=company_id,
            activity_date=activity_date,
            guide_id=guide_id,
            restaurant_id=restaurant_id
        )

    def invoice_attached(self, invoice_id: str, booking_ids: list):
        """Log bookings attached to an invoice."""
        self.log_with_context(
            logging.INFO,
            f"Attached {len(booking_ids)} booking(s) to invoice",
            entity_type="invoice",
            entity_id=invoice_id,
            booking_ids=booking_ids
        )

    def manifest_compiled(self, company_id: str, activity_date: str, rows: int, duration_ms: float):
        """Log manifest compilation with timing."""
        self.log_with_context(
            logging.INFO,
            f"Manifest compiled: {rows} rows for {activity_date}",
            entity_type="manifest",
            entity_id=f"{company_id}:{activity_date}",
            duration_ms=duration_ms,
            rows=rows
        )


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    include_uvicorn: bool = True
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Use JSON format (True for production)
        include_uvicorn: Also configure uvicorn loggers
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    logging.getLogger("tourops").setLevel(log_level)

    if include_uvicorn:
        for logger_name in ["uvicorn", "uvicorn.access", "uvicorn.error"]:
            logging.getLogger(logger_name).handlers = [handler]

    # Reduce noise from third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger for the given module."""
    return StructuredLogger(logging.getLogger(name), {})


def set_request_context(request_id: str, company_id: Optional[str] = None):
    """Set context for the current request."""
    request_id_var.set(request_id)
    if company_id:
        company_id_var.set(company_id)


def clear_request_context():
    """Clear request context."""
    request_id_var.set('')
    company_id_var.set('')
