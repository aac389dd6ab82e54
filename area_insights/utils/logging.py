"""
Structured logging with correlation IDs for the insights pipeline.
"""

import logging
import json
import uuid
import time
import traceback
from typing import Dict, Any, Optional
from contextvars import ContextVar
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

# Context variables for request tracking
request_id_context: ContextVar[str] = ContextVar('request_id', default='')
user_id_context: ContextVar[str] = ContextVar('user_id', default='')
operation_context: ContextVar[str] = ContextVar('operation', default='')

CONTEXT_FIELDS = (
    ('request_id', request_id_context),
    ('user_id', user_id_context),
    ('operation', operation_context),
)

# LogRecord attribute -> JSON key
RECORD_FIELDS = {
    'duration': 'duration_ms',
    'latitude': 'latitude',
    'longitude': 'longitude',
    'cache_key': 'cache_key',
}

PREFERENCE_PATH_PREFIX = ['api', 'v1', 'preferences']


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, enriched with the current request context."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        for name, context in CONTEXT_FIELDS:
            value = context.get('')
            if value:
                log_entry[name] = value

        if record.exc_info:
            error_type, error, tb = record.exc_info
            log_entry['exception'] = {
                'type': error_type.__name__,
                'message': str(error),
                'traceback': traceback.format_exception(error_type, error, tb)
            }

        log_entry.update(getattr(record, 'extra_fields', None) or {})

        for attribute, key in RECORD_FIELDS.items():
            if hasattr(record, attribute):
                log_entry[key] = getattr(record, attribute)

        return json.dumps(log_entry, default=str)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request and its response under a correlation id.

    The id comes from ``X-Request-ID`` when the client sends one and is
    echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get('x-request-id') or str(uuid.uuid4())
        request_id_context.set(request_id)

        user_id = self._extract_user_id(request)
        if user_id:
            user_id_context.set(user_id)

        logger = logging.getLogger('api.request')
        start_time = time.time()
        logger.info(
            f"{request.method} {request.url.path}",
            extra={
                'extra_fields': {
                    'method': request.method,
                    'path': request.url.path,
                    'query_params': dict(request.query_params),
                    'client_ip': request.client.host if request.client else None,
                    'user_agent': request.headers.get('user-agent'),
                }
            }
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Request failed: {e}",
                exc_info=True,
                extra={
                    'extra_fields': {'error_type': type(e).__name__},
                    'duration': (time.time() - start_time) * 1000
                }
            )
            raise
        finally:
            user_id_context.set('')
            operation_context.set('')

        logger.info(
            f"Response {response.status_code}",
            extra={
                'extra_fields': {'status_code': response.status_code},
                'duration': (time.time() - start_time) * 1000
            }
        )
        request_id_context.set('')

        response.headers['X-Request-ID'] = request_id
        return response

    @staticmethod
    def _extract_user_id(request: Request) -> Optional[str]:
        """User id from ``/api/v1/preferences/{user_id}`` paths."""
        parts = request.url.path.strip('/').split('/')
        if len(parts) > len(PREFERENCE_PATH_PREFIX) and parts[:3] == PREFERENCE_PATH_PREFIX:
            return parts[3]
        return None


class InsightsLogger:
    """Logger for cache, provider and insights operations."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def log_cache_lookup(self, cache_key: str, hit: bool, latitude: float, longitude: float):
        operation_context.set("cache_lookup")

        self.logger.info(
            f"Area cache {'hit' if hit else 'miss'}: {cache_key}",
            extra={
                'cache_key': cache_key,
                'latitude': latitude,
                'longitude': longitude,
                'extra_fields': {'cache_hit': hit}
            }
        )

    def log_places_lookup(
        self,
        latitude: float,
        longitude: float,
        result_counts: Dict[str, int],
        failed_categories: list,
        duration_ms: float
    ):
        """Log a fan-out lookup against the places provider."""
        operation_context.set("places_lookup")

        level = logging.WARNING if failed_categories else logging.INFO
        self.logger.log(
            level,
            f"Places fetched: {sum(result_counts.values())} results",
            extra={
                'latitude': latitude,
                'longitude': longitude,
                'extra_fields': {
                    'result_counts': result_counts,
                    'failed_categories': failed_categories
                },
                'duration': duration_ms
            }
        )

    def log_insights_served(
        self,
        user_id: Optional[str],
        latitude: float,
        longitude: float,
        results_count: int,
        from_cache: bool,
        duration_ms: float
    ):
        """Log a completed insights response."""
        operation_context.set("area_insights")

        self.logger.info(
            f"Insights served: {results_count} recommendations",
            extra={
                'latitude': latitude,
                'longitude': longitude,
                'extra_fields': {
                    'user_id': user_id,
                    'results_count': results_count,
                    'from_cache': from_cache
                },
                'duration': duration_ms
            }
        )

    def log_error(
        self,
        error: Exception,
        operation: str,
        context: Optional[Dict[str, Any]] = None
    ):
        """Log errors with full context."""
        operation_context.set(operation)

        extra_fields = {
            'operation': operation,
            'error_type': type(error).__name__,
            'error_message': str(error)
        }

        if context:
            extra_fields.update(context)

        self.logger.error(
            f"Operation failed: {operation}",
            exc_info=error,
            extra={'extra_fields': extra_fields}
        )


QUIET_LOGGERS = ('uvicorn', 'sqlalchemy.engine', 'aiohttp', 'celery')
APP_LOGGERS = ('api', 'insights', 'area_insights')


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "structured",
    log_file: Optional[str] = None
):
    """Install JSON (or plain text) handlers on the root logger."""
    level = getattr(logging, log_level.upper())

    if log_format == "structured":
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    for name in APP_LOGGERS:
        logging.getLogger(name).setLevel(level)


insights_logger = InsightsLogger('insights')
