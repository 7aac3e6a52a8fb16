import structlog
import logging
import sys
from typing import Dict, Any, Optional
from datetime import datetime, timezone
import os


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "graphiti-memory"
) -> None:
    """Setup structured logging configuration"""

    # Configure Python logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO)
    )

    # Processors for structlog
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_service_context,
    ]

    # Add appropriate renderer based on format
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
        version=os.getenv("SERVICE_VERSION", "unknown")
    )


def add_service_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add service context to all log entries"""

    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()

    # Session ID bound by the host for the current turn, if any
    session_id = structlog.contextvars.get_contextvars().get("session_id")
    if session_id and "session_id" not in event_dict:
        event_dict["session_id"] = session_id

    return event_dict


class MemoryLogger:
    """Structured event hook for memory operations.

    Passed into the memory adapter so that every remote call, fallback and
    degradation is emitted as a named event instead of free-form console text.
    """

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_memory_event(
        self,
        event_type: str,
        session_id: str,
        data: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        """Log adapter lifecycle events (load/save/clear)"""

        self.logger.info(
            "memory_event",
            event_type=event_type,
            session_id=session_id,
            data=data or {},
            **kwargs
        )

    def log_remote_call(
        self,
        endpoint: str,
        session_id: str,
        duration_ms: Optional[float] = None,
        success: bool = True,
        status_code: Optional[int] = None,
        error: Optional[str] = None
    ):
        """Log a single request against the memory service"""

        self.logger.info(
            "remote_call",
            endpoint=endpoint,
            session_id=session_id,
            duration_ms=duration_ms,
            success=success,
            status_code=status_code,
            error=error
        )

    def log_fallback(
        self,
        session_id: str,
        from_source: str,
        to_source: str,
        reason: Optional[str] = None
    ):
        """Log a switch from a primary source to its fallback"""

        self.logger.warning(
            "memory_fallback",
            session_id=session_id,
            from_source=from_source,
            to_source=to_source,
            reason=reason
        )

    def log_degradation(
        self,
        session_id: str,
        component: str,
        error: str
    ):
        """Log a failure that was replaced by an empty result"""

        self.logger.error(
            "memory_degraded",
            session_id=session_id,
            component=component,
            error=error
        )

    def log_write_outcome(
        self,
        session_id: str,
        role: str,
        success: bool,
        status_code: Optional[int] = None,
        error: Optional[str] = None
    ):
        """Log the result of a long-term append"""

        log = self.logger.info if success else self.logger.error
        log(
            "memory_write",
            session_id=session_id,
            role=role,
            success=success,
            status_code=status_code,
            error=error
        )

    def log_buffer_update(
        self,
        session_id: str,
        action: str,
        size: int,
        evicted: int = 0
    ):
        """Log short-term buffer changes"""

        self.logger.debug(
            "buffer_update",
            session_id=session_id,
            action=action,
            size=size,
            evicted=evicted
        )


# Global logger instance
memory_logger = MemoryLogger("graphiti_memory")


class MetricsCollector:
    """Collect and export metrics"""

    def __init__(self, logger: Optional[MemoryLogger] = None):
        self.metrics: Dict[str, Any] = {}
        self._logger = logger or memory_logger

    def record_latency(self, operation: str, duration_ms: float, tags: Optional[Dict[str, str]] = None):
        """Record operation latency"""

        key = f"latency.{operation}"
        if key not in self.metrics:
            self.metrics[key] = {
                "count": 0,
                "sum": 0,
                "min": float('inf'),
                "max": 0
            }

        self.metrics[key]["count"] += 1
        self.metrics[key]["sum"] += duration_ms
        self.metrics[key]["min"] = min(self.metrics[key]["min"], duration_ms)
        self.metrics[key]["max"] = max(self.metrics[key]["max"], duration_ms)

        self._logger.logger.debug(
            "metric",
            metric_type="latency",
            operation=operation,
            duration_ms=duration_ms,
            tags=tags or {}
        )

    def increment_counter(self, name: str, value: int = 1, tags: Optional[Dict[str, str]] = None):
        """Increment a counter metric"""

        if name not in self.metrics:
            self.metrics[name] = 0
        self.metrics[name] += value

        self._logger.logger.debug(
            "metric",
            metric_type="counter",
            name=name,
            value=value,
            tags=tags or {}
        )

    def set_gauge(self, name: str, value: float, tags: Optional[Dict[str, str]] = None):
        """Set a gauge metric"""

        self.metrics[name] = value

        self._logger.logger.debug(
            "metric",
            metric_type="gauge",
            name=name,
            value=value,
            tags=tags or {}
        )

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Get summary of all metrics"""

        summary = {}
        for key, value in self.metrics.items():
            if isinstance(value, dict) and "count" in value:
                # Latency metric
                summary[key] = {
                    "count": value["count"],
                    "avg": value["sum"] / value["count"] if value["count"] > 0 else 0,
                    "min": value["min"] if value["min"] != float('inf') else 0,
                    "max": value["max"]
                }
            else:
                # Counter or gauge
                summary[key] = value

        return summary
