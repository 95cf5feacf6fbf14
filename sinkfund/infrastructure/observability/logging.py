"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger
from sinkfund.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_recalculation(
    user_id: str,
    operation: str,
    total_contribution_per_cycle: float,
    capacity_exceeded: bool,
    applied_escalations: int,
    duration_ms: float,
) -> None:
    """Log structured engine outcome for analysis"""
    logging.info(
        "Engine run completed",
        extra={
            "user_id": user_id,
            "step": f"{operation}_complete",
            "total_contribution_per_cycle": round(total_contribution_per_cycle, 2),
            "capacity_exceeded": capacity_exceeded,
            "applied_escalations": applied_escalations,
            "duration_ms": duration_ms,
        },
    )
