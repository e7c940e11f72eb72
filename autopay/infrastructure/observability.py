"""Structured Logging — JSON lines for the scheduler, the engine and the API.

Invariants:
    - Every line carries timestamp, level, logger and message
    - Payment context (payment_id, owner_id, tx_hash, ...) appears only when supplied
      via `extra=` or a PaymentLogAdapter
    - Authorization material is never a recognised field (nothing maps it into output)

Design Decisions:
    - stdlib logging + a JSON formatter: no logging dependency
    - "text" format for local development, "json" everywhere else
"""

import json
import logging
from datetime import datetime, timezone

CONTEXT_FIELDS = (
    "payment_id", "owner_id", "payment_type", "tx_hash", "error_code",
    "failure_kind", "attempt", "tick", "status", "next_execution_date",
)


class JSONFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc,
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update({
            field: getattr(record, field)
            for field in CONTEXT_FIELDS
            if getattr(record, field, None) is not None
        })
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class PaymentLogAdapter(logging.LoggerAdapter):
    """Attach one payment's identifiers to every record logged through it."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def payment_logger(logger: logging.Logger, payment) -> PaymentLogAdapter:
    return PaymentLogAdapter(logger, {
        "payment_id": str(payment.id),
        "owner_id": str(payment.owner_id),
        "payment_type": getattr(payment.payment_type, "value", payment.payment_type),
    })


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        ))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
