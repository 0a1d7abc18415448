"""Structured logging for server actions."""

import logging
from typing import Any

logger = logging.getLogger(__name__)


class StructuredActionLogger:
    """Structured logger for server action outcomes."""

    def log_outcome(
        self,
        action: str,
        caller: str,
        outcome: str,
        latency_ms: float,
        error_reason: str | None = None,
        **fields: Any,
    ) -> None:
        """Log one action invocation with structured data."""
        log_data: dict[str, Any] = {
            "action": action,
            "caller": caller,
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
        }
        log_data.update(fields)

        if error_reason:
            log_data["error_reason"] = error_reason

        log_msg = f"Server action: {action} - {outcome}"

        if outcome == "success":
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})

    def log_downstream_error(self, source: str, message: str, **fields: Any) -> None:
        """Log a failure reported by the database or identity provider."""
        log_data: dict[str, Any] = {"source": source, "message": message}
        log_data.update(fields)
        logger.warning(f"Downstream error from {source}", extra={"structured": log_data})


action_logger = StructuredActionLogger()
