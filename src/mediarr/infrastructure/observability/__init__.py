"""Observability infrastructure for structured logging."""

from mediarr.infrastructure.observability.logging import (
    configure_logging,
    get_operation_id,
    set_operation_id,
)

__all__ = [
    "configure_logging",
    "get_operation_id",
    "set_operation_id",
]
