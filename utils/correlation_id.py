from contextvars import ContextVar
from typing import Optional

correlation_id_context: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def set_correlation_id(correlation_id: str):
    return correlation_id_context.set(correlation_id)


def reset_correlation_id(token) -> None:
    correlation_id_context.reset(token)
