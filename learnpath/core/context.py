"""Request context management using contextvars.

Every request (or background job run) carries a request ID and optional
user and correlation identifiers. They are read by the logging processors
so that ledger and settlement events can be tied back to the call that
produced them.
"""

from contextvars import ContextVar
from typing import Any
from uuid import UUID, uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def generate_request_id() -> str:
    """Generate a new unique request ID."""
    return str(uuid4())


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID for the current context.

    Args:
        request_id: Optional request ID. If not provided, generates a new one.

    Returns:
        The request ID that was set.
    """
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def get_user_id() -> str | None:
    """Get the current user ID."""
    return user_id_var.get()


def set_user_id(user_id: str | UUID | None) -> None:
    """Set the user ID for the current context."""
    user_id_var.set(str(user_id) if user_id is not None else None)


def get_correlation_id() -> str | None:
    """Get the current correlation ID."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None) -> None:
    """Set the correlation ID for tracking related operations."""
    correlation_id_var.set(correlation_id)


def get_context() -> dict[str, Any]:
    """Get all non-empty context variables as a dictionary."""
    context: dict[str, Any] = {}

    request_id = get_request_id()
    if request_id:
        context["request_id"] = request_id

    user_id = get_user_id()
    if user_id:
        context["user_id"] = user_id

    correlation_id = get_correlation_id()
    if correlation_id:
        context["correlation_id"] = correlation_id

    return context


def clear_context() -> None:
    """Clear all context variables.

    Called at the end of each request to prevent context leakage.
    """
    request_id_var.set("")
    user_id_var.set(None)
    correlation_id_var.set(None)


class RequestContext:
    """Context manager for work that runs outside an HTTP request.

    Usage:
        with RequestContext(correlation_id="reconcile-2024-01-01"):
            await service.reconcile_settlements()
    """

    def __init__(
        self,
        request_id: str | None = None,
        user_id: str | UUID | None = None,
        correlation_id: str | None = None,
    ) -> None:
        self.request_id = request_id
        self.user_id = user_id
        self.correlation_id = correlation_id
        self._tokens: list[tuple[ContextVar[Any], Any]] = []

    def __enter__(self) -> "RequestContext":
        """Enter context and set variables."""
        self._tokens.append(
            (request_id_var, request_id_var.set(self.request_id or generate_request_id()))
        )
        if self.user_id is not None:
            self._tokens.append((user_id_var, user_id_var.set(str(self.user_id))))
        if self.correlation_id is not None:
            self._tokens.append(
                (correlation_id_var, correlation_id_var.set(self.correlation_id))
            )
        return self

    def __exit__(self, *_: object) -> None:
        """Exit context and restore previous values."""
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
