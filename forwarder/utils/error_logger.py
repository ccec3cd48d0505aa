"""
Structured failure logging for the forwarder.

Helpers log through `error.<component>` loggers, so records reach the JSONL
error log configured in forwarder/core/logging.py with the inbound request
path and, for upstream failures, a trimmed view of the upstream response.

Usage:
    from forwarder.utils.error_logger import log_upstream_error

    log_upstream_error(url, e, method="GET", response=e.response)
"""

from typing import TYPE_CHECKING, Any

import httpx

from forwarder.core.logging import get_logger

if TYPE_CHECKING:
    from forwarder.rss.reference import ForwardingError

_HEADER_PREVIEW = 200
_BODY_PREVIEW = 500


def upstream_details(response: httpx.Response) -> dict[str, Any]:
    """Summarize an upstream response: status, headers, request line, body preview."""
    details: dict[str, Any] = {
        "status_code": response.status_code,
        "headers": {key: value[:_HEADER_PREVIEW] for key, value in response.headers.items()},
    }
    try:
        details["method"] = response.request.method
        details["request_url"] = str(response.request.url)
    except RuntimeError:
        # Response built without a request
        pass
    try:
        details["response_body"] = response.text[:_BODY_PREVIEW]
    except httpx.ResponseNotRead:
        pass
    return details


def log_error(
    component: str,
    error: Exception,
    *,
    operation: str | None = None,
    context: dict[str, Any] | None = None,
    request_path: str | None = None,
    response: httpx.Response | None = None,
) -> None:
    """Log a failure with its traceback and forwarder fields.

    Args:
        component: Component name for identifying the source of errors.
        error: The exception that occurred.
        operation: Name of the operation that failed.
        context: Additional context data.
        request_path: Path of the inbound request being served.
        response: Upstream response that caused the failure.
    """
    logger = get_logger(f"error.{component}")

    operation_str = f" during {operation}" if operation else ""
    path_str = f" ({request_path})" if request_path else ""

    logger.error(
        f"{component} error{operation_str}{path_str}: {error}",
        exc_info=error,
        extra={
            "component": component,
            "operation": operation,
            "context_data": context,
            "http_details": upstream_details(response) if response is not None else None,
            "request_path": request_path,
            "error_type": type(error).__name__,
            "error_message": str(error),
        },
    )


def log_upstream_error(
    url: str,
    error: Exception,
    *,
    method: str = "GET",
    response: httpx.Response | None = None,
) -> None:
    """Log a failed request to the upstream feed host."""
    context: dict[str, Any] = {"url": url}
    if response is not None:
        context["status_code"] = response.status_code
    log_error(
        "upstream",
        error,
        operation=f"upstream_{method.lower()}",
        context=context,
        response=response,
    )


def log_analytics_error(
    sender: str,
    error: Exception,
    *,
    event: str | None = None,
    request_path: str | None = None,
) -> None:
    """Log a failed analytics send. Never raises.

    Args:
        sender: Name of the analytics sender (e.g. 'posthog').
        error: The exception that occurred.
        event: Event name that was being sent.
        request_path: Path of the download request that triggered the event.
    """
    log_error(
        f"analytics.{sender}",
        error,
        operation="send_event",
        context={"event": event},
        request_path=request_path,
    )


def log_rejected_forward(error: "ForwardingError", request_path: str) -> None:
    """Log an indirection request that could not be resolved.

    Rejections are client mistakes, not service failures, so they are logged
    at WARNING without a traceback.
    """
    get_logger("error.feed_router").warning(
        f"Rejected forward request {request_path}: {error.message}",
        extra={
            "component": "feed_router",
            "operation": "resolve_reference",
            "request_path": request_path,
            "context_data": {"kind": error.kind.value},
        },
    )
