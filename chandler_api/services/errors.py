"""
Upstream error taxonomy and OpenAI-compatible error responses.

Exceptions raised while talking to the Chandler AI service:
    - TransportError: connection/timeout failure, never retried here
    - UpstreamStatusError: non-success HTTP status (code + raw body kept)
    - DecodeError: a body or stream line is not the JSON we expect
    - ResolutionError: conversation or user lookup failed
    - StreamAbortedError: explicit error frame or mid-stream disconnect

All of them derive from UpstreamError. The router logs them and answers
with the generic internal_error() body, so upstream details never reach
the client.

Error responses follow the OpenAI format:
{
    "error": {
        "message": "Error description",
        "type": "error_type",
        "param": "parameter_name",
        "code": "error_code"
    }
}

Last Grunted: 10/19/2026 03:30:00 PM UTC
"""
from typing import Optional

from fastapi.responses import JSONResponse


# ============================================================================
# Exceptions
# ============================================================================

class UpstreamError(Exception):
    """Base class for every failure surfaced by the upstream bridge."""


class TransportError(UpstreamError):
    """Connection or timeout failure while talking to the upstream."""


class UpstreamStatusError(UpstreamError):
    """
    Upstream answered with a non-success HTTP status.

    Attributes:
        status_code: HTTP status returned by the upstream
        body: Raw response body, kept for diagnostics only

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """

    def __init__(self, status_code: int, body: str):
        super().__init__(f"http error: code={status_code}, status={body}")
        self.status_code = status_code
        self.body = body


class DecodeError(UpstreamError):
    """Body or stream line is not valid JSON of the expected shape."""


class ResolutionError(UpstreamError):
    """Conversation or identity resolution failed; no chat turn was sent."""


class StreamAbortedError(UpstreamError):
    """The chat stream reported an error frame or dropped mid-way."""


# ============================================================================
# Error Response Factory
# ============================================================================

def create_error_response(
    message: str,
    error_type: str = "invalid_request_error",
    param: Optional[str] = None,
    code: Optional[str] = None,
    status_code: int = 400
) -> JSONResponse:
    """
    Create an OpenAI-style error response.

    Args:
        message: Human-readable error description
        error_type: Error category (invalid_request_error, api_error, ...)
        param: The parameter that caused the error (if applicable)
        code: Machine-readable error code
        status_code: HTTP status code

    Returns:
        JSONResponse with OpenAI error format

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "message": message,
                "type": error_type,
                "param": param,
                "code": code
            }
        }
    )


def model_not_found_error(model: str) -> JSONResponse:
    """
    Create error response for unknown model.

    Args:
        model: The requested model name

    Returns:
        JSONResponse with 404 status
    """
    return create_error_response(
        message=f"The model '{model}' does not exist or you do not have access to it.",
        error_type="invalid_request_error",
        param="model",
        code="model_not_found",
        status_code=404
    )


def internal_error() -> JSONResponse:
    """
    Create the generic internal server error response.

    Upstream failures all map here; the detail stays in the logs.

    Returns:
        JSONResponse with 500 status
    """
    return create_error_response(
        message="An internal server error occurred",
        error_type="api_error",
        code="internal_error",
        status_code=500
    )
