# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Domain exception hierarchy for the service layer.

Purpose: Provide HTTP-agnostic domain exceptions that carry enough context for
the API layer (or a global exception handler) to translate them into proper
HTTP responses, and for the chat session controller to turn failed exchanges
into a readable error message in the conversation.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base domain exception that carries an HTTP-equivalent status code.

    All service-layer error conditions should be expressed as subclasses
    of this class.  The global exception handler registered in ``main.py``
    translates these into JSON error responses automatically.
    """

    default_status_code: int = 500

    def __init__(self, detail: str, status_code: int | None = None):
        super().__init__(detail)
        self.detail = detail
        self.status_code = (
            status_code if status_code is not None else self.default_status_code
        )


class BadRequestError(ServiceError):
    """Raised when the caller provides invalid or missing input (HTTP 400)."""

    default_status_code = 400


class NotFoundError(ServiceError):
    """Raised when a requested resource does not exist (HTTP 404)."""

    default_status_code = 404


class ConflictError(ServiceError):
    """Raised when an exchange is already in flight for the conversation (HTTP 409)."""

    default_status_code = 409


class ConfigurationError(ServiceError):
    """Raised when required configuration is missing or invalid (HTTP 400)."""

    default_status_code = 400


class UpstreamError(ServiceError):
    """Raised when a call to an external service / upstream API fails (HTTP 502)."""

    default_status_code = 502


class TransportError(UpstreamError):
    """Network failure talking to the inference endpoint."""


class StreamIdleTimeoutError(TransportError):
    """No body chunk arrived within the configured idle interval (HTTP 504)."""

    default_status_code = 504


class HttpStatusError(UpstreamError):
    """The inference endpoint answered with a non-success status.

    ``upstream_status`` keeps the status returned by the endpoint, while
    ``status_code`` stays the 502 reported to our own callers.
    """

    def __init__(
        self, upstream_status: int, reason_phrase: str = "", error: str | None = None
    ):
        detail = f"API error: {upstream_status} {reason_phrase}".rstrip()
        if error:
            detail = f"{detail}: {error}"
        super().__init__(detail)
        self.upstream_status = upstream_status
        self.reason_phrase = reason_phrase
        self.error = error


class FrameParseError(ValueError):
    """A body line is not a JSON object of the stream frame shape.

    Never surfaced to users: the frame decoder skips the offending line.
    """

    def __init__(self, line: str, reason: str):
        super().__init__(f"{reason}: {line[:200]!r}")
        self.line = line
        self.reason = reason
