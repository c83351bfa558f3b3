from __future__ import annotations

from typing import Any, Optional


class GatewayError(Exception):
    """Base exception for failures while talking to an SMS gateway."""


class RequestBuildError(GatewayError):
    pass


class TransportError(GatewayError):
    pass


class ResponseReadError(GatewayError):
    pass


class ResponseDecodeError(GatewayError):
    """The provider answered but the body could not be decoded.

    ``response`` holds whatever was decoded before the failure.
    """

    def __init__(self, message: str, response: Optional[Any] = None):
        super().__init__(message)
        self.response = response
