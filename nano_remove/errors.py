"""Error taxonomy for the proxy.

Every failure the handler knows about is raised as a ``ProxyError`` and
turned into an ``ok: false`` envelope at the handler boundary. Anything else
becomes ``UNEXPECTED`` (500).
"""
from __future__ import annotations

from typing import Any


class ProxyError(Exception):
    code = "UNEXPECTED"
    status = 500

    def __init__(self, message: str, *, status: int | None = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        self.details = details

    def to_dict(self) -> dict:
        err = {"code": self.code, "message": self.message}
        if self.details is not None:
            err["details"] = self.details
        return err


class BadInput(ProxyError):
    code = "BAD_INPUT"
    status = 400


class MethodNotAllowed(ProxyError):
    code = "METHOD_NOT_ALLOWED"
    status = 405


class ConfigError(ProxyError):
    code = "CONFIG_ERROR"
    status = 500


class UpstreamError(ProxyError):
    """Provider answered with a non-2xx status; ``status`` is passed through."""
    code = "UPSTREAM_ERROR"
    status = 502


class NoImageReturned(ProxyError):
    code = "NO_IMAGE_RETURNED"
    status = 502
